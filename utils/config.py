"""
Configuration module to handle environment variables.
"""
import os
from typing import Any, List, Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

def get_env_var(name: str, default: Any = None) -> Any:
    """
    Get an environment variable or return a default value if not found.
    
    Args:
        name (str): The name of the environment variable
        default: The default value to return if the variable is not found
        
    Returns:
        The value of the environment variable or the default value
    """
    value = os.getenv(name, default)
    if value is None:
        raise ValueError(f"Environment variable {name} not found and no default provided")
    return value

def get_optional_env_var(name: str) -> Optional[str]:
    """Return an environment variable, or None when it is unset or empty."""
    value = os.getenv(name)
    return value or None

# Chain connection
RPC_URL: str = get_env_var('RPC_URL', 'https://ethereum-sepolia-rpc.publicnode.com')
CHAIN_ID: int = int(get_env_var('CHAIN_ID', 11155111))
EXPLORER_URL: str = get_env_var('EXPLORER_URL', 'https://sepolia.etherscan.io')

# Constant-product deployment
ROUTER_ADDRESS: str = get_env_var('ROUTER_ADDRESS', '0xc532a74256d3db42d0bf7a0400fefdbad7694008')
FACTORY_ADDRESS: str = get_env_var('FACTORY_ADDRESS', '0x7e0987e5b3a30e3f2828572bb659a548460a3003')
WETH_ADDRESS: str = get_env_var('WETH_ADDRESS', '0x764ac516ec320a310375e69f59180355c69e313f')
NATIVE_PLACEHOLDER_ADDRESS: str = '0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE'
NATIVE_SYMBOL: str = get_env_var('NATIVE_SYMBOL', 'ETH')

# Signer used by the web3 chain client (optional, read-only without it)
WALLET_PRIVATE_KEY: Optional[str] = get_optional_env_var('WALLET_PRIVATE_KEY')

# Trading defaults
DEFAULT_FEE_BPS: int = int(get_env_var('DEFAULT_FEE_BPS', 30))  # 0.3% LP fee
DEFAULT_SLIPPAGE_BPS: int = int(get_env_var('DEFAULT_SLIPPAGE_BPS', 50))  # 0.5%
MAX_PRICE_IMPACT_BPS: int = int(get_env_var('MAX_PRICE_IMPACT_BPS', 500))  # 5%
DEADLINE_WINDOW_SECONDS: int = int(get_env_var('DEADLINE_WINDOW_SECONDS', 1800))  # 30 minutes
APPROVAL_MULTIPLIER: int = int(get_env_var('APPROVAL_MULTIPLIER', 10))
NATIVE_GAS_RESERVE_WEI: int = int(get_env_var('NATIVE_GAS_RESERVE_WEI', 10 ** 16))  # 0.01 native

# Transaction supervision
CONFIRMATION_TIMEOUT_SECONDS: float = float(get_env_var('CONFIRMATION_TIMEOUT_SECONDS', 120))
REFRESH_RETRY_DELAY_SECONDS: float = float(get_env_var('REFRESH_RETRY_DELAY_SECONDS', 1.0))

# Natural-language intent parsing
INTENT_CONFIDENCE_THRESHOLD: float = float(get_env_var('INTENT_CONFIDENCE_THRESHOLD', 0.5))
LLM_PROVIDER: str = get_env_var('LLM_PROVIDER', 'openai')
OPENAI_API_KEY: Optional[str] = get_optional_env_var('OPENAI_API_KEY')
OPENAI_BASE_URL: str = get_env_var('OPENAI_BASE_URL', 'https://api.openai.com/v1')
OPENAI_MODEL: str = get_env_var('OPENAI_MODEL', 'gpt-4o')
OPEN_SOURCE_LLM_ENDPOINT: Optional[str] = get_optional_env_var('OPEN_SOURCE_LLM_ENDPOINT')
OPEN_SOURCE_LLM_MODEL: str = get_env_var('OPEN_SOURCE_LLM_MODEL', 'default')

# Optional remote token list (token-list JSON with a "tokens" array)
TOKEN_LIST_URL: Optional[str] = get_optional_env_var('TOKEN_LIST_URL')

# Telegram (only needed by main.py)
TELEGRAM_BOT_TOKEN: Optional[str] = get_optional_env_var('TELEGRAM_BOT_TOKEN')

# Telegram user ids allowed to trade with the configured signer (comma separated)
TELEGRAM_ALLOWED_USER_IDS: List[int] = [
    int(user_id) for user_id in get_env_var('TELEGRAM_ALLOWED_USER_IDS', '').split(',') if user_id.strip()
]
