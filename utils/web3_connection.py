"""
Shared Web3 connection utility.
"""
from web3 import Web3
from utils.config import RPC_URL

def get_web3_connection() -> Web3:
    """
    Get the shared Web3 connection.
    
    Returns:
        Web3: The Web3 connection instance
    """
    if not RPC_URL:
        raise ValueError("RPC_URL not found in environment variables!")
    
    # HTTPProvider does not connect until the first request
    return Web3(Web3.HTTPProvider(RPC_URL))

# Singleton connection instance
w3: Web3 = get_web3_connection()
