"""
Token registry: canonical token metadata and native/wrapped substitution.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx
from web3 import Web3

from services.errors import ChainClientError, UnknownToken
from services.models import Token, same_address
from utils.config import NATIVE_PLACEHOLDER_ADDRESS, NATIVE_SYMBOL, TOKEN_LIST_URL, WETH_ADDRESS

logger = logging.getLogger(__name__)

# Static table of commonly traded tokens. The native asset uses a placeholder
# address and is only ever sent to the chain as its wrapped counterpart.
COMMON_TOKENS: List[Dict[str, Any]] = [
    {"address": "0x8682d6f065e716d4c78b7bb5701e6e5859d050c5", "symbol": "testUSDC", "name": "testUSDC Coin", "decimals": 6},
    {"address": "0xdAC17F958D2ee523a2206206994597C13D831ec7", "symbol": "USDT", "name": "Tether USD", "decimals": 6},
    {"address": "0x6B175474E89094C44Da98b954EedeAC495271d0F", "symbol": "DAI", "name": "Dai Stablecoin", "decimals": 18},
]


class TokenRegistry:
    """Resolves symbols and addresses to Token metadata. Never guesses."""

    def __init__(
        self,
        wrapped_address: str = WETH_ADDRESS,
        native_symbol: str = NATIVE_SYMBOL,
        native_placeholder: str = NATIVE_PLACEHOLDER_ADDRESS,
        tokens: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        """Initialize the registry.

        Args:
            wrapped_address: Address of the wrapped native token
            native_symbol: Symbol of the chain's base currency
            native_placeholder: Logical address used for the native asset
            tokens: Extra token entries (address, symbol, decimals, name)
        """
        self._by_symbol: Dict[str, Token] = {}
        self._by_address: Dict[str, Token] = {}

        self.native = Token(
            address=native_placeholder,
            symbol=native_symbol,
            decimals=18,
            is_native=True,
            name=f"Native {native_symbol}",
        )
        self.wrapped = Token(
            address=wrapped_address,
            symbol=f"W{native_symbol}",
            decimals=18,
            name=f"Wrapped {native_symbol}",
        )
        self.add_custom_token(self.native)
        self.add_custom_token(self.wrapped)

        for entry in COMMON_TOKENS + (tokens or []):
            self.add_custom_token(self._token_from_entry(entry))

    @staticmethod
    def _token_from_entry(entry: Dict[str, Any]) -> Token:
        return Token(
            address=str(entry["address"]),
            symbol=str(entry["symbol"]),
            decimals=int(entry.get("decimals", 18)),
            name=str(entry.get("name", "")),
        )

    def add_custom_token(self, token: Token) -> None:
        """Register a token. Existing symbols and addresses keep their first entry."""
        self._by_address.setdefault(token.address.lower(), token)
        self._by_symbol.setdefault(token.symbol.upper(), token)

    def all_tokens(self) -> List[Token]:
        return list(self._by_address.values())

    @staticmethod
    def looks_like_address(ref: str) -> bool:
        return Web3.is_address(ref)

    def lookup(self, ref: Optional[str]) -> Optional[Token]:
        """Resolve a symbol or address against the local table only.

        Args:
            ref: Token symbol (case-insensitive) or address

        Returns:
            Optional[Token]: The token, or None if it is not known locally
        """
        if not ref:
            return None
        ref = ref.strip()
        if self.looks_like_address(ref):
            return self._by_address.get(ref.lower())
        return self._by_symbol.get(ref.upper())

    def resolve_token(self, ref: Optional[str]) -> Token:
        """Resolve a symbol or known address, or raise UnknownToken."""
        token = self.lookup(ref)
        if token is None:
            raise UnknownToken(f"Unknown token '{ref}'", detail=str(ref))
        return token

    async def resolve(self, ref: Optional[str], chain_client: Any = None) -> Token:
        """Resolve a symbol or address, reading unknown addresses from chain.

        An address is taken literally: when it is not in the table its symbol
        and decimals are read from the token contract and the result is cached.

        Args:
            ref: Token symbol or address
            chain_client: Optional ChainClient used for unknown addresses

        Returns:
            Token: Resolved token

        Raises:
            UnknownToken: If the reference cannot be resolved
        """
        token = self.lookup(ref)
        if token is not None:
            return token

        if not ref or not self.looks_like_address(ref.strip()) or chain_client is None:
            raise UnknownToken(f"Unknown token '{ref}'", detail=str(ref))

        address = Web3.to_checksum_address(ref.strip())
        try:
            symbol = await chain_client.read_contract(address, "symbol")
            decimals = await chain_client.read_contract(address, "decimals")
        except ChainClientError as e:
            logger.warning(f"Address {address} does not behave like an ERC-20 token: {e}")
            raise UnknownToken(f"Address {address} is not a readable token", detail=str(e)) from e

        # Some tokens return bytes for symbol
        if isinstance(symbol, bytes):
            symbol = symbol.decode('utf-8', errors='ignore').strip('\x00')

        token = Token(address=address, symbol=str(symbol), decimals=int(decimals))
        self.add_custom_token(token)
        logger.info(f"Resolved on-chain token {token.symbol} at {address} ({token.decimals} decimals)")
        return token

    def to_tradable_address(self, token: Token) -> str:
        """Address used for every on-chain call: the native asset becomes its wrapped token."""
        if token.is_native:
            return self.wrapped.address
        return token.address

    def from_tradable_address(self, address: str) -> Optional[Token]:
        """Inverse of to_tradable_address, for display: the wrapped token reads as native."""
        if same_address(address, self.wrapped.address):
            return self.native
        return self._by_address.get(address.lower())

    async def load_token_list(self, url: Optional[str] = TOKEN_LIST_URL) -> int:
        """Fetch a remote token list and register its tokens.

        Args:
            url: Token-list URL; nothing is fetched when None

        Returns:
            int: Number of tokens read from the list
        """
        if not url:
            return 0

        async with httpx.AsyncClient(timeout=30) as client:
            response = await client.get(url)
            response.raise_for_status()
            entries = response.json().get('tokens', [])

        count = 0
        for entry in entries:
            try:
                if not Web3.is_address(entry.get('address', '')):
                    continue
                self.add_custom_token(self._token_from_entry(entry))
                count += 1
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed token list entry {entry}: {e}")
        logger.info(f"Loaded {count} tokens from {url}")
        return count
