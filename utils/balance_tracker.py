"""
Utility for refreshing wallet balances and allowances after a trade confirms.
"""
import logging
from typing import Dict, Iterable, Optional, Tuple

from services.chain import ChainClient
from services.models import Token

# Configure module logger
logger = logging.getLogger(__name__)


async def read_balance(chain_client: ChainClient, owner: str, token: Token) -> int:
    """
    Read the current balance of a token (or the native asset) for an owner.

    Args:
        chain_client (ChainClient): Client used for reads
        owner (str): Wallet address
        token (Token): Token to read

    Returns:
        int: Balance in base units
    """
    if token.is_native:
        return await chain_client.get_native_balance(owner)
    return int(await chain_client.read_contract(token.address, "balanceOf", [owner]))


class BalanceTracker:
    """Latest balances and allowances seen by one engine.

    Each engine owns its own tracker; nothing here is shared between sessions.
    """

    def __init__(self, chain_client: ChainClient) -> None:
        self.chain_client = chain_client
        # (owner, token) lowercase -> latest known balance
        self._balances: Dict[Tuple[str, str], int] = {}
        # (owner, spender, token) lowercase -> latest known allowance
        self._allowances: Dict[Tuple[str, str, str], int] = {}

    async def refresh(
        self,
        owner: str,
        tokens: Iterable[Token],
        spender: Optional[str] = None,
    ) -> Dict[str, int]:
        """
        Re-read balances (and allowances towards spender) for every touched token.

        Failures for individual tokens are logged and skipped so that one bad
        read does not hide the others.

        Args:
            owner (str): Wallet address
            tokens (Iterable[Token]): Tokens whose balances may have changed
            spender (Optional[str]): Router address whose allowances should be refreshed

        Returns:
            Dict[str, int]: Symbol -> balance for every token read successfully
        """
        balances: Dict[str, int] = {}

        for token in tokens:
            try:
                balance = await read_balance(self.chain_client, owner, token)
                self._balances[(owner.lower(), token.address.lower())] = balance
                balances[token.symbol] = balance

                if spender and not token.is_native:
                    allowance = await self.chain_client.read_contract(token.address, "allowance", [owner, spender])
                    self._allowances[(owner.lower(), spender.lower(), token.address.lower())] = int(allowance)
            except Exception as e:
                logger.error(f"Error refreshing {token.symbol} balance for {owner}: {e}")
                continue

        logger.info(f"Refreshed {len(balances)} balance(s) for {owner}")
        return balances

    def balance(self, owner: str, token: Token) -> Optional[int]:
        """Last refreshed balance, or None if it was never read."""
        return self._balances.get((owner.lower(), token.address.lower()))

    def allowance(self, owner: str, spender: str, token: Token) -> Optional[int]:
        """Last refreshed allowance, or None if it was never read."""
        return self._allowances.get((owner.lower(), spender.lower(), token.address.lower()))
