"""
Pool resolution against a constant-product factory.
"""
import logging
from typing import Optional, Tuple

from services.chain import ChainClient
from services.errors import ActionFailed, InvalidIntent, PoolNotFound
from services.models import Pool, Token, same_address
from services.tokens import TokenRegistry
from utils.config import CONFIRMATION_TIMEOUT_SECONDS, FACTORY_ADDRESS
from utils.status_updates import StatusCallback, notify

logger = logging.getLogger(__name__)

ZERO_ADDRESS: str = "0x0000000000000000000000000000000000000000"


class PoolResolver:
    """Maps token pairs to pools and reads reserve snapshots."""

    def __init__(
        self,
        chain_client: ChainClient,
        registry: TokenRegistry,
        factory_address: str = FACTORY_ADDRESS,
    ) -> None:
        self.chain_client = chain_client
        self.registry = registry
        self.factory_address = factory_address

    def pair_addresses(self, token_a: Token, token_b: Token) -> Tuple[str, str]:
        """Tradable addresses of a pair, rejecting pairs that collapse to one token.

        Raises:
            InvalidIntent: If both sides are the same token (including native vs wrapped)
        """
        address_a = self.registry.to_tradable_address(token_a)
        address_b = self.registry.to_tradable_address(token_b)
        if same_address(address_a, address_b):
            raise InvalidIntent(
                f"Cannot pair {token_a.symbol} with {token_b.symbol}: both resolve to {address_a}"
            )
        return address_a, address_b

    async def find_pool_address(self, token_a: Token, token_b: Token) -> Optional[str]:
        """Look the pair up as (A, B) and then (B, A).

        Returns:
            Optional[str]: Pool address, or None if the factory knows no pool
        """
        address_a, address_b = self.pair_addresses(token_a, token_b)

        for first, second in ((address_a, address_b), (address_b, address_a)):
            pair_address = await self.chain_client.read_contract(
                self.factory_address, "getPair", [first, second]
            )
            if pair_address and not same_address(pair_address, ZERO_ADDRESS):
                logger.debug(f"Found pool {pair_address} for {first}/{second}")
                return str(pair_address)

        return None

    async def resolve_pool(self, token_a: Token, token_b: Token) -> Pool:
        """Resolve the pool for a pair and read a fresh reserve snapshot.

        Raises:
            PoolNotFound: If no pool exists for the pair in either order
        """
        pool_address = await self.find_pool_address(token_a, token_b)
        if pool_address is None:
            logger.info(f"No pool for {token_a.symbol}/{token_b.symbol}")
            raise PoolNotFound(
                f"No pool exists for {token_a.symbol}/{token_b.symbol}. Create the pool first.",
                detail=f"{token_a.address}/{token_b.address}",
            )
        return await self.fetch_snapshot(pool_address)

    async def fetch_snapshot(self, pool_address: str) -> Pool:
        """Read token order and reserves of a pool."""
        token0 = await self.chain_client.read_contract(pool_address, "token0")
        token1 = await self.chain_client.read_contract(pool_address, "token1")
        reserve0, reserve1, block_timestamp_last = await self.chain_client.read_contract(
            pool_address, "getReserves"
        )
        return Pool(
            address=pool_address,
            token0=str(token0),
            token1=str(token1),
            reserve0=int(reserve0),
            reserve1=int(reserve1),
            last_update_timestamp=int(block_timestamp_last),
        )

    async def create_pool(
        self,
        token_a: Token,
        token_b: Token,
        status_callback: Optional[StatusCallback] = None,
    ) -> str:
        """Create a pool for the pair. Only ever called as an explicit user action.

        Returns:
            str: Address of the new (or already existing) pool

        Raises:
            ActionFailed: If createPair reverts or the pool cannot be found afterwards
        """
        existing = await self.find_pool_address(token_a, token_b)
        if existing is not None:
            await notify(status_callback, f"Pool already exists at {existing}")
            return existing

        address_a, address_b = self.pair_addresses(token_a, token_b)
        await notify(status_callback, f"Creating pool {token_a.symbol}/{token_b.symbol}...")
        handle = await self.chain_client.write_contract(
            self.factory_address, "createPair", [address_a, address_b]
        )
        receipt = await self.chain_client.wait_for_confirmation(handle, timeout=CONFIRMATION_TIMEOUT_SECONDS)
        if not receipt.succeeded:
            raise ActionFailed(
                f"createPair reverted for {token_a.symbol}/{token_b.symbol}",
                reason="reverted",
                step="create_pool",
                detail=receipt.tx_hash,
            )

        created = await self.find_pool_address(token_a, token_b)
        if created is None:
            raise ActionFailed(
                "Pool creation confirmed but factory returned no pair",
                step="create_pool",
                detail=receipt.tx_hash,
            )
        logger.info(f"Created pool {created} for {token_a.symbol}/{token_b.symbol} in {receipt.tx_hash}")
        await notify(status_callback, f"Pool created at {created}")
        return created
