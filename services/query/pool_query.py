"""
Read-only pool reporting: reserves, swap counts and swap price distribution.
"""
import logging
import math
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from services.chain import ChainClient
from services.errors import InvalidIntent
from services.models import Pool, QueryKind, QueryRequest, Token
from services.pools import PoolResolver
from services.tokens import TokenRegistry
from services.transaction.number_converter import NumberConverter

logger = logging.getLogger(__name__)

AVG_BLOCK_TIME_SECONDS: int = 12
PRICE_BUCKET_COUNT: int = 15


def start_of_day(timestamp: float) -> int:
    """Unix timestamp of the UTC midnight preceding timestamp."""
    day = datetime.fromtimestamp(timestamp, tz=timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    return int(day.timestamp())


def price_histogram(prices: List[Decimal], bucket_count: int = PRICE_BUCKET_COUNT) -> List[Dict[str, Any]]:
    """Bucket prices into equal-width ranges between the minimum and maximum.

    Args:
        prices: Execution prices
        bucket_count: Number of buckets

    Returns:
        List[Dict[str, Any]]: One entry per bucket with low, high and count
    """
    if not prices:
        return []
    low, high = min(prices), max(prices)
    width = (high - low) / bucket_count
    if width == 0:
        width = Decimal("0.000001")

    counts = [0] * bucket_count
    for price in prices:
        index = min(int((price - low) / width), bucket_count - 1)
        counts[index] += 1

    return [
        {"low": low + i * width, "high": low + (i + 1) * width, "count": counts[i]}
        for i in range(bucket_count)
    ]


class PoolQueryReporter:
    """Answers read-only questions about a resolved pool."""

    def __init__(
        self,
        chain_client: ChainClient,
        registry: TokenRegistry,
        pool_resolver: PoolResolver,
        block_time: int = AVG_BLOCK_TIME_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.chain_client = chain_client
        self.registry = registry
        self.pool_resolver = pool_resolver
        self.block_time = block_time
        self.clock = clock

    async def report(self, query: QueryRequest) -> Dict[str, Any]:
        """Run a query and return its report.

        Args:
            query: Resolved query request

        Returns:
            Dict[str, Any]: Report fields, always including "query" and "pool"
        """
        logger.info(f"Running {query.kind.value} query for pool {query.pool_address}")
        if query.kind == QueryKind.GET_RESERVES:
            return await self.get_reserves(query.pool_address)
        if query.kind == QueryKind.SWAP_COUNT:
            return await self.swap_count(query.pool_address, query.timeframe)
        if query.kind == QueryKind.PRICE_DISTRIBUTION:
            return await self.price_distribution(query.pool_address, query.timeframe)
        raise InvalidIntent(f"Unsupported query: {query.kind}")

    async def _pool_tokens(self, pool_address: str) -> Tuple[Pool, Token, Token]:
        pool = await self.pool_resolver.fetch_snapshot(pool_address)
        token0 = self.registry.from_tradable_address(pool.token0)
        if token0 is None:
            token0 = await self.registry.resolve(pool.token0, self.chain_client)
        token1 = self.registry.from_tradable_address(pool.token1)
        if token1 is None:
            token1 = await self.registry.resolve(pool.token1, self.chain_client)
        return pool, token0, token1

    async def block_range(self, timeframe: Any) -> Tuple[int, int]:
        """Map "today" or a {from, to} window of unix seconds to a block range.

        Blocks are estimated from the latest block with a fixed average block time.
        """
        now = self.clock()
        latest = await self.chain_client.get_block_number()

        if timeframe == "today" or timeframe is None:
            start, end = start_of_day(now), now
        else:
            start, end = timeframe["from"], timeframe["to"]

        from_block = max(0, latest - math.ceil((now - start) / self.block_time))
        to_block = latest - max(0, math.floor((now - end) / self.block_time))
        return from_block, max(from_block, to_block)

    async def get_reserves(self, pool_address: str) -> Dict[str, Any]:
        pool, token0, token1 = await self._pool_tokens(pool_address)
        return {
            "query": QueryKind.GET_RESERVES.value,
            "pool": pool.address,
            "token0": token0.symbol,
            "token1": token1.symbol,
            "reserve0": NumberConverter.format_exact(pool.reserve0, token0.decimals),
            "reserve1": NumberConverter.format_exact(pool.reserve1, token1.decimals),
            "last_update": datetime.fromtimestamp(pool.last_update_timestamp, tz=timezone.utc).isoformat(),
        }

    async def swap_count(self, pool_address: str, timeframe: Any = "today") -> Dict[str, Any]:
        from_block, to_block = await self.block_range(timeframe)
        logs = await self.chain_client.get_logs(pool_address, "Swap", from_block, to_block)
        return {
            "query": QueryKind.SWAP_COUNT.value,
            "pool": pool_address,
            "timeframe": timeframe,
            "from_block": from_block,
            "to_block": to_block,
            "swap_count": len(logs),
        }

    @staticmethod
    def _swap_price(args: Dict[str, Any], token0: Token, token1: Token) -> Optional[Decimal]:
        """Execution price of one Swap event, in token1 per token0."""
        amount0 = int(args.get("amount0In", 0)) + int(args.get("amount0Out", 0))
        amount1 = int(args.get("amount1In", 0)) + int(args.get("amount1Out", 0))
        if amount0 == 0 or amount1 == 0:
            return None
        human0 = Decimal(amount0) / (Decimal(10) ** token0.decimals)
        human1 = Decimal(amount1) / (Decimal(10) ** token1.decimals)
        return human1 / human0

    async def price_distribution(self, pool_address: str, timeframe: Any = "today") -> Dict[str, Any]:
        pool, token0, token1 = await self._pool_tokens(pool_address)
        from_block, to_block = await self.block_range(timeframe)
        logs = await self.chain_client.get_logs(pool_address, "Swap", from_block, to_block)

        prices: List[Decimal] = []
        for log in logs:
            price = self._swap_price(log.get("args", {}), token0, token1)
            if price is not None:
                prices.append(price)

        current_price: Optional[Decimal] = None
        if pool.reserve0 > 0:
            current_price = (
                (Decimal(pool.reserve1) / (Decimal(10) ** token1.decimals))
                / (Decimal(pool.reserve0) / (Decimal(10) ** token0.decimals))
            )

        report: Dict[str, Any] = {
            "query": QueryKind.PRICE_DISTRIBUTION.value,
            "pool": pool.address,
            "pair": f"{token1.symbol}/{token0.symbol}",
            "timeframe": timeframe,
            "total_swaps": len(prices),
            "current_price": current_price,
            "buckets": price_histogram(prices),
        }
        if prices:
            report["min_price"] = min(prices)
            report["max_price"] = max(prices)
            report["average_price"] = sum(prices) / len(prices)
        return report
