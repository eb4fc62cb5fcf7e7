#!/usr/bin/env python3
"""
Tests for read-only pool reporting.
"""
from decimal import Decimal

import pytest

from services.models import QueryKind, QueryRequest
from services.pools import PoolResolver
from services.query import PoolQueryReporter, price_histogram, start_of_day
from tests.mocks import FACTORY
from tests.mocks.mock_market import POOL_AB, POOL_WA, make_market

NOW = 1_700_000_000  # 2023-11-14T22:13:20Z
MIDNIGHT = 1_699_920_000


def make_reporter(market, latest_block=10_000):
    market.client.block_number = latest_block
    resolver = PoolResolver(market.client, market.registry, factory_address=FACTORY)
    return PoolQueryReporter(market.client, market.registry, resolver, clock=lambda: NOW)


@pytest.mark.unit
class TestHelpers:

    def test_start_of_day_is_utc_midnight(self):
        assert start_of_day(NOW) == MIDNIGHT
        assert start_of_day(MIDNIGHT) == MIDNIGHT

    def test_histogram_spreads_between_min_and_max(self):
        buckets = price_histogram([Decimal("1"), Decimal("2"), Decimal("2.5"), Decimal("4")], bucket_count=3)

        assert [b["count"] for b in buckets] == [1, 2, 1]
        assert buckets[0]["low"] == Decimal("1")
        assert buckets[-1]["high"] == Decimal("4")

    def test_histogram_of_identical_prices(self):
        buckets = price_histogram([Decimal("2")] * 4)

        assert len(buckets) == 15
        assert buckets[0]["count"] == 4
        assert sum(b["count"] for b in buckets) == 4

    def test_histogram_empty(self):
        assert price_histogram([]) == []


@pytest.mark.unit
class TestReports:

    @pytest.mark.asyncio
    async def test_block_range_for_today(self):
        reporter = make_reporter(make_market())

        from_block, to_block = await reporter.block_range("today")

        # 80000 seconds since midnight at 12 seconds per block
        assert from_block == 10_000 - 6667
        assert to_block == 10_000

    @pytest.mark.asyncio
    async def test_block_range_for_window(self):
        reporter = make_reporter(make_market())

        from_block, to_block = await reporter.block_range({"from": NOW - 3600, "to": NOW - 1200})

        assert (from_block, to_block) == (9700, 9900)

    @pytest.mark.asyncio
    async def test_block_range_clamps_at_genesis(self):
        reporter = make_reporter(make_market(), latest_block=100)

        from_block, _ = await reporter.block_range("today")

        assert from_block == 0

    @pytest.mark.asyncio
    async def test_reserves_report_uses_native_symbol(self):
        reporter = make_reporter(make_market())

        report = await reporter.report(QueryRequest(QueryKind.GET_RESERVES, POOL_WA))

        assert report["query"] == "getReserves"
        assert report["token0"] == "ETH"
        assert report["token1"] == "AAA"
        assert report["reserve0"] == "100"
        assert report["reserve1"] == "1000000"
        assert report["last_update"] == "2023-11-14T22:13:20+00:00"

    @pytest.mark.asyncio
    async def test_swap_count_only_counts_window(self):
        market = make_market()
        market.client.add_swap_log(POOL_AB, 3000, amount0In=1, amount1Out=2)
        market.client.add_swap_log(POOL_AB, 5000, amount0In=1, amount1Out=2)
        market.client.add_swap_log(POOL_AB, 9000, amount1In=2, amount0Out=1)
        reporter = make_reporter(market)

        report = await reporter.report(QueryRequest(QueryKind.SWAP_COUNT, POOL_AB))

        assert report["swap_count"] == 2
        assert report["from_block"] == 3333

    @pytest.mark.asyncio
    async def test_price_distribution(self):
        market = make_market()
        market.client.add_swap_log(POOL_AB, 9000, amount0In=100, amount1Out=198)
        market.client.add_swap_log(POOL_AB, 9001, amount1In=200, amount0Out=100)
        market.client.add_swap_log(POOL_AB, 9002, amount0In=10, amount1Out=21)
        # Empty swaps carry no price
        market.client.add_swap_log(POOL_AB, 9003)
        reporter = make_reporter(market)

        report = await reporter.report(QueryRequest(QueryKind.PRICE_DISTRIBUTION, POOL_AB))

        assert report["pair"] == "BBB/AAA"
        assert report["total_swaps"] == 3
        assert report["current_price"] == Decimal("2")
        assert report["min_price"] == Decimal("1.98")
        assert report["max_price"] == Decimal("2.1")
        assert abs(report["average_price"] - Decimal("2.0267")) < Decimal("0.001")
        assert len(report["buckets"]) == 15
        assert sum(b["count"] for b in report["buckets"]) == 3

    @pytest.mark.asyncio
    async def test_price_distribution_without_swaps(self):
        reporter = make_reporter(make_market())

        report = await reporter.report(QueryRequest(QueryKind.PRICE_DISTRIBUTION, POOL_AB))

        assert report["total_swaps"] == 0
        assert report["buckets"] == []
        assert "min_price" not in report
