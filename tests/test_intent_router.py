#!/usr/bin/env python3
"""
Tests for turning typed intents into execution plans and query requests.
"""
import pytest
from web3 import Web3

from services.approval import ApprovalGate
from services.errors import (
    ExcessivePriceImpact,
    InsufficientBalance,
    InvalidIntent,
    InvalidQuote,
    PoolNotFound,
    UnknownToken,
)
from services.intent import AddLiquidityIntent, IntentRouter, QueryIntent, SwapIntent
from services.models import PlanKind, QueryKind, QueryRequest
from services.pools import PoolResolver
from tests.mocks import FACTORY, OWNER, ROUTER
from tests.mocks.mock_market import AAA, BBB, CCC, ETH, POOL_AB, allow_router, make_market
from utils.config import WETH_ADDRESS

NOW = 1_700_000_000


def make_router(market, **kwargs):
    resolver = PoolResolver(market.client, market.registry, factory_address=FACTORY)
    options = {"router_address": ROUTER, "clock": lambda: NOW, "plan_id_factory": lambda: "plan-1"}
    options.update(kwargs)
    return IntentRouter(market.registry, resolver, ApprovalGate(market.client), market.client, **options)


@pytest.mark.unit
class TestSwapPlans:
    """Swap plans carry the exact quote, minimum output and approvals."""

    @pytest.mark.asyncio
    async def test_token_to_token_swap(self):
        market = make_market()
        router = make_router(market)

        plan = await router.build_swap_plan(SwapIntent("1000", "AAA", "BBB"), OWNER)

        assert plan.plan_id == "plan-1"
        assert plan.kind == PlanKind.SWAP_EXACT_TOKENS_FOR_TOKENS
        assert plan.quoted_amount_out == 1992
        assert plan.min_amounts == (1982,)
        assert plan.price_impact_bps == 40
        assert plan.slippage_bps == 50
        assert plan.deadline == NOW + 1800
        assert plan.action.address == ROUTER
        assert plan.action.function_name == "swapExactTokensForTokens"
        assert plan.action.args == (1000, 1982, [AAA, BBB], OWNER, NOW + 1800)
        assert plan.action.value == 0
        assert len(plan.approvals) == 1
        assert plan.approvals[0].token.address == AAA
        assert plan.approvals[0].required_amount == 1000
        assert plan.approvals[0].spender == ROUTER

    @pytest.mark.asyncio
    async def test_existing_allowance_means_no_approval(self):
        market = make_market()
        allow_router(market, AAA, 1000)

        plan = await make_router(market).build_swap_plan(SwapIntent("1000", "AAA", "BBB"), OWNER)

        assert plan.approvals == ()

    @pytest.mark.asyncio
    async def test_pool_found_in_reverse_order(self):
        market = make_market()

        plan = await make_router(market).build_swap_plan(SwapIntent("1000", "BBB", "AAA"), OWNER)

        # BBB is token1 of the pool, so reserves are read as (2_000_000, 1_000_000)
        assert plan.pool.address == POOL_AB
        assert plan.quoted_amount_out == 498

    @pytest.mark.asyncio
    async def test_custom_slippage(self):
        market = make_market()

        plan = await make_router(market).build_swap_plan(SwapIntent("1000", "AAA", "BBB", slippage_bps=100), OWNER)

        assert plan.min_amounts == (1972,)

    @pytest.mark.asyncio
    async def test_native_input_swap(self):
        market = make_market()

        plan = await make_router(market).build_swap_plan(SwapIntent("1", "ETH", "AAA"), OWNER)

        assert plan.kind == PlanKind.SWAP_EXACT_ETH_FOR_TOKENS
        assert plan.approvals == ()
        assert plan.action.value == ETH
        min_out, path, recipient, deadline = plan.action.args
        assert path == [WETH_ADDRESS, AAA]
        assert min_out == plan.min_amounts[0]
        assert recipient == OWNER
        assert deadline == NOW + 1800

    @pytest.mark.asyncio
    async def test_native_output_swap(self):
        market = make_market()

        plan = await make_router(market).build_swap_plan(SwapIntent("1000", "AAA", "ETH"), OWNER)

        assert plan.kind == PlanKind.SWAP_EXACT_TOKENS_FOR_ETH
        assert plan.action.args[2] == [AAA, WETH_ADDRESS]
        assert plan.action.value == 0
        assert len(plan.approvals) == 1

    @pytest.mark.asyncio
    async def test_accept_any_output(self):
        market = make_market()
        intent = SwapIntent("1000", "AAA", "BBB", slippage_bps=10000, accept_any_output=True)

        plan = await make_router(market).build_swap_plan(intent, OWNER)

        assert plan.min_amounts == (0,)

    @pytest.mark.asyncio
    async def test_full_slippage_needs_explicit_acceptance(self):
        market = make_market()

        with pytest.raises(InvalidIntent):
            await make_router(market).build_swap_plan(SwapIntent("1000", "AAA", "BBB", slippage_bps=10000), OWNER)

    @pytest.mark.asyncio
    async def test_owner_defaults_to_signer(self):
        market = make_market()

        plan = await make_router(market).build_swap_plan(SwapIntent("1000", "AAA", "BBB"))

        assert plan.owner == OWNER


@pytest.mark.unit
class TestSwapRejections:
    """Invalid swaps are rejected before any transaction exists."""

    @pytest.mark.asyncio
    async def test_insufficient_token_balance(self):
        market = make_market(aaa_balance=500)

        with pytest.raises(InsufficientBalance) as exc_info:
            await make_router(market).build_swap_plan(SwapIntent("1000", "AAA", "BBB"), OWNER)

        assert "have 500, need 1000" in exc_info.value.message
        assert market.client.writes == []

    @pytest.mark.asyncio
    async def test_native_balance_keeps_gas_reserve(self):
        market = make_market(native_balance=5 * ETH)

        with pytest.raises(InsufficientBalance) as exc_info:
            await make_router(market).build_swap_plan(SwapIntent("5", "ETH", "AAA"), OWNER)

        assert "gas reserve" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_native_and_wrapped_are_identical(self):
        market = make_market()

        with pytest.raises(InvalidIntent):
            await make_router(market).build_swap_plan(SwapIntent("1", "ETH", "WETH"), OWNER)

    @pytest.mark.asyncio
    async def test_unknown_token(self):
        market = make_market()

        with pytest.raises(UnknownToken):
            await make_router(market).build_swap_plan(SwapIntent("1", "ZZZ", "AAA"), OWNER)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["0", "-5", "abc"])
    async def test_bad_amount(self, amount):
        market = make_market()

        with pytest.raises(InvalidIntent):
            await make_router(market).build_swap_plan(SwapIntent(amount, "AAA", "BBB"), OWNER)

    @pytest.mark.asyncio
    async def test_missing_pool(self):
        market = make_market()
        market.client.set_balance(CCC, OWNER, 1000)

        with pytest.raises(PoolNotFound):
            await make_router(market).build_swap_plan(SwapIntent("10", "AAA", "CCC"), OWNER)

    @pytest.mark.asyncio
    async def test_dust_amount_buys_nothing(self):
        market = make_market()

        with pytest.raises(InvalidQuote):
            await make_router(market).build_swap_plan(SwapIntent("1", "BBB", "AAA"), OWNER)

    @pytest.mark.asyncio
    async def test_excessive_price_impact(self):
        market = make_market(aaa_balance=200_000)
        router = make_router(market)

        with pytest.raises(ExcessivePriceImpact):
            await router.build_swap_plan(SwapIntent("100000", "AAA", "BBB"), OWNER)

        plan = await router.build_swap_plan(
            SwapIntent("100000", "AAA", "BBB", acknowledge_price_impact=True), OWNER
        )
        assert plan.price_impact_bps == 934


@pytest.mark.unit
class TestLiquidityPlans:
    """Deposits target existing pools and approve each ERC-20 side."""

    @pytest.mark.asyncio
    async def test_token_pair_deposit(self):
        market = make_market()

        plan = await make_router(market).build_liquidity_plan(AddLiquidityIntent("1000", "AAA", "2000", "BBB"), OWNER)

        assert plan.kind == PlanKind.ADD_LIQUIDITY
        assert plan.action.args == (AAA, BBB, 1000, 2000, 995, 1990, OWNER, NOW + 1800)
        assert [req.token.symbol for req in plan.approvals] == ["AAA", "BBB"]

    @pytest.mark.asyncio
    async def test_native_deposit(self):
        market = make_market()

        plan = await make_router(market).build_liquidity_plan(AddLiquidityIntent("1", "ETH", "100", "AAA"), OWNER)

        assert plan.kind == PlanKind.ADD_LIQUIDITY_ETH
        assert plan.action.args == (AAA, 100, 99, 995 * 10 ** 15, OWNER, NOW + 1800)
        assert plan.action.value == ETH
        assert [req.token.symbol for req in plan.approvals] == ["AAA"]

    @pytest.mark.asyncio
    async def test_deposit_never_creates_pool(self):
        market = make_market()
        market.client.set_balance(CCC, OWNER, 1000)

        with pytest.raises(PoolNotFound):
            await make_router(market).build_liquidity_plan(AddLiquidityIntent("10", "AAA", "10", "CCC"), OWNER)

        assert market.client.submitted("createPair") == []

    @pytest.mark.asyncio
    async def test_deposit_checks_both_balances(self):
        market = make_market(bbb_balance=10)

        with pytest.raises(InsufficientBalance):
            await make_router(market).build_liquidity_plan(AddLiquidityIntent("1000", "AAA", "2000", "BBB"), OWNER)


@pytest.mark.unit
class TestQueries:
    """Queries resolve a pool address and never build a plan."""

    @pytest.mark.asyncio
    async def test_query_by_pair(self):
        market = make_market()

        request = await make_router(market).route(QueryIntent(QueryKind.GET_RESERVES, token_a="BBB", token_b="AAA"))

        assert isinstance(request, QueryRequest)
        assert request.pool_address == POOL_AB
        assert request.token_a.symbol == "BBB"

    @pytest.mark.asyncio
    async def test_query_by_address_is_checksummed(self):
        market = make_market()

        request = await make_router(market).build_query(QueryIntent(QueryKind.SWAP_COUNT, pool_address=POOL_AB))

        assert request.pool_address == Web3.to_checksum_address(POOL_AB)
        assert request.kind == QueryKind.SWAP_COUNT

    @pytest.mark.asyncio
    async def test_query_invalid_address(self):
        market = make_market()

        with pytest.raises(InvalidIntent):
            await make_router(market).build_query(QueryIntent(QueryKind.SWAP_COUNT, pool_address="0x1234"))

    @pytest.mark.asyncio
    async def test_query_missing_pool(self):
        market = make_market()

        with pytest.raises(PoolNotFound):
            await make_router(market).build_query(QueryIntent(QueryKind.GET_RESERVES, token_a="AAA", token_b="CCC"))


@pytest.mark.unit
@pytest.mark.asyncio
async def test_route_dispatches_on_intent_type():
    market = make_market()
    router = make_router(market)

    swap = await router.route(SwapIntent("1000", "AAA", "BBB"), OWNER)
    deposit = await router.route(AddLiquidityIntent("1000", "AAA", "2000", "BBB"), OWNER)

    assert swap.kind.is_swap
    assert not deposit.kind.is_swap

    with pytest.raises(InvalidIntent):
        await router.route({"type": "swap"}, OWNER)
