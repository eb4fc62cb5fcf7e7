"""
Routes validated trade intents to execution plans or read-only queries.
"""
import logging
import time
import uuid
from typing import Any, Callable, List, Optional, Tuple, Union

from web3 import Web3

from services.approval import ApprovalGate
from services.chain import ChainClient
from services.errors import (
    ExcessivePriceImpact,
    InsufficientBalance,
    InvalidIntent,
    InvalidQuote,
    PoolNotFound,
)
from services.intent.intent_models import AddLiquidityIntent, QueryIntent, SwapIntent, TradeIntent
from services.models import (
    ApprovalRequirement,
    ContractCall,
    ExecutionPlan,
    PlanKind,
    Pool,
    QueryRequest,
    Token,
)
from services.pools import PoolResolver
from services.quote import (
    BPS_DENOMINATOR,
    min_liquidity_amounts,
    min_output_with_slippage,
    price_impact_bps,
    quote_swap_output,
)
from services.tokens import TokenRegistry
from services.transaction.number_converter import NumberConverter
from utils.balance_tracker import read_balance
from utils.config import (
    DEADLINE_WINDOW_SECONDS,
    DEFAULT_FEE_BPS,
    DEFAULT_SLIPPAGE_BPS,
    MAX_PRICE_IMPACT_BPS,
    NATIVE_GAS_RESERVE_WEI,
    ROUTER_ADDRESS,
)

logger = logging.getLogger(__name__)


def new_plan_id() -> str:
    return uuid.uuid4().hex


class IntentRouter:
    """Turns a typed intent into an ExecutionPlan or a QueryRequest.

    Every check that can fail without touching the chain runs first. No plan
    leaves this class unless it is complete and valid.
    """

    def __init__(
        self,
        registry: TokenRegistry,
        pool_resolver: PoolResolver,
        approval_gate: ApprovalGate,
        chain_client: ChainClient,
        router_address: str = ROUTER_ADDRESS,
        fee_bps: int = DEFAULT_FEE_BPS,
        default_slippage_bps: int = DEFAULT_SLIPPAGE_BPS,
        max_price_impact_bps: int = MAX_PRICE_IMPACT_BPS,
        deadline_window: int = DEADLINE_WINDOW_SECONDS,
        native_gas_reserve: int = NATIVE_GAS_RESERVE_WEI,
        clock: Callable[[], float] = time.time,
        plan_id_factory: Callable[[], str] = new_plan_id,
    ) -> None:
        self.registry = registry
        self.pool_resolver = pool_resolver
        self.approval_gate = approval_gate
        self.chain_client = chain_client
        self.router_address = router_address
        self.fee_bps = fee_bps
        self.default_slippage_bps = default_slippage_bps
        self.max_price_impact_bps = max_price_impact_bps
        self.deadline_window = deadline_window
        self.native_gas_reserve = native_gas_reserve
        self.clock = clock
        self.plan_id_factory = plan_id_factory

    async def route(self, intent: TradeIntent, owner: Optional[str] = None) -> Union[ExecutionPlan, QueryRequest]:
        """Dispatch on the intent type.

        Args:
            intent: Validated intent
            owner: Address trading; defaults to the chain client's signer

        Returns:
            Union[ExecutionPlan, QueryRequest]: A plan for swaps and deposits,
            a query request for queries
        """
        if isinstance(intent, SwapIntent):
            return await self.build_swap_plan(intent, owner)
        if isinstance(intent, AddLiquidityIntent):
            return await self.build_liquidity_plan(intent, owner)
        if isinstance(intent, QueryIntent):
            return await self.build_query(intent)
        raise InvalidIntent(f"Unsupported intent: {type(intent).__name__}")

    def _owner(self, owner: Optional[str]) -> str:
        return owner or self.chain_client.address

    def _deadline(self) -> int:
        return int(self.clock()) + int(self.deadline_window)

    @staticmethod
    def _raw_amount(amount: str, token: Token, label: str) -> int:
        try:
            raw = NumberConverter.to_raw_amount(amount, token.decimals)
        except ValueError as e:
            raise InvalidIntent(f"Invalid {label}: {amount}", detail=str(e)) from e
        if raw <= 0:
            raise InvalidIntent(f"{label.capitalize()} must be greater than zero, got {amount} {token.symbol}")
        return raw

    def _slippage(self, slippage_bps: Optional[int], accept_any_output: bool) -> int:
        bps = self.default_slippage_bps if slippage_bps is None else slippage_bps
        if not 0 <= bps <= BPS_DENOMINATOR:
            raise InvalidIntent(f"Slippage must be between 0 and 100 percent, got {bps / 100}%")
        if bps == BPS_DENOMINATOR and not accept_any_output:
            raise InvalidIntent(
                "100% slippage accepts any output and must be confirmed explicitly",
                detail="set accept_any_output to proceed",
            )
        return bps

    async def _resolve_pair(self, ref_a: str, ref_b: str) -> Tuple[Token, Token]:
        token_a = await self.registry.resolve(ref_a, self.chain_client)
        token_b = await self.registry.resolve(ref_b, self.chain_client)
        # Raises InvalidIntent for identical tokens, native vs wrapped included
        self.pool_resolver.pair_addresses(token_a, token_b)
        return token_a, token_b

    async def _check_balance(self, owner: str, token: Token, amount: int) -> None:
        """Raise InsufficientBalance if owner cannot cover amount (plus gas for native)."""
        balance = await read_balance(self.chain_client, owner, token)
        required = amount + (self.native_gas_reserve if token.is_native else 0)
        if balance < required:
            formatted_balance = NumberConverter.format_exact(balance, token.decimals)
            formatted_required = NumberConverter.format_exact(required, token.decimals)
            message = f"Insufficient {token.symbol} balance: have {formatted_balance}, need {formatted_required}"
            if token.is_native:
                message += " (including gas reserve)"
            raise InsufficientBalance(message, detail=f"balance={balance} required={required}")

    async def _approvals(self, owner: str, pairs: List[Tuple[Token, int]]) -> Tuple[ApprovalRequirement, ...]:
        requirements = []
        for token, amount in pairs:
            requirement = await self.approval_gate.requirement(owner, self.router_address, token, amount)
            if requirement is not None:
                requirements.append(requirement)
        return tuple(requirements)

    async def build_swap_plan(self, intent: SwapIntent, owner: Optional[str] = None) -> ExecutionPlan:
        """Resolve, validate and quote an exact-input swap.

        Args:
            intent: Swap intent
            owner: Trading address

        Returns:
            ExecutionPlan: Swap plan with its approval (if any) and minimum output

        Raises:
            InvalidIntent: Bad amount, slippage or identical tokens
            UnknownToken: A token cannot be resolved
            InsufficientBalance: Balance below amount (plus gas reserve for native)
            PoolNotFound: No pool for the pair
            ExcessivePriceImpact: Impact above the threshold and not acknowledged
        """
        owner = self._owner(owner)
        token_in, token_out = await self._resolve_pair(intent.token_in, intent.token_out)
        amount_in = self._raw_amount(intent.amount_in, token_in, "swap amount")
        slippage_bps = self._slippage(intent.slippage_bps, intent.accept_any_output)

        await self._check_balance(owner, token_in, amount_in)

        pool = await self.pool_resolver.resolve_pool(token_in, token_out)
        path = [self.registry.to_tradable_address(token_in), self.registry.to_tradable_address(token_out)]
        reserve_in, reserve_out = pool.reserves_for(path[0])

        amount_out = quote_swap_output(amount_in, reserve_in, reserve_out, self.fee_bps)
        if amount_out <= 0:
            raise InvalidQuote(
                f"{intent.amount_in} {token_in.symbol} is too small to buy any {token_out.symbol}",
                detail=f"reserves {reserve_in}/{reserve_out}",
            )
        min_out = min_output_with_slippage(amount_out, slippage_bps)
        impact = price_impact_bps(amount_in, reserve_in, reserve_out, self.fee_bps)

        if impact > self.max_price_impact_bps and not intent.acknowledge_price_impact:
            raise ExcessivePriceImpact(
                f"Price impact {impact / 100:.2f}% exceeds the {self.max_price_impact_bps / 100:.2f}% limit",
                detail=f"impact_bps={impact}",
            )

        deadline = self._deadline()
        if token_in.is_native:
            kind = PlanKind.SWAP_EXACT_ETH_FOR_TOKENS
            args: Tuple[Any, ...] = (min_out, path, owner, deadline)
            value = amount_in
        elif token_out.is_native:
            kind = PlanKind.SWAP_EXACT_TOKENS_FOR_ETH
            args = (amount_in, min_out, path, owner, deadline)
            value = 0
        else:
            kind = PlanKind.SWAP_EXACT_TOKENS_FOR_TOKENS
            args = (amount_in, min_out, path, owner, deadline)
            value = 0

        approvals = await self._approvals(owner, [(token_in, amount_in)])

        plan = ExecutionPlan(
            plan_id=self.plan_id_factory(),
            kind=kind,
            owner=owner,
            spender=self.router_address,
            tokens_in=(token_in,),
            amounts_in=(amount_in,),
            min_amounts=(min_out,),
            deadline=deadline,
            pool=pool,
            action=ContractCall(self.router_address, kind.value, args, value),
            approvals=approvals,
            token_out=token_out,
            quoted_amount_out=amount_out,
            price_impact_bps=impact,
            slippage_bps=slippage_bps,
        )
        logger.info(
            f"Built {kind.value} plan {plan.plan_id}: {amount_in} {token_in.symbol} -> "
            f">= {min_out} {token_out.symbol} (quote {amount_out}, impact {impact} bps, "
            f"{len(approvals)} approval(s))"
        )
        return plan

    async def build_liquidity_plan(self, intent: AddLiquidityIntent, owner: Optional[str] = None) -> ExecutionPlan:
        """Resolve and validate a two-sided deposit into an existing pool.

        Pools are never created here; a missing pool raises PoolNotFound.

        Returns:
            ExecutionPlan: addLiquidity or addLiquidityETH plan with up to two approvals
        """
        owner = self._owner(owner)
        token_a, token_b = await self._resolve_pair(intent.token_a, intent.token_b)
        amount_a = self._raw_amount(intent.amount_a, token_a, "deposit amount")
        amount_b = self._raw_amount(intent.amount_b, token_b, "deposit amount")
        slippage_bps = self._slippage(intent.slippage_bps, intent.accept_any_output)

        await self._check_balance(owner, token_a, amount_a)
        await self._check_balance(owner, token_b, amount_b)

        pool: Pool = await self.pool_resolver.resolve_pool(token_a, token_b)
        min_a, min_b = min_liquidity_amounts(amount_a, amount_b, slippage_bps)
        deadline = self._deadline()

        if token_a.is_native or token_b.is_native:
            if token_a.is_native:
                token, amount_token, min_token, amount_eth, min_eth = token_b, amount_b, min_b, amount_a, min_a
            else:
                token, amount_token, min_token, amount_eth, min_eth = token_a, amount_a, min_a, amount_b, min_b
            kind = PlanKind.ADD_LIQUIDITY_ETH
            args: Tuple[Any, ...] = (token.address, amount_token, min_token, min_eth, owner, deadline)
            value = amount_eth
        else:
            kind = PlanKind.ADD_LIQUIDITY
            args = (token_a.address, token_b.address, amount_a, amount_b, min_a, min_b, owner, deadline)
            value = 0

        approvals = await self._approvals(owner, [(token_a, amount_a), (token_b, amount_b)])

        plan = ExecutionPlan(
            plan_id=self.plan_id_factory(),
            kind=kind,
            owner=owner,
            spender=self.router_address,
            tokens_in=(token_a, token_b),
            amounts_in=(amount_a, amount_b),
            min_amounts=(min_a, min_b),
            deadline=deadline,
            pool=pool,
            action=ContractCall(self.router_address, kind.value, args, value),
            approvals=approvals,
            slippage_bps=slippage_bps,
        )
        logger.info(
            f"Built {kind.value} plan {plan.plan_id}: {amount_a} {token_a.symbol} + {amount_b} {token_b.symbol} "
            f"(min {min_a}/{min_b}, {len(approvals)} approval(s))"
        )
        return plan

    async def build_query(self, intent: QueryIntent) -> QueryRequest:
        """Resolve the pool a query refers to. Never builds a plan."""
        if intent.pool_address is not None:
            if not Web3.is_address(intent.pool_address):
                raise InvalidIntent(f"Invalid pool address: {intent.pool_address}")
            return QueryRequest(
                kind=intent.kind,
                pool_address=Web3.to_checksum_address(intent.pool_address),
                timeframe=intent.timeframe,
            )

        token_a, token_b = await self._resolve_pair(intent.token_a, intent.token_b)
        pool_address = await self.pool_resolver.find_pool_address(token_a, token_b)
        if pool_address is None:
            raise PoolNotFound(
                f"No pool exists for {token_a.symbol}/{token_b.symbol}",
                detail=f"{token_a.address}/{token_b.address}",
            )
        return QueryRequest(
            kind=intent.kind,
            pool_address=pool_address,
            timeframe=intent.timeframe,
            token_a=token_a,
            token_b=token_b,
        )
