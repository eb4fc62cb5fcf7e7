"""
Shared data types for trade intents, plans and outcomes.

Tokens, pools and plans are immutable once built. Pools are point-in-time
reserve snapshots read from chain state; they are never mutated locally.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


def same_address(a: Optional[str], b: Optional[str]) -> bool:
    """Case-insensitive address comparison."""
    if a is None or b is None:
        return False
    return a.lower() == b.lower()


@dataclass(frozen=True)
class Token:
    """Canonical token metadata."""
    address: str
    symbol: str
    decimals: int
    is_native: bool = False
    name: str = ""


@dataclass(frozen=True)
class Pool:
    """Reserve snapshot of a constant-product pair."""
    address: str
    token0: str
    token1: str
    reserve0: int
    reserve1: int
    last_update_timestamp: int

    def has_token(self, token_address: str) -> bool:
        return same_address(token_address, self.token0) or same_address(token_address, self.token1)

    def reserves_for(self, token_in_address: str) -> Tuple[int, int]:
        """Return (reserve_in, reserve_out) for a trade that sells token_in_address.

        Raises:
            ValueError: If the token is not one of the pair's tokens
        """
        if same_address(token_in_address, self.token0):
            return self.reserve0, self.reserve1
        if same_address(token_in_address, self.token1):
            return self.reserve1, self.reserve0
        raise ValueError(f"Token {token_in_address} is not part of pool {self.address}")

    def same_snapshot(self, other: "Pool") -> bool:
        """True if both snapshots describe identical reserves of the same pool."""
        return (
            same_address(self.address, other.address)
            and self.reserve0 == other.reserve0
            and self.reserve1 == other.reserve1
            and self.last_update_timestamp == other.last_update_timestamp
        )


@dataclass(frozen=True)
class ApprovalRequirement:
    """An allowance that must be raised before the plan's action can run."""
    token: Token
    owner: str
    spender: str
    current_allowance: int
    required_amount: int

    @property
    def is_satisfied(self) -> bool:
        return self.current_allowance >= self.required_amount


class PlanKind(Enum):
    """Router entry point an execution plan targets."""
    SWAP_EXACT_TOKENS_FOR_TOKENS = "swapExactTokensForTokens"
    SWAP_EXACT_ETH_FOR_TOKENS = "swapExactETHForTokens"
    SWAP_EXACT_TOKENS_FOR_ETH = "swapExactTokensForETH"
    ADD_LIQUIDITY = "addLiquidity"
    ADD_LIQUIDITY_ETH = "addLiquidityETH"

    @property
    def is_swap(self) -> bool:
        return self in (
            PlanKind.SWAP_EXACT_TOKENS_FOR_TOKENS,
            PlanKind.SWAP_EXACT_ETH_FOR_TOKENS,
            PlanKind.SWAP_EXACT_TOKENS_FOR_ETH,
        )


@dataclass(frozen=True)
class ContractCall:
    """A write call described by function name and ordered arguments."""
    address: str
    function_name: str
    args: Tuple[Any, ...]
    value: int = 0


@dataclass(frozen=True)
class ExecutionPlan:
    """Resolved, typed translation of one trade intent.

    amounts_in and min_amounts are aligned with tokens_in for liquidity plans.
    For swaps tokens_in holds the single input token and min_amounts holds
    the single minimum output.
    """
    plan_id: str
    kind: PlanKind
    owner: str
    spender: str
    tokens_in: Tuple[Token, ...]
    amounts_in: Tuple[int, ...]
    min_amounts: Tuple[int, ...]
    deadline: int
    pool: Pool
    action: ContractCall
    approvals: Tuple[ApprovalRequirement, ...] = ()
    token_out: Optional[Token] = None
    quoted_amount_out: Optional[int] = None
    price_impact_bps: Optional[int] = None
    slippage_bps: int = 0

    @property
    def touched_tokens(self) -> Tuple[Token, ...]:
        tokens = list(self.tokens_in)
        if self.token_out is not None:
            tokens.append(self.token_out)
        return tuple(tokens)

    @property
    def native_value(self) -> int:
        return self.action.value


class QueryKind(Enum):
    GET_RESERVES = "getReserves"
    SWAP_COUNT = "swapCount"
    PRICE_DISTRIBUTION = "priceDistribution"


@dataclass(frozen=True)
class QueryRequest:
    """Resolved identifiers handed to the read-only reporting collaborator."""
    kind: QueryKind
    pool_address: str
    timeframe: Any = "today"
    token_a: Optional[Token] = None
    token_b: Optional[Token] = None


@dataclass(frozen=True)
class TransactionHandle:
    tx_hash: str


@dataclass(frozen=True)
class TransactionReceipt:
    tx_hash: str
    status: int
    block_number: int
    gas_used: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == 1


class ResultStatus(Enum):
    """Closed set of terminal shapes an engine invocation can resolve to."""
    SUCCESS = "success"
    REJECTED = "rejected"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ExecutionResult:
    """Caller-facing outcome of one engine invocation."""
    status: ResultStatus
    plan_id: Optional[str] = None
    receipt: Optional[TransactionReceipt] = None
    report: Optional[Dict[str, Any]] = None
    reason: Optional[str] = None
    step: Optional[str] = None
    message: Optional[str] = None
    ambiguous: bool = False
    transitions: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def success(cls, **kwargs: Any) -> "ExecutionResult":
        return cls(status=ResultStatus.SUCCESS, **kwargs)

    @classmethod
    def rejected(cls, **kwargs: Any) -> "ExecutionResult":
        return cls(status=ResultStatus.REJECTED, **kwargs)

    @classmethod
    def failed(cls, **kwargs: Any) -> "ExecutionResult":
        return cls(status=ResultStatus.FAILED, **kwargs)

    @classmethod
    def cancelled(cls, **kwargs: Any) -> "ExecutionResult":
        return cls(status=ResultStatus.CANCELLED, **kwargs)

    @classmethod
    def from_error(cls, error: Any, **kwargs: Any) -> "ExecutionResult":
        """Build a REJECTED result from a pre-submission EngineError."""
        return cls(
            status=ResultStatus.REJECTED,
            plan_id=kwargs.pop("plan_id", error.plan_id),
            reason=error.reason,
            step=error.step,
            message=error.message,
            **kwargs,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "plan_id": self.plan_id,
            "tx_hash": self.receipt.tx_hash if self.receipt else None,
            "reason": self.reason,
            "step": self.step,
            "message": self.message,
            "ambiguous": self.ambiguous,
        }
