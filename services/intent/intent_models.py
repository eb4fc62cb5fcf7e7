"""
Typed trade intents and boundary validation of parser output.

The language model returns loosely-typed objects. They are validated here into
a closed set of intent types before anything else looks at them; nothing
untyped travels past the IntentRouter.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional, Union

from services.errors import InvalidIntent
from services.models import QueryKind
from utils.config import INTENT_CONFIDENCE_THRESHOLD
from utils.slippage import parse_slippage_percent, percent_to_bps

logger = logging.getLogger(__name__)

SWAP_TYPES = ("swap",)
ADD_LIQUIDITY_TYPES = ("deposit", "add_liquidity", "addliquidity", "liquidity")
QUERY_TYPES = ("query",)

# Field aliases emitted by the parser prompt and by form input
AMOUNT_IN_KEYS = ("amountIn", "amount_in", "amount")
TOKEN_IN_KEYS = ("tokenIn", "token_in", "fromToken", "from_token")
TOKEN_OUT_KEYS = ("tokenOut", "token_out", "toToken", "to_token")
AMOUNT_A_KEYS = ("amountA", "amount_a", "token1Amount")
TOKEN_A_KEYS = ("tokenA", "token_a", "token1Symbol", "token1")
AMOUNT_B_KEYS = ("amountB", "amount_b", "token2Amount")
TOKEN_B_KEYS = ("tokenB", "token_b", "token2Symbol", "token2")
POOL_KEYS = ("poolAddress", "pool_address", "pool")
QUERY_KIND_KEYS = ("intent", "query", "queryType")


@dataclass(frozen=True)
class SwapIntent:
    """Exact-input swap proposal. Amounts are decimal strings in display units."""
    amount_in: str
    token_in: str
    token_out: str
    slippage_bps: Optional[int] = None
    confidence: float = 1.0
    explanation: str = ""
    acknowledge_price_impact: bool = False
    accept_any_output: bool = False


@dataclass(frozen=True)
class AddLiquidityIntent:
    """Two-sided liquidity deposit proposal."""
    amount_a: str
    token_a: str
    amount_b: str
    token_b: str
    slippage_bps: Optional[int] = None
    confidence: float = 1.0
    explanation: str = ""
    accept_any_output: bool = False


@dataclass(frozen=True)
class QueryIntent:
    """Read-only pool question; never produces an execution plan."""
    kind: QueryKind
    pool_address: Optional[str] = None
    token_a: Optional[str] = None
    token_b: Optional[str] = None
    timeframe: Any = "today"
    confidence: float = 1.0
    explanation: str = ""


TradeIntent = Union[SwapIntent, AddLiquidityIntent, QueryIntent]


def _first(params: Dict[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = params.get(key)
        if value is not None and value != "":
            return value
    return None


def _required_text(params: Dict[str, Any], keys: Iterable[str], label: str) -> str:
    value = _first(params, keys)
    if value is None:
        raise InvalidIntent(f"Missing {label}")
    if isinstance(value, bool) or isinstance(value, (dict, list)):
        raise InvalidIntent(f"Invalid {label}: {value!r}")
    return str(value).strip()


def _amount_text(params: Dict[str, Any], keys: Iterable[str], label: str) -> str:
    value = _first(params, keys)
    if value is None:
        raise InvalidIntent(f"Missing {label}")
    if isinstance(value, bool) or not isinstance(value, (str, int, float, Decimal)):
        raise InvalidIntent(f"Invalid {label}: {value!r}")
    if isinstance(value, float):
        # repr keeps the shortest round-tripping form, e.g. 0.1 rather than 0.1000000000000000055
        return repr(value)
    return str(value).strip()


def _slippage_bps(params: Dict[str, Any]) -> Optional[int]:
    """Slippage in bps, or None when absent. Must lie within [0, 100] percent."""
    raw = params.get("slippage")
    if raw is None or raw == "":
        return None
    pct = parse_slippage_percent(raw)
    if pct is None:
        raise InvalidIntent(f"Unreadable slippage: {raw!r}")
    if pct < 0 or pct > 100:
        raise InvalidIntent(f"Slippage must be between 0 and 100 percent, got {pct}")
    return percent_to_bps(pct)


def _confidence(raw: Dict[str, Any]) -> float:
    value = raw.get("confidence", 0)
    if isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _timeframe(params: Dict[str, Any]) -> Any:
    timeframe = params.get("timeframe") or "today"
    if timeframe == "today":
        return timeframe
    if isinstance(timeframe, dict) and "from" in timeframe and "to" in timeframe:
        try:
            start, end = int(timeframe["from"]), int(timeframe["to"])
        except (TypeError, ValueError):
            raise InvalidIntent(f"Invalid timeframe: {timeframe!r}")
        if start > end:
            raise InvalidIntent(f"Timeframe starts after it ends: {timeframe!r}")
        return {"from": start, "to": end}
    raise InvalidIntent(f"Invalid timeframe: {timeframe!r}")


def parse_intent(
    raw: Dict[str, Any],
    confidence_threshold: float = INTENT_CONFIDENCE_THRESHOLD,
) -> TradeIntent:
    """Validate a parser response into a typed intent.

    Args:
        raw: Parser output with type, params, confidence and explanation.
            Form input may put the fields at the top level instead of under params.
        confidence_threshold: Minimum confidence accepted

    Returns:
        TradeIntent: SwapIntent, AddLiquidityIntent or QueryIntent

    Raises:
        InvalidIntent: If the intent is an error, below the confidence
            threshold, of an unknown type or missing required fields
    """
    if not isinstance(raw, dict):
        raise InvalidIntent(f"Intent must be an object, got {type(raw).__name__}")

    intent_type = str(raw.get("type") or "").strip().lower()
    explanation = str(raw.get("explanation") or "")
    confidence = _confidence(raw)

    if intent_type == "error":
        raise InvalidIntent(explanation or "Could not understand the command", detail="type=error")
    if confidence < confidence_threshold:
        raise InvalidIntent(
            explanation or "Command was not understood with enough confidence",
            detail=f"confidence {confidence} below threshold {confidence_threshold}",
        )

    params = raw.get("params")
    if params is None:
        params = raw
    if not isinstance(params, dict):
        raise InvalidIntent("Intent params must be an object")

    acknowledge = bool(params.get("acknowledgePriceImpact") or raw.get("acknowledge_price_impact"))
    accept_any = bool(params.get("acceptAnyOutput") or raw.get("accept_any_output"))

    if intent_type in SWAP_TYPES:
        intent: TradeIntent = SwapIntent(
            amount_in=_amount_text(params, AMOUNT_IN_KEYS, "swap amount"),
            token_in=_required_text(params, TOKEN_IN_KEYS, "input token"),
            token_out=_required_text(params, TOKEN_OUT_KEYS, "output token"),
            slippage_bps=_slippage_bps(params),
            confidence=confidence,
            explanation=explanation,
            acknowledge_price_impact=acknowledge,
            accept_any_output=accept_any,
        )
    elif intent_type in ADD_LIQUIDITY_TYPES:
        intent = AddLiquidityIntent(
            amount_a=_amount_text(params, AMOUNT_A_KEYS, "first deposit amount"),
            token_a=_required_text(params, TOKEN_A_KEYS, "first token"),
            amount_b=_amount_text(params, AMOUNT_B_KEYS, "second deposit amount"),
            token_b=_required_text(params, TOKEN_B_KEYS, "second token"),
            slippage_bps=_slippage_bps(params),
            confidence=confidence,
            explanation=explanation,
            accept_any_output=accept_any,
        )
    elif intent_type in QUERY_TYPES:
        kind_value = _first(params, QUERY_KIND_KEYS) or QueryKind.GET_RESERVES.value
        try:
            kind = QueryKind(kind_value)
        except ValueError:
            raise InvalidIntent(f"Unsupported query: {kind_value}")
        pool_address = _first(params, POOL_KEYS)
        token_a = _first(params, TOKEN_A_KEYS)
        token_b = _first(params, TOKEN_B_KEYS)
        if pool_address is None and (token_a is None or token_b is None):
            raise InvalidIntent("Query needs a pool address or a token pair")
        intent = QueryIntent(
            kind=kind,
            pool_address=str(pool_address) if pool_address is not None else None,
            token_a=str(token_a) if token_a is not None else None,
            token_b=str(token_b) if token_b is not None else None,
            timeframe=_timeframe(params),
            confidence=confidence,
            explanation=explanation,
        )
    else:
        raise InvalidIntent(f"Unsupported intent type: {intent_type or 'missing'}")

    logger.info(f"Accepted {type(intent).__name__} (confidence {confidence:.2f})")
    return intent
