"""
Constant-product quote math.

All functions are pure and work on integer minor units only. Reserves are
always passed in explicitly from a snapshot; nothing here reads chain state.
"""
import logging
from typing import Optional, Tuple

from services.errors import InvalidQuote

logger = logging.getLogger(__name__)

BPS_DENOMINATOR: int = 10000
DEFAULT_FEE_BPS: int = 30


def clamp_bps(bps: int) -> int:
    """Clamp a basis-point value into [0, 10000]."""
    return max(0, min(BPS_DENOMINATOR, int(bps)))


def quote_swap_output(amount_in: int, reserve_in: int, reserve_out: int, fee_bps: int = DEFAULT_FEE_BPS) -> int:
    """Compute the output of an exact-input swap.

    The fee is taken proportionally from the input side:

        amount_in_with_fee = amount_in * (10000 - fee_bps)
        amount_out = amount_in_with_fee * reserve_out / (reserve_in * 10000 + amount_in_with_fee)

    Args:
        amount_in: Input amount in minor units
        reserve_in: Pool reserve of the input token
        reserve_out: Pool reserve of the output token
        fee_bps: LP fee in basis points (30 = 0.3%)

    Returns:
        int: Output amount in minor units, rounded down

    Raises:
        InvalidQuote: If either reserve is empty or amount_in is not positive
    """
    if reserve_in <= 0 or reserve_out <= 0:
        raise InvalidQuote(f"Pool has no liquidity (reserves {reserve_in}/{reserve_out})")
    if amount_in <= 0:
        raise InvalidQuote(f"Swap amount must be positive, got {amount_in}")
    if not 0 <= fee_bps < BPS_DENOMINATOR:
        raise InvalidQuote(f"Fee must be within [0, 10000) bps, got {fee_bps}")

    amount_in_with_fee = amount_in * (BPS_DENOMINATOR - fee_bps)
    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in * BPS_DENOMINATOR + amount_in_with_fee
    return numerator // denominator


def min_output_with_slippage(amount_out: int, slippage_bps: int) -> int:
    """Lower bound on output accepted at the given slippage tolerance.

    slippage_bps is clamped to [0, 10000]; 10000 yields 0 (accept any output).
    """
    slippage_bps = clamp_bps(slippage_bps)
    return amount_out * (BPS_DENOMINATOR - slippage_bps) // BPS_DENOMINATOR


def price_impact_bps(
    amount_in: int,
    reserve_in: int,
    reserve_out: Optional[int] = None,
    fee_bps: int = DEFAULT_FEE_BPS,
) -> int:
    """Price impact of a trade, in basis points.

    With both reserves known this compares the pre-trade mid price
    (reserve_out / reserve_in) with the average execution price
    (amount_out / amount_in), fee included:

        impact = 1 - (amount_out * reserve_in) / (amount_in * reserve_out)

    With only the input reserve known it falls back to the share of the
    input reserve the trade consumes (amount_in / reserve_in).

    Returns:
        int: Impact in bps, clamped to [0, 10000] and rounded against the trader
    """
    if amount_in <= 0:
        raise InvalidQuote(f"Swap amount must be positive, got {amount_in}")
    if reserve_in <= 0:
        raise InvalidQuote(f"Pool has no liquidity (input reserve {reserve_in})")

    if reserve_out is None:
        # Ceiling division so a non-zero trade never reports zero impact
        return clamp_bps(-(-amount_in * BPS_DENOMINATOR // reserve_in))

    amount_out = quote_swap_output(amount_in, reserve_in, reserve_out, fee_bps)
    execution_ratio_bps = (amount_out * reserve_in * BPS_DENOMINATOR) // (amount_in * reserve_out)
    return clamp_bps(BPS_DENOMINATOR - execution_ratio_bps)


def min_liquidity_amounts(amount_a: int, amount_b: int, slippage_bps: int) -> Tuple[int, int]:
    """Per-side minimums for a liquidity deposit.

    Either side may end up being the limiting one, so the same proportional
    reduction is applied to each independently.
    """
    return (
        min_output_with_slippage(amount_a, slippage_bps),
        min_output_with_slippage(amount_b, slippage_bps),
    )

