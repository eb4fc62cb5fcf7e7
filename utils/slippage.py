"""
Helpers for reading slippage tolerances from loosely-typed intent fields.

Language models return slippage as numbers ("0.5"), percentages ("0.5%") or
short phrases ("1% slippage"). Everything is normalised to basis points.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional


_SLIPPAGE_RE = re.compile(
    r"(?P<pct>-?\d+(?:\.\d+)?)\s*%?\s*(?:slippage|slip)?",
    flags=re.IGNORECASE,
)


def parse_slippage_percent(value: Any) -> Optional[Decimal]:
    """Parse a slippage value and return it as a percentage.

    Examples:
        0.5 -> Decimal("0.5")
        "1%" -> Decimal("1")
        "1% slippage" -> Decimal("1")

    Returns:
        The percentage, or None if the value is absent or unparseable.
        Range checks are left to the caller.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float, Decimal)):
        try:
            return Decimal(str(value))
        except InvalidOperation:
            return None

    text = str(value).strip()
    if not text:
        return None

    m = _SLIPPAGE_RE.search(text)
    if not m:
        return None

    try:
        return Decimal(m.group("pct"))
    except (InvalidOperation, TypeError):
        return None


def percent_to_bps(pct: Decimal) -> int:
    """Convert a percentage to basis points (1% == 100 bps), rounding half up."""
    return int((pct * Decimal("100")).to_integral_value(rounding="ROUND_HALF_UP"))

