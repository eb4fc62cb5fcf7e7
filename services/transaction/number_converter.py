"""
Number conversion utilities for token amounts.
Handles conversion between human-readable and raw (base unit) token amounts.
"""
import logging
from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Union

logger = logging.getLogger(__name__)

AmountInput = Union[str, int, float, Decimal]

SUFFIX_MULTIPLIERS = {
    'k': Decimal(10) ** 3,
    'm': Decimal(10) ** 6,
    'b': Decimal(10) ** 9,
    't': Decimal(10) ** 12,
}


class NumberConverter:
    """Utility class for converting between human-readable and raw token amounts."""

    @staticmethod
    def parse_human_amount(human_input: AmountInput) -> Decimal:
        """Parse a human amount with an optional suffix (k, m, b, t).

        Args:
            human_input: Value like "1.5", "2.5m", "1,000", 1000 or Decimal("0.1")

        Returns:
            Decimal: Parsed value

        Raises:
            ValueError: If the value is not a finite number
        """
        if isinstance(human_input, bool):
            raise ValueError(f"Invalid amount format: {human_input}")
        if isinstance(human_input, Decimal):
            value = human_input
        elif isinstance(human_input, (int, float)):
            value = Decimal(str(human_input))
        else:
            text = str(human_input).strip().lower().replace(',', '').replace('_', '')
            if not text:
                raise ValueError("Empty amount")
            multiplier = Decimal(1)
            if text[-1] in SUFFIX_MULTIPLIERS:
                multiplier = SUFFIX_MULTIPLIERS[text[-1]]
                text = text[:-1].strip()
            try:
                value = Decimal(text) * multiplier
            except InvalidOperation:
                raise ValueError(f"Invalid numeric format: {human_input}")

        if not value.is_finite():
            raise ValueError(f"Invalid amount format: {human_input}")
        return value

    @staticmethod
    def to_raw_amount(human_input: AmountInput, decimals: int) -> int:
        """Convert a human-readable amount to base units, truncating excess precision.

        Args:
            human_input: Human-readable amount (e.g., "1.5", "2.5m", "1000k")
            decimals: Number of decimals for the token

        Returns:
            int: Raw token amount
        """
        value = NumberConverter.parse_human_amount(human_input)
        raw = (value * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_DOWN)
        return int(raw)

    @staticmethod
    def to_human_readable(raw_amount: int, decimals: int, sig_figs: int = 6) -> str:
        """Convert raw token amount to a short display string.

        Truncates rather than rounds, and uses k/m/b/t suffixes from 1000 up.

        Args:
            raw_amount: Raw token amount (in wei-like units)
            decimals: Number of decimals for the token
            sig_figs: Number of significant figures to display

        Returns:
            str: Human-readable amount (e.g., "1.5", "2.352m")
        """
        if raw_amount == 0:
            return "0"

        num = Decimal(raw_amount) / (Decimal(10) ** decimals)
        sign = "-" if num < 0 else ""
        num = abs(num)

        suffix = ''
        for s in ('t', 'b', 'm', 'k'):
            if num >= SUFFIX_MULTIPLIERS[s]:
                num = num / SUFFIX_MULTIPLIERS[s]
                suffix = s
                break

        # Exponent of the last significant digit to keep
        quantum = Decimal(1).scaleb(num.adjusted() - sig_figs + 1)
        if quantum > 1:
            quantum = Decimal(1)
        truncated = num.quantize(quantum, rounding=ROUND_DOWN)

        text = format(truncated, 'f')
        if '.' in text:
            text = text.rstrip('0').rstrip('.')
        return f"{sign}{text}{suffix}"

    @staticmethod
    def format_exact(raw_amount: int, decimals: int) -> str:
        """Full-precision decimal string for a raw amount, without trailing zeros."""
        value = Decimal(raw_amount) / (Decimal(10) ** decimals)
        text = format(value, 'f')
        if '.' in text:
            text = text.rstrip('0').rstrip('.')
        return text
