#!/usr/bin/env python3
"""
Tests for reading slippage tolerances from parser output.
"""
from decimal import Decimal

import pytest

from utils.slippage import parse_slippage_percent, percent_to_bps


@pytest.mark.unit
@pytest.mark.parametrize("value,expected", [
    (0.5, Decimal("0.5")),
    ("1%", Decimal("1")),
    ("1% slippage", Decimal("1")),
    (" 2.5 % ", Decimal("2.5")),
    (None, None),
    ("", None),
    (True, None),
    ("none", None),
])
def test_parse_slippage_percent(value, expected):
    assert parse_slippage_percent(value) == expected


@pytest.mark.unit
@pytest.mark.parametrize("pct,expected", [
    (Decimal("0.5"), 50),
    (Decimal("0.005"), 1),
    (Decimal("3"), 300),
])
def test_percent_to_bps_rounds_half_up(pct, expected):
    assert percent_to_bps(pct) == expected
