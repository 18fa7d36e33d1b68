"""
Fixed-point money helpers shared by every report.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    """Coerce ints, floats, strings and Decimals to Decimal without float noise."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def money(value: Any) -> Decimal:
    """Round to cents, half up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def total(values: Iterable[Any]) -> Decimal:
    """Sum values and round the result to cents."""
    return money(sum((to_decimal(v) for v in values), Decimal("0")))


def safe_percent(part: Any, base: Any) -> Decimal:
    """``part / base * 100`` to two places; 0 when the base is zero."""
    base_d = to_decimal(base)
    if base_d == 0:
        return ZERO
    return (to_decimal(part) / base_d * HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)


def percent_change(current: Any, prior: Any) -> Decimal:
    """``(current - prior) / |prior| * 100``; 0 when prior is zero."""
    prior_d = to_decimal(prior)
    if prior_d == 0:
        return ZERO
    return safe_percent(to_decimal(current) - prior_d, abs(prior_d))
