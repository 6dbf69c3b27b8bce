"""Numeric helpers shared by every metric view.

Division by zero yields 0, percentages round half-up (never floored or
ceiled, and not banker's rounding), money is rounded to whole units only
when a value leaves the engine.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal


def safe_div(numerator: float, denominator: float) -> float:
    """numerator / denominator, or 0.0 when the denominator is zero."""
    if not denominator:
        return 0.0
    return numerator / denominator


def round_half_up(value: float, digits: int = 0) -> float:
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def percentage(part: float, whole: float, digits: int = 0) -> float:
    """part / whole as a rounded percentage (0 when whole is zero)."""
    return round_half_up(safe_div(part, whole) * 100, digits)


def round_money(value: float) -> int:
    """Round a monetary amount to whole currency units."""
    return int(round_half_up(value, 0))


def mean(total: float, count: int) -> float:
    return safe_div(total, count)
