"""
Money helpers. All stored amounts are integer cents.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP


def cents_to_amount(cents: int | None) -> float | None:
    """12345 -> 123.45 for display; never used for arithmetic."""
    if cents is None:
        return None
    return float((Decimal(cents) / 100).quantize(Decimal("0.01")))


def apply_rate_bps(amount_cents: int, rate_bps: int) -> int:
    """Percentage of an amount, rate in basis points, rounded half-up to the cent."""
    raw = Decimal(amount_cents) * Decimal(rate_bps) / Decimal(10_000)
    return int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def round_rating(value: float) -> float:
    """Average rating rounded half-up to one decimal (4.25 -> 4.3)."""
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def amount_to_cents(value) -> int:
    """"45.99" -> 4599. Raises ValueError for non-numeric input or sub-cent precision."""
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value}")
    if not amount.is_finite() or amount != amount.quantize(Decimal("0.01")):
        raise ValueError(f"Invalid amount: {value}")
    return int(amount * 100)
