"""
Money helpers.

All persisted amounts are integer minor units (cents) and all rates are
integer basis points (1% = 100 bps). Arithmetic that can produce fractions
of a cent is carried out in Decimal and rounded half-up exactly once, at the
boundary of the formula that produced it.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

ZERO = Decimal("0")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")
BPS_PER_UNIT = Decimal("10000")


def to_decimal(value, default: Decimal | None = ZERO) -> Decimal | None:
    """
    Lenient conversion of a currency amount to Decimal.

    None, blank strings, booleans, NaN/Infinity and unparsable values
    return `default`. Floats go through str() so 10.99 stays 10.99.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return default
        try:
            result = Decimal(stripped)
        except InvalidOperation:
            return default
    else:
        return default

    if not result.is_finite():
        return default
    return result


def quantize_cents(amount: Decimal) -> int:
    """Round a currency amount half-up to whole cents."""
    return int((amount * HUNDRED).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def cents_to_decimal(cents: int | None) -> Decimal:
    return (Decimal(cents or 0) / HUNDRED).quantize(CENT)


def format_cents(cents: int | None) -> str | None:
    """Two-decimal string for the API boundary ("635.00")."""
    if cents is None:
        return None
    return str(cents_to_decimal(cents))


def percent_to_bps(value, default: int | None = None) -> int | None:
    """Convert a percentage ("7.5", 15) to basis points (750, 1500)."""
    pct = to_decimal(value, default=None)
    if pct is None:
        return default
    return int((pct * HUNDRED).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def bps_to_percent(bps: int | None) -> Decimal | None:
    if bps is None:
        return None
    return (Decimal(bps) / HUNDRED).quantize(CENT)


def apply_rate_cents(amount_cents: int, rate_bps: int) -> int:
    """amount x rate, rounded once to cents."""
    exact = Decimal(amount_cents) * Decimal(rate_bps) / BPS_PER_UNIT
    return int(exact.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
