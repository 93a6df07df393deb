"""Money arithmetic.

Amounts are computed as ``Decimal`` rounded half-up to cents and stored on
aggregates as floats (Protean ``Float`` fields).
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if value is None:
        return Decimal("0")
    # str() keeps 12.99 as 12.99 rather than its binary expansion
    return Decimal(str(value))


def quantize(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def as_float(value) -> float:
    return float(quantize(value))


def to_minor_units(value) -> int:
    """Dollars to cents, as gateways expect."""
    return int((quantize(value) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def format_amount(value) -> str:
    return f"${quantize(value)}"
