"""Decimal money helpers.

All amounts, quantities and rates are decimal.Decimal. Rounding happens only
where a value is displayed or persisted: half-up to two places.
"""

from decimal import Decimal, ROUND_HALF_UP

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def to_money(value: Decimal) -> Decimal:
    """Round to cents, half-up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, rate: Decimal) -> Decimal:
    """Unrounded `amount x rate / 100`."""
    return amount * rate / HUNDRED


def format_money(value: Decimal) -> str:
    """Two-decimal string form, e.g. Decimal("1150") -> "1150.00"."""
    return f"{to_money(value):.2f}"


def safe_percent(numerator: Decimal, denominator: Decimal) -> Decimal:
    """
    `numerator / denominator x 100`, rounded to two places.

    A zero denominator yields 0 rather than an error.
    """
    if denominator == ZERO:
        return to_money(ZERO)
    return to_money(numerator / denominator * HUNDRED)
