"""Line total arithmetic.

line_total = quantity x unit_price x (1 - discount_percent / 100) x conversion_factor

`unit_price` is the price of one base unit and `quantity` is expressed in the
selected unit, so `quantity x conversion_factor` is the base quantity.
"""

from decimal import Decimal
from typing import Any

from core.finance.money import ZERO, ONE, HUNDRED
from core.finance.validation import CalculationInputError, coerce_decimal

MIN_QUANTITY = Decimal("0.01")


def validate_line(
    errors: dict[str, str],
    quantity: Any,
    unit_price: Any,
    discount_percent: Any = ZERO,
    conversion_factor: Any = ONE,
    prefix: str = "",
) -> tuple[Decimal, Decimal, Decimal, Decimal] | None:
    """
    Validate one line's numbers, recording problems under `prefix`.

    Returns the coerced (quantity, unit_price, discount_percent,
    conversion_factor) or None if any of them is invalid.
    """
    values = (
        coerce_decimal(errors, f"{prefix}quantity", quantity, minimum=MIN_QUANTITY),
        coerce_decimal(errors, f"{prefix}unit_price", unit_price, minimum=ZERO),
        coerce_decimal(
            errors, f"{prefix}discount_percent", discount_percent, minimum=ZERO, maximum=HUNDRED
        ),
        coerce_decimal(errors, f"{prefix}conversion_factor", conversion_factor, greater_than=ZERO),
    )
    if any(v is None for v in values):
        return None
    return values


def compute_line_total(
    quantity: Any,
    unit_price: Any,
    discount_percent: Any = ZERO,
    conversion_factor: Any = ONE,
) -> Decimal:
    """
    Full-precision line total.

    Round with `to_money()` for display or persistence; keep this value for
    aggregation.

    Raises:
        CalculationInputError: A value is not a finite number, quantity is
            below 0.01, price is negative, discount is outside [0, 100] or
            the conversion factor is not positive.
    """
    errors: dict[str, str] = {}
    values = validate_line(errors, quantity, unit_price, discount_percent, conversion_factor)
    if values is None:
        raise CalculationInputError(errors)

    qty, price, discount, factor = values
    return qty * price * (ONE - discount / HUNDRED) * factor


def base_quantity(quantity: Any, conversion_factor: Any = ONE) -> Decimal:
    """Quantity in the product's base unit (what stock moves by)."""
    errors: dict[str, str] = {}
    qty = coerce_decimal(errors, "quantity", quantity, minimum=ZERO)
    factor = coerce_decimal(errors, "conversion_factor", conversion_factor, greater_than=ZERO)
    if errors:
        raise CalculationInputError(errors)
    return qty * factor
