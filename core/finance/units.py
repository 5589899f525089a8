"""Unit-conversion resolution.

A stored conversion says one `from_unit` equals `conversion_factor` of
`to_unit`. Only direct pairs between a product's base unit and an alternate
unit are used; conversions are never chained.
"""

from decimal import Decimal
from typing import Any, Iterable
from uuid import UUID

from core.finance.money import ONE, ZERO, to_money
from core.finance.validation import CalculationInputError, coerce_decimal
from core.models.product import UnitResolution


def validate_conversion(from_unit_id: UUID, to_unit_id: UUID, conversion_factor: Any) -> Decimal:
    """
    Check a conversion before it is stored.

    Returns:
        The factor as a Decimal

    Raises:
        CalculationInputError: Units are identical or the factor is not positive.
    """
    errors: dict[str, str] = {}
    if from_unit_id == to_unit_id:
        errors["to_unit_id"] = "must differ from from_unit_id"
    factor = coerce_decimal(errors, "conversion_factor", conversion_factor, greater_than=ZERO)
    if errors:
        raise CalculationInputError(errors)
    return factor


def resolve_unit(
    base_unit_id: UUID | None,
    base_cost: Any,
    requested_unit_id: UUID,
    conversions: Iterable[Any],
) -> UnitResolution:
    """
    Factor C and cost for `requested_unit_id`, such that unit_cost = base_cost x C.

    Selecting the base unit gives C = 1 and the base cost. A conversion
    alternate -> base with factor F gives C = F; a conversion base -> alternate
    with factor F gives C = 1 / F.

    Args:
        base_unit_id: The product's base unit
        base_cost: Cost of one base unit
        requested_unit_id: Unit the caller wants to transact in
        conversions: Objects with from_unit_id, to_unit_id, conversion_factor

    Raises:
        CalculationInputError: base_cost is negative or not a number
        ValueError: No base unit, or no direct conversion for the pair
    """
    errors: dict[str, str] = {}
    cost = coerce_decimal(errors, "base_cost", base_cost, minimum=ZERO)
    if errors:
        raise CalculationInputError(errors)

    if base_unit_id is None:
        raise ValueError("Product has no base unit")

    if requested_unit_id == base_unit_id:
        return UnitResolution(
            unit_id=base_unit_id,
            base_unit_id=base_unit_id,
            conversion_factor=ONE,
            unit_cost=to_money(cost),
            is_base_unit=True,
        )

    factor = None
    reverse = None
    for conversion in conversions:
        if conversion.from_unit_id == requested_unit_id and conversion.to_unit_id == base_unit_id:
            factor = Decimal(conversion.conversion_factor)
            break
        if conversion.from_unit_id == base_unit_id and conversion.to_unit_id == requested_unit_id:
            reverse = Decimal(conversion.conversion_factor)

    if factor is None and reverse is not None and reverse > ZERO:
        factor = ONE / reverse

    if factor is None or factor <= ZERO:
        raise ValueError(
            f"Unit conversion not found between unit {requested_unit_id} and base unit {base_unit_id}"
        )

    return UnitResolution(
        unit_id=requested_unit_id,
        base_unit_id=base_unit_id,
        conversion_factor=factor,
        unit_cost=to_money(cost * factor),
        is_base_unit=False,
    )
