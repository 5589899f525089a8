"""
Input validation for the calculation modules.

Every calculation entry point validates its whole input before computing and
reports all problems at once, keyed by dotted field path ("items.0.quantity").
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable


class CalculationInputError(ValueError):
    """Calculation input failed validation. `errors` maps field path to message."""

    def __init__(self, errors: dict[str, str]):
        self.errors = dict(errors)
        summary = "; ".join(f"{field}: {message}" for field, message in self.errors.items())
        super().__init__(f"Invalid calculation input: {summary}")


def coerce_decimal(
    errors: dict[str, str],
    field: str,
    value: Any,
    *,
    minimum: Decimal | None = None,
    maximum: Decimal | None = None,
    greater_than: Decimal | None = None,
) -> Decimal | None:
    """
    Convert `value` to a finite Decimal and check its bounds.

    Problems are recorded in `errors` under `field` and None is returned, so
    callers can keep validating the remaining fields.
    """
    if value is None:
        errors[field] = "is required"
        return None

    if isinstance(value, bool):
        errors[field] = "must be a number"
        return None

    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        errors[field] = "must be a number"
        return None

    if not number.is_finite():
        errors[field] = "must be a finite number"
        return None

    if minimum is not None and number < minimum:
        errors[field] = f"must be greater than or equal to {minimum}"
        return None

    if greater_than is not None and number <= greater_than:
        errors[field] = f"must be greater than {greater_than}"
        return None

    if maximum is not None and number > maximum:
        errors[field] = f"must be less than or equal to {maximum}"
        return None

    return number


def field_errors(errors: Iterable[dict[str, Any]]) -> dict[str, str]:
    """
    Flatten pydantic error dicts into {dotted_path: message}.

    The request-location prefix FastAPI adds ("body", "query") is dropped.
    Only the first message per path is kept.
    """
    flattened: dict[str, str] = {}
    for error in errors:
        parts = [str(p) for p in error.get("loc", ()) if p not in ("body", "query")]
        path = ".".join(parts) or "__root__"
        flattened.setdefault(path, error.get("msg", "invalid value"))
    return flattened
