"""Saudi VAT (ZATCA Phase 1) rates, TRN validation and invoice classification."""

import re
from decimal import Decimal
from enum import Enum

from core.finance.money import ZERO, to_money, percent_of
from core.finance.validation import CalculationInputError, coerce_decimal

SAUDI_VAT_RATE = Decimal("15")
SAUDI_CURRENCY = "SAR"

# 15 digits starting with 3
TRN_PATTERN = r"^3\d{14}$"

_TRN_RE = re.compile(TRN_PATTERN)


class SaudiInvoiceType(str, Enum):
    """B2B invoices carry buyer VAT details; B2C invoices do not."""

    STANDARD = "standard"
    SIMPLIFIED = "simplified"


def validate_trn(trn: str | None) -> bool:
    """Whether `trn` is a well-formed Saudi VAT registration number."""
    if not trn:
        return False
    return _TRN_RE.match(trn) is not None


def calculate_vat(subtotal: Decimal, rate: Decimal = SAUDI_VAT_RATE) -> Decimal:
    """
    VAT on a subtotal, rounded half-up to cents.

    Raises:
        CalculationInputError: subtotal is negative or not a finite number.
    """
    errors: dict[str, str] = {}
    amount = coerce_decimal(errors, "subtotal", subtotal, minimum=ZERO)
    vat_rate = coerce_decimal(errors, "vat_rate", rate, minimum=ZERO, maximum=Decimal("100"))
    if errors:
        raise CalculationInputError(errors)
    return to_money(percent_of(amount, vat_rate))


def determine_invoice_type(buyer_vat_number: str | None) -> SaudiInvoiceType:
    """STANDARD when the buyer has a valid TRN, otherwise SIMPLIFIED."""
    if validate_trn(buyer_vat_number):
        return SaudiInvoiceType.STANDARD
    return SaudiInvoiceType.SIMPLIFIED
