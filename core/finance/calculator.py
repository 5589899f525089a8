"""
Document totals calculator.

The one place invoice arithmetic lives. Services and endpoints that need
totals call `calculate_document()`; nothing else adds up line items.

    subtotal    = sum of exact line totals, rounded once
    tax         = GST per line | flat rate on subtotal | Saudi VAT on subtotal
    total       = subtotal + tax - discount      (discount is absolute, post-tax)
    balance_due = total - amount_paid

Tenant behaviour arrives through TenantConfig; nothing is read from ambient
state. All input is validated up front and every problem is reported in a
single CalculationInputError.
"""

from decimal import Decimal

from core.finance.gst import (
    VALID_GST_RATES,
    calculate_document_gst,
    calculate_line_gst,
    is_inter_state,
    is_valid_gst_rate,
    place_of_supply,
)
from core.finance.line_totals import base_quantity, compute_line_total, validate_line
from core.finance.money import HUNDRED, ZERO, format_money, percent_of, to_money
from core.finance.saudi_vat import SAUDI_VAT_RATE, calculate_vat, determine_invoice_type
from core.finance.validation import CalculationInputError, coerce_decimal
from core.models.document import (
    Counterparty,
    Document,
    DocumentInput,
    DocumentTotals,
    LineResult,
    TaxBreakdown,
    TotalsVerification,
)
from core.models.tenant import TaxMode, TenantConfig

_NO_COUNTERPARTY = Counterparty()
_GST_RATE_CHOICES = ", ".join(str(rate) for rate in VALID_GST_RATES)


def _validate(
    document: DocumentInput, tenant: TenantConfig, amount_paid
) -> tuple[list[tuple], Decimal, Decimal, Decimal]:
    errors: dict[str, str] = {}

    if not document.items:
        errors["items"] = "must contain at least one item"

    lines = []
    line_rates = []
    for index, item in enumerate(document.items):
        prefix = f"items.{index}."
        values = validate_line(
            errors,
            item.quantity,
            item.unit_price,
            item.discount_percent,
            item.conversion_factor,
            prefix=prefix,
        )
        rate = None
        if item.gst_rate is not None:
            rate = coerce_decimal(errors, f"{prefix}gst_rate", item.gst_rate, minimum=ZERO, maximum=HUNDRED)
        lines.append(values)
        line_rates.append((prefix, item.gst_rate is not None, rate))

    discount = coerce_decimal(errors, "discount", document.discount, minimum=ZERO)
    tax_rate = coerce_decimal(errors, "tax_rate", document.tax_rate, minimum=ZERO, maximum=HUNDRED)
    paid = coerce_decimal(errors, "amount_paid", amount_paid, minimum=ZERO)

    if tenant.tax_mode == TaxMode.GST:
        for prefix, has_own_rate, rate in line_rates:
            # Lines without a rate are taxed at the document rate
            effective = rate if has_own_rate else tax_rate
            if effective is not None and not is_valid_gst_rate(effective):
                errors[f"{prefix}gst_rate"] = f"must be one of {_GST_RATE_CHOICES}"

    if errors:
        raise CalculationInputError(errors)

    return lines, discount, tax_rate, paid


def calculate_document(
    document: DocumentInput,
    tenant: TenantConfig,
    counterparty: Counterparty | None = None,
    amount_paid: Decimal = ZERO,
    vat_rate: Decimal = SAUDI_VAT_RATE,
) -> DocumentTotals:
    """
    Compute subtotal, tax breakdown, total and balance due for a document.

    Args:
        document: Line items plus document-level discount and tax rate
        tenant: Tax mode and seller identity of the issuing organization
        counterparty: Buyer/supplier tax identity (GSTIN, state, TRN)
        amount_paid: Payments already applied to the document
        vat_rate: Saudi VAT rate in percent

    Returns:
        DocumentTotals with per-line results and the aggregate breakdown

    Raises:
        CalculationInputError: Any input is invalid, or the discount exceeds
            subtotal plus tax. Keys are dotted field paths.
    """
    lines, discount, tax_rate, paid = _validate(document, tenant, amount_paid)
    counterparty = counterparty or _NO_COUNTERPARTY

    exact_totals = [compute_line_total(*values) for values in lines]
    subtotal = to_money(sum(exact_totals, ZERO))
    saudi_invoice_type = None

    if tenant.tax_mode == TaxMode.GST:
        line_results, breakdown = _gst(document, tenant, counterparty, exact_totals, lines, tax_rate)

    elif tenant.tax_mode == TaxMode.SAUDI_VAT:
        vat = calculate_vat(subtotal, vat_rate)
        line_results = _flat_lines(exact_totals, lines, vat_rate)
        breakdown = TaxBreakdown(tax_mode=TaxMode.SAUDI_VAT, total_vat=vat, total_tax=vat)
        saudi_invoice_type = determine_invoice_type(counterparty.vat_number)

    else:
        flat_tax = to_money(percent_of(subtotal, tax_rate))
        line_results = _flat_lines(exact_totals, lines, tax_rate)
        breakdown = TaxBreakdown(tax_mode=TaxMode.FLAT, flat_tax=flat_tax, total_tax=flat_tax)

    total_before_discount = subtotal + breakdown.total_tax
    if discount > total_before_discount:
        raise CalculationInputError({
            "discount": f"must not exceed subtotal plus tax ({format_money(total_before_discount)})"
        })

    discount = to_money(discount)
    total = total_before_discount - discount
    paid = to_money(paid)

    return DocumentTotals(
        lines=line_results,
        subtotal=subtotal,
        tax=breakdown,
        discount=discount,
        total=total,
        amount_paid=paid,
        balance_due=total - paid,
        saudi_invoice_type=saudi_invoice_type,
    )


def _gst(document, tenant, counterparty, exact_totals, lines, tax_rate):
    seller_state = tenant.gst_state_code
    pos = place_of_supply(seller_state, counterparty.gstin, counterparty.state_code)
    inter_state = is_inter_state(seller_state, pos)

    line_results = []
    line_taxes = []
    for index, (item, exact, values) in enumerate(zip(document.items, exact_totals, lines)):
        # Line rate wins; the document rate covers lines without one
        rate = item.gst_rate if item.gst_rate is not None else tax_rate
        line_gst = calculate_line_gst(exact, rate, inter_state)
        line_taxes.append(line_gst)
        line_results.append(LineResult(
            index=index,
            line_total=exact,
            taxable_amount=to_money(exact),
            base_quantity=base_quantity(values[0], values[3]),
            tax_rate=rate,
            cgst_rate=line_gst.cgst_rate,
            sgst_rate=line_gst.sgst_rate,
            igst_rate=line_gst.igst_rate,
            cgst_amount=line_gst.cgst_amount,
            sgst_amount=line_gst.sgst_amount,
            igst_amount=line_gst.igst_amount,
            tax_amount=line_gst.total_tax,
        ))

    totals = calculate_document_gst(line_taxes)
    breakdown = TaxBreakdown(
        tax_mode=TaxMode.GST,
        total_cgst=totals.total_cgst,
        total_sgst=totals.total_sgst,
        total_igst=totals.total_igst,
        total_tax=totals.total_tax,
        place_of_supply=pos,
        is_inter_state=inter_state,
    )
    return line_results, breakdown


def _flat_lines(exact_totals, lines, rate: Decimal) -> list[LineResult]:
    # Per-line tax is informational; the document tax is taken on the subtotal
    return [
        LineResult(
            index=index,
            line_total=exact,
            taxable_amount=to_money(exact),
            base_quantity=base_quantity(values[0], values[3]),
            tax_rate=rate,
            tax_amount=to_money(percent_of(exact, rate)),
        )
        for index, (exact, values) in enumerate(zip(exact_totals, lines))
    ]


def verify_totals(stored: Document, recomputed: DocumentTotals) -> TotalsVerification:
    """
    Compare a persisted document's totals with a recalculation.

    Recalculating a document from its own stored line items must reproduce
    its stored totals; any difference is reported per field.
    """
    pairs = {
        "subtotal": (stored.subtotal, recomputed.subtotal),
        "tax_amount": (stored.tax_amount, recomputed.tax.total_tax),
        "total_cgst": (stored.total_cgst, recomputed.tax.total_cgst),
        "total_sgst": (stored.total_sgst, recomputed.tax.total_sgst),
        "total_igst": (stored.total_igst, recomputed.tax.total_igst),
        "total_vat": (stored.total_vat, recomputed.tax.total_vat),
        "total": (stored.total, recomputed.total),
        "balance_due": (stored.balance_due, recomputed.balance_due),
    }

    mismatches = {
        field: {"stored": format_money(old), "computed": format_money(new)}
        for field, (old, new) in pairs.items()
        if to_money(old) != to_money(new)
    }

    return TotalsVerification(
        document_id=stored.id,
        matches=not mismatches,
        mismatches=mismatches,
    )
