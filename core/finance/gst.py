"""
Indian GST helpers.

Intra-state supply is taxed as CGST + SGST, each at half the GST rate.
Inter-state supply is taxed as IGST at the full rate. Whether a supply is
inter-state is decided by comparing the seller's state with the place of
supply. Each per-line amount is rounded to cents and document totals are
sums of the rounded line amounts.
"""

import re
from decimal import Decimal
from typing import Iterable, NamedTuple

from core.finance.money import ZERO, to_money, percent_of

GSTIN_PATTERN = r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z]{1}[1-9A-Z]{1}Z[0-9A-Z]{1}$"
STATE_CODE_PATTERN = r"^[0-9]{2}$"

_GSTIN_RE = re.compile(GSTIN_PATTERN)

# Standard slabs plus the special rates for precious metals and stones
VALID_GST_RATES = tuple(
    Decimal(rate) for rate in ("0", "0.1", "0.25", "1", "1.5", "3", "5", "7.5", "12", "18", "28")
)

INDIAN_STATES = {
    "01": "Jammu & Kashmir",
    "02": "Himachal Pradesh",
    "03": "Punjab",
    "04": "Chandigarh",
    "05": "Uttarakhand",
    "06": "Haryana",
    "07": "Delhi",
    "08": "Rajasthan",
    "09": "Uttar Pradesh",
    "10": "Bihar",
    "11": "Sikkim",
    "12": "Arunachal Pradesh",
    "13": "Nagaland",
    "14": "Manipur",
    "15": "Mizoram",
    "16": "Tripura",
    "17": "Meghalaya",
    "18": "Assam",
    "19": "West Bengal",
    "20": "Jharkhand",
    "21": "Odisha",
    "22": "Chhattisgarh",
    "23": "Madhya Pradesh",
    "24": "Gujarat",
    "25": "Daman & Diu",
    "26": "Dadra & Nagar Haveli and Daman & Diu",
    "27": "Maharashtra",
    "28": "Andhra Pradesh",
    "29": "Karnataka",
    "30": "Goa",
    "31": "Lakshadweep",
    "32": "Kerala",
    "33": "Tamil Nadu",
    "34": "Puducherry",
    "35": "Andaman & Nicobar Islands",
    "36": "Telangana",
    "37": "Andhra Pradesh (New)",
    "38": "Ladakh",
    "97": "Other Territory",
}


class LineGST(NamedTuple):
    """GST on a single line. Exactly one of the CGST/SGST pair or IGST is non-zero."""

    cgst_rate: Decimal
    sgst_rate: Decimal
    igst_rate: Decimal
    cgst_amount: Decimal
    sgst_amount: Decimal
    igst_amount: Decimal
    total_tax: Decimal


class GSTTotals(NamedTuple):
    total_cgst: Decimal
    total_sgst: Decimal
    total_igst: Decimal
    total_tax: Decimal


class RateSlab(NamedTuple):
    """One row of the rate-wise GST summary."""

    gst_rate: Decimal
    taxable_value: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    total_tax: Decimal


_NO_GST = LineGST(ZERO, ZERO, ZERO, to_money(ZERO), to_money(ZERO), to_money(ZERO), to_money(ZERO))


def validate_gstin(gstin: str | None) -> bool:
    """Whether `gstin` is a well-formed 15-character GSTIN."""
    if not gstin:
        return False
    return _GSTIN_RE.match(gstin) is not None


def is_valid_gst_rate(rate: Decimal) -> bool:
    return rate in VALID_GST_RATES


def state_code_from_gstin(gstin: str | None) -> str | None:
    """First two characters of a GSTIN, only when they name a known state."""
    if not gstin or len(gstin) < 2:
        return None
    code = gstin[:2]
    return code if code in INDIAN_STATES else None


def is_inter_state(seller_state_code: str | None, buyer_state_code: str | None) -> bool:
    """Inter-state only when both codes are known and differ."""
    if not seller_state_code or not buyer_state_code:
        return False
    return seller_state_code != buyer_state_code


def place_of_supply(
    seller_state_code: str | None,
    buyer_gstin: str | None = None,
    buyer_state_code: str | None = None,
) -> str | None:
    """
    Resolve the place of supply.

    The buyer's GSTIN state wins, then the buyer's declared state code, then
    the seller's own state.
    """
    derived = state_code_from_gstin(buyer_gstin)
    if derived:
        return derived
    if buyer_state_code:
        return buyer_state_code
    return seller_state_code


def calculate_line_gst(taxable_amount: Decimal, gst_rate: Decimal, inter_state: bool) -> LineGST:
    """GST for one line. Non-positive rate or amount yields no tax."""
    if gst_rate <= ZERO or taxable_amount <= ZERO:
        return _NO_GST

    if inter_state:
        igst_amount = to_money(percent_of(taxable_amount, gst_rate))
        return LineGST(
            cgst_rate=ZERO,
            sgst_rate=ZERO,
            igst_rate=gst_rate,
            cgst_amount=to_money(ZERO),
            sgst_amount=to_money(ZERO),
            igst_amount=igst_amount,
            total_tax=igst_amount,
        )

    half_rate = gst_rate / 2
    cgst_amount = to_money(percent_of(taxable_amount, half_rate))
    sgst_amount = to_money(percent_of(taxable_amount, half_rate))
    return LineGST(
        cgst_rate=half_rate,
        sgst_rate=half_rate,
        igst_rate=ZERO,
        cgst_amount=cgst_amount,
        sgst_amount=sgst_amount,
        igst_amount=to_money(ZERO),
        total_tax=cgst_amount + sgst_amount,
    )


def calculate_document_gst(lines: Iterable[LineGST]) -> GSTTotals:
    """Sum rounded line amounts into document totals."""
    total_cgst = total_sgst = total_igst = to_money(ZERO)
    for line in lines:
        total_cgst += line.cgst_amount
        total_sgst += line.sgst_amount
        total_igst += line.igst_amount

    return GSTTotals(
        total_cgst=total_cgst,
        total_sgst=total_sgst,
        total_igst=total_igst,
        total_tax=total_cgst + total_sgst + total_igst,
    )


def summarize_by_rate(
    rows: Iterable[tuple[Decimal, Decimal, Decimal, Decimal, Decimal]],
) -> list[RateSlab]:
    """
    Group (gst_rate, taxable_value, cgst, sgst, igst) rows by rate.

    Returns slabs ordered by ascending rate.
    """
    slabs: dict[Decimal, list[Decimal]] = {}
    for rate, taxable, cgst, sgst, igst in rows:
        # 18 and 18.00 are the same slab
        key = to_money(rate or ZERO)
        acc = slabs.setdefault(key, [ZERO, ZERO, ZERO, ZERO])
        acc[0] += taxable
        acc[1] += cgst
        acc[2] += sgst
        acc[3] += igst

    return [
        RateSlab(
            gst_rate=rate,
            taxable_value=to_money(taxable),
            cgst=to_money(cgst),
            sgst=to_money(sgst),
            igst=to_money(igst),
            total_tax=to_money(cgst + sgst + igst),
        )
        for rate, (taxable, cgst, sgst, igst) in sorted(slabs.items())
    ]
