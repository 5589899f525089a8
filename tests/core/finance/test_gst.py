"""Tests for Indian GST helpers."""

from decimal import Decimal

from core.finance.gst import (
    calculate_document_gst,
    calculate_line_gst,
    is_inter_state,
    is_valid_gst_rate,
    place_of_supply,
    state_code_from_gstin,
    summarize_by_rate,
    validate_gstin,
)


MAHARASHTRA_GSTIN = "27AAPFU0939F1ZV"
KARNATAKA_GSTIN = "29ABCDE1234F1Z5"


class TestGstin:

    def test_valid_gstin(self):
        assert validate_gstin(MAHARASHTRA_GSTIN)

    def test_invalid_gstin(self):
        assert not validate_gstin("27AAPFU0939F1Z")
        assert not validate_gstin("27aapfu0939f1zv")
        assert not validate_gstin(None)

    def test_state_code_from_gstin(self):
        assert state_code_from_gstin(KARNATAKA_GSTIN) == "29"

    def test_unknown_state_prefix(self):
        assert state_code_from_gstin("99ABCDE1234F1Z5") is None

    def test_gst_rates(self):
        assert is_valid_gst_rate(Decimal("18.00"))
        assert is_valid_gst_rate(Decimal("0.1"))
        assert not is_valid_gst_rate(Decimal("17"))
        assert not is_valid_gst_rate(Decimal("10"))


class TestPlaceOfSupply:
    """Buyer GSTIN, then buyer state, then seller state."""

    def test_buyer_gstin_wins(self):
        assert place_of_supply("27", KARNATAKA_GSTIN, "33") == "29"

    def test_buyer_state_when_no_gstin(self):
        assert place_of_supply("27", None, "33") == "33"

    def test_falls_back_to_seller(self):
        assert place_of_supply("27") == "27"

    def test_inter_state_needs_both_codes(self):
        assert is_inter_state("27", "29")
        assert not is_inter_state("27", "27")
        assert not is_inter_state("27", None)
        assert not is_inter_state(None, "29")


class TestLineGst:

    def test_intra_state_splits_cgst_sgst(self):
        """1000 @ 18% intra-state is CGST 90 + SGST 90."""
        line = calculate_line_gst(Decimal("1000"), Decimal("18"), inter_state=False)

        assert line.cgst_amount == Decimal("90.00")
        assert line.sgst_amount == Decimal("90.00")
        assert line.igst_amount == Decimal("0.00")
        assert line.cgst_rate == Decimal("9")
        assert line.total_tax == Decimal("180.00")

    def test_inter_state_is_igst(self):
        """1000 @ 18% inter-state is IGST 180."""
        line = calculate_line_gst(Decimal("1000"), Decimal("18"), inter_state=True)

        assert line.igst_amount == Decimal("180.00")
        assert line.cgst_amount == Decimal("0.00")
        assert line.sgst_amount == Decimal("0.00")
        assert line.total_tax == Decimal("180.00")

    def test_exactly_one_branch_populated(self):
        for inter_state in (True, False):
            line = calculate_line_gst(Decimal("333.33"), Decimal("5"), inter_state)
            split = line.cgst_amount + line.sgst_amount
            assert (split > 0) != (line.igst_amount > 0)

    def test_halves_round_separately(self):
        """0.05 @ 5% intra-state: each half is 0.00125 -> 0.00."""
        line = calculate_line_gst(Decimal("0.05"), Decimal("5"), inter_state=False)
        assert line.cgst_amount == Decimal("0.00")
        assert line.sgst_amount == Decimal("0.00")

    def test_zero_rate_no_tax(self):
        line = calculate_line_gst(Decimal("500"), Decimal("0"), inter_state=False)
        assert line.total_tax == Decimal("0.00")
        assert line.cgst_rate == Decimal("0")


class TestDocumentGst:

    def test_sums_rounded_lines(self):
        lines = [
            calculate_line_gst(Decimal("100.01"), Decimal("5"), False),
            calculate_line_gst(Decimal("100.01"), Decimal("5"), False),
        ]
        totals = calculate_document_gst(lines)

        # Each half: 100.01 x 2.5% = 2.50025 -> 2.50
        assert totals.total_cgst == Decimal("5.00")
        assert totals.total_sgst == Decimal("5.00")
        assert totals.total_igst == Decimal("0.00")
        assert totals.total_tax == Decimal("10.00")

    def test_empty(self):
        assert calculate_document_gst([]).total_tax == Decimal("0.00")


class TestSummarizeByRate:

    def test_groups_and_orders_by_rate(self):
        rows = [
            (Decimal("18"), Decimal("1000"), Decimal("90"), Decimal("90"), Decimal("0")),
            (Decimal("5"), Decimal("200"), Decimal("0"), Decimal("0"), Decimal("10")),
            (Decimal("18.00"), Decimal("500"), Decimal("45"), Decimal("45"), Decimal("0")),
        ]

        slabs = summarize_by_rate(rows)

        assert [s.gst_rate for s in slabs] == [Decimal("5.00"), Decimal("18.00")]
        eighteen = slabs[1]
        assert eighteen.taxable_value == Decimal("1500.00")
        assert eighteen.cgst == Decimal("135.00")
        assert eighteen.total_tax == Decimal("270.00")

    def test_missing_rate_is_zero_slab(self):
        slabs = summarize_by_rate([(None, Decimal("50"), Decimal("0"), Decimal("0"), Decimal("0"))])
        assert slabs[0].gst_rate == Decimal("0.00")
