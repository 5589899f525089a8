"""Tests for Saudi VAT and ZATCA Phase 1 artifacts."""

import base64
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

import pytest

from core.finance.saudi_vat import (
    SaudiInvoiceType,
    calculate_vat,
    determine_invoice_type,
    validate_trn,
)
from core.finance.validation import CalculationInputError
from core.finance.zatca import (
    GENESIS_INVOICE_HASH,
    build_qr_payload,
    compute_invoice_hash,
    decode_qr_payload,
    encode_tlv,
    format_timestamp,
    next_counter_value,
)

SELLER_TRN = "310123456700003"


class TestVat:

    def test_fifteen_percent(self):
        assert calculate_vat(Decimal("1000")) == Decimal("150.00")

    def test_rounds_half_up(self):
        """333.33 x 15% = 49.9995 -> 50.00."""
        assert calculate_vat(Decimal("333.33")) == Decimal("50.00")

    @pytest.mark.parametrize("subtotal", ["0", "0.01", "19.99", "123456.78"])
    def test_matches_rounded_fifteen_percent(self, subtotal):
        expected = (Decimal(subtotal) * Decimal("0.15")).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        assert calculate_vat(Decimal(subtotal)) == expected

    def test_rejects_negative_subtotal(self):
        with pytest.raises(CalculationInputError) as exc_info:
            calculate_vat(Decimal("-1"))
        assert "subtotal" in exc_info.value.errors


class TestTrn:

    def test_valid(self):
        assert validate_trn(SELLER_TRN)

    def test_must_start_with_three(self):
        assert not validate_trn("210123456700003")

    def test_must_be_fifteen_digits(self):
        assert not validate_trn("31012345670000")

    def test_invoice_type(self):
        assert determine_invoice_type(SELLER_TRN) == SaudiInvoiceType.STANDARD
        assert determine_invoice_type(None) == SaudiInvoiceType.SIMPLIFIED
        assert determine_invoice_type("not-a-trn") == SaudiInvoiceType.SIMPLIFIED


class TestQrPayload:

    TIMESTAMP = datetime(2024, 1, 15, 14, 30, tzinfo=timezone.utc)

    def test_decodes_back_to_fields(self):
        payload = build_qr_payload(
            "Acme Trading", SELLER_TRN, self.TIMESTAMP, Decimal("1150"), Decimal("150")
        )

        fields = decode_qr_payload(payload)

        assert fields.seller_name == "Acme Trading"
        assert fields.vat_number == SELLER_TRN
        assert fields.timestamp == "2024-01-15T14:30:00Z"
        assert fields.total_with_vat == "1150.00"
        assert fields.vat_total == "150.00"

    def test_deterministic(self):
        args = ("Acme", SELLER_TRN, self.TIMESTAMP, Decimal("10"), Decimal("1.30"))
        assert build_qr_payload(*args) == build_qr_payload(*args)

    def test_tlv_layout(self):
        """First field is tag 1, length byte, UTF-8 seller name."""
        raw = base64.b64decode(build_qr_payload("Abc", SELLER_TRN, "t", "1.00", "0.15"))
        assert raw[:5] == bytes([1, 3]) + b"Abc"

    def test_utf8_length_counts_bytes(self):
        """Arabic names take two bytes per letter."""
        assert encode_tlv(1, "شركة")[1] == 8

    def test_value_too_long(self):
        with pytest.raises(ValueError, match="exceeds 255 bytes"):
            encode_tlv(1, "x" * 256)

    def test_decode_truncated(self):
        payload = base64.b64encode(bytes([1, 10]) + b"abc").decode("ascii")
        with pytest.raises(ValueError, match="truncated"):
            decode_qr_payload(payload)

    def test_decode_missing_tag(self):
        payload = base64.b64encode(encode_tlv(1, "Acme")).decode("ascii")
        with pytest.raises(ValueError, match="missing tags"):
            decode_qr_payload(payload)

    def test_decode_not_base64(self):
        with pytest.raises(ValueError, match="base64"):
            decode_qr_payload("***")

    def test_timestamp_normalized_to_utc(self):
        from zoneinfo import ZoneInfo

        riyadh = datetime(2024, 1, 15, 17, 30, tzinfo=ZoneInfo("Asia/Riyadh"))
        assert format_timestamp(riyadh) == "2024-01-15T14:30:00Z"


class TestInvoiceHash:

    def test_is_sha256_hex(self):
        value = compute_invoice_hash(
            "INV-20240115-001", "2024-01-15", SELLER_TRN, Decimal("1150"), Decimal("150")
        )
        assert len(value) == 64
        assert value != GENESIS_INVOICE_HASH

    def test_amount_formatting_is_stable(self):
        """Decimal("1150") and "1150.00" hash the same."""
        a = compute_invoice_hash("INV-1", "2024-01-15", SELLER_TRN, Decimal("1150"), Decimal("150"))
        b = compute_invoice_hash("INV-1", "2024-01-15", SELLER_TRN, "1150.00", "150.00")
        assert a == b

    def test_changes_with_total(self):
        a = compute_invoice_hash("INV-1", "2024-01-15", SELLER_TRN, Decimal("1150"), Decimal("150"))
        b = compute_invoice_hash("INV-1", "2024-01-15", SELLER_TRN, Decimal("1150.01"), Decimal("150"))
        assert a != b

    def test_counter_starts_at_one(self):
        assert next_counter_value(None) == 1
        assert next_counter_value(41) == 42
