"""
ZATCA Phase 1 e-invoice artifacts: TLV QR payload and invoice hash chain.

QR payload: five TLV fields, each `tag (1 byte) + length (1 byte) + UTF-8
value`, concatenated and base64 encoded.

    1  seller name
    2  seller VAT number
    3  invoice timestamp, ISO 8601 UTC ("2024-01-15T14:30:00Z")
    4  invoice total including VAT, two decimals
    5  VAT total, two decimals

Identical inputs always produce a byte-identical payload.
"""

import base64
import hashlib
from datetime import datetime
from decimal import Decimal
from typing import NamedTuple

from core.finance.money import format_money
from utils.timezone import to_utc

# The first invoice in an organization's chain points at this hash
GENESIS_INVOICE_HASH = "0" * 64

TAG_SELLER_NAME = 1
TAG_VAT_NUMBER = 2
TAG_TIMESTAMP = 3
TAG_TOTAL_WITH_VAT = 4
TAG_VAT_TOTAL = 5


class QRFields(NamedTuple):
    seller_name: str
    vat_number: str
    timestamp: str
    total_with_vat: str
    vat_total: str


def format_timestamp(value: datetime | str) -> str:
    """ISO 8601 UTC with a trailing Z. Strings pass through unchanged."""
    if isinstance(value, str):
        return value
    return to_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


def _amount(value: Decimal | str) -> str:
    if isinstance(value, str):
        return value
    return format_money(value)


def encode_tlv(tag: int, value: str) -> bytes:
    """
    Encode one TLV field.

    Raises:
        ValueError: tag or encoded value length does not fit in one byte.
    """
    if not 0 < tag < 256:
        raise ValueError(f"TLV tag {tag} out of range")

    value_bytes = value.encode("utf-8")
    if len(value_bytes) > 255:
        raise ValueError(f"TLV value for tag {tag} exceeds 255 bytes")

    return bytes([tag, len(value_bytes)]) + value_bytes


def build_qr_payload(
    seller_name: str,
    vat_number: str,
    timestamp: datetime | str,
    total_with_vat: Decimal | str,
    vat_total: Decimal | str,
) -> str:
    """Base64 TLV payload for the invoice QR code."""
    fields = (
        (TAG_SELLER_NAME, seller_name),
        (TAG_VAT_NUMBER, vat_number),
        (TAG_TIMESTAMP, format_timestamp(timestamp)),
        (TAG_TOTAL_WITH_VAT, _amount(total_with_vat)),
        (TAG_VAT_TOTAL, _amount(vat_total)),
    )
    payload = b"".join(encode_tlv(tag, value) for tag, value in fields)
    return base64.b64encode(payload).decode("ascii")


def decode_qr_payload(payload: str) -> QRFields:
    """
    Decode a base64 TLV payload back into its five fields.

    Raises:
        ValueError: payload is not valid base64, is truncated, or lacks a tag.
    """
    try:
        raw = base64.b64decode(payload, validate=True)
    except ValueError as e:
        raise ValueError(f"QR payload is not valid base64: {e}")

    values: dict[int, str] = {}
    offset = 0
    while offset < len(raw):
        if offset + 2 > len(raw):
            raise ValueError("QR payload truncated in TLV header")
        tag, length = raw[offset], raw[offset + 1]
        start = offset + 2
        end = start + length
        if end > len(raw):
            raise ValueError(f"QR payload truncated in value of tag {tag}")
        values[tag] = raw[start:end].decode("utf-8")
        offset = end

    missing = [
        tag for tag in (TAG_SELLER_NAME, TAG_VAT_NUMBER, TAG_TIMESTAMP, TAG_TOTAL_WITH_VAT, TAG_VAT_TOTAL)
        if tag not in values
    ]
    if missing:
        raise ValueError(f"QR payload missing tags: {missing}")

    return QRFields(
        seller_name=values[TAG_SELLER_NAME],
        vat_number=values[TAG_VAT_NUMBER],
        timestamp=values[TAG_TIMESTAMP],
        total_with_vat=values[TAG_TOTAL_WITH_VAT],
        vat_total=values[TAG_VAT_TOTAL],
    )


def compute_invoice_hash(
    invoice_number: str,
    issue_date: str,
    seller_vat_number: str,
    total_incl_vat: Decimal | str,
    total_vat: Decimal | str,
) -> str:
    """SHA-256 hex digest of `number|issue_date|seller_vat|total_incl_vat|total_vat`."""
    content = "|".join([
        invoice_number,
        issue_date,
        seller_vat_number,
        _amount(total_incl_vat),
        _amount(total_vat),
    ])
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def next_counter_value(current_max: int | None) -> int:
    """Next invoice counter value. Counters start at 1 and never reset."""
    return (current_max or 0) + 1
