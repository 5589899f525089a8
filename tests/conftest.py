"""Shared test fixtures for the billing test suite."""

import pytest
from uuid import UUID
from pathlib import Path

from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
# override=True ensures .env takes precedence over shell env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from utils.tenant_context import tenant_context, clear_current_organization_id


# =============================================================================
# TEST ORGANIZATION CONSTANTS
# =============================================================================

# Primary test organization - use for single-tenant tests
TEST_ORG_ID = UUID("00000000-0000-0000-0000-0000000000a1")

# Secondary test organization - use for isolation tests
TEST_ORG_B_ID = UUID("00000000-0000-0000-0000-0000000000b2")


# =============================================================================
# TENANT CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_tenant_context():
    """Ensure clean tenant context before and after each test."""
    clear_current_organization_id()
    yield
    clear_current_organization_id()


@pytest.fixture
def test_org_id() -> UUID:
    """The primary test organization's ID."""
    return TEST_ORG_ID


@pytest.fixture
def test_org_b_id() -> UUID:
    """The secondary test organization's ID."""
    return TEST_ORG_B_ID


@pytest.fixture
def as_test_org(test_org_id):
    """Run the test inside the primary organization's tenant context."""
    with tenant_context(test_org_id):
        yield test_org_id


# =============================================================================
# ROW FACTORIES
# =============================================================================
# Database rows as RealDictCursor returns them, for services under a mocked
# PostgresClient. Each factory takes keyword overrides.


def _timestamp():
    from datetime import datetime, timezone
    return datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def organization_row():
    def make(**overrides):
        row = {
            "id": TEST_ORG_ID,
            "name": "Test Org",
            "gst_enabled": False,
            "gst_state_code": None,
            "gstin": None,
            "saudi_einvoice_enabled": False,
            "seller_name": None,
            "vat_number": None,
            "multi_unit_enabled": False,
            "currency": "INR",
            "created_at": _timestamp(),
            "updated_at": _timestamp(),
        }
        row.update(overrides)
        return row
    return make


@pytest.fixture
def party_row():
    from decimal import Decimal
    from uuid import uuid4

    def make(**overrides):
        row = {
            "id": uuid4(),
            "organization_id": TEST_ORG_ID,
            "party_type": "customer",
            "name": "Acme Traders",
            "email": "accounts@acme.test",
            "phone": None,
            "address": None,
            "gstin": None,
            "state_code": None,
            "vat_number": None,
            "balance": Decimal("0.00"),
            "notes": None,
            "created_at": _timestamp(),
            "updated_at": _timestamp(),
            "deleted_at": None,
        }
        row.update(overrides)
        return row
    return make


@pytest.fixture
def product_row():
    from decimal import Decimal
    from uuid import uuid4

    def make(**overrides):
        row = {
            "id": uuid4(),
            "organization_id": TEST_ORG_ID,
            "name": "Widget",
            "sku": "W-1",
            "unit_id": uuid4(),
            "cost": Decimal("40.00"),
            "price": Decimal("60.00"),
            "gst_rate": Decimal("18"),
            "hsn_code": "8471",
            "created_at": _timestamp(),
            "updated_at": _timestamp(),
            "deleted_at": None,
        }
        row.update(overrides)
        return row
    return make


@pytest.fixture
def document_row():
    from datetime import date
    from decimal import Decimal
    from uuid import uuid4

    def make(**overrides):
        row = {
            "id": uuid4(),
            "organization_id": TEST_ORG_ID,
            "document_type": "sales_invoice",
            "document_number": "INV-20240115-001",
            "party_id": uuid4(),
            "status": "draft",
            "issue_date": date(2024, 1, 15),
            "due_date": None,
            "subtotal": Decimal("900.00"),
            "discount": Decimal("0.00"),
            "tax_rate": Decimal("18"),
            "tax_amount": Decimal("162.00"),
            "total": Decimal("1062.00"),
            "amount_paid": Decimal("0.00"),
            "balance_due": Decimal("1062.00"),
            "tax_mode": "flat",
            "total_cgst": Decimal("0.00"),
            "total_sgst": Decimal("0.00"),
            "total_igst": Decimal("0.00"),
            "total_vat": Decimal("0.00"),
            "place_of_supply": None,
            "is_inter_state": False,
            "saudi_invoice_type": None,
            "invoice_counter_value": None,
            "invoice_hash": None,
            "previous_invoice_hash": None,
            "qr_payload": None,
            "notes": None,
            "issued_at": None,
            "cancelled_at": None,
            "created_at": _timestamp(),
            "updated_at": _timestamp(),
            "deleted_at": None,
        }
        row.update(overrides)
        return row
    return make


@pytest.fixture
def document_item_row():
    from decimal import Decimal
    from uuid import uuid4

    def make(**overrides):
        row = {
            "id": uuid4(),
            "organization_id": TEST_ORG_ID,
            "document_id": uuid4(),
            "position": 0,
            "product_id": None,
            "description": "Consulting",
            "quantity": Decimal("10"),
            "unit_price": Decimal("100"),
            "discount_percent": Decimal("10"),
            "gst_rate": None,
            "hsn_code": None,
            "unit_id": None,
            "conversion_factor": Decimal("1"),
            "line_total": Decimal("900.00"),
            "tax_amount": Decimal("162.00"),
            "cgst_amount": Decimal("0.00"),
            "sgst_amount": Decimal("0.00"),
            "igst_amount": Decimal("0.00"),
            "cost_of_goods_sold": None,
            "created_at": _timestamp(),
        }
        row.update(overrides)
        return row
    return make


@pytest.fixture
def payment_row():
    from datetime import date
    from decimal import Decimal
    from uuid import uuid4

    def make(**overrides):
        row = {
            "id": uuid4(),
            "organization_id": TEST_ORG_ID,
            "party_id": uuid4(),
            "party_type": "customer",
            "document_id": None,
            "payment_number": "PAY-20240115-001",
            "amount": Decimal("500.00"),
            "discount_received": Decimal("0.00"),
            "unapplied_amount": Decimal("0.00"),
            "payment_date": date(2024, 1, 15),
            "method": "cash",
            "reference": None,
            "notes": None,
            "created_at": _timestamp(),
            "updated_at": _timestamp(),
        }
        row.update(overrides)
        return row
    return make
