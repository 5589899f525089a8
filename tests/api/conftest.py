"""API test fixtures: the assembled app over mocked services."""

from unittest.mock import Mock

import pytest
from starlette.testclient import TestClient

from api.app import create_app
from api.middleware import ORGANIZATION_HEADER
from core.services.document_service import DocumentService
from core.services.party_service import PartyService
from core.services.payment_service import PaymentService
from core.services.product_service import ProductService
from core.services.report_service import ReportService
from core.services.tenant_service import TenantService


# =============================================================================
# SERVICES DICT
# =============================================================================


@pytest.fixture
def services():
    """Every service mocked; tests set return values on the ones they hit."""
    return {
        "tenant": Mock(spec=TenantService),
        "party": Mock(spec=PartyService),
        "product": Mock(spec=ProductService),
        "document": Mock(spec=DocumentService),
        "payment": Mock(spec=PaymentService),
        "report": Mock(spec=ReportService),
    }


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def app(services):
    """The production app assembly with tenant middleware and error handlers."""
    return create_app(services)


@pytest.fixture
def client(app, test_org_id):
    """Client acting for the primary test organization."""
    c = TestClient(app, raise_server_exceptions=False)
    c.headers[ORGANIZATION_HEADER] = str(test_org_id)
    return c


@pytest.fixture
def unauthed_client(app):
    """Client without an organization header."""
    return TestClient(app, raise_server_exceptions=False)
