"""Tests for POST /api/actions unified mutation endpoint."""

import pytest
from decimal import Decimal
from uuid import uuid4

from core.finance.validation import CalculationInputError
from core.models import (
    Document, DocumentCreate, DocumentUpdate, Party, PartyCreate, Payment, PaymentCreate,
    TaxMode, TaxSettingsUpdate, TenantConfig,
)


def action(client, domain, name, data):
    return client.post("/api/actions", json={"domain": domain, "action": name, "data": data})


# =============================================================================
# AUTHENTICATION & VALIDATION
# =============================================================================


class TestActionsAuthentication:

    def test_missing_organization_returns_401(self, unauthed_client, services):
        response = action(unauthed_client, "party", "create", {"party_type": "customer", "name": "Nope"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "NOT_AUTHENTICATED"
        services["party"].create.assert_not_called()


class TestActionsValidation:

    def test_missing_domain_returns_422(self, client):
        response = client.post("/api/actions", json={"action": "create", "data": {}})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_unknown_domain(self, client):
        response = action(client, "stock_lot", "create", {})

        assert response.status_code == 400
        assert "Unknown domain" in response.json()["error"]["message"]

    def test_disallowed_action(self, client):
        response = action(client, "payment", "delete", {"id": str(uuid4())})

        assert response.status_code == 400
        assert "not allowed" in response.json()["error"]["message"]

    def test_invalid_model_data_returns_field_errors(self, client, services):
        response = action(client, "party", "create", {"party_type": "customer", "name": "Acme", "gstin": "BAD"})

        assert response.status_code == 422
        assert "gstin" in response.json()["error"]["details"]
        services["party"].create.assert_not_called()

    def test_missing_id(self, client):
        response = action(client, "document", "issue", {})

        assert response.status_code == 400
        assert "'id' is required" in response.json()["error"]["message"]


# =============================================================================
# PARTIES
# =============================================================================


class TestPartyActions:

    def test_create(self, client, services, party_row):
        services["party"].create.return_value = Party.model_validate(party_row(name="Acme Traders"))

        response = action(client, "party", "create", {"party_type": "customer", "name": "Acme Traders"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["name"] == "Acme Traders"
        assert isinstance(services["party"].create.call_args.args[0], PartyCreate)

    def test_delete_missing_returns_404(self, client, services):
        services["party"].delete.return_value = False

        response = action(client, "party", "delete", {"id": str(uuid4())})

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_delete_with_balance_returns_400(self, client, services):
        services["party"].delete.side_effect = ValueError("Party has an outstanding balance of 10.00")

        response = action(client, "party", "delete", {"id": str(uuid4())})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"


# =============================================================================
# DOCUMENTS
# =============================================================================


class TestDocumentActions:

    def test_create(self, client, services, document_row):
        party_id = uuid4()
        services["document"].create.return_value = Document.model_validate(document_row(party_id=party_id))

        response = action(client, "document", "create", {
            "document_type": "sales_invoice",
            "party_id": str(party_id),
            "tax_rate": "18",
            "items": [{"quantity": "10", "unit_price": "100", "discount_percent": "10"}],
        })

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total"] == "1062.00"
        assert data["credit_due"] == "0.00"
        created = services["document"].create.call_args.args[0]
        assert isinstance(created, DocumentCreate)
        assert created.items[0].quantity == Decimal("10")

    def test_update_passes_id_separately(self, client, services, document_row):
        document_id = uuid4()
        services["document"].update.return_value = Document.model_validate(document_row(id=document_id))

        response = action(client, "document", "update", {"id": str(document_id), "notes": "Net 30"})

        assert response.status_code == 200
        called_id, update = services["document"].update.call_args.args
        assert called_id == document_id
        assert isinstance(update, DocumentUpdate)
        assert update.notes == "Net 30"

    def test_calculation_error_returns_field_details(self, client, services):
        services["document"].create.side_effect = CalculationInputError(
            {"discount": "must not exceed subtotal plus tax (1062.00)"}
        )

        response = action(client, "document", "create", {
            "document_type": "sales_invoice",
            "party_id": str(uuid4()),
            "discount": "5000",
            "items": [{"quantity": "10", "unit_price": "100"}],
        })

        assert response.status_code == 422
        assert response.json()["error"]["details"] == {"discount": "must not exceed subtotal plus tax (1062.00)"}

    def test_issue(self, client, services, document_row):
        document_id = uuid4()
        services["document"].issue.return_value = Document.model_validate(
            document_row(id=document_id, status="sent")
        )

        response = action(client, "document", "issue", {"id": str(document_id)})

        assert response.json()["data"]["status"] == "sent"
        services["document"].issue.assert_called_once_with(document_id)

    def test_cancel_not_found(self, client, services):
        document_id = uuid4()
        services["document"].cancel.side_effect = ValueError(f"Document {document_id} not found")

        response = action(client, "document", "cancel", {"id": str(document_id)})

        assert response.status_code == 404

    def test_record_cost_of_goods_sold(self, client, services):
        item_id = uuid4()
        services["report"].record_cost_of_goods_sold.return_value = True

        response = action(client, "document", "record_cost_of_goods_sold", {
            "item_id": str(item_id), "amount": "12.50",
        })

        assert response.json()["data"] == {"recorded": True}
        services["report"].record_cost_of_goods_sold.assert_called_once_with(item_id, Decimal("12.50"))

    @pytest.mark.parametrize("amount", ["-1", "abc", None])
    def test_record_cost_of_goods_sold_bad_amount(self, client, services, amount):
        response = action(client, "document", "record_cost_of_goods_sold", {
            "item_id": str(uuid4()), "amount": amount,
        })

        assert response.status_code == 422
        assert "amount" in response.json()["error"]["details"]
        services["report"].record_cost_of_goods_sold.assert_not_called()


# =============================================================================
# PAYMENTS & TENANT
# =============================================================================


class TestPaymentActions:

    def test_record(self, client, services, payment_row):
        services["payment"].record.return_value = Payment.model_validate(payment_row())
        party_id = uuid4()

        response = action(client, "payment", "record", {"party_id": str(party_id), "amount": "500"})

        assert response.status_code == 200
        assert response.json()["data"]["amount"] == "500.00"
        recorded = services["payment"].record.call_args.args[0]
        assert isinstance(recorded, PaymentCreate)
        assert recorded.party_id == party_id

    def test_zero_amount_rejected(self, client, services):
        response = action(client, "payment", "record", {"party_id": str(uuid4()), "amount": "0"})

        assert response.status_code == 422
        services["payment"].record.assert_not_called()


class TestTenantActions:

    def test_update_tax_settings(self, client, services):
        services["tenant"].update_tax_settings.return_value = TenantConfig(
            tax_mode=TaxMode.GST, gst_state_code="27", gstin="27AAPFU0939F1ZV",
        )

        response = action(client, "tenant", "update_tax_settings", {
            "gst_enabled": True, "gstin": "27AAPFU0939F1ZV",
        })

        assert response.json()["data"]["tax_mode"] == "gst"
        update = services["tenant"].update_tax_settings.call_args.args[0]
        assert isinstance(update, TaxSettingsUpdate)

    def test_mutually_exclusive_modes(self, client, services):
        response = action(client, "tenant", "update_tax_settings", {
            "gst_enabled": True, "saudi_einvoice_enabled": True,
        })

        assert response.status_code == 422
        services["tenant"].update_tax_settings.assert_not_called()
