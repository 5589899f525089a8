"""POST /api/actions — unified mutation endpoint."""

from uuid import UUID

from fastapi import APIRouter, Request
from pydantic import BaseModel

from api.base import success_response
from core.finance.validation import CalculationInputError, coerce_decimal
from core.models import (
    PartyCreate, PartyUpdate,
    ProductCreate, ProductUpdate,
    UnitConversionCreate, UnitConversionUpdate,
    DocumentCreate, DocumentUpdate,
    PaymentCreate,
    TaxSettingsUpdate,
)


class ActionRequest(BaseModel):
    domain: str
    action: str
    data: dict


def create_actions_router(services: dict) -> APIRouter:
    router = APIRouter()

    handlers = {
        "party": PartyHandler(services["party"]),
        "product": ProductHandler(services["product"]),
        "unit_conversion": UnitConversionHandler(services["product"]),
        "document": DocumentHandler(services["document"], services["report"]),
        "payment": PaymentHandler(services["payment"]),
        "tenant": TenantHandler(services["tenant"]),
    }

    @router.post("/actions")
    async def perform_action(request: Request, body: ActionRequest):
        handler = handlers.get(body.domain)
        if handler is None:
            raise ValueError(
                f"Unknown domain '{body.domain}'. "
                f"Valid domains: {', '.join(sorted(handlers.keys()))}"
            )

        if body.action not in handler.ALLOWED_ACTIONS:
            raise ValueError(
                f"Action '{body.action}' not allowed on '{body.domain}'. "
                f"Allowed: {', '.join(sorted(handler.ALLOWED_ACTIONS))}"
            )

        method = getattr(handler, f"_handle_{body.action}")
        result = method(dict(body.data))
        return success_response(
            result, request_id=getattr(request.state, "request_id", None)
        ).model_dump(mode="json")

    return router


def _uuid(data: dict, key: str = "id") -> UUID:
    """Required UUID field of an action payload."""
    value = data.pop(key, None)
    if value is None:
        raise ValueError(f"'{key}' is required")
    try:
        return UUID(str(value))
    except ValueError:
        raise ValueError(f"'{key}' is not a valid UUID") from None


# =============================================================================
# HANDLER CLASSES
# =============================================================================


class PartyHandler:
    ALLOWED_ACTIONS = {"create", "update", "delete"}

    def __init__(self, service):
        self.service = service

    def _handle_create(self, data: dict):
        party = self.service.create(PartyCreate(**data))
        return party.model_dump(mode="json")

    def _handle_update(self, data: dict):
        party_id = _uuid(data)
        party = self.service.update(party_id, PartyUpdate(**data))
        return party.model_dump(mode="json")

    def _handle_delete(self, data: dict):
        party_id = _uuid(data)
        deleted = self.service.delete(party_id)
        if not deleted:
            raise ValueError(f"Party {party_id} not found")
        return {"deleted": True}


class ProductHandler:
    ALLOWED_ACTIONS = {"create", "update", "delete"}

    def __init__(self, service):
        self.service = service

    def _handle_create(self, data: dict):
        product = self.service.create(ProductCreate(**data))
        return product.model_dump(mode="json")

    def _handle_update(self, data: dict):
        product_id = _uuid(data)
        product = self.service.update(product_id, ProductUpdate(**data))
        return product.model_dump(mode="json")

    def _handle_delete(self, data: dict):
        product_id = _uuid(data)
        deleted = self.service.delete(product_id)
        if not deleted:
            raise ValueError(f"Product {product_id} not found")
        return {"deleted": True}


class UnitConversionHandler:
    ALLOWED_ACTIONS = {"create", "update", "delete"}

    def __init__(self, service):
        self.service = service

    def _handle_create(self, data: dict):
        conversion = self.service.create_conversion(UnitConversionCreate(**data))
        return conversion.model_dump(mode="json")

    def _handle_update(self, data: dict):
        conversion_id = _uuid(data)
        conversion = self.service.update_conversion(conversion_id, UnitConversionUpdate(**data))
        return conversion.model_dump(mode="json")

    def _handle_delete(self, data: dict):
        conversion_id = _uuid(data)
        deleted = self.service.delete_conversion(conversion_id)
        if not deleted:
            raise ValueError(f"Unit conversion {conversion_id} not found")
        return {"deleted": True}


class DocumentHandler:
    ALLOWED_ACTIONS = {"create", "update", "issue", "cancel", "record_cost_of_goods_sold"}

    def __init__(self, service, reports):
        self.service = service
        self.reports = reports

    def _handle_create(self, data: dict):
        document = self.service.create(DocumentCreate(**data))
        return document.model_dump(mode="json")

    def _handle_update(self, data: dict):
        document_id = _uuid(data)
        document = self.service.update(document_id, DocumentUpdate(**data))
        return document.model_dump(mode="json")

    def _handle_issue(self, data: dict):
        document = self.service.issue(_uuid(data))
        return document.model_dump(mode="json")

    def _handle_cancel(self, data: dict):
        document = self.service.cancel(_uuid(data))
        return document.model_dump(mode="json")

    def _handle_record_cost_of_goods_sold(self, data: dict):
        item_id = _uuid(data, "item_id")
        errors: dict[str, str] = {}
        amount = coerce_decimal(errors, "amount", data.get("amount"), minimum=0)
        if errors:
            raise CalculationInputError(errors)
        recorded = self.reports.record_cost_of_goods_sold(item_id, amount)
        if not recorded:
            raise ValueError(f"Document item {item_id} not found")
        return {"recorded": True}


class PaymentHandler:
    ALLOWED_ACTIONS = {"record"}

    def __init__(self, service):
        self.service = service

    def _handle_record(self, data: dict):
        payment = self.service.record(PaymentCreate(**data))
        return payment.model_dump(mode="json")


class TenantHandler:
    ALLOWED_ACTIONS = {"update_tax_settings"}

    def __init__(self, service):
        self.service = service

    def _handle_update_tax_settings(self, data: dict):
        config = self.service.update_tax_settings(TaxSettingsUpdate(**data))
        return config.model_dump(mode="json")
