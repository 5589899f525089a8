"""GET /api/data — unified read endpoint."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, Request

from api.base import success_response
from core.config import BillingConfig
from core.models import DocumentStatus, DocumentType, PartyType


VALID_TYPES = {
    "parties", "party_statement", "products", "unit_conversions", "documents", "payments",
    "profit_by_items", "gst_summary", "tenant_config",
}


def create_data_router(services: dict, config: BillingConfig | None = None) -> APIRouter:
    router = APIRouter()
    config = config or BillingConfig()

    party_svc = services["party"]
    product_svc = services["product"]
    document_svc = services["document"]
    payment_svc = services["payment"]
    report_svc = services["report"]
    tenant_svc = services["tenant"]

    @router.get("/data")
    async def get_data(
        request: Request,
        type: str | None = Query(None),
        id: UUID | None = Query(None),
        search: str | None = Query(None),
        party_id: UUID | None = Query(None),
        party_type: str | None = Query(None),
        product_id: UUID | None = Query(None),
        unit_id: UUID | None = Query(None),
        document_type: str | None = Query(None),
        status: str | None = Query(None),
        date_from: date | None = Query(None),
        date_to: date | None = Query(None),
        include: str | None = Query(None),
        limit: int | None = Query(None, ge=1),
        offset: int = Query(0, ge=0),
    ):
        if type is None:
            raise ValueError("'type' query parameter is required")

        if type not in VALID_TYPES:
            raise ValueError(f"Unknown type '{type}'. Valid types: {', '.join(sorted(VALID_TYPES))}")

        includes = set(include.split(",")) if include else set()
        limit = min(limit or config.default_list_limit, config.max_list_limit)

        if type == "parties":
            data = _handle_parties(
                party_svc, id, search, _enum(PartyType, party_type), limit, offset
            )
        elif type == "party_statement":
            if party_id is None:
                raise ValueError("'party_statement' type requires 'party_id' parameter")
            data = party_svc.statement(party_id, date_from, date_to).model_dump(mode="json")
        elif type == "products":
            data = _handle_products(product_svc, id, search, limit, offset)
        elif type == "unit_conversions":
            data = [c.model_dump(mode="json") for c in product_svc.list_conversions(unit_id)]
        elif type == "documents":
            data = _handle_documents(
                document_svc, id, party_id,
                _enum(DocumentType, document_type), _enum(DocumentStatus, status),
                includes, limit, offset,
            )
        elif type == "payments":
            data = _handle_payments(payment_svc, id, party_id, limit, offset)
        elif type == "profit_by_items":
            data = report_svc.profit_by_items(product_id, date_from, date_to).model_dump(mode="json")
        elif type == "gst_summary":
            data = report_svc.gst_summary(
                _enum(DocumentType, document_type) or DocumentType.SALES_INVOICE,
                date_from,
                date_to,
            ).model_dump(mode="json")
        else:
            data = tenant_svc.get_config().model_dump(mode="json")

        return success_response(
            data, request_id=getattr(request.state, "request_id", None)
        ).model_dump(mode="json")

    return router


def _enum(enum_cls, value):
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        valid = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"Invalid value '{value}'. Valid values: {valid}") from None


def _handle_parties(party_svc, id, search, party_type, limit, offset):
    if id:
        party = party_svc.get_by_id(id)
        if party is None:
            raise ValueError(f"Party {id} not found")
        return party.model_dump(mode="json")

    if search:
        parties = party_svc.search(search, party_type, limit)
    else:
        parties = party_svc.list_all(party_type, limit, offset)

    return [p.model_dump(mode="json") for p in parties]


def _handle_products(product_svc, id, search, limit, offset):
    if id:
        product = product_svc.get_by_id(id)
        if product is None:
            raise ValueError(f"Product {id} not found")
        return product.model_dump(mode="json")

    if search:
        products = product_svc.search(search, limit)
    else:
        products = product_svc.list_all(limit, offset)

    return [p.model_dump(mode="json") for p in products]


def _handle_documents(document_svc, id, party_id, document_type, status, includes, limit, offset):
    if id:
        document = document_svc.get_by_id(id)
        if document is None:
            raise ValueError(f"Document {id} not found")

        data = document.model_dump(mode="json")
        if "items" in includes:
            items = document_svc.get_items(document.id)
            data["items"] = [i.model_dump(mode="json") for i in items]
        if "verification" in includes:
            data["verification"] = document_svc.verify_totals(document.id).model_dump(mode="json")

        return data

    documents = document_svc.list_documents(
        document_type=document_type,
        party_id=party_id,
        status=status,
        limit=limit,
        offset=offset,
    )
    return [d.model_dump(mode="json") for d in documents]


def _handle_payments(payment_svc, id, party_id, limit, offset):
    if id:
        payment = payment_svc.get_by_id(id)
        if payment is None:
            raise ValueError(f"Payment {id} not found")
        return payment.model_dump(mode="json")

    if party_id:
        payments = payment_svc.list_for_party(party_id, limit, offset)
        return [p.model_dump(mode="json") for p in payments]

    raise ValueError("'payments' type requires 'id' or 'party_id' parameter")
