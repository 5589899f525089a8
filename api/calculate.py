"""POST /api/calculate — totals previews. Nothing is persisted."""

from uuid import UUID

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from api.base import success_response
from core.finance.profit import build_profit_report
from core.models import DocumentPreview, ProfitItemInput


class ProfitCalculationRequest(BaseModel):
    items: list[ProfitItemInput] = Field(..., min_length=1)


class UnitCostRequest(BaseModel):
    product_id: UUID
    unit_id: UUID


def create_calculate_router(services: dict) -> APIRouter:
    router = APIRouter()

    document_svc = services["document"]
    product_svc = services["product"]

    @router.post("/calculate/document")
    async def calculate_document(request: Request, body: DocumentPreview):
        totals = document_svc.preview(body)
        return success_response(
            totals.model_dump(mode="json"),
            request_id=getattr(request.state, "request_id", None),
        ).model_dump(mode="json")

    @router.post("/calculate/profit")
    async def calculate_profit(request: Request, body: ProfitCalculationRequest):
        report = build_profit_report(body.items)
        return success_response(
            report.model_dump(mode="json"),
            request_id=getattr(request.state, "request_id", None),
        ).model_dump(mode="json")

    @router.post("/calculate/unit")
    async def calculate_unit(request: Request, body: UnitCostRequest):
        resolution = product_svc.resolve_unit(body.product_id, body.unit_id)
        return success_response(
            resolution.model_dump(mode="json"),
            request_id=getattr(request.state, "request_id", None),
        ).model_dump(mode="json")

    return router
