"""Application assembly: services, middleware, error handlers and routes."""

import logging

from fastapi import FastAPI

from api.actions import create_actions_router
from api.base import success_response
from api.calculate import create_calculate_router
from api.data import create_data_router
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware, TenantContextMiddleware
from clients.postgres_client import PostgresClient
from core.audit import AuditLogger
from core.config import BillingConfig
from core.services.document_service import DocumentService
from core.services.party_service import PartyService
from core.services.payment_service import PaymentService
from core.services.product_service import ProductService
from core.services.report_service import ReportService
from core.services.tenant_service import TenantService

logger = logging.getLogger(__name__)


def build_services(postgres: PostgresClient, config: BillingConfig | None = None) -> dict:
    """Wire every service against one database client."""
    config = config or BillingConfig()
    audit = AuditLogger(postgres)

    tenants = TenantService(postgres, audit, config)
    parties = PartyService(postgres, audit)
    products = ProductService(postgres, audit)
    documents = DocumentService(postgres, audit, tenants, parties, products, config)

    return {
        "tenant": tenants,
        "party": parties,
        "product": products,
        "document": documents,
        "payment": PaymentService(postgres, audit, parties, documents, config),
        "report": ReportService(postgres, audit),
    }


def create_app(services: dict | None = None, config: BillingConfig | None = None) -> FastAPI:
    """
    Build the FastAPI app.

    Without `services` the database URL is read from Vault and the real
    services are wired against it.
    """
    config = config or BillingConfig()

    if services is None:
        from clients.vault_client import get_database_url

        services = build_services(PostgresClient(get_database_url()), config)

    app = FastAPI(title="Billing Engine")

    # Added last runs first: request IDs exist before the tenant check can reject
    app.add_middleware(TenantContextMiddleware)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_data_router(services, config), prefix="/api")
    app.include_router(create_actions_router(services), prefix="/api")
    app.include_router(create_calculate_router(services), prefix="/api")

    @app.get("/health")
    async def health():
        return success_response({"status": "ok"}).model_dump(mode="json")

    logger.info("Billing API assembled")

    return app
