"""Request-scoped middleware for API requests."""

import logging
from uuid import UUID, uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from utils.tenant_context import set_current_organization_id, clear_current_organization_id

logger = logging.getLogger(__name__)

ORGANIZATION_HEADER = "X-Organization-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns a unique request ID to every request."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class TenantContextMiddleware(BaseHTTPMiddleware):
    """Middleware that reads the tenant from the gateway and sets RLS context.

    The upstream gateway authenticates the caller and forwards the
    organization in the X-Organization-ID header. For protected routes:
    1. Reads and parses the header
    2. Sets organization_id in request.state and tenant context (for RLS)
    3. Clears context after request completes

    Public paths bypass the check entirely.
    """

    PUBLIC_PATHS = {
        "/health",
        "/docs",
        "/openapi.json",
    }

    # Swagger UI assets live under /docs/
    PUBLIC_PREFIXES = ("/docs/",)

    def _is_public_path(self, path: str) -> bool:
        """Exact public paths, plus anything under a public prefix."""
        return path in self.PUBLIC_PATHS or path.startswith(self.PUBLIC_PREFIXES)

    def _reject(self, request: Request, message: str) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content=error_response(
                ErrorCodes.NOT_AUTHENTICATED,
                message,
                request_id=getattr(request.state, "request_id", None),
            ).model_dump(mode="json"),
        )

    async def dispatch(self, request: Request, call_next):
        """Process request through middleware."""
        path = request.url.path

        if self._is_public_path(path):
            return await call_next(request)

        raw_id = request.headers.get(ORGANIZATION_HEADER)
        if not raw_id:
            return self._reject(request, f"{ORGANIZATION_HEADER} header is required")

        try:
            organization_id = UUID(raw_id)
        except ValueError:
            logger.warning("Rejected malformed %s header on %s", ORGANIZATION_HEADER, path)
            return self._reject(request, f"{ORGANIZATION_HEADER} header is not a valid UUID")

        set_current_organization_id(organization_id)
        request.state.organization_id = organization_id

        try:
            response = await call_next(request)
            return response
        finally:
            # Always clear context
            clear_current_organization_id()
