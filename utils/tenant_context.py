"""Propagate the current organization (tenant) through the call stack using contextvars."""

from contextvars import ContextVar
from uuid import UUID
from contextlib import contextmanager

_current_organization_id: ContextVar[UUID | None] = ContextVar(
    "current_organization_id", default=None
)


def get_current_organization_id() -> UUID:
    """
    Get current organization ID from context.

    Raises RuntimeError if no tenant context is set. Tenant-scoped code
    running without a tenant is a bug, not an empty result.
    """
    organization_id = _current_organization_id.get()
    if organization_id is None:
        raise RuntimeError(
            "No tenant context set. This usually means you're calling "
            "tenant-scoped code outside of an identified request."
        )
    return organization_id


def set_current_organization_id(organization_id: UUID) -> None:
    """
    Set current organization ID in context.

    Called by the tenant middleware once the request's organization is known.
    """
    _current_organization_id.set(organization_id)


def clear_current_organization_id() -> None:
    """
    Clear tenant context.

    Must be called in a finally block so one request's tenant never leaks
    into the next.
    """
    _current_organization_id.set(None)


@contextmanager
def tenant_context(organization_id: UUID):
    """
    Temporarily run code as a given organization.

    Useful for tests, background jobs that iterate over tenants and admin
    repairs. The previous context is restored on exit.

    Example:
        with tenant_context(org_id):
            invoices = document_service.list_documents()
    """
    previous = _current_organization_id.get()
    set_current_organization_id(organization_id)
    try:
        yield
    finally:
        if previous is None:
            clear_current_organization_id()
        else:
            set_current_organization_id(previous)
