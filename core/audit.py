"""
Audit trail for all billing entity changes.

Every mutation to every entity is logged here. The audit log is:
- Append-only (entries never modified or deleted)
- Organization-attributed (which tenant made the change)
- Detailed (captures old and new values)

audit_log rows carry organization_id and sit behind the same RLS policy as
every other tenant table, so a tenant only ever reads its own history.
"""

from enum import Enum
from uuid import UUID, uuid4
from typing import Any

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from utils.tenant_context import get_current_organization_id
from utils.timezone import now_utc


class AuditAction(Enum):
    """Type of change made to an entity."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


def compute_changes(
    old: dict[str, Any],
    new: dict[str, Any],
    exclude_fields: set[str] | None = None
) -> dict[str, dict[str, Any]]:
    """
    Compute changes between two entity states.

    Args:
        old: Previous state of entity
        new: New state of entity
        exclude_fields: Fields to ignore (defaults to {"updated_at"})

    Returns:
        Dict of {field: {"old": old_val, "new": new_val}} for changed fields.
        Empty dict if no changes.
    """
    exclude = exclude_fields or {"updated_at"}
    changes = {}

    for key in set(old.keys()) | set(new.keys()):
        if key in exclude:
            continue

        old_val = old.get(key)
        new_val = new.get(key)

        if old_val != new_val:
            changes[key] = {"old": old_val, "new": new_val}

    return changes


class AuditLogger:
    """
    Audit trail writer and reader.

    Always pass model_dump(mode="json") output so Decimals, UUIDs and dates
    are stored as JSON-compatible strings.

    Usage:
        audit = AuditLogger(postgres)

        audit.log_change(
            entity_type="document",
            entity_id=document.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json", exclude_none=True)}
        )

        changes = compute_changes(
            old.model_dump(mode="json"),
            new.model_dump(mode="json")
        )
        audit.log_change(
            entity_type="party",
            entity_id=party.id,
            action=AuditAction.UPDATE,
            changes=changes
        )

        history = audit.get_entity_history("document", document.id)
    """

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def log_change(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        changes: dict[str, Any],
        organization_id: UUID | None = None
    ) -> None:
        """
        Log an entity change.

        Args:
            entity_type: Type of entity ("document", "payment", etc.)
            entity_id: ID of the entity
            action: The action performed (CREATE, UPDATE, DELETE)
            changes: The changes made (format depends on action)
            organization_id: Tenant that made the change (defaults to current context)

        Changes format by action:
        - CREATE: {"created": {full entity data}}
        - UPDATE: {"field": {"old": old_val, "new": new_val}, ...}
        - DELETE: {"deleted": {full entity data at deletion}}
        """
        if organization_id is None:
            organization_id = get_current_organization_id()

        self.postgres.execute(
            """
            INSERT INTO audit_log (id, organization_id, entity_type, entity_id, action, changes, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            """,
            (
                uuid4(),
                organization_id,
                entity_type,
                entity_id,
                action.value,
                Json(changes),
                now_utc()
            )
        )

    def get_entity_history(
        self,
        entity_type: str,
        entity_id: UUID
    ) -> list[dict[str, Any]]:
        """
        Get full audit history for an entity, newest first.
        """
        return self.postgres.execute(
            """
            SELECT id, organization_id, entity_type, entity_id, action, changes, created_at
            FROM audit_log
            WHERE entity_type = %s AND entity_id = %s
            ORDER BY created_at DESC
            """,
            (entity_type, entity_id)
        )

    def get_recent_activity(self, limit: int = 100) -> list[dict[str, Any]]:
        """
        Get the current organization's most recent changes, newest first.
        """
        return self.postgres.execute(
            """
            SELECT id, organization_id, entity_type, entity_id, action, changes, created_at
            FROM audit_log
            ORDER BY created_at DESC
            LIMIT %s
            """,
            (limit,)
        )
