"""
Party service for customers and suppliers.

Handles party lifecycle: create, read, update, soft delete, search. The
running balance is never edited directly; documents and payments move it
through `balance_statement()` inside their own transactions, and
`statement()` lists those movements for a period.
All operations are automatically scoped to the current organization via RLS.
"""

import logging
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction, compute_changes
from core.finance.statement import build_statement, document_entry, payment_entry
from core.models import DocumentType, Party, PartyCreate, PartyStatement, PartyUpdate, PartyType
from utils.tenant_context import get_current_organization_id
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

# Valid columns that can be updated
_UPDATABLE_COLUMNS = {
    "name", "email", "phone", "address",
    "gstin", "state_code", "vat_number", "notes",
}


class PartyService:
    """Service for customer and supplier operations."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger):
        self.postgres = postgres
        self.audit = audit

    def create(self, data: PartyCreate) -> Party:
        """
        Create a new customer or supplier.

        The opening balance becomes the starting running balance.

        Args:
            data: Party creation data

        Returns:
            Created party
        """
        organization_id = get_current_organization_id()
        party_id = uuid4()
        now = now_utc()

        row = self.postgres.execute_returning(
            """
            INSERT INTO parties (
                id, organization_id, party_type, name,
                email, phone, address,
                gstin, state_code, vat_number,
                balance, notes, created_at, updated_at
            ) VALUES (
                %s, %s, %s, %s,
                %s, %s, %s,
                %s, %s, %s,
                %s, %s, %s, %s
            )
            RETURNING *
            """,
            (
                party_id, organization_id, data.party_type.value, data.name,
                data.email, data.phone, data.address,
                data.gstin, data.state_code, data.vat_number,
                data.opening_balance, data.notes, now, now
            )
        )[0]

        party = Party.model_validate(row)

        self.audit.log_change(
            entity_type="party",
            entity_id=party.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json", exclude_none=True)}
        )

        return party

    def get_by_id(self, party_id: UUID) -> Party | None:
        """
        Get party by ID.

        Returns:
            Party if found and not deleted, None otherwise.
        """
        row = self.postgres.execute_single(
            "SELECT * FROM parties WHERE id = %s AND deleted_at IS NULL",
            (party_id,)
        )

        if row is None:
            return None

        return Party.model_validate(row)

    def update(self, party_id: UUID, data: PartyUpdate) -> Party:
        """
        Update party fields.

        Args:
            party_id: Party UUID
            data: Fields to update (only non-None fields are changed)

        Returns:
            Updated party

        Raises:
            ValueError: If party not found
        """
        current = self.get_by_id(party_id)
        if current is None:
            raise ValueError(f"Party {party_id} not found")

        updates = data.model_dump(exclude_none=True)
        if not updates:
            return current

        for field in updates:
            if field not in _UPDATABLE_COLUMNS:
                logger.warning(
                    "Attempted to update unknown field '%s' on party %s", field, party_id
                )

        valid_updates = {k: v for k, v in updates.items() if k in _UPDATABLE_COLUMNS}
        if not valid_updates:
            return current

        set_parts = []
        params = []
        for field, value in valid_updates.items():
            set_parts.append(f"{field} = %s")
            params.append(value)

        set_parts.append("updated_at = %s")
        params.append(now_utc())
        params.append(party_id)

        row = self.postgres.execute_returning(
            f"""
            UPDATE parties
            SET {', '.join(set_parts)}
            WHERE id = %s
            RETURNING *
            """,
            tuple(params)
        )[0]

        updated = Party.model_validate(row)

        changes = compute_changes(
            current.model_dump(mode="json"),
            updated.model_dump(mode="json")
        )
        if changes:
            self.audit.log_change(
                entity_type="party",
                entity_id=party_id,
                action=AuditAction.UPDATE,
                changes=changes
            )

        return updated

    def delete(self, party_id: UUID) -> bool:
        """
        Soft delete a party.

        Returns:
            True if deleted, False if not found

        Raises:
            ValueError: Party still has an outstanding balance
        """
        current = self.get_by_id(party_id)
        if current is None:
            return False

        if current.balance != 0:
            raise ValueError(
                f"Party {party_id} has an outstanding balance of {current.balance} and cannot be deleted"
            )

        now = now_utc()
        self.postgres.execute_returning(
            """
            UPDATE parties
            SET deleted_at = %s, updated_at = %s
            WHERE id = %s
            RETURNING id
            """,
            (now, now, party_id)
        )

        self.audit.log_change(
            entity_type="party",
            entity_id=party_id,
            action=AuditAction.DELETE,
            changes={"deleted": current.model_dump(mode="json")}
        )

        return True

    def list_all(
        self,
        party_type: PartyType | None = None,
        limit: int = 50,
        offset: int = 0
    ) -> list[Party]:
        """
        List parties with pagination, optionally only customers or suppliers.

        Returns:
            Parties ordered by name
        """
        if party_type is None:
            rows = self.postgres.execute(
                """
                SELECT * FROM parties
                WHERE deleted_at IS NULL
                ORDER BY name ASC
                LIMIT %s OFFSET %s
                """,
                (limit, offset)
            )
        else:
            rows = self.postgres.execute(
                """
                SELECT * FROM parties
                WHERE deleted_at IS NULL AND party_type = %s
                ORDER BY name ASC
                LIMIT %s OFFSET %s
                """,
                (party_type.value, limit, offset)
            )

        return [Party.model_validate(row) for row in rows]

    def search(self, query: str, party_type: PartyType | None = None, limit: int = 20) -> list[Party]:
        """
        Search parties by name, email, phone or GSTIN.

        Uses ILIKE for case-insensitive partial matching.
        """
        pattern = f"%{query}%"
        type_filter = party_type.value if party_type else None

        rows = self.postgres.execute(
            """
            SELECT * FROM parties
            WHERE deleted_at IS NULL
              AND (%s::text IS NULL OR party_type = %s)
              AND (name ILIKE %s
               OR email ILIKE %s
               OR phone ILIKE %s
               OR gstin ILIKE %s)
            ORDER BY name ASC
            LIMIT %s
            """,
            (type_filter, type_filter, pattern, pattern, pattern, pattern, limit)
        )

        return [Party.model_validate(row) for row in rows]

    def statement(
        self,
        party_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> PartyStatement:
        """
        Account statement: opening balance, issued documents and payments in
        date order with a running balance, and the closing balance.

        Drafts and cancelled documents never moved the balance and are left
        out. Documents are shown at their current total.

        Raises:
            ValueError: Party not found, or date_to before date_from
        """
        party = self.get_by_id(party_id)
        if party is None:
            raise ValueError(f"Party {party_id} not found")

        documents = self.postgres.execute(
            """
            SELECT document_type, document_number, issue_date, total
            FROM documents
            WHERE party_id = %s
              AND status NOT IN ('draft', 'cancelled')
              AND deleted_at IS NULL
              AND (%s::date IS NULL OR issue_date >= %s::date)
            """,
            (party_id, date_from, date_from)
        )
        payments = self.postgres.execute(
            """
            SELECT payment_number, payment_date, amount, discount_received, method
            FROM payments
            WHERE party_id = %s
              AND (%s::date IS NULL OR payment_date >= %s::date)
            """,
            (party_id, date_from, date_from)
        )

        movements = [
            document_entry(
                DocumentType(row["document_type"]), row["document_number"], row["issue_date"], row["total"]
            )
            for row in documents
        ]
        movements.extend(
            payment_entry(
                row["payment_number"], row["payment_date"], row["amount"],
                row["discount_received"], row["method"],
            )
            for row in payments
        )

        return build_statement(party, movements, date_from, date_to)

    def balance_statement(self, party_id: UUID, delta: Decimal) -> tuple[str, tuple]:
        """
        SQL that moves a party's running balance by `delta`.

        Returned rather than executed so callers can run it in the same
        transaction as the document or payment that causes the movement.
        """
        return (
            """
            UPDATE parties
            SET balance = balance + %s, updated_at = %s
            WHERE id = %s
            RETURNING id, balance
            """,
            (delta, now_utc(), party_id)
        )
