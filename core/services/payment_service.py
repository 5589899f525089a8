"""
Payment service: customer receipts and supplier payments.

A payment settles `amount + discount_received` against the party's open
invoices. The payment, its allocations, the updated invoice balances and the
party balance movement are written in one transaction.
"""

import logging
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction
from core.config import BillingConfig
from core.finance.allocation import allocate_payment, status_after_payment
from core.finance.money import ZERO
from core.finance.numbering import next_number, number_prefix
from core.models import (
    DocumentType,
    OpenBalance,
    PartyType,
    Payment,
    PaymentAllocation,
    PaymentCreate,
)
from core.services.document_service import DocumentService
from core.services.party_service import PartyService
from utils.tenant_context import get_current_organization_id
from utils.timezone import now_utc, today_utc

logger = logging.getLogger(__name__)

_PAYMENT_PREFIXES = {
    PartyType.CUSTOMER: "PAY",
    PartyType.SUPPLIER: "SPAY",
}

_INVOICE_TYPES = {
    PartyType.CUSTOMER: DocumentType.SALES_INVOICE,
    PartyType.SUPPLIER: DocumentType.PURCHASE_INVOICE,
}


class PaymentService:
    """Service for recording and reading payments."""

    def __init__(
        self,
        postgres: PostgresClient,
        audit: AuditLogger,
        parties: PartyService,
        documents: DocumentService,
        config: BillingConfig | None = None,
    ):
        self.postgres = postgres
        self.audit = audit
        self.parties = parties
        self.documents = documents
        self.config = config or BillingConfig()

    def _generate_number(self, party_type: PartyType) -> str:
        """PAY-YYYYMMDD-NNN for receipts, SPAY-YYYYMMDD-NNN for supplier payments."""
        prefix = _PAYMENT_PREFIXES[party_type]
        today = today_utc()

        result = self.postgres.execute_single(
            """
            SELECT payment_number FROM payments
            WHERE payment_number LIKE %s
            ORDER BY LENGTH(payment_number) DESC, payment_number DESC
            LIMIT 1
            """,
            (f"{number_prefix(prefix, today)}%",)
        )

        last_number = result["payment_number"] if result else None
        return next_number(prefix, today, last_number, self.config.number_sequence_width)

    def record(self, data: PaymentCreate) -> Payment:
        """
        Record a payment and apply it to open invoices.

        With `document_id` the settlement goes to that invoice only;
        otherwise it is applied oldest-first across the party's open
        invoices. Nothing is applied beyond an invoice's balance due. The
        remainder is kept as `unapplied_amount` and leaves the party with a
        credit balance.

        Args:
            data: Payment details

        Returns:
            Recorded payment with its allocations

        Raises:
            ValueError: Party or document not found, document belongs to
                another party, or document is not open for payment
        """
        party = self.parties.get_by_id(data.party_id)
        if party is None:
            raise ValueError(f"Party {data.party_id} not found")

        invoice_type = _INVOICE_TYPES[party.party_type]

        if data.document_id is not None:
            target = self.documents.get_by_id(data.document_id)
            if target is None:
                raise ValueError(f"Document {data.document_id} not found")
            if target.party_id != party.id:
                raise ValueError(
                    f"Document {data.document_id} does not belong to party {party.id}"
                )
            if target.document_type != invoice_type or not target.is_open:
                raise ValueError(f"Document {data.document_id} is not open for payment")

        open_documents = {
            document.id: document
            for document in self.documents.list_open_for_party(party.id, invoice_type)
        }

        settlement = data.amount + data.discount_received
        result = allocate_payment(
            settlement,
            [
                OpenBalance(
                    document_id=document.id,
                    issue_date=document.issue_date,
                    document_number=document.document_number,
                    balance_due=document.balance_due,
                )
                for document in open_documents.values()
            ],
            document_id=data.document_id,
        )

        organization_id = get_current_organization_id()
        payment_id = uuid4()
        payment_number = self._generate_number(party.party_type)
        now = now_utc()

        statements = [(
            """
            INSERT INTO payments (
                id, organization_id, party_id, party_type, document_id,
                payment_number, amount, discount_received, unapplied_amount,
                payment_date, method, reference, notes,
                created_at, updated_at
            ) VALUES (
                %s, %s, %s, %s, %s,
                %s, %s, %s, %s,
                %s, %s, %s, %s,
                %s, %s
            )
            RETURNING *
            """,
            (
                payment_id, organization_id, party.id, party.party_type.value, data.document_id,
                payment_number, data.amount, data.discount_received, result.unapplied,
                data.payment_date or today_utc(), data.method.value, data.reference, data.notes,
                now, now
            )
        )]

        for allocation in result.allocations:
            document = open_documents[allocation.document_id]
            amount_paid = document.amount_paid + allocation.amount
            balance_due = document.total - amount_paid
            status = status_after_payment(document.document_type, amount_paid, balance_due)

            statements.append((
                """
                INSERT INTO payment_allocations (
                    id, organization_id, payment_id, document_id, amount, created_at
                ) VALUES (%s, %s, %s, %s, %s, %s)
                """,
                (uuid4(), organization_id, payment_id, allocation.document_id, allocation.amount, now)
            ))
            statements.append((
                """
                UPDATE documents
                SET amount_paid = %s, balance_due = %s, status = %s, updated_at = %s
                WHERE id = %s
                RETURNING id
                """,
                (amount_paid, balance_due, status.value, now, allocation.document_id)
            ))

        statements.append(self.parties.balance_statement(party.id, -settlement))

        results = self.postgres.execute_in_transaction(statements)
        payment = Payment.model_validate({**results[0][0], "allocations": result.allocations})

        if result.unapplied > ZERO:
            logger.warning(
                "Payment %s left %s unapplied; kept as credit for party %s",
                payment_number, result.unapplied, party.id,
            )

        self.audit.log_change(
            entity_type="payment",
            entity_id=payment.id,
            action=AuditAction.CREATE,
            changes={
                "created": {
                    **data.model_dump(mode="json", exclude_none=True),
                    "payment_number": payment_number,
                    "allocations": [a.model_dump(mode="json") for a in result.allocations],
                    "unapplied_amount": str(result.unapplied),
                }
            }
        )

        logger.info("Recorded payment %s of %s", payment_number, data.amount)

        return payment

    def _allocations_for(self, payment_ids: list[UUID]) -> dict[UUID, list[PaymentAllocation]]:
        if not payment_ids:
            return {}

        rows = self.postgres.execute(
            """
            SELECT payment_id, document_id, amount FROM payment_allocations
            WHERE payment_id = ANY(%s::uuid[])
            ORDER BY created_at ASC
            """,
            (payment_ids,)
        )

        allocations: dict[UUID, list[PaymentAllocation]] = {}
        for row in rows:
            payment_id = UUID(str(row["payment_id"]))
            allocations.setdefault(payment_id, []).append(
                PaymentAllocation(document_id=row["document_id"], amount=row["amount"])
            )
        return allocations

    def get_by_id(self, payment_id: UUID) -> Payment | None:
        """
        Get payment by ID, with its allocations.
        """
        row = self.postgres.execute_single(
            "SELECT * FROM payments WHERE id = %s",
            (payment_id,)
        )

        if row is None:
            return None

        payment = Payment.model_validate(row)
        payment.allocations = self._allocations_for([payment.id]).get(payment.id, [])
        return payment

    def list_for_party(self, party_id: UUID, limit: int = 50, offset: int = 0) -> list[Payment]:
        """
        A party's payments, newest first.
        """
        rows = self.postgres.execute(
            """
            SELECT * FROM payments
            WHERE party_id = %s
            ORDER BY payment_date DESC, payment_number DESC
            LIMIT %s OFFSET %s
            """,
            (party_id, limit, offset)
        )

        payments = [Payment.model_validate(row) for row in rows]
        allocations = self._allocations_for([p.id for p in payments])
        for payment in payments:
            payment.allocations = allocations.get(payment.id, [])

        return payments
