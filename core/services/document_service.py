"""
Document service for sales invoices, purchase invoices, credit and debit notes.

Documents are created as drafts, edited by replacing their line items, then
issued. Issuing posts the document total to the party's running balance.
Saudi VAT sales invoices also get a ZATCA counter value, hash chain link and
QR payload at issue. Totals always come from the calculator; this service
never adds up line items itself.
"""

import logging
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction, compute_changes
from core.config import BillingConfig
from core.finance.allocation import status_after_payment
from core.finance.calculator import calculate_document, verify_totals as compare_totals
from core.finance.money import ZERO, to_money
from core.finance.numbering import next_number, number_prefix
from core.finance.validation import CalculationInputError
from core.finance.zatca import (
    GENESIS_INVOICE_HASH,
    build_qr_payload,
    compute_invoice_hash,
    next_counter_value,
)
from core.models import (
    Counterparty,
    Document,
    DocumentCreate,
    DocumentInput,
    DocumentItem,
    DocumentItemInput,
    DocumentPreview,
    DocumentStatus,
    DocumentTotals,
    DocumentType,
    DocumentUpdate,
    TaxMode,
    TotalsVerification,
)
from core.services.party_service import PartyService
from core.services.product_service import ProductService
from core.services.tenant_service import TenantService
from utils.tenant_context import get_current_organization_id
from utils.timezone import now_utc, today_utc

logger = logging.getLogger(__name__)

_PAYABLE_OPEN_STATUSES = (
    DocumentStatus.SENT.value,
    DocumentStatus.RECEIVED.value,
    DocumentStatus.PARTIALLY_PAID.value,
)


def _totals_columns(totals: DocumentTotals) -> dict[str, Any]:
    """Document columns derived from a calculation."""
    return {
        "subtotal": totals.subtotal,
        "discount": totals.discount,
        "tax_amount": totals.tax.total_tax,
        "total": totals.total,
        "balance_due": totals.balance_due,
        "tax_mode": totals.tax.tax_mode.value,
        "total_cgst": totals.tax.total_cgst,
        "total_sgst": totals.tax.total_sgst,
        "total_igst": totals.tax.total_igst,
        "total_vat": totals.tax.total_vat,
        "place_of_supply": totals.tax.place_of_supply,
        "is_inter_state": totals.tax.is_inter_state,
        "saudi_invoice_type": totals.saudi_invoice_type.value if totals.saudi_invoice_type else None,
    }


def _update_statement(document_id: UUID, columns: dict[str, Any]) -> tuple[str, tuple]:
    set_parts = [f"{column} = %s" for column in columns]
    return (
        f"""
        UPDATE documents
        SET {', '.join(set_parts)}
        WHERE id = %s
        RETURNING *
        """,
        (*columns.values(), document_id)
    )


class DocumentService:
    """Service for billing document operations."""

    def __init__(
        self,
        postgres: PostgresClient,
        audit: AuditLogger,
        tenants: TenantService,
        parties: PartyService,
        products: ProductService,
        config: BillingConfig | None = None,
    ):
        self.postgres = postgres
        self.audit = audit
        self.tenants = tenants
        self.parties = parties
        self.products = products
        self.config = config or BillingConfig()

    # -------------------------------------------------------------------------
    # Calculation
    # -------------------------------------------------------------------------

    def _counterparty(self, party_id: UUID, document_type: DocumentType) -> Counterparty:
        party = self.parties.get_by_id(party_id)
        if party is None:
            raise ValueError(f"Party {party_id} not found")

        if party.party_type != document_type.party_type:
            raise ValueError(
                f"A {document_type.value} requires a {document_type.party_type.value}; "
                f"party {party_id} is a {party.party_type.value}"
            )

        return Counterparty(gstin=party.gstin, state_code=party.state_code, vat_number=party.vat_number)

    def _calculate(self, document: DocumentInput, amount_paid: Decimal = ZERO) -> DocumentTotals:
        tenant = self.tenants.get_config()
        counterparty = None
        if document.party_id is not None:
            counterparty = self._counterparty(document.party_id, document.document_type)

        return calculate_document(
            document,
            tenant,
            counterparty,
            amount_paid=amount_paid,
            vat_rate=self.config.saudi_vat_rate,
        )

    def _resolve_units(self, document: DocumentInput) -> DocumentInput:
        """
        Take each product line's conversion factor from the stored conversions.

        A line naming both a product and a unit gets the factor of that unit
        relative to the product's base unit. A factor sent with the line must
        agree with it. Units other than the base unit need multi-unit enabled
        on the tenant.

        Raises:
            CalculationInputError: Unknown unit for the product, multi-unit
                disabled, or a conflicting conversion factor
        """
        unit_lines = [
            (index, item) for index, item in enumerate(document.items)
            if item.product_id is not None and item.unit_id is not None
        ]
        if not unit_lines:
            return document

        tenant = self.tenants.get_config()
        errors: dict[str, str] = {}
        items = list(document.items)

        for index, item in unit_lines:
            prefix = f"items.{index}."
            try:
                resolution = self.products.resolve_unit(item.product_id, item.unit_id)
            except ValueError as e:
                errors[f"{prefix}unit_id"] = str(e)
                continue

            if not resolution.is_base_unit and not tenant.multi_unit_enabled:
                errors[f"{prefix}unit_id"] = "must be the product's base unit unless multi-unit is enabled"
                continue

            if (
                "conversion_factor" in item.model_fields_set
                and item.conversion_factor != resolution.conversion_factor
            ):
                errors[f"{prefix}conversion_factor"] = (
                    f"must be {resolution.conversion_factor} for the selected unit"
                )
                continue

            items[index] = item.model_copy(update={"conversion_factor": resolution.conversion_factor})

        if errors:
            raise CalculationInputError(errors)

        return document.model_copy(update={"items": items})

    def preview(self, data: DocumentPreview) -> DocumentTotals:
        """
        Calculate totals without persisting anything.

        Uses the current tenant's tax configuration and, when a party is
        given, that party's GSTIN / state / TRN.

        Raises:
            CalculationInputError: Invalid numbers, unit mismatch or discount too large
            ValueError: Party not found or of the wrong type
        """
        return self._calculate(self._resolve_units(data), data.amount_paid)

    # -------------------------------------------------------------------------
    # Numbering
    # -------------------------------------------------------------------------

    def _generate_number(self, document_type: DocumentType) -> str:
        """
        Generate the next document number for today.

        Format: PREFIX-YYYYMMDD-NNN, e.g. INV-20240115-001.
        """
        today = today_utc()
        prefix = number_prefix(document_type.number_prefix, today)

        # Longer numbers sort after shorter ones once the sequence outgrows its padding
        result = self.postgres.execute_single(
            """
            SELECT document_number FROM documents
            WHERE document_number LIKE %s
            ORDER BY LENGTH(document_number) DESC, document_number DESC
            LIMIT 1
            """,
            (f"{prefix}%",)
        )

        last_number = result["document_number"] if result else None
        return next_number(
            document_type.number_prefix, today, last_number, self.config.number_sequence_width
        )

    # -------------------------------------------------------------------------
    # Line items
    # -------------------------------------------------------------------------

    def _item_statements(
        self,
        organization_id: UUID,
        document_id: UUID,
        items: list[DocumentItemInput],
        totals: DocumentTotals,
    ) -> list[tuple[str, tuple]]:
        now = now_utc()
        statements = []
        for item, line in zip(items, totals.lines):
            statements.append((
                """
                INSERT INTO document_items (
                    id, organization_id, document_id, position,
                    product_id, description, quantity, unit_price,
                    discount_percent, gst_rate, hsn_code, unit_id, conversion_factor,
                    line_total, tax_amount, cgst_amount, sgst_amount, igst_amount,
                    created_at
                ) VALUES (
                    %s, %s, %s, %s,
                    %s, %s, %s, %s,
                    %s, %s, %s, %s, %s,
                    %s, %s, %s, %s, %s,
                    %s
                )
                RETURNING *
                """,
                (
                    uuid4(), organization_id, document_id, line.index,
                    item.product_id, item.description, item.quantity, item.unit_price,
                    item.discount_percent, item.gst_rate, item.hsn_code, item.unit_id, item.conversion_factor,
                    line.taxable_amount, line.tax_amount, line.cgst_amount, line.sgst_amount, line.igst_amount,
                    now
                )
            ))
        return statements

    def get_items(self, document_id: UUID) -> list[DocumentItem]:
        """
        Line items of a document in entry order.
        """
        rows = self.postgres.execute(
            """
            SELECT * FROM document_items
            WHERE document_id = %s
            ORDER BY position ASC
            """,
            (document_id,)
        )

        return [DocumentItem.model_validate(row) for row in rows]

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def create(self, data: DocumentCreate) -> Document:
        """
        Create a draft document with its line items.

        Args:
            data: Document type, party, items and document-level adjustments

        Returns:
            Created document in DRAFT status

        Raises:
            CalculationInputError: Invalid numbers, unit mismatch or discount too large
            ValueError: Party not found or of the wrong type
        """
        data = self._resolve_units(data)
        totals = self._calculate(data)

        organization_id = get_current_organization_id()
        document_id = uuid4()
        document_number = self._generate_number(data.document_type)
        now = now_utc()

        columns = {
            "id": document_id,
            "organization_id": organization_id,
            "document_type": data.document_type.value,
            "document_number": document_number,
            "party_id": data.party_id,
            "status": DocumentStatus.DRAFT.value,
            "issue_date": data.issue_date or today_utc(),
            "due_date": data.due_date,
            "tax_rate": data.tax_rate,
            "amount_paid": totals.amount_paid,
            "notes": data.notes,
            **_totals_columns(totals),
            "created_at": now,
            "updated_at": now,
        }

        statements = [(
            f"""
            INSERT INTO documents ({', '.join(columns)})
            VALUES ({', '.join(['%s'] * len(columns))})
            RETURNING *
            """,
            tuple(columns.values())
        )]
        statements.extend(self._item_statements(organization_id, document_id, data.items, totals))

        results = self.postgres.execute_in_transaction(statements)
        document = Document.model_validate(results[0][0])

        self.audit.log_change(
            entity_type="document",
            entity_id=document.id,
            action=AuditAction.CREATE,
            changes={
                "created": {
                    "document_type": data.document_type.value,
                    "document_number": document_number,
                    "party_id": str(data.party_id),
                    "item_count": len(data.items),
                    "total": str(totals.total),
                }
            }
        )

        logger.info("Created %s %s", data.document_type.value, document_number)

        return document

    def get_by_id(self, document_id: UUID) -> Document | None:
        """
        Get document by ID.

        Returns:
            Document if found and not deleted, None otherwise.
        """
        row = self.postgres.execute_single(
            "SELECT * FROM documents WHERE id = %s AND deleted_at IS NULL",
            (document_id,)
        )

        if row is None:
            return None

        return Document.model_validate(row)

    def _require(self, document_id: UUID) -> Document:
        document = self.get_by_id(document_id)
        if document is None:
            raise ValueError(f"Document {document_id} not found")
        return document

    def _merged_input(self, current: Document, data: DocumentUpdate) -> DocumentInput:
        if data.items is not None:
            items = data.items
        else:
            items = [item.to_input() for item in self.get_items(current.id)]

        return DocumentInput(
            document_type=current.document_type,
            party_id=current.party_id,
            items=items,
            discount=data.discount if data.discount is not None else current.discount,
            tax_rate=data.tax_rate if data.tax_rate is not None else current.tax_rate,
            issue_date=data.issue_date or current.issue_date,
            due_date=data.due_date if "due_date" in data.model_fields_set else current.due_date,
            notes=data.notes if "notes" in data.model_fields_set else current.notes,
        )

    def update(self, document_id: UUID, data: DocumentUpdate) -> Document:
        """
        Edit a document and recalculate its totals.

        New items replace every existing line item. The balance due is
        recomputed as total - amount_paid; if an edit lowers the total below
        what has been paid the balance goes negative, the document is PAID,
        and the difference is credit due to the party. Issued documents move
        the party balance by the change in total.

        Raises:
            CalculationInputError: Invalid numbers, unit mismatch or discount too large
            ValueError: Document not found, cancelled, or a reported Saudi
                invoice (its hash is already part of the chain)
        """
        current = self._require(document_id)

        if current.status == DocumentStatus.CANCELLED:
            raise ValueError(f"Document {document_id} is cancelled and cannot be edited")

        if current.invoice_hash:
            raise ValueError(
                f"Document {document_id} is part of the ZATCA hash chain and cannot be edited; "
                "issue a credit or debit note instead"
            )

        merged = self._merged_input(current, data)
        if data.items is not None:
            merged = self._resolve_units(merged)
        totals = self._calculate(merged, current.amount_paid)

        if current.is_draft:
            status = current.status
        else:
            status = status_after_payment(current.document_type, current.amount_paid, totals.balance_due)

        columns = {
            **_totals_columns(totals),
            "tax_rate": merged.tax_rate,
            "issue_date": merged.issue_date,
            "due_date": merged.due_date,
            "notes": merged.notes,
            "status": status.value,
            "updated_at": now_utc(),
        }

        statements = [_update_statement(document_id, columns)]

        if data.items is not None:
            statements.append((
                "DELETE FROM document_items WHERE document_id = %s",
                (document_id,)
            ))
            statements.extend(self._item_statements(
                current.organization_id, document_id, merged.items, totals
            ))

        total_change = totals.total - current.total
        if not current.is_draft and total_change != ZERO:
            statements.append(self.parties.balance_statement(
                current.party_id, current.document_type.balance_sign * total_change
            ))

        results = self.postgres.execute_in_transaction(statements)
        updated = Document.model_validate(results[0][0])

        if updated.balance_due < ZERO:
            logger.warning(
                "Document %s is overpaid by %s after edit; amount is credit due to party %s",
                updated.document_number, updated.credit_due, updated.party_id,
            )

        changes = compute_changes(
            current.model_dump(mode="json"),
            updated.model_dump(mode="json")
        )
        if data.items is not None:
            changes["items_replaced"] = len(merged.items)
        if changes:
            self.audit.log_change(
                entity_type="document",
                entity_id=document_id,
                action=AuditAction.UPDATE,
                changes=changes
            )

        return updated

    def _zatca_columns(self, current: Document, now) -> dict[str, Any]:
        """ICV, hash chain link and QR payload for a Saudi sales invoice."""
        tenant = self.tenants.get_config()
        if not (tenant.seller_name and tenant.vat_number):
            raise ValueError("Saudi e-invoicing requires seller_name and vat_number to issue invoices")

        last = self.postgres.execute_single(
            """
            SELECT invoice_counter_value, invoice_hash FROM documents
            WHERE invoice_counter_value IS NOT NULL
            ORDER BY invoice_counter_value DESC
            LIMIT 1
            """
        )

        counter_value = next_counter_value(last["invoice_counter_value"] if last else None)
        previous_hash = last["invoice_hash"] if last and last["invoice_hash"] else GENESIS_INVOICE_HASH

        invoice_hash = compute_invoice_hash(
            current.document_number,
            current.issue_date.isoformat(),
            tenant.vat_number,
            current.total,
            current.total_vat,
        )
        qr_payload = build_qr_payload(
            tenant.seller_name,
            tenant.vat_number,
            now,
            current.total,
            current.total_vat,
        )

        return {
            "invoice_counter_value": counter_value,
            "invoice_hash": invoice_hash,
            "previous_invoice_hash": previous_hash,
            "qr_payload": qr_payload,
        }

    def issue(self, document_id: UUID) -> Document:
        """
        Issue a draft: SENT (sales), RECEIVED (purchase) or ISSUED (notes).

        The signed total is posted to the party balance in the same
        transaction. Saudi VAT sales invoices receive their counter value,
        hash and QR payload.

        Raises:
            ValueError: Document not found or not a draft
        """
        current = self._require(document_id)

        if not current.is_draft:
            raise ValueError(f"Document {document_id} is not a draft")

        now = now_utc()
        columns = {
            "status": current.document_type.issued_status.value,
            "issued_at": now,
            "updated_at": now,
        }

        if current.tax_mode == TaxMode.SAUDI_VAT and current.document_type == DocumentType.SALES_INVOICE:
            columns.update(self._zatca_columns(current, now))

        statements = [
            _update_statement(document_id, columns),
            self.parties.balance_statement(
                current.party_id, current.document_type.balance_sign * current.total
            ),
        ]

        results = self.postgres.execute_in_transaction(statements)
        updated = Document.model_validate(results[0][0])

        self.audit.log_change(
            entity_type="document",
            entity_id=document_id,
            action=AuditAction.UPDATE,
            changes={
                "status": {"old": current.status.value, "new": updated.status.value},
                "issued_at": {"old": None, "new": now.isoformat()},
            }
        )

        logger.info("Issued %s %s", current.document_type.value, current.document_number)

        return updated

    def cancel(self, document_id: UUID) -> Document:
        """
        Cancel a document.

        An issued document's total is reversed off the party balance.

        Raises:
            ValueError: Document not found, already cancelled, or has payments
        """
        current = self._require(document_id)

        if current.status == DocumentStatus.CANCELLED:
            raise ValueError(f"Document {document_id} is already cancelled")

        if current.amount_paid > ZERO:
            raise ValueError(
                f"Document {document_id} has payments recorded and cannot be cancelled"
            )

        now = now_utc()
        statements = [_update_statement(document_id, {
            "status": DocumentStatus.CANCELLED.value,
            "balance_due": to_money(ZERO),
            "cancelled_at": now,
            "updated_at": now,
        })]

        if not current.is_draft:
            statements.append(self.parties.balance_statement(
                current.party_id, -current.document_type.balance_sign * current.total
            ))

        results = self.postgres.execute_in_transaction(statements)
        updated = Document.model_validate(results[0][0])

        self.audit.log_change(
            entity_type="document",
            entity_id=document_id,
            action=AuditAction.UPDATE,
            changes={
                "status": {"old": current.status.value, "new": DocumentStatus.CANCELLED.value},
                "cancelled_at": {"old": None, "new": now.isoformat()},
            }
        )

        return updated

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list_documents(
        self,
        document_type: DocumentType | None = None,
        party_id: UUID | None = None,
        status: DocumentStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Document]:
        """
        List documents, newest issue date first.

        Args:
            document_type: Only this type
            party_id: Only this party's documents
            status: Only this status
            limit: Maximum results
            offset: Offset for pagination
        """
        conditions = ["deleted_at IS NULL"]
        params: list[Any] = []

        if document_type is not None:
            conditions.append("document_type = %s")
            params.append(document_type.value)
        if party_id is not None:
            conditions.append("party_id = %s")
            params.append(party_id)
        if status is not None:
            conditions.append("status = %s")
            params.append(status.value)

        params.extend([limit, offset])

        rows = self.postgres.execute(
            f"""
            SELECT * FROM documents
            WHERE {' AND '.join(conditions)}
            ORDER BY issue_date DESC, document_number DESC
            LIMIT %s OFFSET %s
            """,
            tuple(params)
        )

        return [Document.model_validate(row) for row in rows]

    def list_open_for_party(self, party_id: UUID, document_type: DocumentType) -> list[Document]:
        """
        Issued invoices of a party that still have a balance due, oldest first.
        """
        rows = self.postgres.execute(
            """
            SELECT * FROM documents
            WHERE party_id = %s
              AND document_type = %s
              AND status IN %s
              AND balance_due > 0
              AND deleted_at IS NULL
            ORDER BY issue_date ASC, document_number ASC
            """,
            (party_id, document_type.value, _PAYABLE_OPEN_STATUSES)
        )

        return [Document.model_validate(row) for row in rows]

    def verify_totals(self, document_id: UUID) -> TotalsVerification:
        """
        Recalculate a document from its stored line items and compare.

        Raises:
            ValueError: Document not found or cancelled
        """
        current = self._require(document_id)

        if current.status == DocumentStatus.CANCELLED:
            raise ValueError(f"Document {document_id} is cancelled; its totals are no longer maintained")

        merged = self._merged_input(current, DocumentUpdate())
        recomputed = self._calculate(merged, current.amount_paid)

        result = compare_totals(current, recomputed)
        if not result.matches:
            logger.warning(
                "Document %s totals differ from recalculation: %s",
                current.document_number, sorted(result.mismatches),
            )

        return result
