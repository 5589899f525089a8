"""
Report service: profit by item and rate-wise GST summary.

Reports read issued documents only. Drafts and cancelled documents never
contribute.
"""

import logging
from datetime import date
from decimal import Decimal
from uuid import UUID

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction
from core.finance.gst import summarize_by_rate
from core.finance.money import ZERO, to_money
from core.finance.profit import build_profit_report
from core.models import (
    DocumentType,
    GstRateRow,
    GstSummary,
    ProfitItemInput,
    ProfitReport,
    TaxMode,
)

logger = logging.getLogger(__name__)


class ReportService:
    """Service for financial reports."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger):
        self.postgres = postgres
        self.audit = audit

    def profit_by_items(
        self,
        product_id: UUID | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> ProfitReport:
        """
        Profit per sold line, grouped by sales invoice.

        Quantities are converted to base units so they line up with the
        per-base-unit price and the FIFO cost of goods sold recorded by the
        stock allocator. Lines without a recorded cost show zero cost.

        Args:
            product_id: Only lines for this product
            date_from: Invoices issued on or after this date
            date_to: Invoices issued on or before this date
        """
        rows = self.postgres.execute(
            """
            SELECT
                d.id AS document_id,
                d.document_number,
                d.issue_date,
                pt.name AS party_name,
                i.product_id,
                p.name AS product_name,
                i.quantity * i.conversion_factor AS quantity,
                i.unit_price,
                i.discount_percent,
                i.cost_of_goods_sold
            FROM document_items i
            JOIN documents d ON d.id = i.document_id
            JOIN parties pt ON pt.id = d.party_id
            LEFT JOIN products p ON p.id = i.product_id
            WHERE d.document_type = %s
              AND d.status NOT IN ('draft', 'cancelled')
              AND d.deleted_at IS NULL
              AND (%s::uuid IS NULL OR i.product_id = %s::uuid)
              AND (%s::date IS NULL OR d.issue_date >= %s::date)
              AND (%s::date IS NULL OR d.issue_date <= %s::date)
            ORDER BY d.issue_date ASC, d.document_number ASC, i.position ASC
            """,
            (
                DocumentType.SALES_INVOICE.value,
                product_id, product_id,
                date_from, date_from,
                date_to, date_to,
            )
        )

        return build_profit_report(ProfitItemInput.model_validate(row) for row in rows)

    def gst_summary(
        self,
        document_type: DocumentType = DocumentType.SALES_INVOICE,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> GstSummary:
        """
        Taxable value and CGST / SGST / IGST per GST rate.

        Only documents calculated under GST are included, so a tenant that
        switched tax mode still gets a consistent GST return.
        """
        rows = self.postgres.execute(
            """
            SELECT i.gst_rate, i.line_total, i.cgst_amount, i.sgst_amount, i.igst_amount
            FROM document_items i
            JOIN documents d ON d.id = i.document_id
            WHERE d.document_type = %s
              AND d.tax_mode = %s
              AND d.status NOT IN ('draft', 'cancelled')
              AND d.deleted_at IS NULL
              AND (%s::date IS NULL OR d.issue_date >= %s::date)
              AND (%s::date IS NULL OR d.issue_date <= %s::date)
            """,
            (
                document_type.value,
                TaxMode.GST.value,
                date_from, date_from,
                date_to, date_to,
            )
        )

        slabs = summarize_by_rate(
            (
                row["gst_rate"],
                row["line_total"],
                row["cgst_amount"],
                row["sgst_amount"],
                row["igst_amount"],
            )
            for row in rows
        )

        zero = to_money(ZERO)
        return GstSummary(
            document_type=document_type,
            date_from=date_from,
            date_to=date_to,
            rates=[GstRateRow(**slab._asdict()) for slab in slabs],
            taxable_value=sum((s.taxable_value for s in slabs), zero),
            total_cgst=sum((s.cgst for s in slabs), zero),
            total_sgst=sum((s.sgst for s in slabs), zero),
            total_igst=sum((s.igst for s in slabs), zero),
            total_tax=sum((s.total_tax for s in slabs), zero),
        )

    def record_cost_of_goods_sold(self, item_id: UUID, amount: Decimal) -> bool:
        """
        Store the FIFO cost of goods sold for a sales line.

        Called by the stock-lot allocator once it has consumed lots for the
        line. Returns False when the line does not exist.

        Raises:
            ValueError: Negative amount
        """
        if amount < ZERO:
            raise ValueError("Cost of goods sold cannot be negative")

        rows = self.postgres.execute_returning(
            """
            UPDATE document_items
            SET cost_of_goods_sold = %s
            WHERE id = %s
            RETURNING id, cost_of_goods_sold
            """,
            (to_money(amount), item_id)
        )

        if not rows:
            return False

        self.audit.log_change(
            entity_type="document_item",
            entity_id=item_id,
            action=AuditAction.UPDATE,
            changes={"cost_of_goods_sold": {"new": str(to_money(amount))}}
        )

        logger.debug("Recorded cost of goods sold %s for item %s", amount, item_id)

        return True
