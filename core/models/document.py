"""Billing document domain models.

A document is a sales invoice, purchase invoice, credit note or debit note.
Money is Decimal throughout. Stored amounts are rounded to cents; the exact
line total is only ever held in memory during calculation.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, computed_field, model_validator

from core.finance.saudi_vat import SaudiInvoiceType
from core.models.party import PartyType
from core.models.tenant import TaxMode


class DocumentType(str, Enum):
    SALES_INVOICE = "sales_invoice"
    PURCHASE_INVOICE = "purchase_invoice"
    CREDIT_NOTE = "credit_note"
    DEBIT_NOTE = "debit_note"

    @property
    def number_prefix(self) -> str:
        """Prefix for document numbers (INV-20240115-001)."""
        return _NUMBER_PREFIXES[self]

    @property
    def party_type(self) -> PartyType:
        """Customers for sales invoices and credit notes, suppliers otherwise."""
        if self in (DocumentType.SALES_INVOICE, DocumentType.CREDIT_NOTE):
            return PartyType.CUSTOMER
        return PartyType.SUPPLIER

    @property
    def issued_status(self) -> "DocumentStatus":
        return _ISSUED_STATUSES[self]

    @property
    def balance_sign(self) -> int:
        """+1 when issuing raises the party balance, -1 when it lowers it."""
        if self in (DocumentType.SALES_INVOICE, DocumentType.PURCHASE_INVOICE):
            return 1
        return -1

    @property
    def is_payable(self) -> bool:
        """Only invoices receive payments."""
        return self in (DocumentType.SALES_INVOICE, DocumentType.PURCHASE_INVOICE)


class DocumentStatus(str, Enum):
    """
    Document lifecycle status. Valid statuses depend on the document type:

    sales invoice:    draft -> sent -> partially_paid -> paid, or cancelled
    purchase invoice: draft -> received -> partially_paid -> paid, or cancelled
    credit/debit note: draft -> issued, or cancelled
    """

    DRAFT = "draft"
    SENT = "sent"
    RECEIVED = "received"
    ISSUED = "issued"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    CANCELLED = "cancelled"


_NUMBER_PREFIXES = {
    DocumentType.SALES_INVOICE: "INV",
    DocumentType.PURCHASE_INVOICE: "PI",
    DocumentType.CREDIT_NOTE: "CN",
    DocumentType.DEBIT_NOTE: "DN",
}

_ISSUED_STATUSES = {
    DocumentType.SALES_INVOICE: DocumentStatus.SENT,
    DocumentType.PURCHASE_INVOICE: DocumentStatus.RECEIVED,
    DocumentType.CREDIT_NOTE: DocumentStatus.ISSUED,
    DocumentType.DEBIT_NOTE: DocumentStatus.ISSUED,
}


# =============================================================================
# INPUT
# =============================================================================


class DocumentItemInput(BaseModel):
    """
    One line item as entered.

    `unit_price` is per base unit (unit cost for purchase documents).
    `quantity` is in the selected unit; `conversion_factor` converts it to
    base units.
    """

    product_id: UUID | None = None
    description: str | None = Field(None, max_length=500)
    quantity: Decimal = Field(..., ge=Decimal("0.01"))
    unit_price: Decimal = Field(..., ge=0)
    discount_percent: Decimal = Field(Decimal("0"), ge=0, le=100)
    gst_rate: Decimal | None = Field(None, ge=0, le=100)
    hsn_code: str | None = Field(None, max_length=20)
    unit_id: UUID | None = None
    conversion_factor: Decimal = Field(Decimal("1"), gt=0)


class DocumentInput(BaseModel):
    """Everything the calculator needs to total a document."""

    document_type: DocumentType
    party_id: UUID | None = None
    items: list[DocumentItemInput] = Field(..., min_length=1)
    discount: Decimal = Field(Decimal("0"), ge=0)
    tax_rate: Decimal = Field(Decimal("0"), ge=0, le=100)
    issue_date: date | None = None
    due_date: date | None = None
    notes: str | None = Field(None, max_length=2000)

    @model_validator(mode="after")
    def due_after_issue(self) -> "DocumentInput":
        if self.issue_date and self.due_date and self.due_date < self.issue_date:
            raise ValueError("due_date must not be before issue_date")
        return self


class DocumentCreate(DocumentInput):
    """Data required to create a draft document. A party is mandatory."""

    party_id: UUID


class DocumentPreview(DocumentInput):
    """Totals preview request. Nothing is persisted."""

    amount_paid: Decimal = Field(Decimal("0"), ge=0)


class DocumentUpdate(BaseModel):
    """
    Edit of an existing document. All fields optional.

    When `items` is given it replaces every existing line item. `due_date`
    and `notes` sent as null are cleared; left out, they are kept.
    """

    items: list[DocumentItemInput] | None = Field(None, min_length=1)
    discount: Decimal | None = Field(None, ge=0)
    tax_rate: Decimal | None = Field(None, ge=0, le=100)
    issue_date: date | None = None
    due_date: date | None = None
    notes: str | None = Field(None, max_length=2000)


class Counterparty(BaseModel):
    """The tax identity of the other side of a document."""

    gstin: str | None = None
    state_code: str | None = None
    vat_number: str | None = None


# =============================================================================
# CALCULATION RESULTS
# =============================================================================


class LineResult(BaseModel):
    """Computed figures for one line."""

    index: int
    line_total: Decimal          # Exact, unrounded
    taxable_amount: Decimal      # Rounded line total
    base_quantity: Decimal
    tax_rate: Decimal
    cgst_rate: Decimal = Decimal("0")
    sgst_rate: Decimal = Decimal("0")
    igst_rate: Decimal = Decimal("0")
    cgst_amount: Decimal = Decimal("0.00")
    sgst_amount: Decimal = Decimal("0.00")
    igst_amount: Decimal = Decimal("0.00")
    tax_amount: Decimal


class TaxBreakdown(BaseModel):
    """Aggregate tax for a document. Only the fields of `tax_mode` are non-zero."""

    tax_mode: TaxMode
    total_cgst: Decimal = Decimal("0.00")
    total_sgst: Decimal = Decimal("0.00")
    total_igst: Decimal = Decimal("0.00")
    total_vat: Decimal = Decimal("0.00")
    flat_tax: Decimal = Decimal("0.00")
    total_tax: Decimal
    place_of_supply: str | None = None
    is_inter_state: bool = False


class DocumentTotals(BaseModel):
    """Calculator output: total = subtotal + tax - discount."""

    lines: list[LineResult]
    subtotal: Decimal
    tax: TaxBreakdown
    discount: Decimal
    total: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    saudi_invoice_type: SaudiInvoiceType | None = None

    @computed_field
    @property
    def credit_due(self) -> Decimal:
        """Overpaid amount owed back to the party (0 unless balance is negative)."""
        return -self.balance_due if self.balance_due < 0 else Decimal("0.00")


class TotalsVerification(BaseModel):
    """Comparison of stored totals with a fresh recalculation."""

    document_id: UUID
    matches: bool
    mismatches: dict[str, dict[str, str]] = Field(default_factory=dict)


# =============================================================================
# STORED
# =============================================================================


class DocumentItem(BaseModel):
    """Line item as stored."""

    id: UUID
    document_id: UUID
    position: int
    product_id: UUID | None
    description: str | None
    quantity: Decimal
    unit_price: Decimal
    discount_percent: Decimal
    gst_rate: Decimal | None
    hsn_code: str | None
    unit_id: UUID | None
    conversion_factor: Decimal
    line_total: Decimal
    tax_amount: Decimal
    cgst_amount: Decimal
    sgst_amount: Decimal
    igst_amount: Decimal
    cost_of_goods_sold: Decimal | None = None
    created_at: datetime

    model_config = {"from_attributes": True}

    def to_input(self) -> DocumentItemInput:
        """The line as it was entered, for recalculation."""
        return DocumentItemInput(
            product_id=self.product_id,
            description=self.description,
            quantity=self.quantity,
            unit_price=self.unit_price,
            discount_percent=self.discount_percent,
            gst_rate=self.gst_rate,
            hsn_code=self.hsn_code,
            unit_id=self.unit_id,
            conversion_factor=self.conversion_factor,
        )


class Document(BaseModel):
    """Full document entity as stored."""

    id: UUID
    organization_id: UUID
    document_type: DocumentType
    document_number: str
    party_id: UUID
    status: DocumentStatus
    issue_date: date
    due_date: date | None
    subtotal: Decimal
    discount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    tax_mode: TaxMode
    total_cgst: Decimal
    total_sgst: Decimal
    total_igst: Decimal
    total_vat: Decimal
    place_of_supply: str | None
    is_inter_state: bool
    saudi_invoice_type: SaudiInvoiceType | None = None
    invoice_counter_value: int | None = None
    invoice_hash: str | None = None
    previous_invoice_hash: str | None = None
    qr_payload: str | None = None
    notes: str | None
    issued_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def credit_due(self) -> Decimal:
        """Overpaid amount after an edit lowered the total below amount paid."""
        return -self.balance_due if self.balance_due < 0 else Decimal("0.00")

    @property
    def is_draft(self) -> bool:
        return self.status == DocumentStatus.DRAFT

    @property
    def is_open(self) -> bool:
        """Issued, not cancelled, and still owing."""
        return (
            self.status not in (DocumentStatus.DRAFT, DocumentStatus.CANCELLED)
            and self.balance_due > 0
        )
