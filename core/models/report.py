"""Report models: profit by item, GST summary and party statements."""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from core.models.document import DocumentType
from core.models.party import PartyType


class ProfitItemInput(BaseModel):
    """
    One sold line for profit reporting.

    Cost per unit comes from the external FIFO allocator, either directly as
    `fifo_cost_per_unit` or as the line's stored `cost_of_goods_sold`.
    Quantity is in base units.
    """

    document_id: UUID | None = None
    document_number: str | None = None
    issue_date: date | None = None
    party_name: str | None = None
    product_id: UUID | None = None
    product_name: str | None = None
    quantity: Decimal = Field(..., ge=0)
    unit_price: Decimal = Field(..., ge=0)
    discount_percent: Decimal = Field(Decimal("0"), ge=0, le=100)
    fifo_cost_per_unit: Decimal | None = Field(None, ge=0)
    cost_of_goods_sold: Decimal | None = Field(None, ge=0)


class ItemProfit(BaseModel):
    """Profit figures for one sold line."""

    product_id: UUID | None
    product_name: str | None
    quantity: Decimal
    unit_price: Decimal
    discount_percent: Decimal
    sale_price_after_discount: Decimal
    fifo_cost_per_unit: Decimal
    profit_per_unit: Decimal
    profit_percent: Decimal
    revenue: Decimal
    cost_of_goods_sold: Decimal
    profit: Decimal


class ProfitGroup(BaseModel):
    """Profit lines of one invoice."""

    document_id: UUID | None
    document_number: str | None
    issue_date: date | None
    party_name: str | None = None
    items: list[ItemProfit]
    revenue: Decimal
    cost_of_goods_sold: Decimal
    profit: Decimal
    profit_percent: Decimal  # profit / revenue x 100


class ProfitReport(BaseModel):
    groups: list[ProfitGroup]
    total_quantity: Decimal
    total_revenue: Decimal
    total_cost_of_goods_sold: Decimal
    total_profit: Decimal
    average_profit_percent: Decimal  # total_profit / total_revenue x 100


class GstRateRow(BaseModel):
    gst_rate: Decimal
    taxable_value: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    total_tax: Decimal


class GstSummary(BaseModel):
    """Rate-wise GST totals over issued documents of one type."""

    document_type: DocumentType
    date_from: date | None
    date_to: date | None
    rates: list[GstRateRow]
    taxable_value: Decimal
    total_cgst: Decimal
    total_sgst: Decimal
    total_igst: Decimal
    total_tax: Decimal


class StatementEntryType(str, Enum):
    DOCUMENT = "document"
    PAYMENT = "payment"


class StatementEntry(BaseModel):
    """
    One movement of a party's running balance.

    Debits raise the balance (invoices), credits lower it (payments and
    credit or debit notes).
    """

    entry_date: date
    entry_type: StatementEntryType
    reference: str
    description: str
    document_type: DocumentType | None = None
    debit: Decimal
    credit: Decimal
    running_balance: Decimal | None = None


class PartyStatement(BaseModel):
    """A party's balance movements over a period, from opening to closing balance."""

    party_id: UUID
    party_name: str
    party_type: PartyType
    date_from: date | None
    date_to: date | None
    opening_balance: Decimal
    entries: list[StatementEntry]
    total_debits: Decimal
    total_credits: Decimal
    closing_balance: Decimal
