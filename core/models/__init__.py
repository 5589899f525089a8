"""Core domain models."""

from core.models.tenant import TenantConfig, TaxMode, TaxSettingsUpdate
from core.models.party import Party, PartyCreate, PartyUpdate, PartyType
from core.models.product import (
    Product, ProductCreate, ProductUpdate,
    UnitConversion, UnitConversionCreate, UnitConversionUpdate, UnitResolution,
)
from core.models.document import (
    Document, DocumentItem, DocumentType, DocumentStatus,
    DocumentInput, DocumentCreate, DocumentPreview, DocumentUpdate, DocumentItemInput,
    Counterparty, LineResult, TaxBreakdown, DocumentTotals, TotalsVerification,
)
from core.models.payment import (
    Payment, PaymentCreate, PaymentMethod, PaymentAllocation, OpenBalance, AllocationResult,
)
from core.models.report import (
    ProfitItemInput, ItemProfit, ProfitGroup, ProfitReport, GstRateRow, GstSummary,
    StatementEntryType, StatementEntry, PartyStatement,
)

__all__ = [
    # Tenant
    "TenantConfig", "TaxMode", "TaxSettingsUpdate",
    # Party
    "Party", "PartyCreate", "PartyUpdate", "PartyType",
    # Product
    "Product", "ProductCreate", "ProductUpdate",
    "UnitConversion", "UnitConversionCreate", "UnitConversionUpdate", "UnitResolution",
    # Document
    "Document", "DocumentItem", "DocumentType", "DocumentStatus",
    "DocumentInput", "DocumentCreate", "DocumentPreview", "DocumentUpdate", "DocumentItemInput",
    "Counterparty", "LineResult", "TaxBreakdown", "DocumentTotals", "TotalsVerification",
    # Payment
    "Payment", "PaymentCreate", "PaymentMethod", "PaymentAllocation", "OpenBalance", "AllocationResult",
    # Report
    "ProfitItemInput", "ItemProfit", "ProfitGroup", "ProfitReport", "GstRateRow", "GstSummary",
    "StatementEntryType", "StatementEntry", "PartyStatement",
]
