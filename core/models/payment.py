"""Payment domain models.

Settlement = amount + discount_received. The settlement is applied to open
invoices; anything left over stays on the party balance as credit.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from core.models.party import PartyType


class PaymentMethod(str, Enum):
    CASH = "cash"
    BANK = "bank"
    CARD = "card"
    UPI = "upi"
    CHEQUE = "cheque"
    OTHER = "other"


class PaymentCreate(BaseModel):
    """Data required to record a payment from a customer or to a supplier."""

    party_id: UUID
    document_id: UUID | None = None
    amount: Decimal = Field(..., gt=0, max_digits=14, decimal_places=2)
    discount_received: Decimal = Field(Decimal("0"), ge=0, max_digits=14, decimal_places=2)
    payment_date: date | None = None
    method: PaymentMethod = PaymentMethod.CASH
    reference: str | None = Field(None, max_length=100)
    notes: str | None = Field(None, max_length=2000)


class OpenBalance(BaseModel):
    """An issued invoice that can still receive payment."""

    document_id: UUID
    issue_date: date
    document_number: str
    balance_due: Decimal


class PaymentAllocation(BaseModel):
    """Part of a payment's settlement applied to one document."""

    document_id: UUID
    amount: Decimal


class AllocationResult(BaseModel):
    allocations: list[PaymentAllocation]
    unapplied: Decimal

    @property
    def applied(self) -> Decimal:
        return sum((a.amount for a in self.allocations), Decimal("0.00"))


class Payment(BaseModel):
    """Full payment entity as stored, with its allocations."""

    id: UUID
    organization_id: UUID
    party_id: UUID
    party_type: PartyType
    document_id: UUID | None
    payment_number: str
    amount: Decimal
    discount_received: Decimal
    unapplied_amount: Decimal
    payment_date: date
    method: PaymentMethod
    reference: str | None
    notes: str | None
    allocations: list[PaymentAllocation] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def settlement_amount(self) -> Decimal:
        """What the payment settles: cash received plus discount given."""
        return self.amount + self.discount_received
