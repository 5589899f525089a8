"""Party (customer / supplier) domain models.

Balance is the running receivable (customers) or payable (suppliers).
A negative balance is credit in the party's favour.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, EmailStr

from core.finance.gst import GSTIN_PATTERN, STATE_CODE_PATTERN
from core.finance.saudi_vat import TRN_PATTERN


class PartyType(str, Enum):
    CUSTOMER = "customer"
    SUPPLIER = "supplier"


class PartyCreate(BaseModel):
    """Data required to create a customer or supplier."""

    party_type: PartyType
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    address: str | None = Field(None, max_length=500)
    gstin: str | None = Field(None, pattern=GSTIN_PATTERN)
    state_code: str | None = Field(None, pattern=STATE_CODE_PATTERN)
    vat_number: str | None = Field(None, pattern=TRN_PATTERN)
    opening_balance: Decimal = Field(Decimal("0"), max_digits=14, decimal_places=2)
    notes: str | None = Field(None, max_length=10000)


class PartyUpdate(BaseModel):
    """Data that can be updated on a party. All fields optional."""

    name: str | None = Field(None, min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    address: str | None = Field(None, max_length=500)
    gstin: str | None = Field(None, pattern=GSTIN_PATTERN)
    state_code: str | None = Field(None, pattern=STATE_CODE_PATTERN)
    vat_number: str | None = Field(None, pattern=TRN_PATTERN)
    notes: str | None = Field(None, max_length=10000)


class Party(BaseModel):
    """Full party entity as stored."""

    id: UUID
    organization_id: UUID
    party_type: PartyType
    name: str
    email: str | None
    phone: str | None
    address: str | None
    gstin: str | None
    state_code: str | None
    vat_number: str | None
    balance: Decimal
    notes: str | None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def has_credit(self) -> bool:
        """Whether the party has paid more than it owes (or vice versa for suppliers)."""
        return self.balance < 0
