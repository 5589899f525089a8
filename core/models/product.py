"""Product and unit-conversion domain models.

A product has one base unit. Cost and price are per base unit. Alternate
units are reached through direct conversions only (no chains).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class ProductCreate(BaseModel):
    """Data required to create a product."""

    name: str = Field(..., min_length=1, max_length=255)
    sku: str | None = Field(None, max_length=100)
    unit_id: UUID | None = None
    cost: Decimal = Field(Decimal("0"), ge=0, max_digits=14, decimal_places=4)
    price: Decimal = Field(Decimal("0"), ge=0, max_digits=14, decimal_places=4)
    gst_rate: Decimal | None = Field(None, ge=0, le=100)
    hsn_code: str | None = Field(None, max_length=20)


class ProductUpdate(BaseModel):
    """Data that can be updated on a product. All fields optional."""

    name: str | None = Field(None, min_length=1, max_length=255)
    sku: str | None = Field(None, max_length=100)
    unit_id: UUID | None = None
    cost: Decimal | None = Field(None, ge=0, max_digits=14, decimal_places=4)
    price: Decimal | None = Field(None, ge=0, max_digits=14, decimal_places=4)
    gst_rate: Decimal | None = Field(None, ge=0, le=100)
    hsn_code: str | None = Field(None, max_length=20)


class Product(BaseModel):
    """Full product entity as stored."""

    id: UUID
    organization_id: UUID
    name: str
    sku: str | None
    unit_id: UUID | None
    cost: Decimal
    price: Decimal
    gst_rate: Decimal | None
    hsn_code: str | None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}


class UnitConversionCreate(BaseModel):
    """One `from_unit` equals `conversion_factor` of `to_unit`."""

    from_unit_id: UUID
    to_unit_id: UUID
    conversion_factor: Decimal = Field(..., gt=0)

    @model_validator(mode="after")
    def require_distinct_units(self) -> "UnitConversionCreate":
        if self.from_unit_id == self.to_unit_id:
            raise ValueError("from_unit_id and to_unit_id must differ")
        return self


class UnitConversionUpdate(BaseModel):
    conversion_factor: Decimal = Field(..., gt=0)


class UnitConversion(BaseModel):
    """Full unit conversion as stored. Unique per (organization, from, to)."""

    id: UUID
    organization_id: UUID
    from_unit_id: UUID
    to_unit_id: UUID
    conversion_factor: Decimal
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UnitResolution(BaseModel):
    """Result of resolving a product's unit: factor to base and cost per unit."""

    unit_id: UUID
    base_unit_id: UUID
    conversion_factor: Decimal
    unit_cost: Decimal
    is_base_unit: bool
