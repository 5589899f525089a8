"""Tenant (organization) tax configuration models."""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from core.finance.gst import GSTIN_PATTERN, STATE_CODE_PATTERN
from core.finance.saudi_vat import TRN_PATTERN


class TaxMode(str, Enum):
    """Which tax branch a tenant's documents use."""

    FLAT = "flat"            # Single document-level rate
    GST = "gst"              # Indian CGST/SGST/IGST per line
    SAUDI_VAT = "saudi_vat"  # Fixed-rate VAT with ZATCA QR


class TenantConfig(BaseModel):
    """
    Explicit tenant configuration handed to the calculator.

    The calculator never reads ambient session or request state; everything
    tenant-specific arrives through this value.
    """

    organization_id: UUID | None = None
    tax_mode: TaxMode = TaxMode.FLAT
    gst_state_code: str | None = Field(None, pattern=STATE_CODE_PATTERN)
    gstin: str | None = Field(None, pattern=GSTIN_PATTERN)
    seller_name: str | None = Field(None, max_length=255)
    vat_number: str | None = Field(None, pattern=TRN_PATTERN)
    multi_unit_enabled: bool = False
    currency: str = Field("INR", min_length=3, max_length=3)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def require_mode_settings(self) -> "TenantConfig":
        """GST needs a seller state; Saudi VAT needs a seller name and TRN."""
        if self.tax_mode == TaxMode.GST and not self.gst_state_code:
            raise ValueError("GST mode requires gst_state_code")
        if self.tax_mode == TaxMode.SAUDI_VAT and not (self.seller_name and self.vat_number):
            raise ValueError("Saudi VAT mode requires seller_name and vat_number")
        return self

    @property
    def gst_enabled(self) -> bool:
        return self.tax_mode == TaxMode.GST

    @property
    def saudi_einvoice_enabled(self) -> bool:
        return self.tax_mode == TaxMode.SAUDI_VAT


class TaxSettingsUpdate(BaseModel):
    """Changes to an organization's tax settings. All fields optional."""

    gst_enabled: bool | None = None
    gst_state_code: str | None = Field(None, pattern=STATE_CODE_PATTERN)
    gstin: str | None = Field(None, pattern=GSTIN_PATTERN)
    saudi_einvoice_enabled: bool | None = None
    seller_name: str | None = Field(None, min_length=1, max_length=255)
    vat_number: str | None = Field(None, pattern=TRN_PATTERN)
    multi_unit_enabled: bool | None = None
    currency: str | None = Field(None, min_length=3, max_length=3)

    @model_validator(mode="after")
    def reject_both_modes(self) -> "TaxSettingsUpdate":
        """GST and Saudi e-invoicing cannot both be switched on."""
        if self.gst_enabled and self.saudi_einvoice_enabled:
            raise ValueError("GST and Saudi e-invoicing are mutually exclusive")
        return self
