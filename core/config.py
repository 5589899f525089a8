"""Billing configuration."""

from decimal import Decimal

from pydantic import BaseModel, Field


class BillingConfig(BaseModel):
    """
    Application-level billing configuration.

    Per-tenant tax behaviour lives in TenantConfig, not here. These values
    apply to every organization served by the process.
    """

    # Tax
    saudi_vat_rate: Decimal = Field(
        default=Decimal("15"),
        description="Statutory Saudi VAT rate in percent",
        ge=0,
        le=100,
    )

    # Numbering
    number_sequence_width: int = Field(
        default=3,
        description="Zero-padded width of the daily sequence in document numbers",
        ge=3,
        le=6,
    )

    # Listing
    default_list_limit: int = Field(
        default=50,
        description="Page size when a list request gives no limit",
        ge=1,
        le=500,
    )
    max_list_limit: int = Field(
        default=500,
        description="Largest page size a list request may ask for",
        ge=1,
        le=5000,
    )

    # Display
    default_currency: str = Field(
        default="INR",
        description="Currency used when an organization has none configured",
        min_length=3,
        max_length=3,
    )
