"""
Tenant service: resolves an organization's tax configuration.

The organizations row carries feature flags (gst_enabled,
saudi_einvoice_enabled, multi_unit_enabled). This service turns them into
the explicit TenantConfig the calculator consumes.
"""

import logging
from typing import Any

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction, compute_changes
from core.config import BillingConfig
from core.finance.gst import state_code_from_gstin
from core.finance.saudi_vat import SAUDI_CURRENCY
from core.models import TenantConfig, TaxMode, TaxSettingsUpdate
from utils.tenant_context import get_current_organization_id
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_UPDATABLE_COLUMNS = {
    "gst_enabled", "gst_state_code", "gstin",
    "saudi_einvoice_enabled", "seller_name", "vat_number",
    "multi_unit_enabled", "currency",
}


class TenantService:
    """Service for organization tax settings."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger, config: BillingConfig | None = None):
        self.postgres = postgres
        self.audit = audit
        self.config = config or BillingConfig()

    def _get_row(self) -> dict[str, Any]:
        organization_id = get_current_organization_id()
        row = self.postgres.execute_single(
            "SELECT * FROM organizations WHERE id = %s",
            (organization_id,)
        )
        if row is None:
            raise ValueError(f"Organization {organization_id} not found")
        return row

    def _config_from_row(self, row: dict[str, Any]) -> TenantConfig:
        gst_ready = bool(row.get("gst_enabled") and row.get("gst_state_code"))
        saudi_ready = bool(
            row.get("saudi_einvoice_enabled") and row.get("seller_name") and row.get("vat_number")
        )

        if gst_ready and saudi_ready:
            logger.warning(
                "Organization %s has both GST and Saudi e-invoicing enabled; using GST",
                row["id"],
            )

        if gst_ready:
            tax_mode = TaxMode.GST
        elif saudi_ready:
            tax_mode = TaxMode.SAUDI_VAT
        else:
            tax_mode = TaxMode.FLAT

        default_currency = self.config.default_currency
        if tax_mode == TaxMode.SAUDI_VAT:
            default_currency = SAUDI_CURRENCY

        return TenantConfig(
            organization_id=row["id"],
            tax_mode=tax_mode,
            gst_state_code=row.get("gst_state_code"),
            gstin=row.get("gstin"),
            seller_name=row.get("seller_name"),
            vat_number=row.get("vat_number"),
            multi_unit_enabled=bool(row.get("multi_unit_enabled")),
            currency=row.get("currency") or default_currency,
        )

    def get_config(self) -> TenantConfig:
        """
        Resolve the current organization's TenantConfig.

        GST applies only when enabled with a seller state code. Saudi VAT
        applies only when enabled with a seller name and TRN. Otherwise the
        tenant uses a flat document tax.

        Raises:
            ValueError: Organization not found
        """
        return self._config_from_row(self._get_row())

    def update_tax_settings(self, data: TaxSettingsUpdate) -> TenantConfig:
        """
        Update tax settings for the current organization.

        A GSTIN without a state code fills the state code from the GSTIN.
        GST and Saudi e-invoicing are mutually exclusive: the caller must
        disable one before enabling the other.

        Args:
            data: Settings to change (only non-None fields are changed)

        Returns:
            The resulting TenantConfig

        Raises:
            ValueError: Organization not found, both modes would end up
                enabled, or an enabled mode lacks its required settings
        """
        current = self._get_row()

        updates = data.model_dump(exclude_none=True)
        for field in updates:
            if field not in _UPDATABLE_COLUMNS:
                logger.warning(
                    "Attempted to update unknown field '%s' on organization %s", field, current["id"]
                )
        updates = {k: v for k, v in updates.items() if k in _UPDATABLE_COLUMNS}
        if not updates:
            return self._config_from_row(current)

        merged = {**current, **updates}

        if merged.get("gstin") and not merged.get("gst_state_code"):
            merged["gst_state_code"] = state_code_from_gstin(merged["gstin"])
            if merged["gst_state_code"]:
                updates["gst_state_code"] = merged["gst_state_code"]

        if merged.get("gst_enabled") and merged.get("saudi_einvoice_enabled"):
            raise ValueError("GST and Saudi e-invoicing are mutually exclusive")
        if merged.get("gst_enabled") and not merged.get("gst_state_code"):
            raise ValueError("GST requires a seller state code or GSTIN")
        if merged.get("saudi_einvoice_enabled") and not (
            merged.get("seller_name") and merged.get("vat_number")
        ):
            raise ValueError("Saudi e-invoicing requires seller_name and vat_number")

        set_parts = []
        params = []
        for field, value in updates.items():
            set_parts.append(f"{field} = %s")
            params.append(value)

        set_parts.append("updated_at = %s")
        params.append(now_utc())
        params.append(current["id"])

        row = self.postgres.execute_returning(
            f"""
            UPDATE organizations
            SET {', '.join(set_parts)}
            WHERE id = %s
            RETURNING *
            """,
            tuple(params)
        )[0]

        old_config = self._config_from_row(current)
        new_config = self._config_from_row(row)

        changes = compute_changes(
            {k: current.get(k) for k in _UPDATABLE_COLUMNS},
            {k: row.get(k) for k in _UPDATABLE_COLUMNS},
        )
        if changes:
            self.audit.log_change(
                entity_type="organization",
                entity_id=row["id"],
                action=AuditAction.UPDATE,
                changes=changes
            )

        if old_config.tax_mode != new_config.tax_mode:
            logger.info(
                "Organization %s tax mode changed: %s -> %s",
                row["id"], old_config.tax_mode.value, new_config.tax_mode.value,
            )

        return new_config
