"""
Product service: product master data and unit conversions.

Products carry a base unit with cost and price per base unit. Unit
conversions relate a base unit to an alternate unit and are shared by every
product using that base unit.
"""

import logging
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction, compute_changes
from core.finance.units import resolve_unit, validate_conversion
from core.models import (
    Product, ProductCreate, ProductUpdate,
    UnitConversion, UnitConversionCreate, UnitConversionUpdate, UnitResolution,
)
from utils.tenant_context import get_current_organization_id
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_UPDATABLE_COLUMNS = {
    "name", "sku", "unit_id", "cost", "price", "gst_rate", "hsn_code",
}


class ProductService:
    """Service for product and unit-conversion operations."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger):
        self.postgres = postgres
        self.audit = audit

    # -------------------------------------------------------------------------
    # Products
    # -------------------------------------------------------------------------

    def create(self, data: ProductCreate) -> Product:
        """
        Create a new product.

        Args:
            data: Product creation data

        Returns:
            Created product
        """
        organization_id = get_current_organization_id()
        product_id = uuid4()
        now = now_utc()

        row = self.postgres.execute_returning(
            """
            INSERT INTO products (
                id, organization_id, name, sku, unit_id,
                cost, price, gst_rate, hsn_code,
                created_at, updated_at
            ) VALUES (
                %s, %s, %s, %s, %s,
                %s, %s, %s, %s,
                %s, %s
            )
            RETURNING *
            """,
            (
                product_id, organization_id, data.name, data.sku, data.unit_id,
                data.cost, data.price, data.gst_rate, data.hsn_code,
                now, now
            )
        )[0]

        product = Product.model_validate(row)

        self.audit.log_change(
            entity_type="product",
            entity_id=product.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json", exclude_none=True)}
        )

        return product

    def get_by_id(self, product_id: UUID) -> Product | None:
        """
        Get product by ID.

        Returns:
            Product if found and not deleted, None otherwise.
        """
        row = self.postgres.execute_single(
            "SELECT * FROM products WHERE id = %s AND deleted_at IS NULL",
            (product_id,)
        )

        if row is None:
            return None

        return Product.model_validate(row)

    def list_all(self, limit: int = 50, offset: int = 0) -> list[Product]:
        """
        List products ordered by name.
        """
        rows = self.postgres.execute(
            """
            SELECT * FROM products
            WHERE deleted_at IS NULL
            ORDER BY name ASC
            LIMIT %s OFFSET %s
            """,
            (limit, offset)
        )

        return [Product.model_validate(row) for row in rows]

    def search(self, query: str, limit: int = 20) -> list[Product]:
        """Search products by name, SKU or HSN code (case-insensitive)."""
        pattern = f"%{query}%"

        rows = self.postgres.execute(
            """
            SELECT * FROM products
            WHERE deleted_at IS NULL
              AND (name ILIKE %s OR sku ILIKE %s OR hsn_code ILIKE %s)
            ORDER BY name ASC
            LIMIT %s
            """,
            (pattern, pattern, pattern, limit)
        )

        return [Product.model_validate(row) for row in rows]

    def update(self, product_id: UUID, data: ProductUpdate) -> Product:
        """
        Update product fields.

        Args:
            product_id: Product UUID
            data: Fields to update

        Returns:
            Updated product

        Raises:
            ValueError: If product not found
        """
        current = self.get_by_id(product_id)
        if current is None:
            raise ValueError(f"Product {product_id} not found")

        updates = data.model_dump(exclude_none=True)
        if not updates:
            return current

        for field in updates:
            if field not in _UPDATABLE_COLUMNS:
                logger.warning(
                    "Attempted to update unknown field '%s' on product %s", field, product_id
                )

        valid_updates = {k: v for k, v in updates.items() if k in _UPDATABLE_COLUMNS}
        if not valid_updates:
            return current

        set_parts = []
        params = []
        for field, value in valid_updates.items():
            set_parts.append(f"{field} = %s")
            params.append(value)

        set_parts.append("updated_at = %s")
        params.append(now_utc())
        params.append(product_id)

        row = self.postgres.execute_returning(
            f"""
            UPDATE products
            SET {', '.join(set_parts)}
            WHERE id = %s
            RETURNING *
            """,
            tuple(params)
        )[0]

        updated = Product.model_validate(row)

        changes = compute_changes(
            current.model_dump(mode="json"),
            updated.model_dump(mode="json")
        )
        if changes:
            self.audit.log_change(
                entity_type="product",
                entity_id=product_id,
                action=AuditAction.UPDATE,
                changes=changes
            )

        return updated

    def delete(self, product_id: UUID) -> bool:
        """
        Soft delete a product.

        Returns:
            True if deleted, False if not found
        """
        current = self.get_by_id(product_id)
        if current is None:
            return False

        now = now_utc()
        self.postgres.execute_returning(
            """
            UPDATE products
            SET deleted_at = %s, updated_at = %s
            WHERE id = %s
            RETURNING id
            """,
            (now, now, product_id)
        )

        self.audit.log_change(
            entity_type="product",
            entity_id=product_id,
            action=AuditAction.DELETE,
            changes={"deleted": current.model_dump(mode="json")}
        )

        return True

    # -------------------------------------------------------------------------
    # Unit conversions
    # -------------------------------------------------------------------------

    def get_conversion(self, conversion_id: UUID) -> UnitConversion | None:
        row = self.postgres.execute_single(
            "SELECT * FROM unit_conversions WHERE id = %s",
            (conversion_id,)
        )

        if row is None:
            return None

        return UnitConversion.model_validate(row)

    def create_conversion(self, data: UnitConversionCreate) -> UnitConversion:
        """
        Create a unit conversion.

        Raises:
            CalculationInputError: Units identical or factor not positive
            ValueError: A conversion for this unit pair already exists
        """
        factor = validate_conversion(data.from_unit_id, data.to_unit_id, data.conversion_factor)

        existing = self.postgres.execute_single(
            """
            SELECT id FROM unit_conversions
            WHERE from_unit_id = %s AND to_unit_id = %s
            """,
            (data.from_unit_id, data.to_unit_id)
        )
        if existing is not None:
            raise ValueError(
                f"Unit conversion from {data.from_unit_id} to {data.to_unit_id} already exists"
            )

        organization_id = get_current_organization_id()
        now = now_utc()

        row = self.postgres.execute_returning(
            """
            INSERT INTO unit_conversions (
                id, organization_id, from_unit_id, to_unit_id,
                conversion_factor, created_at, updated_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING *
            """,
            (
                uuid4(), organization_id, data.from_unit_id, data.to_unit_id,
                factor, now, now
            )
        )[0]

        conversion = UnitConversion.model_validate(row)

        self.audit.log_change(
            entity_type="unit_conversion",
            entity_id=conversion.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json")}
        )

        return conversion

    def update_conversion(self, conversion_id: UUID, data: UnitConversionUpdate) -> UnitConversion:
        """
        Change a conversion's factor.

        Raises:
            CalculationInputError: Factor not positive
            ValueError: Conversion not found
        """
        current = self.get_conversion(conversion_id)
        if current is None:
            raise ValueError(f"Unit conversion {conversion_id} not found")

        factor = validate_conversion(current.from_unit_id, current.to_unit_id, data.conversion_factor)

        row = self.postgres.execute_returning(
            """
            UPDATE unit_conversions
            SET conversion_factor = %s, updated_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (factor, now_utc(), conversion_id)
        )[0]

        updated = UnitConversion.model_validate(row)

        changes = compute_changes(
            current.model_dump(mode="json"),
            updated.model_dump(mode="json")
        )
        if changes:
            self.audit.log_change(
                entity_type="unit_conversion",
                entity_id=conversion_id,
                action=AuditAction.UPDATE,
                changes=changes
            )

        return updated

    def delete_conversion(self, conversion_id: UUID) -> bool:
        """
        Delete a conversion. Conversions are hard-deleted.

        Returns:
            True if deleted, False if not found
        """
        current = self.get_conversion(conversion_id)
        if current is None:
            return False

        self.postgres.execute(
            "DELETE FROM unit_conversions WHERE id = %s",
            (conversion_id,)
        )

        self.audit.log_change(
            entity_type="unit_conversion",
            entity_id=conversion_id,
            action=AuditAction.DELETE,
            changes={"deleted": current.model_dump(mode="json")}
        )

        return True

    def list_conversions(self, unit_id: UUID | None = None) -> list[UnitConversion]:
        """
        List conversions, optionally only those involving `unit_id`.
        """
        if unit_id is None:
            rows = self.postgres.execute(
                "SELECT * FROM unit_conversions ORDER BY created_at ASC"
            )
        else:
            rows = self.postgres.execute(
                """
                SELECT * FROM unit_conversions
                WHERE from_unit_id = %s OR to_unit_id = %s
                ORDER BY created_at ASC
                """,
                (unit_id, unit_id)
            )

        return [UnitConversion.model_validate(row) for row in rows]

    def resolve_unit(self, product_id: UUID, unit_id: UUID) -> UnitResolution:
        """
        Conversion factor and unit cost of `product_id` in `unit_id`.

        Raises:
            ValueError: Product not found, product has no base unit, or no
                direct conversion links the two units
        """
        product = self.get_by_id(product_id)
        if product is None:
            raise ValueError(f"Product {product_id} not found")

        conversions = []
        if product.unit_id is not None and unit_id != product.unit_id:
            conversions = self.list_conversions(product.unit_id)

        return resolve_unit(product.unit_id, product.cost, unit_id, conversions)
