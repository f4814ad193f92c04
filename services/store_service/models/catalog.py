"""Store catalog models: supplier-sourced products and stored supplier credentials."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.currency import round2
from libs.common.datetime_utils import utc_now
from libs.db.base import Base, JSONType
from services.store_service.models.enums import (
    StockStatus,
    SupplierType,
    SyncStatus,
    enum_values,
)
from services.store_service.pricing import calculate_final_price
from sqlalchemy import DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Float, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, validates


class Product(Base):
    """Catalog entry imported from a supplier.

    final_price is derived: assigning supplier_cost or markup_multiplier
    recomputes it, so it never drifts from its inputs.
    """

    __tablename__ = "store_products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Supplier linkage
    supplier: Mapped[SupplierType] = mapped_column(
        SAEnum(
            SupplierType,
            values_callable=enum_values,
            name="store_supplier_type_enum",
        ),
        default=SupplierType.ALIEXPRESS,
        nullable=False,
    )
    supplier_product_id: Mapped[str] = mapped_column(String(128), nullable=False)
    supplier_sku: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    title: Mapped[str] = mapped_column(String(512), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    images: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    # [{"id", "sku", "title", "price", "inventory_quantity", "options": {...}}]
    variants: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    # Pricing (supplier_cost in the store currency)
    supplier_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="NGN", nullable=False)
    markup_multiplier: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    final_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    category: Mapped[str] = mapped_column(String(64), default="default", nullable=False)
    stock_status: Mapped[StockStatus] = mapped_column(
        SAEnum(
            StockStatus,
            values_callable=enum_values,
            name="store_stock_status_enum",
        ),
        default=StockStatus.IN_STOCK,
        nullable=False,
    )

    # Pricing signals
    trending_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    sales_velocity: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Sync bookkeeping
    sync_status: Mapped[SyncStatus] = mapped_column(
        SAEnum(
            SyncStatus,
            values_callable=enum_values,
            name="store_sync_status_enum",
        ),
        default=SyncStatus.PENDING,
        nullable=False,
    )
    last_sync_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        UniqueConstraint(
            "supplier", "supplier_product_id", name="unique_supplier_product"
        ),
    )

    @validates("supplier_cost", "markup_multiplier")
    def _recompute_final_price(self, key, value):
        if value is None:
            return value
        value = round2(value)
        cost = value if key == "supplier_cost" else self.supplier_cost
        multiplier = value if key == "markup_multiplier" else self.markup_multiplier
        if cost is not None and multiplier is not None:
            self.final_price = calculate_final_price(cost, multiplier)
        return value

    def find_variant(self, variant_id: Optional[str]) -> Optional[dict]:
        if not variant_id:
            return None
        return next(
            (v for v in (self.variants or []) if str(v.get("id")) == str(variant_id)),
            None,
        )

    def price_for(self, variant_id: Optional[str] = None) -> Decimal:
        """Selling price for a line; a priced variant overrides final_price."""
        variant = self.find_variant(variant_id)
        if variant and variant.get("price") is not None:
            return round2(variant["price"])
        return self.final_price

    @property
    def primary_image(self) -> Optional[str]:
        return self.images[0] if self.images else None

    def __repr__(self):
        return f"<Product {self.title[:40]}>"


class SupplierCredential(Base):
    """OAuth tokens an admin stored for a supplier account."""

    __tablename__ = "store_supplier_credentials"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    supplier_type: Mapped[SupplierType] = mapped_column(
        SAEnum(
            SupplierType,
            values_callable=enum_values,
            name="store_supplier_type_enum",
        ),
        unique=True,
        nullable=False,
    )
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    def __repr__(self):
        return f"<SupplierCredential {self.supplier_type}>"
