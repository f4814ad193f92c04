"""Store commerce models: carts, orders and payment sessions."""

import random
import string
import time
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base, JSONType
from services.store_service.models.enums import (
    FulfillmentStatus,
    OrderStatus,
    PaymentMethod,
    PaymentProvider,
    PaymentStatus,
    enum_values,
)
from sqlalchemy import CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import (
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

# ============================================================================
# CART MODELS
# ============================================================================


class Cart(Base):
    """Shopping carts."""

    __tablename__ = "store_carts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Owner (user_id for logged in, session_id for guests)
    user_id: Mapped[Optional[str]] = mapped_column(
        String(255), index=True, nullable=True
    )
    session_id: Mapped[Optional[str]] = mapped_column(
        String(255), index=True, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint(
            "user_id IS NOT NULL OR session_id IS NOT NULL",
            name="cart_one_owner",
        ),
    )

    # Relationships
    items = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CartItem.created_at",
    )

    def __repr__(self):
        return f"<Cart {self.id}>"


class CartItem(Base):
    """Cart line items, one row per (product, variant)."""

    __tablename__ = "store_cart_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    cart_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("store_carts.id", ondelete="CASCADE"),
        nullable=False,
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("store_products.id", ondelete="CASCADE"),
        nullable=False,
    )
    variant_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        UniqueConstraint(
            "cart_id", "product_id", "variant_id", name="unique_cart_product_variant"
        ),
        CheckConstraint("quantity > 0", name="positive_quantity"),
    )

    # Relationships
    cart = relationship("Cart", back_populates="items")
    product = relationship("Product", lazy="selectin")

    def __repr__(self):
        return f"<CartItem product={self.product_id} qty={self.quantity}>"


# ============================================================================
# ORDER MODELS
# ============================================================================


class Order(Base):
    """Orders.

    Line items are an embedded snapshot taken at checkout; prices in it are
    always the server-side product prices at that moment.
    """

    __tablename__ = "store_orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_number: Mapped[str] = mapped_column(
        String(40), unique=True, nullable=False, index=True
    )

    # Customer
    user_id: Mapped[Optional[str]] = mapped_column(
        String(255), index=True, nullable=True
    )
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)

    # [{"product_id", "title", "variant_id", "sku", "quantity", "price",
    #   "supplier", "supplier_product_id", "image"}]
    items: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="NGN", nullable=False)
    shipping_address: Mapped[dict] = mapped_column(
        JSONType, nullable=False, default=dict
    )

    # Status
    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(
            OrderStatus,
            values_callable=enum_values,
            name="store_order_status_enum",
        ),
        default=OrderStatus.PENDING,
        nullable=False,
    )
    status_note: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        SAEnum(
            PaymentStatus,
            values_callable=enum_values,
            name="store_payment_status_enum",
        ),
        default=PaymentStatus.PENDING,
        nullable=False,
    )
    fulfillment_status: Mapped[FulfillmentStatus] = mapped_column(
        SAEnum(
            FulfillmentStatus,
            values_callable=enum_values,
            name="store_fulfillment_status_enum",
        ),
        default=FulfillmentStatus.PENDING,
        nullable=False,
    )

    # Payment
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SAEnum(
            PaymentMethod,
            values_callable=enum_values,
            name="store_payment_method_enum",
        ),
        nullable=False,
    )
    payment_reference: Mapped[Optional[str]] = mapped_column(
        String(100), index=True, nullable=True
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Supplier fulfillment
    supplier_order_ids: Mapped[dict] = mapped_column(
        JSONType, nullable=False, default=dict
    )  # {"aliexpress": "8123..."}
    tracking_number: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    tracking_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    carrier: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    tracking_status: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        Index("ix_store_orders_status_created", "payment_status", "created_at"),
    )

    # Relationships
    payment_sessions = relationship(
        "PaymentSession",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="PaymentSession.created_at",
    )

    @staticmethod
    def generate_order_number() -> str:
        """Generate an order number like ORD-1767225600000-A1B2C3D4E."""
        epoch_ms = int(time.time() * 1000)
        random_part = "".join(
            random.choices(string.ascii_uppercase + string.digits, k=9)
        )
        return f"ORD-{epoch_ms}-{random_part}"

    def __repr__(self):
        return f"<Order {self.order_number}>"


class PaymentSession(Base):
    """One initialized payment attempt with a provider."""

    __tablename__ = "store_payment_sessions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("store_orders.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    provider: Mapped[PaymentProvider] = mapped_column(
        SAEnum(
            PaymentProvider,
            values_callable=enum_values,
            name="store_payment_provider_enum",
        ),
        nullable=False,
    )
    provider_payment_id: Mapped[str] = mapped_column(String(128), nullable=False)
    provider_status: Mapped[str] = mapped_column(
        String(64), default="initialized", nullable=False
    )

    price_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    price_currency: Mapped[str] = mapped_column(String(10), nullable=False)
    pay_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(24, 8), nullable=True
    )
    pay_currency: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    pay_address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payin_extra_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    authorization_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    raw_metadata: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        UniqueConstraint(
            "provider", "provider_payment_id", name="unique_provider_payment"
        ),
    )

    order = relationship("Order", back_populates="payment_sessions")

    def __repr__(self):
        return f"<PaymentSession {self.provider} {self.provider_payment_id}>"
