"""Pydantic schemas for store service."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from services.store_service.models import (
    AutomationStatus,
    AutomationType,
    FulfillmentStatus,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    StockStatus,
    SupplierType,
    SyncStatus,
)
from services.store_service.suppliers.types import SupplierSearchParams

MAX_LINE_QUANTITY = 99

# ============================================================================
# PRODUCT SCHEMAS
# ============================================================================


class ProductVariantResponse(BaseModel):
    id: str
    sku: Optional[str] = None
    title: Optional[str] = None
    price: Decimal
    inventory_quantity: Optional[int] = None
    options: dict[str, Any] = {}


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    supplier: SupplierType
    supplier_product_id: str
    title: str
    description: Optional[str] = None
    images: list[str] = []
    variants: list[ProductVariantResponse] = []
    final_price: Decimal
    currency: str
    category: str
    stock_status: StockStatus
    created_at: datetime
    updated_at: datetime


class AdminProductResponse(ProductResponse):
    supplier_sku: Optional[str] = None
    supplier_cost: Decimal
    markup_multiplier: Decimal
    trending_score: Optional[float] = None
    sales_velocity: Optional[float] = None
    sync_status: SyncStatus
    last_sync_at: Optional[datetime] = None


class ProductListResponse(BaseModel):
    items: list[ProductResponse]
    total: int
    page: int
    page_size: int
    pages: int


class ProductSuggestion(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    images: list[str] = []
    final_price: Decimal
    category: str


class SuggestResponse(BaseModel):
    suggestions: list[ProductSuggestion]


# ============================================================================
# CART SCHEMAS
# ============================================================================


class CartItemCreate(BaseModel):
    product_id: uuid.UUID
    variant_id: Optional[str] = None
    quantity: int = Field(1, ge=1, le=MAX_LINE_QUANTITY)


class CartItemUpdate(BaseModel):
    product_id: uuid.UUID
    variant_id: Optional[str] = None
    quantity: int = Field(..., le=MAX_LINE_QUANTITY)  # <= 0 removes the line


class CartItemRemove(BaseModel):
    product_id: uuid.UUID
    variant_id: Optional[str] = None


class CartItemResponse(BaseModel):
    product_id: uuid.UUID
    variant_id: Optional[str] = None
    title: str
    image: Optional[str] = None
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class CartResponse(BaseModel):
    id: uuid.UUID
    items: list[CartItemResponse] = []
    total_items: int = 0
    total_price: Decimal = Decimal("0")
    currency: str = "NGN"


# ============================================================================
# CHECKOUT SCHEMAS
# ============================================================================


class ShippingAddress(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    company: Optional[str] = Field(None, max_length=255)
    address1: str = Field(..., min_length=1, max_length=255)
    address2: Optional[str] = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=2, max_length=2)


class CheckoutItem(BaseModel):
    product_id: uuid.UUID
    variant_id: Optional[str] = None
    quantity: int = Field(..., ge=1, le=MAX_LINE_QUANTITY)
    # Accepted for compatibility with older clients; never used for pricing
    price: Optional[Decimal] = None


class CheckoutRequest(BaseModel):
    items: Optional[list[CheckoutItem]] = Field(
        None, description="Line items; defaults to the caller's cart"
    )
    session_id: Optional[str] = Field(None, max_length=255)
    email: Optional[EmailStr] = None
    shipping_address: ShippingAddress
    payment_method: PaymentMethod = PaymentMethod.PAYSTACK
    pay_currency: Optional[str] = Field(None, max_length=20)


class CheckoutResponse(BaseModel):
    order_id: uuid.UUID
    order_number: str
    total_amount: Decimal
    currency: str
    payment_method: PaymentMethod
    payment_url: Optional[str] = None
    payment_reference: str
    pay_address: Optional[str] = None
    pay_amount: Optional[Decimal] = None
    pay_currency: Optional[str] = None


# ============================================================================
# ORDER SCHEMAS
# ============================================================================


class OrderItemResponse(BaseModel):
    product_id: str
    title: str
    variant_id: Optional[str] = None
    sku: Optional[str] = None
    quantity: int
    price: Decimal
    image: Optional[str] = None


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_number: str
    customer_email: str
    items: list[OrderItemResponse]
    total_amount: Decimal
    currency: str
    shipping_address: dict
    status: OrderStatus
    status_note: Optional[str] = None
    payment_status: PaymentStatus
    fulfillment_status: FulfillmentStatus
    payment_method: PaymentMethod
    payment_reference: Optional[str] = None
    paid_at: Optional[datetime] = None
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None
    carrier: Optional[str] = None
    tracking_status: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class AdminOrderResponse(OrderResponse):
    user_id: Optional[str] = None
    supplier_order_ids: dict = {}


class PaymentVerificationResponse(BaseModel):
    order_number: str
    payment_status: PaymentStatus
    status: OrderStatus
    status_note: Optional[str] = None


# ============================================================================
# ADMIN SCHEMAS
# ============================================================================


class SyncError(BaseModel):
    id: Optional[str] = None
    error: str


class SyncSummaryResponse(BaseModel):
    updated: int = 0
    added: int = 0
    errors: list[SyncError] = []


class ProductImportRequest(BaseModel):
    supplier: SupplierType = SupplierType.ALIEXPRESS
    query: Optional[str] = Field(None, max_length=255)
    category: Optional[str] = Field(None, max_length=64)
    max_products: int = Field(20, ge=1, le=50)


class SupplierSearchRequest(SupplierSearchParams):
    suppliers: Optional[list[SupplierType]] = None


class SupplierCredentialUpdate(BaseModel):
    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None


class SupplierCredentialResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    supplier_type: SupplierType
    expires_at: Optional[datetime] = None
    updated_at: datetime


class AutomationLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    automation_type: AutomationType
    status: AutomationStatus
    order_id: Optional[uuid.UUID] = None
    details: dict = {}
    error_message: Optional[str] = None
    attempts: int
    started_at: datetime
    completed_at: Optional[datetime] = None


class FulfillmentResponse(BaseModel):
    order_id: uuid.UUID
    result: str
    supplier_order_ids: dict = {}
    error: Optional[str] = None
