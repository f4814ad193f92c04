"""Canonical supplier shapes.

Adapters normalise their provider payloads into these models before anything
crosses into the manager, so the rest of the service never sees raw supplier
JSON.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from services.store_service.models.enums import SupplierType


class SupplierProductVariant(BaseModel):
    id: str
    name: str = ""
    sku: str = ""
    price: Decimal
    inventory: Optional[int] = None
    attributes: dict[str, str] = Field(default_factory=dict)
    images: list[str] = Field(default_factory=list)


class SupplierShippingInfo(BaseModel):
    shipping_cost: Decimal = Decimal("0")
    estimated_delivery: str = "Unknown"
    warehouse_location: Optional[str] = None


class SupplierProduct(BaseModel):
    id: str
    supplier: SupplierType
    name: str
    description: str = ""
    price: Decimal
    currency: str = "USD"
    images: list[str] = Field(default_factory=list)
    category: Optional[str] = None
    brand: Optional[str] = None
    sku: Optional[str] = None
    stock: Optional[int] = None
    variants: list[SupplierProductVariant] = Field(default_factory=list)
    supplier_url: Optional[str] = None
    shipping_info: Optional[SupplierShippingInfo] = None
    # Demand signals, when the supplier exposes them
    trending_score: Optional[float] = None
    sales_velocity: Optional[float] = None
    updated_at: Optional[datetime] = None

    @property
    def is_available(self) -> bool:
        known = [v.inventory for v in self.variants if v.inventory is not None]
        if known:
            return any(qty > 0 for qty in known)
        if self.stock is not None:
            return self.stock > 0
        return True


class SupplierSearchParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    query: Optional[str] = None
    category: Optional[str] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    in_stock: Optional[bool] = None
    limit: int = Field(default=20, ge=1, le=50)
    offset: int = Field(default=0, ge=0)
    sort_by: Optional[Literal["price", "name", "updated", "popularity"]] = None
    sort_order: Literal["asc", "desc"] = "asc"


class SupplierSearchResponse(BaseModel):
    products: list[SupplierProduct] = Field(default_factory=list)
    total: int = 0
    has_more: bool = False
    next_offset: Optional[int] = None


class SupplierAddress(BaseModel):
    first_name: str
    last_name: str
    company: Optional[str] = None
    address1: str
    address2: Optional[str] = None
    city: str
    state: Optional[str] = None
    postal_code: str
    country: str
    phone: Optional[str] = None


class SupplierOrderItem(BaseModel):
    product_id: str
    variant_id: Optional[str] = None
    sku: Optional[str] = None
    quantity: int = Field(ge=1)
    price: Decimal


class SupplierOrderRequest(BaseModel):
    reference: str  # our order number
    items: list[SupplierOrderItem]
    shipping_address: SupplierAddress
    currency: str


class SupplierOrderResult(BaseModel):
    order_id: str
    status: str


class SupplierOrderStatus(BaseModel):
    status: str
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None
    carrier: Optional[str] = None
    estimated_delivery: Optional[str] = None


class SupplierRateLimitInfo(BaseModel):
    requests_remaining: int = 1000
    reset_time: datetime
    limit: int = 1000


class SupplierHealth(BaseModel):
    supplier: SupplierType
    status: Literal["healthy", "unhealthy", "rate_limited"]
    last_checked: datetime
    response_time_ms: Optional[float] = None
    error: Optional[str] = None
    rate_limit_info: Optional[SupplierRateLimitInfo] = None


class SupplierOffer(BaseModel):
    supplier: SupplierType
    product: Optional[SupplierProduct] = None
    price: Decimal = Decimal("0")
    availability: bool = False
    shipping_cost: Decimal = Decimal("0")
    total_cost: Decimal = Decimal("0")
    delivery_time: str = "N/A"


class ProductComparison(BaseModel):
    product_id: str
    suppliers: list[SupplierOffer] = Field(default_factory=list)
    best_price: Optional[SupplierType] = None
    fastest_delivery: Optional[SupplierType] = None
    best_overall: Optional[SupplierType] = None


class SupplierError(Exception):
    """Raised by adapters for any failed supplier operation."""

    def __init__(
        self,
        message: str,
        code: str,
        supplier_type: SupplierType,
        details: Optional[dict] = None,
    ):
        self.message = message
        self.code = code
        self.supplier_type = supplier_type
        self.details = details or {}
        super().__init__(message)
