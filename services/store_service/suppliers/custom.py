"""Generic JSON REST supplier.

Expected API:
    GET  /products?q=&category=&min_price=&max_price=&in_stock=&limit=&offset=
    GET  /products/{id}
    POST /orders
    GET  /orders/{id}
    GET  /health
Authentication is an X-API-Key header.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Literal, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from libs.common.logging import get_logger
from services.store_service.models.enums import SupplierType
from services.store_service.suppliers.base import BaseSupplier
from services.store_service.suppliers.types import (
    SupplierOrderRequest,
    SupplierOrderResult,
    SupplierOrderStatus,
    SupplierProduct,
    SupplierProductVariant,
    SupplierSearchParams,
    SupplierSearchResponse,
    SupplierShippingInfo,
)

logger = get_logger(__name__)


@dataclass
class CustomSupplierConfig:
    api_key: str
    base_url: str
    timeout: float = 30.0
    name: str = "Custom Supplier"


class _RawModel(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)


class CustomRawVariant(_RawModel):
    id: str
    name: str = ""
    sku: str = ""
    price: Decimal
    inventory: Optional[int] = None
    attributes: dict[str, str] = Field(default_factory=dict)


class CustomRawShipping(_RawModel):
    cost: Decimal = Decimal("0")
    estimated_delivery: str = "Unknown"
    warehouse: Optional[str] = None


class CustomRawProduct(_RawModel):
    source: Literal["custom"] = "custom"
    id: str
    title: str
    description: str = ""
    price: Decimal
    currency: str = "USD"
    images: list[str] = Field(default_factory=list)
    category: Optional[str] = None
    brand: Optional[str] = None
    sku: Optional[str] = None
    stock: Optional[int] = None
    variants: list[CustomRawVariant] = Field(default_factory=list)
    url: Optional[str] = None
    shipping: Optional[CustomRawShipping] = None
    trending_score: Optional[float] = None
    sales_per_day: Optional[float] = None

    def normalize(self) -> SupplierProduct:
        return SupplierProduct(
            id=self.id,
            supplier=SupplierType.CUSTOM,
            name=self.title,
            description=self.description,
            price=self.price,
            currency=self.currency,
            images=self.images,
            category=self.category,
            brand=self.brand,
            sku=self.sku,
            stock=self.stock,
            variants=[
                SupplierProductVariant(**v.model_dump()) for v in self.variants
            ],
            supplier_url=self.url,
            shipping_info=(
                SupplierShippingInfo(
                    shipping_cost=self.shipping.cost,
                    estimated_delivery=self.shipping.estimated_delivery,
                    warehouse_location=self.shipping.warehouse,
                )
                if self.shipping
                else None
            ),
            trending_score=self.trending_score,
            sales_velocity=self.sales_per_day,
        )


class CustomSupplier(BaseSupplier):
    def __init__(
        self, config: CustomSupplierConfig, client: Optional[httpx.AsyncClient] = None
    ):
        super().__init__(timeout=config.timeout, client=client)
        self.config = config
        self._headers = {
            "X-API-Key": config.api_key,
            "Accept": "application/json",
        }

    def get_type(self) -> SupplierType:
        return SupplierType.CUSTOM

    def get_name(self) -> str:
        return self.config.name

    def get_description(self) -> str:
        return "Direct supplier integration over a JSON REST API"

    def get_features(self) -> list[str]:
        return ["Direct Fulfillment", "Live Inventory"]

    def get_supported_countries(self) -> list[str]:
        return ["NG"]

    async def _request(
        self, method: str, endpoint: str, params: dict = None, json_data: dict = None
    ) -> dict:
        url = f"{self.config.base_url.rstrip('/')}{endpoint}"
        response = await self._send(
            method, url, headers=self._headers, params=params, json=json_data
        )
        if response.status_code == 404:
            raise self.error("Resource not found", "NOT_FOUND", endpoint=endpoint)
        try:
            data = response.json() if response.content else {}
        except ValueError:
            data = {}
        if not response.is_success:
            logger.error(f"Custom supplier error: {response.status_code} - {data}")
            raise self.error(
                data.get("message", f"HTTP {response.status_code}"),
                "HTTP_ERROR",
                status_code=response.status_code,
            )
        return data

    def _parse_product(self, payload: dict) -> SupplierProduct:
        try:
            return CustomRawProduct.model_validate(payload).normalize()
        except ValidationError as e:
            raise self.error(str(e), "INVALID_RESPONSE")

    async def search_products(self, params: SupplierSearchParams) -> SupplierSearchResponse:
        query = {
            "q": params.query,
            "category": params.category,
            "min_price": params.min_price,
            "max_price": params.max_price,
            "in_stock": (
                str(params.in_stock).lower() if params.in_stock is not None else None
            ),
            "limit": params.limit,
            "offset": params.offset,
            "sort_by": params.sort_by,
            "sort_order": params.sort_order if params.sort_by else None,
        }
        data = await self._request(
            "GET", "/products", params={k: v for k, v in query.items() if v is not None}
        )

        products = []
        for item in data.get("products", []):
            try:
                products.append(CustomRawProduct.model_validate(item).normalize())
            except ValidationError as e:
                logger.warning(f"Skipping malformed custom supplier product: {e}")

        total = int(data.get("total", len(products)))
        has_more = bool(data.get("has_more", params.offset + len(products) < total))
        return SupplierSearchResponse(
            products=products,
            total=total,
            has_more=has_more,
            next_offset=params.offset + len(products) if has_more else None,
        )

    async def get_product(self, product_id: str) -> SupplierProduct:
        data = await self._request("GET", f"/products/{product_id}")
        return self._parse_product(data.get("product", data))

    async def create_order(self, order: SupplierOrderRequest) -> SupplierOrderResult:
        data = await self._request(
            "POST", "/orders", json_data=order.model_dump(mode="json")
        )
        supplier_order_id = data.get("id") or data.get("order_id")
        if not supplier_order_id:
            raise self.error(
                "No order ID returned", "ORDER_FAILED", reference=order.reference
            )
        return SupplierOrderResult(
            order_id=str(supplier_order_id), status=data.get("status", "pending")
        )

    async def get_order_status(self, order_id: str) -> SupplierOrderStatus:
        data = await self._request("GET", f"/orders/{order_id}")
        return SupplierOrderStatus(
            status=data.get("status", "processing"),
            tracking_number=data.get("tracking_number"),
            tracking_url=data.get("tracking_url"),
            carrier=data.get("carrier"),
            estimated_delivery=data.get("estimated_delivery"),
        )

    async def is_healthy(self) -> bool:
        url = f"{self.config.base_url.rstrip('/')}/health"
        response = await self._send("GET", url, headers=self._headers)
        return response.is_success
