"""AliExpress open platform adapter.

Every call is a signed POST to the /sync gateway. The access token comes from
the credentials an admin stored for the account; app key and secret come from
settings.
"""

import hashlib
import json
import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Literal, Optional

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

ALIEXPRESS_BASE_URL = "https://api-sg.aliexpress.com/sync"

_SORT_FIELDS = {
    ("price", "asc"): "SALE_PRICE_ASC",
    ("price", "desc"): "SALE_PRICE_DESC",
    ("popularity", "asc"): "LAST_VOLUME_ASC",
    ("popularity", "desc"): "LAST_VOLUME_DESC",
}


@dataclass
class AliExpressConfig:
    app_key: str
    app_secret: str
    access_token: str
    tracking_id: Optional[str] = None
    base_url: str = ALIEXPRESS_BASE_URL
    timeout: float = 30.0
    ship_to_country: str = "NG"
    target_currency: str = "USD"


def sign_params(params: dict[str, str], app_secret: str) -> str:
    """SHA-256 of secret + sorted key/value pairs + secret, upper-case hex."""
    payload = "".join(f"{key}{params[key]}" for key in sorted(params))
    digest = hashlib.sha256(f"{app_secret}{payload}{app_secret}".encode("utf-8"))
    return digest.hexdigest().upper()


def _decimal(value: Any) -> Optional[Decimal]:
    if value in (None, ""):
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


# ============================================================================
# RAW PAYLOADS
# ============================================================================


class _RawModel(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)


class _StringList(_RawModel):
    string: list[str] = Field(default_factory=list)


class AliExpressAffiliateProduct(_RawModel):
    """Item from aliexpress.affiliate.product.query."""

    source: Literal["aliexpress.affiliate"] = "aliexpress.affiliate"
    product_id: str
    product_title: str = ""
    target_sale_price: Optional[str] = None
    target_original_price: Optional[str] = None
    target_sale_price_currency: Optional[str] = None
    product_main_image_url: Optional[str] = None
    product_small_image_urls: Optional[_StringList] = None
    product_detail_url: Optional[str] = None
    promotion_link: Optional[str] = None
    first_level_category_name: Optional[str] = None
    lastest_volume: Optional[str] = None  # sales over the last 30 days

    def normalize(self) -> SupplierProduct:
        images = [self.product_main_image_url] if self.product_main_image_url else []
        if self.product_small_image_urls:
            images += [
                url for url in self.product_small_image_urls.string if url not in images
            ]
        volume = _decimal(self.lastest_volume)
        return SupplierProduct(
            id=self.product_id,
            supplier=SupplierType.ALIEXPRESS,
            name=self.product_title,
            description=self.product_title,
            price=_decimal(self.target_sale_price)
            or _decimal(self.target_original_price)
            or Decimal("0"),
            currency=self.target_sale_price_currency or "USD",
            images=images,
            category=self.first_level_category_name,
            sku=self.product_id,
            supplier_url=self.promotion_link or self.product_detail_url,
            sales_velocity=float(volume / 30) if volume is not None else None,
        )


class AliExpressDsSku(_RawModel):
    id: Optional[str] = None
    sku_id: Optional[str] = None
    sku_attr: Optional[str] = None
    sku_price: Optional[str] = None
    offer_sale_price: Optional[str] = None
    sku_available_stock: Optional[int] = None
    currency_code: Optional[str] = None

    def normalize(self) -> SupplierProductVariant:
        variant_id = self.sku_id or self.id or ""
        attributes = {}
        for part in (self.sku_attr or "").split(";"):
            if ":" in part:
                key, value = part.split(":", 1)
                attributes[key] = value
        return SupplierProductVariant(
            id=variant_id,
            name=self.sku_attr or variant_id,
            sku=variant_id,
            price=_decimal(self.offer_sale_price)
            or _decimal(self.sku_price)
            or Decimal("0"),
            inventory=self.sku_available_stock,
            attributes=attributes,
        )


class _DsBaseInfo(_RawModel):
    product_id: Optional[str] = None
    subject: str = ""
    detail: Optional[str] = None
    category_id: Optional[str] = None


class _DsSkuList(_RawModel):
    ae_item_sku_info_d_t_o: list[AliExpressDsSku] = Field(default_factory=list)


class _DsMedia(_RawModel):
    image_urls: Optional[str] = None  # ";"-separated


class _DsLogistics(_RawModel):
    delivery_time: Optional[int] = None
    ship_to_country: Optional[str] = None


class AliExpressDsProduct(_RawModel):
    """Result of aliexpress.ds.product.get."""

    source: Literal["aliexpress.ds"] = "aliexpress.ds"
    ae_item_base_info_dto: _DsBaseInfo = Field(default_factory=_DsBaseInfo)
    ae_item_sku_info_dtos: _DsSkuList = Field(default_factory=_DsSkuList)
    ae_multimedia_info_dto: _DsMedia = Field(default_factory=_DsMedia)
    logistics_info_dto: _DsLogistics = Field(default_factory=_DsLogistics)

    def normalize(self, product_id: str, currency: str) -> SupplierProduct:
        base = self.ae_item_base_info_dto
        variants = [sku.normalize() for sku in self.ae_item_sku_info_dtos.ae_item_sku_info_d_t_o]
        images = [
            url for url in (self.ae_multimedia_info_dto.image_urls or "").split(";") if url
        ]
        stocks = [v.inventory for v in variants if v.inventory is not None]
        prices = [v.price for v in variants if v.price > 0]
        delivery_days = self.logistics_info_dto.delivery_time
        return SupplierProduct(
            id=base.product_id or product_id,
            supplier=SupplierType.ALIEXPRESS,
            name=base.subject,
            description=base.detail or base.subject,
            price=min(prices) if prices else Decimal("0"),
            currency=currency,
            images=images,
            category=base.category_id,
            sku=base.product_id or product_id,
            stock=sum(stocks) if stocks else None,
            variants=variants,
            shipping_info=SupplierShippingInfo(
                estimated_delivery=(
                    f"{delivery_days} days" if delivery_days else "Unknown"
                ),
            ),
        )


# ============================================================================
# ADAPTER
# ============================================================================


class AliExpressSupplier(BaseSupplier):
    def __init__(self, config: AliExpressConfig, client: Optional[httpx.AsyncClient] = None):
        super().__init__(timeout=config.timeout, client=client)
        self.config = config

    def get_type(self) -> SupplierType:
        return SupplierType.ALIEXPRESS

    def get_name(self) -> str:
        return "AliExpress"

    def get_description(self) -> str:
        return "Global retail marketplace offering products at factory prices"

    def get_features(self) -> list[str]:
        return ["Global Shipping", "Buyer Protection", "Wide Variety", "Competitive Prices"]

    def get_supported_countries(self) -> list[str]:
        return ["Global"]

    async def _call(self, method: str, **params: Any) -> dict:
        """Sign and send one API method; returns the method's response body."""
        payload = {
            "app_key": self.config.app_key,
            "method": method,
            "sign_method": "sha256",
            "timestamp": str(int(time.time() * 1000)),
            "v": "2.0",
            "access_token": self.config.access_token,
        }
        payload.update({k: str(v) for k, v in params.items() if v is not None})
        payload["sign"] = sign_params(payload, self.config.app_secret)

        response = await self._send("POST", self.config.base_url, data=payload)
        try:
            data = response.json()
        except ValueError:
            raise self.error(
                f"Invalid response from AliExpress ({response.status_code})",
                "INVALID_RESPONSE",
                method=method,
            )

        if "error_response" in data:
            err = data["error_response"] or {}
            logger.error(f"AliExpress {method} failed: {err}")
            raise self.error(
                err.get("msg", "AliExpress request failed"),
                str(err.get("code", "API_ERROR")),
                method=method,
            )
        if not response.is_success:
            raise self.error(
                f"AliExpress returned HTTP {response.status_code}",
                "HTTP_ERROR",
                method=method,
            )

        key = method.replace(".", "_") + "_response"
        return data.get(key) or {}

    async def search_products(self, params: SupplierSearchParams) -> SupplierSearchResponse:
        page_no = params.offset // params.limit + 1
        body = await self._call(
            "aliexpress.affiliate.product.query",
            keywords=params.query or params.category or "bestselling",
            page_no=page_no,
            page_size=params.limit,
            sort=_SORT_FIELDS.get((params.sort_by, params.sort_order)),
            min_sale_price=params.min_price,
            max_sale_price=params.max_price,
            tracking_id=self.config.tracking_id,
            target_currency=self.config.target_currency,
            ship_to_country=self.config.ship_to_country,
        )
        result = (body.get("resp_result") or {}).get("result") or {}
        raw_items = (result.get("products") or {}).get("product") or []

        products = []
        for item in raw_items:
            try:
                products.append(AliExpressAffiliateProduct.model_validate(item).normalize())
            except ValidationError as e:
                logger.warning(f"Skipping malformed AliExpress product: {e}")

        total = int(result.get("total_record_count") or len(products))
        next_offset = params.offset + len(raw_items)
        has_more = next_offset < total and bool(raw_items)
        return SupplierSearchResponse(
            products=products,
            total=total,
            has_more=has_more,
            next_offset=next_offset if has_more else None,
        )

    async def get_product(self, product_id: str) -> SupplierProduct:
        body = await self._call(
            "aliexpress.ds.product.get",
            product_id=product_id,
            ship_to_country=self.config.ship_to_country,
            target_currency=self.config.target_currency,
        )
        result = body.get("result")
        if not result:
            raise self.error(
                f"Product {product_id} not found", "NOT_FOUND", product_id=product_id
            )
        try:
            raw = AliExpressDsProduct.model_validate(result)
        except ValidationError as e:
            raise self.error(str(e), "INVALID_RESPONSE", product_id=product_id)
        return raw.normalize(product_id, self.config.target_currency)

    async def create_order(self, order: SupplierOrderRequest) -> SupplierOrderResult:
        address = order.shipping_address
        place_order_request = {
            "out_order_id": order.reference,
            "logistics_address": {
                "contact_person": f"{address.first_name} {address.last_name}".strip(),
                "address": address.address1,
                "address2": address.address2,
                "city": address.city,
                "province": address.state,
                "zip": address.postal_code,
                "country": address.country,
                "mobile_no": address.phone,
            },
            "product_items": [
                {
                    "product_id": item.product_id,
                    "sku_attr": item.sku,
                    "product_count": item.quantity,
                }
                for item in order.items
            ],
        }
        body = await self._call(
            "aliexpress.trade.order.create",
            param_place_order_request=json.dumps(place_order_request),
        )
        result = body.get("result") or {}
        order_list = (result.get("order_list") or {}).get("number") or []
        supplier_order_id = body.get("order_id") or (order_list[0] if order_list else None)
        if not supplier_order_id:
            raise self.error(
                "No order ID returned from AliExpress",
                "ORDER_FAILED",
                reference=order.reference,
            )
        return SupplierOrderResult(order_id=str(supplier_order_id), status="processing")

    async def get_order_status(self, order_id: str) -> SupplierOrderStatus:
        body = await self._call(
            "aliexpress.trade.ds.order.get",
            single_order_query=json.dumps({"order_id": order_id}),
        )
        result = body.get("result") or {}
        logistics = (result.get("logistics_info_list") or {}).get(
            "ae_order_logistics_info"
        ) or []
        first = logistics[0] if logistics else {}
        return SupplierOrderStatus(
            status=_map_order_status(result.get("order_status")),
            tracking_number=first.get("logistics_no"),
            carrier=first.get("logistics_service"),
        )

    async def is_healthy(self) -> bool:
        await self._call(
            "aliexpress.affiliate.product.query",
            keywords="test",
            page_size=1,
            tracking_id=self.config.tracking_id,
        )
        return True


_ORDER_STATUS_MAP = {
    "PLACE_ORDER_SUCCESS": "pending",
    "WAIT_SELLER_SEND_GOODS": "processing",
    "SELLER_PART_SEND_GOODS": "shipped",
    "WAIT_BUYER_ACCEPT_GOODS": "shipped",
    "FINISH": "delivered",
    "IN_CANCEL": "cancelled",
}


def _map_order_status(raw: Optional[str]) -> str:
    return _ORDER_STATUS_MAP.get((raw or "").upper(), "processing")
