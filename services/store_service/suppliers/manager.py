"""Multi-supplier registry with fan-out search, comparison and health checks."""

import asyncio
import json
import re
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from libs.common.cache import MemoryTTLCache, RedisTTLCache, TTLCache
from libs.common.config import Settings, get_settings
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from libs.common.redis import get_redis
from services.store_service.models import SupplierCredential, SupplierType
from services.store_service.suppliers.aliexpress import (
    AliExpressConfig,
    AliExpressSupplier,
)
from services.store_service.suppliers.base import BaseSupplier
from services.store_service.suppliers.custom import CustomSupplier, CustomSupplierConfig
from services.store_service.suppliers.types import (
    ProductComparison,
    SupplierError,
    SupplierHealth,
    SupplierOffer,
    SupplierOrderRequest,
    SupplierOrderResult,
    SupplierOrderStatus,
    SupplierProduct,
    SupplierSearchParams,
    SupplierSearchResponse,
)

logger = get_logger(__name__)

_DELIVERY_DAYS_RE = re.compile(r"(\d+)\s*day", re.IGNORECASE)
UNKNOWN_DELIVERY_DAYS = 999


@dataclass
class SupplierManagerConfig:
    aliexpress: Optional[AliExpressConfig] = None
    custom: Optional[CustomSupplierConfig] = None


def extract_delivery_days(delivery_time: Optional[str]) -> int:
    match = _DELIVERY_DAYS_RE.search(delivery_time or "")
    return int(match.group(1)) if match else UNKNOWN_DELIVERY_DAYS


def supplier_score(offer: SupplierOffer) -> float:
    """Weighted score: 60% price, 40% delivery. Higher is better."""
    price_score = max(0.0, 100 - float(offer.total_cost) / 10)
    delivery_score = max(0.0, 100 - extract_delivery_days(offer.delivery_time) * 5)
    return price_score * 0.6 + delivery_score * 0.4


class SupplierManager:
    """
    Holds the configured suppliers, keyed by type.

    A supplier without credentials is simply absent. Reads (search, product
    lookup) go through the optional injected cache.
    """

    def __init__(
        self,
        suppliers: Iterable[BaseSupplier] = (),
        cache: Optional[TTLCache] = None,
    ):
        self._suppliers: dict[SupplierType, BaseSupplier] = {
            supplier.get_type(): supplier for supplier in suppliers
        }
        self.cache = cache

    @classmethod
    def from_config(
        cls,
        config: SupplierManagerConfig,
        cache: Optional[TTLCache] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "SupplierManager":
        suppliers: list[BaseSupplier] = []
        if config.aliexpress:
            suppliers.append(AliExpressSupplier(config.aliexpress, client=client))
        if config.custom:
            suppliers.append(CustomSupplier(config.custom, client=client))
        return cls(suppliers, cache=cache)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def get_supplier(self, supplier_type: SupplierType) -> Optional[BaseSupplier]:
        return self._suppliers.get(supplier_type)

    def get_suppliers(self) -> dict[SupplierType, BaseSupplier]:
        return dict(self._suppliers)

    def _require(self, supplier_type: SupplierType) -> BaseSupplier:
        supplier = self._suppliers.get(supplier_type)
        if supplier is None:
            raise SupplierError(
                f"Supplier {supplier_type.value} is not configured",
                "NOT_CONFIGURED",
                supplier_type,
            )
        return supplier

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    @staticmethod
    def cache_key(supplier_type: SupplierType, operation: str, params) -> str:
        return f"{supplier_type.value}:{operation}:{json.dumps(params, sort_keys=True, default=str)}"

    async def clear_cache(self) -> None:
        if self.cache is not None:
            await self.cache.clear()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def search_products(
        self,
        params: SupplierSearchParams,
        suppliers: Optional[Iterable[SupplierType]] = None,
    ) -> dict[SupplierType, SupplierSearchResponse]:
        """
        Search every requested (default: every registered) supplier concurrently.

        A supplier that fails contributes an empty response; unregistered
        suppliers are left out of the result.
        """
        targets = [
            t for t in (suppliers or self._suppliers.keys()) if t in self._suppliers
        ]

        async def _search(supplier_type: SupplierType) -> SupplierSearchResponse:
            key = self.cache_key(
                supplier_type, "search", params.model_dump(mode="json")
            )
            if self.cache is not None:
                cached = await self.cache.get(key)
                if cached is not None:
                    return SupplierSearchResponse.model_validate(cached)
            try:
                result = await self._suppliers[supplier_type].search_products(params)
            except Exception as e:
                logger.warning(f"Search failed for {supplier_type.value}: {e}")
                return SupplierSearchResponse()
            if self.cache is not None:
                await self.cache.set(key, result.model_dump(mode="json"))
            return result

        results = await asyncio.gather(*(_search(t) for t in targets))
        return dict(zip(targets, results))

    async def get_product(
        self, supplier_type: SupplierType, product_id: str, use_cache: bool = True
    ) -> SupplierProduct:
        supplier = self._require(supplier_type)
        key = self.cache_key(supplier_type, "get_product", {"product_id": product_id})
        if use_cache and self.cache is not None:
            cached = await self.cache.get(key)
            if cached is not None:
                return SupplierProduct.model_validate(cached)
        product = await supplier.get_product(product_id)
        if self.cache is not None:
            await self.cache.set(key, product.model_dump(mode="json"))
        return product

    async def compare_product(
        self,
        product_id: str,
        suppliers: Optional[Iterable[SupplierType]] = None,
    ) -> ProductComparison:
        targets = [
            t for t in (suppliers or self._suppliers.keys()) if t in self._suppliers
        ]

        async def _offer(supplier_type: SupplierType) -> SupplierOffer:
            try:
                product = await self.get_product(supplier_type, product_id)
            except Exception as e:
                logger.info(f"{supplier_type.value} has no offer for {product_id}: {e}")
                return SupplierOffer(supplier=supplier_type)
            shipping = product.shipping_info
            shipping_cost = shipping.shipping_cost if shipping else Decimal("0")
            return SupplierOffer(
                supplier=supplier_type,
                product=product,
                price=product.price,
                availability=product.is_available,
                shipping_cost=shipping_cost,
                total_cost=product.price + shipping_cost,
                delivery_time=shipping.estimated_delivery if shipping else "Unknown",
            )

        offers = list(await asyncio.gather(*(_offer(t) for t in targets)))
        available = [o for o in offers if o.availability and o.product is not None]

        comparison = ProductComparison(product_id=product_id, suppliers=offers)
        if available:
            # min/max keep the first of equal candidates
            comparison.best_price = min(available, key=lambda o: o.total_cost).supplier
            comparison.fastest_delivery = min(
                available, key=lambda o: extract_delivery_days(o.delivery_time)
            ).supplier
            comparison.best_overall = max(available, key=supplier_score).supplier
        return comparison

    async def compare_products(self, product_ids: Iterable[str]) -> list[ProductComparison]:
        return [await self.compare_product(pid) for pid in product_ids]

    async def check_health(self) -> list[SupplierHealth]:
        return list(
            await asyncio.gather(
                *(
                    self._check_supplier_health(t, s)
                    for t, s in self._suppliers.items()
                )
            )
        )

    async def _check_supplier_health(
        self, supplier_type: SupplierType, supplier: BaseSupplier
    ) -> SupplierHealth:
        start = time.perf_counter()
        try:
            healthy = await supplier.is_healthy()
        except Exception as e:
            return SupplierHealth(
                supplier=supplier_type,
                status="unhealthy",
                last_checked=utc_now(),
                response_time_ms=round((time.perf_counter() - start) * 1000, 2),
                error=str(e) or "Unknown error",
            )

        rate_limit = supplier.get_rate_limit_info()
        if rate_limit.requests_remaining <= 0:
            status = "rate_limited"
        else:
            status = "healthy" if healthy else "unhealthy"
        return SupplierHealth(
            supplier=supplier_type,
            status=status,
            last_checked=utc_now(),
            response_time_ms=round((time.perf_counter() - start) * 1000, 2),
            rate_limit_info=rate_limit,
        )

    async def create_order(
        self, supplier_type: SupplierType, order: SupplierOrderRequest
    ) -> SupplierOrderResult:
        return await self._require(supplier_type).create_order(order)

    async def get_order_status(
        self, supplier_type: SupplierType, order_id: str
    ) -> SupplierOrderStatus:
        return await self._require(supplier_type).get_order_status(order_id)


# ============================================================================
# CONSTRUCTION FROM SETTINGS
# ============================================================================


async def build_supplier_cache(settings: Settings = None) -> Optional[TTLCache]:
    """Cache for one process; callers keep and reuse the returned instance."""
    settings = settings or get_settings()
    if not settings.SUPPLIER_CACHE_ENABLED:
        return None
    if settings.SUPPLIER_CACHE_BACKEND == "redis":
        return RedisTTLCache(
            await get_redis(),
            prefix="store:supplier-cache",
            ttl_seconds=settings.SUPPLIER_CACHE_TTL_SECONDS,
        )
    return MemoryTTLCache(
        ttl_seconds=settings.SUPPLIER_CACHE_TTL_SECONDS,
        max_size=settings.SUPPLIER_CACHE_MAX_ENTRIES,
    )


async def load_supplier_manager(
    db: AsyncSession,
    cache: Optional[TTLCache] = None,
    settings: Settings = None,
) -> SupplierManager:
    """Build a manager from settings plus the access tokens stored by admins."""
    settings = settings or get_settings()
    config = SupplierManagerConfig()

    if settings.ALIEXPRESS_APP_KEY and settings.ALIEXPRESS_APP_SECRET:
        credential = (
            await db.execute(
                select(SupplierCredential).where(
                    SupplierCredential.supplier_type == SupplierType.ALIEXPRESS
                )
            )
        ).scalar_one_or_none()
        if credential and credential.access_token:
            config.aliexpress = AliExpressConfig(
                app_key=settings.ALIEXPRESS_APP_KEY,
                app_secret=settings.ALIEXPRESS_APP_SECRET,
                access_token=credential.access_token,
                tracking_id=settings.ALIEXPRESS_TRACKING_ID,
                base_url=settings.ALIEXPRESS_API_BASE_URL,
                timeout=settings.SUPPLIER_TIMEOUT_SECONDS,
            )
        else:
            logger.info("AliExpress keys set but no access token stored; skipping")

    if settings.CUSTOM_SUPPLIER_API_KEY and settings.CUSTOM_SUPPLIER_BASE_URL:
        config.custom = CustomSupplierConfig(
            api_key=settings.CUSTOM_SUPPLIER_API_KEY,
            base_url=settings.CUSTOM_SUPPLIER_BASE_URL,
            timeout=settings.SUPPLIER_TIMEOUT_SECONDS,
        )

    return SupplierManager.from_config(config, cache=cache)
