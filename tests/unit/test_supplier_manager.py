"""Unit tests for the supplier registry and its injected cache."""

from decimal import Decimal

import pytest
from libs.common.cache import MemoryTTLCache
from services.store_service.models import SupplierType
from services.store_service.suppliers import (
    SupplierError,
    SupplierManager,
    SupplierSearchParams,
)
from services.store_service.suppliers.manager import (
    UNKNOWN_DELIVERY_DAYS,
    extract_delivery_days,
)
from services.store_service.suppliers.types import SupplierShippingInfo
from tests.fakes import FakeSupplier


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class BrokenSupplier(FakeSupplier):
    async def search_products(self, params):
        raise self.error("Upstream timeout", "NETWORK_ERROR")

    async def is_healthy(self) -> bool:
        raise RuntimeError("connection refused")


# ---------------------------------------------------------------------------
# MemoryTTLCache
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_memory_cache_expires_entries():
    clock = FakeClock()
    cache = MemoryTTLCache(ttl_seconds=60, clock=clock)

    await cache.set("k", {"v": 1})
    assert await cache.get("k") == {"v": 1}

    clock.now += 61
    assert await cache.get("k") is None
    assert len(cache) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_memory_cache_per_entry_ttl_and_clear():
    clock = FakeClock()
    cache = MemoryTTLCache(ttl_seconds=60, clock=clock)

    await cache.set("short", "a", ttl_seconds=5)
    await cache.set("long", "b")
    clock.now += 10

    assert await cache.get("short") is None
    assert await cache.get("long") == "b"

    await cache.clear()
    assert await cache.get("long") is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_memory_cache_evicts_least_recently_used():
    clock = FakeClock()
    cache = MemoryTTLCache(ttl_seconds=60, max_size=2, clock=clock)

    await cache.set("a", 1)
    await cache.set("b", 2)
    assert await cache.get("a") == 1
    await cache.set("c", 3)

    assert len(cache) == 2
    assert await cache.get("b") is None
    assert await cache.get("a") == 1
    assert await cache.get("c") == 3


@pytest.mark.asyncio
@pytest.mark.unit
async def test_memory_cache_purges_expired_entries_on_set():
    clock = FakeClock()
    cache = MemoryTTLCache(ttl_seconds=60, clock=clock)

    for i in range(5):
        await cache.set(f"search:{i}", [i])
    clock.now += 61
    await cache.set("fresh", [])

    assert len(cache) == 1


# ---------------------------------------------------------------------------
# search / get_product
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_search_returns_empty_response_for_failing_supplier():
    custom = FakeSupplier(SupplierType.CUSTOM)
    custom.add_product("c-1", "10.00")
    broken = BrokenSupplier(SupplierType.ALIEXPRESS)
    manager = SupplierManager([custom, broken])

    results = await manager.search_products(SupplierSearchParams(query="lamp"))

    assert set(results) == {SupplierType.CUSTOM, SupplierType.ALIEXPRESS}
    assert [p.id for p in results[SupplierType.CUSTOM].products] == ["c-1"]
    assert results[SupplierType.ALIEXPRESS].products == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_search_skips_unregistered_suppliers(supplier_manager, fake_supplier):
    fake_supplier.add_product("c-1", "10.00")

    results = await supplier_manager.search_products(
        SupplierSearchParams(), suppliers=[SupplierType.ALIEXPRESS, SupplierType.CUSTOM]
    )

    assert list(results) == [SupplierType.CUSTOM]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_product_uses_cache_until_bypassed(fake_supplier):
    fake_supplier.add_product("c-1", "10.00")
    manager = SupplierManager([fake_supplier], cache=MemoryTTLCache(ttl_seconds=300))

    first = await manager.get_product(SupplierType.CUSTOM, "c-1")
    second = await manager.get_product(SupplierType.CUSTOM, "c-1")
    assert fake_supplier.product_calls == 1
    assert second.price == first.price == Decimal("10.00")

    await manager.get_product(SupplierType.CUSTOM, "c-1", use_cache=False)
    assert fake_supplier.product_calls == 2


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unconfigured_supplier_raises(supplier_manager):
    with pytest.raises(SupplierError) as exc_info:
        await supplier_manager.get_product(SupplierType.ALIEXPRESS, "x")

    assert exc_info.value.code == "NOT_CONFIGURED"


# ---------------------------------------------------------------------------
# compare_product
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.parametrize(
    "text,expected",
    [
        ("7-15 days", 15),
        ("3 Days", 3),
        ("Unknown", UNKNOWN_DELIVERY_DAYS),
        (None, UNKNOWN_DELIVERY_DAYS),
    ],
)
def test_extract_delivery_days(text, expected):
    assert extract_delivery_days(text) == expected


@pytest.mark.asyncio
@pytest.mark.unit
async def test_compare_picks_cheapest_and_fastest():
    custom = FakeSupplier(SupplierType.CUSTOM)
    custom.add_product(
        "p-1",
        "30.00",
        shipping_info=SupplierShippingInfo(
            shipping_cost=Decimal("5.00"), estimated_delivery="3 days"
        ),
    )
    aliexpress = FakeSupplier(SupplierType.ALIEXPRESS)
    aliexpress.add_product(
        "p-1",
        "20.00",
        shipping_info=SupplierShippingInfo(
            shipping_cost=Decimal("2.00"), estimated_delivery="15-30 days"
        ),
    )
    manager = SupplierManager([aliexpress, custom])

    comparison = await manager.compare_product("p-1")

    assert comparison.best_price == SupplierType.ALIEXPRESS
    assert comparison.fastest_delivery == SupplierType.CUSTOM
    # price scores are nearly equal, delivery dominates
    assert comparison.best_overall == SupplierType.CUSTOM
    offers = {o.supplier: o for o in comparison.suppliers}
    assert offers[SupplierType.ALIEXPRESS].total_cost == Decimal("22.00")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_compare_ignores_missing_and_out_of_stock_offers():
    custom = FakeSupplier(SupplierType.CUSTOM)
    custom.add_product("p-1", "30.00", stock=0)
    aliexpress = FakeSupplier(SupplierType.ALIEXPRESS)
    manager = SupplierManager([aliexpress, custom])

    comparison = await manager.compare_product("p-1")

    assert len(comparison.suppliers) == 2
    assert comparison.best_price is None
    assert comparison.best_overall is None


# ---------------------------------------------------------------------------
# check_health
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_health_reports_exceptions_as_unhealthy():
    healthy = FakeSupplier(SupplierType.CUSTOM)
    broken = BrokenSupplier(SupplierType.ALIEXPRESS)
    manager = SupplierManager([healthy, broken])

    report = {h.supplier: h for h in await manager.check_health()}

    assert report[SupplierType.CUSTOM].status == "healthy"
    assert report[SupplierType.ALIEXPRESS].status == "unhealthy"
    assert report[SupplierType.ALIEXPRESS].error == "connection refused"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_health_reports_exhausted_rate_limit():
    supplier = FakeSupplier(SupplierType.CUSTOM)
    supplier.update_rate_limit({"x-ratelimit-remaining": "0"})
    manager = SupplierManager([supplier])

    [health] = await manager.check_health()

    assert health.status == "rate_limited"
    assert health.rate_limit_info.requests_remaining == 0
