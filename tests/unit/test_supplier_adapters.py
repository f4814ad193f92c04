"""Wire tests for the supplier adapters against httpx.MockTransport."""

import json
from decimal import Decimal
from urllib.parse import parse_qs

import httpx
import pytest
from services.store_service.models import SupplierType
from services.store_service.suppliers import (
    AliExpressConfig,
    AliExpressSupplier,
    CustomSupplier,
    CustomSupplierConfig,
    SupplierAddress,
    SupplierError,
    SupplierOrderItem,
    SupplierOrderRequest,
    SupplierSearchParams,
)
from services.store_service.suppliers.aliexpress import sign_params

CUSTOM_BASE = "https://supplier.example.com/api"


def _custom(handler) -> CustomSupplier:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CustomSupplier(
        CustomSupplierConfig(api_key="cs-key", base_url=CUSTOM_BASE), client=client
    )


def _aliexpress(handler) -> AliExpressSupplier:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AliExpressSupplier(
        AliExpressConfig(app_key="ae-key", app_secret="ae-secret", access_token="tok"),
        client=client,
    )


def _order_request() -> SupplierOrderRequest:
    return SupplierOrderRequest(
        reference="ORD-1-ABC",
        items=[
            SupplierOrderItem(product_id="p-1", sku="red", quantity=2, price=Decimal("10"))
        ],
        shipping_address=SupplierAddress(
            first_name="Ada",
            last_name="Obi",
            address1="12 Marina Road",
            city="Lagos",
            postal_code="100001",
            country="NG",
        ),
        currency="NGN",
    )


# ---------------------------------------------------------------------------
# Custom supplier
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_custom_search_normalizes_and_skips_malformed():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["X-API-Key"] == "cs-key"
        assert request.url.path == "/api/products"
        assert request.url.params["q"] == "lamp"
        assert "category" not in request.url.params
        return httpx.Response(
            200,
            json={
                "products": [
                    {
                        "id": 7,
                        "title": "Desk lamp",
                        "price": "12.50",
                        "stock": 3,
                        "shipping": {"cost": 2, "estimated_delivery": "5 days"},
                        "sales_per_day": 4,
                    },
                    {"title": "no id or price"},
                ],
                "total": 5,
            },
            headers={"x-ratelimit-remaining": "42"},
        )

    supplier = _custom(handler)
    response = await supplier.search_products(SupplierSearchParams(query="lamp"))

    [product] = response.products
    assert product.id == "7"
    assert product.supplier == SupplierType.CUSTOM
    assert product.price == Decimal("12.50")
    assert product.shipping_info.shipping_cost == Decimal("2")
    assert product.sales_velocity == 4
    assert response.has_more is True
    assert response.next_offset == 1
    assert supplier.get_rate_limit_info().requests_remaining == 42


@pytest.mark.asyncio
@pytest.mark.unit
async def test_custom_get_product_404_is_not_found():
    supplier = _custom(lambda request: httpx.Response(404, json={"message": "nope"}))

    with pytest.raises(SupplierError) as exc_info:
        await supplier.get_product("missing")

    assert exc_info.value.code == "NOT_FOUND"
    assert exc_info.value.supplier_type == SupplierType.CUSTOM


@pytest.mark.asyncio
@pytest.mark.unit
async def test_custom_server_error_carries_message():
    supplier = _custom(lambda request: httpx.Response(500, json={"message": "db down"}))

    with pytest.raises(SupplierError) as exc_info:
        await supplier.get_product("p-1")

    assert exc_info.value.code == "HTTP_ERROR"
    assert exc_info.value.message == "db down"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_custom_network_failure_is_supplier_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(SupplierError) as exc_info:
        await _custom(handler).get_product("p-1")

    assert exc_info.value.code == "NETWORK_ERROR"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_custom_create_order_posts_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"id": "SUP-77", "status": "accepted"})

    result = await _custom(handler).create_order(_order_request())

    assert result.order_id == "SUP-77"
    assert result.status == "accepted"
    assert seen["body"]["reference"] == "ORD-1-ABC"
    assert seen["body"]["items"][0]["quantity"] == 2


@pytest.mark.asyncio
@pytest.mark.unit
async def test_custom_create_order_without_id_fails():
    supplier = _custom(lambda request: httpx.Response(200, json={"status": "queued"}))

    with pytest.raises(SupplierError) as exc_info:
        await supplier.create_order(_order_request())

    assert exc_info.value.code == "ORDER_FAILED"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_custom_order_status():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/orders/SUP-77"
        return httpx.Response(
            200, json={"status": "shipped", "tracking_number": "TRK1", "carrier": "GIG"}
        )

    status = await _custom(handler).get_order_status("SUP-77")

    assert status.status == "shipped"
    assert status.tracking_number == "TRK1"
    assert status.carrier == "GIG"


# ---------------------------------------------------------------------------
# AliExpress
# ---------------------------------------------------------------------------


def _form(request: httpx.Request) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


@pytest.mark.unit
def test_sign_params_is_order_independent():
    a = sign_params({"b": "2", "a": "1"}, "secret")
    b = sign_params({"a": "1", "b": "2"}, "secret")

    assert a == b
    assert a == a.upper()
    assert sign_params({"a": "1", "b": "2"}, "other") != a


@pytest.mark.asyncio
@pytest.mark.unit
async def test_aliexpress_requests_are_signed():
    def handler(request: httpx.Request) -> httpx.Response:
        form = _form(request)
        sign = form.pop("sign")
        assert sign == sign_params(form, "ae-secret")
        assert form["method"] == "aliexpress.affiliate.product.query"
        assert form["access_token"] == "tok"
        assert form["keywords"] == "earbuds"
        return httpx.Response(
            200,
            json={
                "aliexpress_affiliate_product_query_response": {
                    "resp_result": {
                        "result": {
                            "total_record_count": 1,
                            "products": {
                                "product": [
                                    {
                                        "product_id": 1005001,
                                        "product_title": "TWS Earbuds",
                                        "target_sale_price": "8.99",
                                        "product_main_image_url": "https://img/1.jpg",
                                        "product_small_image_urls": {
                                            "string": ["https://img/1.jpg", "https://img/2.jpg"]
                                        },
                                        "lastest_volume": 300,
                                    }
                                ]
                            },
                        }
                    }
                }
            },
        )

    response = await _aliexpress(handler).search_products(
        SupplierSearchParams(query="earbuds")
    )

    [product] = response.products
    assert product.id == "1005001"
    assert product.price == Decimal("8.99")
    assert product.images == ["https://img/1.jpg", "https://img/2.jpg"]
    assert product.sales_velocity == 10.0
    assert response.has_more is False


@pytest.mark.asyncio
@pytest.mark.unit
async def test_aliexpress_product_detail_uses_cheapest_sku():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "aliexpress_ds_product_get_response": {
                    "result": {
                        "ae_item_base_info_dto": {
                            "product_id": 1005001,
                            "subject": "TWS Earbuds",
                        },
                        "ae_item_sku_info_dtos": {
                            "ae_item_sku_info_d_t_o": [
                                {
                                    "sku_id": "s-1",
                                    "sku_attr": "Color:Black",
                                    "offer_sale_price": "9.50",
                                    "sku_available_stock": 4,
                                },
                                {
                                    "sku_id": "s-2",
                                    "sku_attr": "Color:White",
                                    "offer_sale_price": "8.75",
                                    "sku_available_stock": 0,
                                },
                            ]
                        },
                        "ae_multimedia_info_dto": {"image_urls": "https://a.jpg;https://b.jpg"},
                        "logistics_info_dto": {"delivery_time": 12},
                    }
                }
            },
        )

    product = await _aliexpress(handler).get_product("1005001")

    assert product.price == Decimal("8.75")
    assert product.stock == 4
    assert product.is_available is True
    assert product.variants[0].attributes == {"Color": "Black"}
    assert product.images == ["https://a.jpg", "https://b.jpg"]
    assert product.shipping_info.estimated_delivery == "12 days"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_aliexpress_error_response_raises():
    supplier = _aliexpress(
        lambda request: httpx.Response(
            200,
            json={"error_response": {"code": "IllegalAccessToken", "msg": "token expired"}},
        )
    )

    with pytest.raises(SupplierError) as exc_info:
        await supplier.get_product("1")

    assert exc_info.value.code == "IllegalAccessToken"
    assert exc_info.value.message == "token expired"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_aliexpress_order_status_maps_states():
    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(_form(request)["single_order_query"]) == {"order_id": "8123"}
        return httpx.Response(
            200,
            json={
                "aliexpress_trade_ds_order_get_response": {
                    "result": {
                        "order_status": "WAIT_BUYER_ACCEPT_GOODS",
                        "logistics_info_list": {
                            "ae_order_logistics_info": [
                                {"logistics_no": "LP001", "logistics_service": "Cainiao"}
                            ]
                        },
                    }
                }
            },
        )

    status = await _aliexpress(handler).get_order_status("8123")

    assert status.status == "shipped"
    assert status.tracking_number == "LP001"
    assert status.carrier == "Cainiao"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_aliexpress_create_order_reads_order_list():
    def handler(request: httpx.Request) -> httpx.Response:
        placed = json.loads(_form(request)["param_place_order_request"])
        assert placed["out_order_id"] == "ORD-1-ABC"
        assert placed["product_items"] == [
            {"product_id": "p-1", "sku_attr": "red", "product_count": 2}
        ]
        return httpx.Response(
            200,
            json={
                "aliexpress_trade_order_create_response": {
                    "result": {"order_list": {"number": [8123]}}
                }
            },
        )

    result = await _aliexpress(handler).create_order(_order_request())

    assert result.order_id == "8123"
