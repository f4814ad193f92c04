"""Integration tests for the public catalog endpoints."""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from libs.common.datetime_utils import utc_now
from services.store_service.models import StockStatus
from tests.factories import ProductFactory, variant

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _seed(db, *products):
    db.add_all(products)
    await db.commit()
    return products


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_search_ranks_exact_title_then_title_then_description(client, db_session):
    now = utc_now()
    description_hit = ProductFactory.create(
        title="Reading light",
        description="Clip-on lamp for books",
        created_at=now,
    )
    title_hit = ProductFactory.create(
        title="Desk Lamp Pro", description="Adjustable arm", created_at=now - timedelta(minutes=1)
    )
    exact_hit = ProductFactory.create(
        title="Lamp", description="Simple", created_at=now - timedelta(minutes=2)
    )
    unrelated = ProductFactory.create(title="Wireless mouse", description="2.4GHz")
    await _seed(db_session, description_hit, title_hit, exact_hit, unrelated)

    response = await client.get("/store/products", params={"q": "lamp"})

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["total"] == 3
    assert [p["title"] for p in data["items"]] == ["Lamp", "Desk Lamp Pro", "Reading light"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_search_matches_category(client, db_session):
    await _seed(
        db_session,
        ProductFactory.create(title="Scarf", description="Wool", category="fashion"),
        ProductFactory.create(title="Router", description="Wi-Fi 6"),
    )

    response = await client.get("/store/products", params={"q": "fashion"})

    assert [p["title"] for p in response.json()["items"]] == ["Scarf"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_search_requires_every_word_anywhere(client, db_session):
    await _seed(
        db_session,
        ProductFactory.create(
            title="Wireless Bluetooth Headphones", description="Over-ear, 30h battery"
        ),
        ProductFactory.create(title="Wired Headphones", description="3.5mm jack"),
        ProductFactory.create(
            title="Speaker", description="Wireless speaker", category="audio"
        ),
    )

    response = await client.get("/store/products", params={"q": "wireless headphones"})
    assert response.json()["total"] == 1
    assert response.json()["items"][0]["title"] == "Wireless Bluetooth Headphones"

    # words may come from different fields
    response = await client.get("/store/products", params={"q": "audio  wireless"})
    assert [p["title"] for p in response.json()["items"]] == ["Speaker"]

@pytest.mark.asyncio
@pytest.mark.integration
async def test_filters_by_category_price_and_stock(client, db_session):
    await _seed(
        db_session,
        ProductFactory.create(title="Cheap cable", supplier_cost=Decimal("10.00")),
        ProductFactory.create(title="Speaker", supplier_cost=Decimal("100.00")),
        ProductFactory.create(
            title="Sold out speaker",
            supplier_cost=Decimal("100.00"),
            stock_status=StockStatus.OUT_OF_STOCK,
        ),
        ProductFactory.create(title="Dress", category="fashion"),
    )

    response = await client.get(
        "/store/products",
        params={
            "category": "electronics",
            "min_price": "50",
            "max_price": "250",
            "in_stock": "true",
        },
    )

    assert response.status_code == 200
    assert [p["title"] for p in response.json()["items"]] == ["Speaker"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_pagination(client, db_session):
    await _seed(
        db_session, *[ProductFactory.create(title=f"Item {i}") for i in range(5)]
    )

    response = await client.get("/store/products", params={"page": 2, "page_size": 2})

    data = response.json()
    assert data["total"] == 5
    assert data["pages"] == 3
    assert data["page"] == 2
    assert len(data["items"]) == 2


@pytest.mark.asyncio
@pytest.mark.integration
async def test_invalid_page_size_rejected(client):
    response = await client.get("/store/products", params={"page_size": 0})

    assert response.status_code == 422


# ---------------------------------------------------------------------------
# Autocomplete
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_suggest_returns_newest_in_stock_matches(client, db_session):
    now = utc_now()
    await _seed(
        db_session,
        ProductFactory.create(title="Old lamp", created_at=now - timedelta(days=1)),
        ProductFactory.create(title="New lamp", created_at=now),
        ProductFactory.create(
            title="Sold out lamp", stock_status=StockStatus.OUT_OF_STOCK, created_at=now
        ),
        ProductFactory.create(
            title="Reading light", description="Clip-on lamp", created_at=now - timedelta(hours=1)
        ),
        ProductFactory.create(
            title="Lamp shade", description="Linen", created_at=now - timedelta(days=2)
        ),
    )

    response = await client.get("/store/products/suggest", params={"q": "lamp"})

    assert response.status_code == 200, response.text
    suggestions = response.json()["suggestions"]
    assert [s["title"] for s in suggestions] == [
        "New lamp",
        "Reading light",
        "Old lamp",
        "Lamp shade",
    ]
    assert set(suggestions[0]) == {"id", "title", "images", "final_price", "category"}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_suggest_short_query_and_limit(client, db_session):
    await _seed(
        db_session, *[ProductFactory.create(title=f"Cable {i}") for i in range(12)]
    )

    short = await client.get("/store/products/suggest", params={"q": "c"})
    assert short.json() == {"suggestions": []}

    response = await client.get("/store/products/suggest", params={"q": "cable"})
    assert len(response.json()["suggestions"]) == 10

# ---------------------------------------------------------------------------
# Detail
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_product_detail_exposes_retail_prices_only(client, db_session):
    [product] = await _seed(
        db_session,
        ProductFactory.create(variants=[variant("v-1", "215.00")]),
    )

    response = await client.get(f"/store/products/{product.id}")

    assert response.status_code == 200
    data = response.json()
    assert data["final_price"] == "200.00"
    assert data["variants"][0]["price"] == "215.00"
    assert "supplier_cost" not in data
    assert "markup_multiplier" not in data


@pytest.mark.asyncio
@pytest.mark.integration
async def test_product_detail_not_found(client):
    response = await client.get(f"/store/products/{uuid.uuid4()}")

    assert response.status_code == 404
    assert response.json()["detail"] == "Product not found"
