"""Integration tests for the cart endpoints."""

import uuid

import pytest
from libs.auth.dependencies import get_optional_user
from tests.factories import ProductFactory, variant
from tests.fakes import SHOPPER

GUEST = {"X-Session-ID": "guest-session-1"}


async def _product(db, **overrides):
    product = ProductFactory.create(**overrides)
    db.add(product)
    await db.commit()
    return product


@pytest.mark.asyncio
@pytest.mark.integration
async def test_cart_requires_owner(client):
    response = await client.get("/store/cart")

    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.integration
async def test_guest_cart_lifecycle(client, db_session):
    product = await _product(db_session, variants=[variant("v-1", "250.00")])
    pid = str(product.id)

    response = await client.post(
        "/store/cart/items", json={"product_id": pid, "quantity": 2}, headers=GUEST
    )
    assert response.status_code == 200, response.text
    response = await client.post(
        "/store/cart/items",
        json={"product_id": pid, "variant_id": "v-1", "quantity": 1},
        headers=GUEST,
    )
    data = response.json()
    assert data["total_items"] == 3
    assert data["total_price"] == "650.00"

    response = await client.patch(
        "/store/cart/items", json={"product_id": pid, "quantity": 5}, headers=GUEST
    )
    assert response.json()["total_price"] == "1250.00"

    response = await client.request(
        "DELETE",
        "/store/cart/items",
        json={"product_id": pid, "variant_id": "v-1"},
        headers=GUEST,
    )
    data = response.json()
    assert [(i["variant_id"], i["quantity"]) for i in data["items"]] == [(None, 5)]

    response = await client.delete("/store/cart", headers=GUEST)
    assert response.json()["items"] == []

    # Same session id as a query parameter resolves the same cart
    by_query = await client.get("/store/cart", params={"session_id": "guest-session-1"})
    assert by_query.json()["id"] == data["id"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_cart_line_shows_current_price(client, db_session):
    product = await _product(db_session)
    await client.post(
        "/store/cart/items", json={"product_id": str(product.id)}, headers=GUEST
    )

    response = await client.get("/store/cart", headers=GUEST)

    [line] = response.json()["items"]
    assert line["unit_price"] == "200.00"
    assert line["line_total"] == "200.00"
    assert line["title"] == product.title


@pytest.mark.asyncio
@pytest.mark.integration
async def test_add_unknown_product_is_rejected(client):
    response = await client.post(
        "/store/cart/items", json={"product_id": str(uuid.uuid4())}, headers=GUEST
    )

    assert response.status_code == 400
    assert "Product not found" in response.json()["detail"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_update_missing_line_is_404(client):
    response = await client.patch(
        "/store/cart/items",
        json={"product_id": str(uuid.uuid4()), "quantity": 1},
        headers=GUEST,
    )

    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_member_cart_is_keyed_by_user(client, store_app, db_session):
    store_app.dependency_overrides[get_optional_user] = lambda: SHOPPER
    product = await _product(db_session)

    await client.post("/store/cart/items", json={"product_id": str(product.id)})
    # A different session header still resolves the member's cart
    response = await client.get("/store/cart", headers={"X-Session-ID": "other"})

    assert response.json()["total_items"] == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_adding_past_line_cap_is_rejected(client, db_session):
    product = await _product(db_session)
    pid = str(product.id)

    response = await client.post(
        "/store/cart/items", json={"product_id": pid, "quantity": 99}, headers=GUEST
    )
    assert response.status_code == 200, response.text

    response = await client.post(
        "/store/cart/items", json={"product_id": pid, "quantity": 2}, headers=GUEST
    )
    assert response.status_code == 400
    assert "99" in response.json()["detail"]

    cart = await client.get("/store/cart", headers=GUEST)
    assert cart.json()["total_items"] == 99
