"""Unit tests for cart_ops.

Tests call cart_ops functions directly with the db_session fixture.
"""

import uuid
from decimal import Decimal

import pytest
from services.store_service.errors import (
    CartItemNotFoundError,
    CheckoutValidationError,
    ProductNotFoundError,
)
from services.store_service.services.cart_ops import (
    add_item,
    cart_totals,
    clear_cart,
    get_or_create_cart,
    remove_item,
    update_quantity,
)
from tests.factories import ProductFactory, variant

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _product(db, **overrides):
    product = ProductFactory.create(**overrides)
    db.add(product)
    await db.commit()
    return product


# ---------------------------------------------------------------------------
# get_or_create_cart
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_guest_cart_requires_session(db_session):
    with pytest.raises(CheckoutValidationError):
        await get_or_create_cart(db_session)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cart_is_reused_per_owner(db_session):
    guest1 = await get_or_create_cart(db_session, session_id="sess-1")
    guest2 = await get_or_create_cart(db_session, session_id="sess-1")
    member = await get_or_create_cart(db_session, user_id="user-1", session_id="sess-1")

    assert guest1.id == guest2.id
    assert member.id != guest1.id
    assert member.user_id == "user-1"


# ---------------------------------------------------------------------------
# add_item
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_add_same_item_merges_quantity(db_session):
    product = await _product(db_session)
    cart = await get_or_create_cart(db_session, session_id="sess-merge")

    await add_item(db_session, cart, product_id=product.id, quantity=1)
    await add_item(db_session, cart, product_id=product.id, quantity=2)

    assert len(cart.items) == 1
    assert cart.items[0].quantity == 3
    totals = cart_totals(cart)
    assert totals.total_items == 3
    assert totals.total_price == Decimal("600.00")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_variants_are_separate_lines_priced_by_variant(db_session):
    product = await _product(
        db_session, variants=[variant("v-red", "250.00"), variant("v-blue", "260.00")]
    )
    cart = await get_or_create_cart(db_session, session_id="sess-variants")

    await add_item(db_session, cart, product_id=product.id, variant_id="v-red")
    await add_item(db_session, cart, product_id=product.id, variant_id="v-blue", quantity=2)
    await add_item(db_session, cart, product_id=product.id)

    assert len(cart.items) == 3
    # 250 + 2 * 260 + 200
    assert cart_totals(cart).total_price == Decimal("970.00")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_add_unknown_product_raises(db_session):
    cart = await get_or_create_cart(db_session, session_id="sess-unknown")

    with pytest.raises(ProductNotFoundError):
        await add_item(db_session, cart, product_id=uuid.uuid4())


@pytest.mark.asyncio
@pytest.mark.unit
async def test_add_unknown_variant_raises(db_session):
    product = await _product(db_session, variants=[variant("v-1", "210.00")])
    cart = await get_or_create_cart(db_session, session_id="sess-bad-variant")

    with pytest.raises(CheckoutValidationError):
        await add_item(db_session, cart, product_id=product.id, variant_id="v-9")
    assert cart.items == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_add_rejects_non_positive_quantity(db_session):
    product = await _product(db_session)
    cart = await get_or_create_cart(db_session, session_id="sess-zero")

    with pytest.raises(CheckoutValidationError):
        await add_item(db_session, cart, product_id=product.id, quantity=0)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_merged_quantity_cannot_exceed_line_cap(db_session):
    product = await _product(db_session)
    cart = await get_or_create_cart(db_session, session_id="sess-cap")
    await add_item(db_session, cart, product_id=product.id, quantity=99)

    with pytest.raises(CheckoutValidationError):
        await add_item(db_session, cart, product_id=product.id, quantity=2)
    assert cart.items[0].quantity == 99

    with pytest.raises(CheckoutValidationError):
        await update_quantity(db_session, cart, product_id=product.id, quantity=100)
    assert cart.items[0].quantity == 99


# ---------------------------------------------------------------------------
# update / remove / clear
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_update_quantity_sets_and_removes(db_session):
    product = await _product(db_session)
    cart = await get_or_create_cart(db_session, session_id="sess-update")
    await add_item(db_session, cart, product_id=product.id, quantity=1)

    await update_quantity(db_session, cart, product_id=product.id, quantity=5)
    assert cart.items[0].quantity == 5

    await update_quantity(db_session, cart, product_id=product.id, quantity=0)
    assert cart.items == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_update_or_remove_missing_line_raises(db_session):
    cart = await get_or_create_cart(db_session, session_id="sess-missing")

    with pytest.raises(CartItemNotFoundError):
        await update_quantity(db_session, cart, product_id=uuid.uuid4(), quantity=2)
    with pytest.raises(CartItemNotFoundError):
        await remove_item(db_session, cart, product_id=uuid.uuid4())


@pytest.mark.asyncio
@pytest.mark.unit
async def test_remove_only_matching_variant(db_session):
    product = await _product(db_session, variants=[variant("v-1", "210.00")])
    cart = await get_or_create_cart(db_session, session_id="sess-remove")
    await add_item(db_session, cart, product_id=product.id)
    await add_item(db_session, cart, product_id=product.id, variant_id="v-1")

    await remove_item(db_session, cart, product_id=product.id, variant_id="v-1")

    assert [(i.product_id, i.variant_id) for i in cart.items] == [(product.id, None)]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_clear_cart_empties_totals(db_session):
    product = await _product(db_session)
    cart = await get_or_create_cart(db_session, session_id="sess-clear")
    await add_item(db_session, cart, product_id=product.id, quantity=4)

    await clear_cart(db_session, cart)

    totals = cart_totals(cart)
    assert totals.total_items == 0
    assert totals.total_price == Decimal("0.00")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_totals_follow_current_product_price(db_session):
    product = await _product(db_session)
    cart = await get_or_create_cart(db_session, session_id="sess-reprice")
    await add_item(db_session, cart, product_id=product.id, quantity=2)

    product.supplier_cost = Decimal("150.00")
    await db_session.commit()

    assert cart_totals(cart).total_price == Decimal("600.00")
