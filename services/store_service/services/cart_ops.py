"""Server-side cart: one row per (product, variant), persisted on every change."""

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from libs.common.currency import round2
from libs.common.logging import get_logger
from services.store_service.errors import (
    CartItemNotFoundError,
    CheckoutValidationError,
    ProductNotFoundError,
)
from services.store_service.models import Cart, CartItem, Product
from services.store_service.schemas import MAX_LINE_QUANTITY
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass
class CartTotals:
    total_items: int
    total_price: Decimal


async def get_or_create_cart(
    db: AsyncSession,
    *,
    user_id: Optional[str] = None,
    session_id: Optional[str] = None,
) -> Cart:
    """Authenticated users own one cart by user id; guests by session id."""
    if not user_id and not session_id:
        raise CheckoutValidationError("A session id is required for guest carts")

    query = select(Cart)
    if user_id:
        query = query.where(Cart.user_id == user_id)
    else:
        query = query.where(Cart.session_id == session_id, Cart.user_id.is_(None))
    cart = (await db.execute(query.limit(1))).scalar_one_or_none()
    if cart:
        return cart

    cart = Cart(user_id=user_id, session_id=session_id, items=[])
    db.add(cart)
    await db.commit()
    return cart


def _find_line(cart: Cart, product_id: uuid.UUID, variant_id: Optional[str]):
    return next(
        (
            item
            for item in cart.items
            if item.product_id == product_id and item.variant_id == variant_id
        ),
        None,
    )


async def _load_product(db: AsyncSession, product_id: uuid.UUID) -> Product:
    product = await db.get(Product, product_id)
    if not product:
        raise ProductNotFoundError(product_id)
    return product


def _check_line_quantity(quantity: int) -> None:
    if quantity > MAX_LINE_QUANTITY:
        raise CheckoutValidationError(
            f"Quantity cannot exceed {MAX_LINE_QUANTITY} per item"
        )


async def add_item(
    db: AsyncSession,
    cart: Cart,
    *,
    product_id: uuid.UUID,
    variant_id: Optional[str] = None,
    quantity: int = 1,
) -> Cart:
    """Add a line, or increase the quantity of the existing (product, variant) line."""
    if quantity < 1:
        raise CheckoutValidationError("Quantity must be at least 1")

    product = await _load_product(db, product_id)
    if variant_id and product.find_variant(variant_id) is None:
        raise CheckoutValidationError(
            f"Variant {variant_id} not found for product {product_id}"
        )

    line = _find_line(cart, product_id, variant_id)
    if line:
        _check_line_quantity(line.quantity + quantity)
        line.quantity += quantity
    else:
        _check_line_quantity(quantity)
        cart.items.append(
            CartItem(
                product_id=product_id,
                product=product,
                variant_id=variant_id,
                quantity=quantity,
            )
        )
    await db.commit()
    return cart


async def update_quantity(
    db: AsyncSession,
    cart: Cart,
    *,
    product_id: uuid.UUID,
    variant_id: Optional[str] = None,
    quantity: int,
) -> Cart:
    """Set a line's quantity; zero or less removes the line."""
    line = _find_line(cart, product_id, variant_id)
    if not line:
        raise CartItemNotFoundError(product_id, variant_id)

    if quantity <= 0:
        cart.items.remove(line)
    else:
        _check_line_quantity(quantity)
        line.quantity = quantity
    await db.commit()
    return cart


async def remove_item(
    db: AsyncSession,
    cart: Cart,
    *,
    product_id: uuid.UUID,
    variant_id: Optional[str] = None,
) -> Cart:
    line = _find_line(cart, product_id, variant_id)
    if not line:
        raise CartItemNotFoundError(product_id, variant_id)
    cart.items.remove(line)
    await db.commit()
    return cart


async def clear_cart(db: AsyncSession, cart: Cart) -> Cart:
    cart.items.clear()
    await db.commit()
    return cart


def line_price(item: CartItem) -> Decimal:
    return item.product.price_for(item.variant_id)


def cart_totals(cart: Cart) -> CartTotals:
    """Totals from current product prices, never from stored snapshots."""
    total_items = sum(item.quantity for item in cart.items)
    total_price = sum(
        (line_price(item) * item.quantity for item in cart.items), Decimal("0")
    )
    return CartTotals(total_items=total_items, total_price=round2(total_price))
