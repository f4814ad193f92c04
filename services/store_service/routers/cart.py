"""Store cart router: guest and member carts."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from libs.auth.dependencies import get_optional_user
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.db.session import get_async_db
from services.store_service.errors import StoreError
from services.store_service.models import Cart
from services.store_service.routers._helpers import get_session_id, http_error
from services.store_service.schemas import (
    CartItemCreate,
    CartItemRemove,
    CartItemResponse,
    CartItemUpdate,
    CartResponse,
)
from services.store_service.services import cart_ops
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store"])


def _cart_response(cart: Cart) -> CartResponse:
    items = []
    for item in cart.items:
        unit_price = cart_ops.line_price(item)
        items.append(
            CartItemResponse(
                product_id=item.product_id,
                variant_id=item.variant_id,
                title=item.product.title,
                image=item.product.primary_image,
                quantity=item.quantity,
                unit_price=unit_price,
                line_total=unit_price * item.quantity,
            )
        )
    totals = cart_ops.cart_totals(cart)
    return CartResponse(
        id=cart.id,
        items=items,
        total_items=totals.total_items,
        total_price=totals.total_price,
        currency=get_settings().STORE_CURRENCY,
    )


async def _resolve_cart(
    db: AsyncSession, user: Optional[AuthUser], session_id: Optional[str]
) -> Cart:
    if not user and not session_id:
        raise HTTPException(
            status_code=400,
            detail="Provide a session_id (or X-Session-ID header) for guest carts",
        )
    return await cart_ops.get_or_create_cart(
        db, user_id=user.user_id if user else None, session_id=session_id
    )


@router.get("/cart", response_model=CartResponse)
async def get_cart(
    session_id: Optional[str] = Depends(get_session_id),
    current_user: Optional[AuthUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Get the current cart, creating an empty one if needed."""
    cart = await _resolve_cart(db, current_user, session_id)
    return _cart_response(cart)


@router.post("/cart/items", response_model=CartResponse)
async def add_cart_item(
    item_in: CartItemCreate,
    session_id: Optional[str] = Depends(get_session_id),
    current_user: Optional[AuthUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Add an item; an existing (product, variant) line is incremented."""
    cart = await _resolve_cart(db, current_user, session_id)
    try:
        cart = await cart_ops.add_item(
            db,
            cart,
            product_id=item_in.product_id,
            variant_id=item_in.variant_id,
            quantity=item_in.quantity,
        )
    except StoreError as e:
        raise http_error(e)
    return _cart_response(cart)


@router.patch("/cart/items", response_model=CartResponse)
async def update_cart_item(
    item_in: CartItemUpdate,
    session_id: Optional[str] = Depends(get_session_id),
    current_user: Optional[AuthUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Set a line's quantity. Zero or less removes it."""
    cart = await _resolve_cart(db, current_user, session_id)
    try:
        cart = await cart_ops.update_quantity(
            db,
            cart,
            product_id=item_in.product_id,
            variant_id=item_in.variant_id,
            quantity=item_in.quantity,
        )
    except StoreError as e:
        raise http_error(e)
    return _cart_response(cart)


@router.delete("/cart/items", response_model=CartResponse)
async def remove_cart_item(
    item_in: CartItemRemove,
    session_id: Optional[str] = Depends(get_session_id),
    current_user: Optional[AuthUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db),
):
    cart = await _resolve_cart(db, current_user, session_id)
    try:
        cart = await cart_ops.remove_item(
            db, cart, product_id=item_in.product_id, variant_id=item_in.variant_id
        )
    except StoreError as e:
        raise http_error(e)
    return _cart_response(cart)


@router.delete("/cart", response_model=CartResponse)
async def clear_cart(
    session_id: Optional[str] = Depends(get_session_id),
    current_user: Optional[AuthUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db),
):
    cart = await _resolve_cart(db, current_user, session_id)
    cart = await cart_ops.clear_cart(db, cart)
    return _cart_response(cart)
