"""Order lookup for shoppers."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from pydantic import EmailStr
from services.store_service.models import Order
from services.store_service.schemas import OrderResponse
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store"])


@router.get("/orders/track", response_model=OrderResponse)
async def track_order(
    order_id: Optional[uuid.UUID] = None,
    email: Optional[EmailStr] = None,
    order_number: Optional[str] = Query(None, max_length=40),
    db: AsyncSession = Depends(get_async_db),
):
    """Look up an order by id, or by customer email plus order number."""
    if order_id:
        order = await db.get(Order, order_id)
    elif email and order_number:
        result = await db.execute(
            select(Order).where(
                Order.order_number == order_number.strip(),
                func.lower(Order.customer_email) == str(email).lower(),
            )
        )
        order = result.scalar_one_or_none()
    else:
        raise HTTPException(
            status_code=400,
            detail="Provide order_id, or email and order_number",
        )

    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.get("/orders/me", response_model=list[OrderResponse])
async def list_my_orders(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    result = await db.execute(
        select(Order)
        .where(Order.user_id == current_user.user_id)
        .order_by(Order.created_at.desc())
    )
    return result.scalars().all()
