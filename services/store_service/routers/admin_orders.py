"""Admin orders router: order listing and manual fulfillment."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.store_service.errors import StoreError
from services.store_service.models import (
    FulfillmentStatus,
    Order,
    OrderStatus,
    PaymentStatus,
)
from services.store_service.routers._helpers import get_supplier_manager, http_error
from services.store_service.schemas import AdminOrderResponse, FulfillmentResponse
from services.store_service.services.fulfillment import fulfill_order
from services.store_service.suppliers import SupplierManager
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["admin-store"])
logger = get_logger(__name__)


@router.get("/orders", response_model=list[AdminOrderResponse])
async def list_orders(
    status: Optional[OrderStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
    fulfillment_status: Optional[FulfillmentStatus] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    query = select(Order)
    if status:
        query = query.where(Order.status == status)
    if payment_status:
        query = query.where(Order.payment_status == payment_status)
    if fulfillment_status:
        query = query.where(Order.fulfillment_status == fulfillment_status)
    query = query.order_by(Order.created_at.desc()).offset(skip).limit(limit)

    result = await db.execute(query)
    return result.scalars().all()


@router.get("/orders/{order_id}", response_model=AdminOrderResponse)
async def get_order(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    order = await db.get(Order, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.post("/orders/{order_id}/fulfill", response_model=FulfillmentResponse)
async def fulfill_order_manually(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    manager: SupplierManager = Depends(get_supplier_manager),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Run fulfillment for a paid order. Safe to repeat: an order already
    fulfilled (or being fulfilled) reports already_processed.
    """
    logger.info(f"Manual fulfillment of {order_id} by {current_user.email}")
    try:
        result = await fulfill_order(db, order_id, manager)
    except StoreError as e:
        raise http_error(e)

    return FulfillmentResponse(
        order_id=result.order_id,
        result=result.outcome.value,
        supplier_order_ids=result.supplier_order_ids,
        error=result.error,
    )
