"""Place supplier orders for paid orders, at most once per order.

The order_fulfillment AutomationLog row is the claim: it is unique per order,
so of two concurrent runs only one inserts it. A failed run leaves the row in
`failed`; the next run re-claims it with a conditional update that only one
caller can win.
"""

import enum
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.store_service.errors import FulfillmentPreconditionError
from services.store_service.models import (
    AutomationLog,
    AutomationStatus,
    AutomationType,
    FulfillmentStatus,
    Order,
    OrderStatus,
    PaymentStatus,
    SupplierType,
)
from services.store_service.suppliers import (
    SupplierAddress,
    SupplierManager,
    SupplierOrderItem,
    SupplierOrderRequest,
)
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

PROCESSING_NOTE = "Order placed with supplier"


class FulfillmentOutcome(str, enum.Enum):
    COMPLETED = "completed"
    ALREADY_PROCESSED = "already_processed"
    FAILED = "failed"


@dataclass
class FulfillmentResult:
    order_id: uuid.UUID
    outcome: FulfillmentOutcome
    supplier_order_ids: dict = field(default_factory=dict)
    error: Optional[str] = None


async def _existing_log(db: AsyncSession, order_id: uuid.UUID) -> Optional[AutomationLog]:
    result = await db.execute(
        select(AutomationLog).where(
            AutomationLog.order_id == order_id,
            AutomationLog.automation_type == AutomationType.ORDER_FULFILLMENT,
        )
    )
    return result.scalar_one_or_none()


async def _claim(
    db: AsyncSession,
    order_id: uuid.UUID,
    order_number: str,
    existing: Optional[AutomationLog],
) -> Optional[AutomationLog]:
    """Return the running log row if this caller won the claim, else None."""
    if existing is None:
        log = AutomationLog(
            automation_type=AutomationType.ORDER_FULFILLMENT,
            status=AutomationStatus.RUNNING,
            order_id=order_id,
            details={"order_number": order_number},
        )
        db.add(log)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            return None
        return log

    result = await db.execute(
        update(AutomationLog)
        .where(
            AutomationLog.id == existing.id,
            AutomationLog.status == AutomationStatus.FAILED,
        )
        .values(
            status=AutomationStatus.RUNNING,
            attempts=AutomationLog.attempts + 1,
            error_message=None,
            started_at=utc_now(),
            completed_at=None,
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if result.rowcount != 1:
        return None
    await db.refresh(existing)
    return existing


def _group_by_supplier(items: list[dict]) -> dict[str, list[dict]]:
    groups: dict[str, list[dict]] = defaultdict(list)
    for item in items:
        groups[item.get("supplier") or SupplierType.ALIEXPRESS.value].append(item)
    return dict(groups)


def _supplier_request(order: Order, items: list[dict]) -> SupplierOrderRequest:
    return SupplierOrderRequest(
        reference=order.order_number,
        items=[
            SupplierOrderItem(
                product_id=item["supplier_product_id"],
                variant_id=item.get("variant_id"),
                sku=item.get("sku"),
                quantity=item["quantity"],
                price=item["price"],
            )
            for item in items
        ],
        shipping_address=SupplierAddress.model_validate(order.shipping_address),
        currency=order.currency,
    )


async def fulfill_order(
    db: AsyncSession, order_id: uuid.UUID, manager: SupplierManager
) -> FulfillmentResult:
    """
    Place one supplier order per supplier for a paid order.

    Supplier orders already recorded by an earlier attempt are not placed
    again. On failure the log row is marked failed and the order is left
    as it was, ready for a retry.
    """
    order = await db.get(Order, order_id)
    if order is None:
        raise FulfillmentPreconditionError(f"Order {order_id} not found")
    if order.payment_status != PaymentStatus.PAID:
        raise FulfillmentPreconditionError(f"Order {order.order_number} is not paid")

    order_number = order.order_number
    existing = await _existing_log(db, order_id)
    if existing is not None and existing.status in (
        AutomationStatus.RUNNING,
        AutomationStatus.COMPLETED,
    ):
        logger.info(f"Fulfillment for {order_number} already {existing.status.value}")
        return FulfillmentResult(
            order_id,
            FulfillmentOutcome.ALREADY_PROCESSED,
            dict(order.supplier_order_ids or {}),
        )

    log = await _claim(db, order_id, order_number, existing)
    if log is None:
        logger.info(f"Lost fulfillment claim for {order_number}")
        return FulfillmentResult(order_id, FulfillmentOutcome.ALREADY_PROCESSED)

    placed = dict(order.supplier_order_ids or {})
    try:
        for supplier_value, items in _group_by_supplier(order.items).items():
            if supplier_value in placed:
                continue
            request = _supplier_request(order, items)
            result = await manager.create_order(SupplierType(supplier_value), request)
            placed[supplier_value] = result.order_id
            order.supplier_order_ids = dict(placed)
            await db.commit()
    except Exception as e:
        error = str(e) or type(e).__name__
        logger.error(f"Fulfillment failed for {order_number}: {error}")
        log.status = AutomationStatus.FAILED
        log.error_message = error
        log.completed_at = utc_now()
        log.details = {"order_number": order_number, "supplier_order_ids": placed}
        await db.commit()
        return FulfillmentResult(order_id, FulfillmentOutcome.FAILED, placed, error)

    order.status = OrderStatus.PROCESSING
    order.fulfillment_status = FulfillmentStatus.PROCESSING
    order.status_note = PROCESSING_NOTE
    log.status = AutomationStatus.COMPLETED
    log.completed_at = utc_now()
    log.details = {"order_number": order_number, "supplier_order_ids": placed}
    await db.commit()

    logger.info(
        f"Fulfilled order {order_number}",
        extra={"extra_fields": {"supplier_order_ids": placed}},
    )
    return FulfillmentResult(order_id, FulfillmentOutcome.COMPLETED, placed)
