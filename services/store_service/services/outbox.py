"""Drain order.paid outbox events into fulfillment runs."""

import uuid
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.store_service.errors import FulfillmentPreconditionError
from services.store_service.models import OutboxEvent, OutboxEventType, OutboxStatus
from services.store_service.services.fulfillment import (
    FulfillmentOutcome,
    fulfill_order,
)
from services.store_service.suppliers import SupplierManager
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


async def _process_event(
    db: AsyncSession, event_id: uuid.UUID, manager: SupplierManager, max_attempts: int
) -> Optional[OutboxStatus]:
    event = await db.get(OutboxEvent, event_id, populate_existing=True)
    if event is None or event.status != OutboxStatus.PENDING:
        return None

    event.attempts += 1
    attempts = event.attempts
    order_id = event.order_id
    await db.commit()

    error = None
    try:
        result = await fulfill_order(db, order_id, manager)
        if result.outcome != FulfillmentOutcome.FAILED:
            new_status = OutboxStatus.PROCESSED
        else:
            error = result.error
            new_status = (
                OutboxStatus.FAILED if attempts >= max_attempts else OutboxStatus.PENDING
            )
    except FulfillmentPreconditionError as e:
        error = e.message
        new_status = OutboxStatus.FAILED

    # fulfill_order may have rolled back, which expires the event
    event = await db.get(OutboxEvent, event_id, populate_existing=True)
    event.status = new_status
    event.last_error = error
    if new_status != OutboxStatus.PENDING:
        event.processed_at = utc_now()
    await db.commit()
    return new_status


async def drain_outbox(
    db: AsyncSession,
    manager: SupplierManager,
    *,
    max_attempts: int = 5,
    limit: int = 50,
) -> dict[str, int]:
    """Process pending order.paid events, oldest first."""
    result = await db.execute(
        select(OutboxEvent.id)
        .where(
            OutboxEvent.event_type == OutboxEventType.ORDER_PAID,
            OutboxEvent.status == OutboxStatus.PENDING,
        )
        .order_by(OutboxEvent.created_at.asc())
        .limit(limit)
    )
    event_ids = list(result.scalars().all())

    counts = {"processed": 0, "retrying": 0, "failed": 0}
    for event_id in event_ids:
        status = await _process_event(db, event_id, manager, max_attempts)
        if status == OutboxStatus.PROCESSED:
            counts["processed"] += 1
        elif status == OutboxStatus.PENDING:
            counts["retrying"] += 1
        elif status == OutboxStatus.FAILED:
            counts["failed"] += 1

    if event_ids:
        logger.info(f"Outbox drain: {counts}")
    return counts


async def process_order_paid(
    db: AsyncSession, order_id: uuid.UUID, manager: SupplierManager, max_attempts: int = 5
) -> Optional[OutboxStatus]:
    """Handle the order.paid event for one order (the job the dispatcher enqueues)."""
    result = await db.execute(
        select(OutboxEvent.id).where(
            OutboxEvent.event_type == OutboxEventType.ORDER_PAID,
            OutboxEvent.order_id == order_id,
        )
    )
    event_id = result.scalar_one_or_none()
    if event_id is None:
        logger.warning(f"No order.paid event recorded for order {order_id}")
        return None
    return await _process_event(db, event_id, manager, max_attempts)
