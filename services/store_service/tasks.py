"""Background jobs for the store service: outbox, sweeps and supplier syncs."""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager

from libs.common.config import get_settings
from libs.common.logging import get_logger
from libs.db.config import AsyncSessionLocal
from services.store_service.services.checkout import expire_stale_pending_orders
from services.store_service.services.outbox import drain_outbox, process_order_paid
from services.store_service.services.sync import (
    sync_inventory,
    sync_prices,
    sync_tracking,
)
from services.store_service.suppliers import load_supplier_manager

logger = get_logger(__name__)


@asynccontextmanager
async def _session_and_manager(cache=None):
    async with AsyncSessionLocal() as db:
        manager = await load_supplier_manager(db, cache=cache)
        yield db, manager


async def fulfill_paid_order(order_id: str, cache=None) -> None:
    """Handle one order.paid event (enqueued right after payment confirmation)."""
    settings = get_settings()
    async with _session_and_manager(cache) as (db, manager):
        status = await process_order_paid(
            db, uuid.UUID(order_id), manager, settings.OUTBOX_MAX_ATTEMPTS
        )
    logger.info(f"Fulfillment job for {order_id}: {status}")


async def drain_pending_outbox(cache=None) -> None:
    """Pick up order.paid events whose job was never enqueued or failed."""
    settings = get_settings()
    async with _session_and_manager(cache) as (db, manager):
        await drain_outbox(db, manager, max_attempts=settings.OUTBOX_MAX_ATTEMPTS)


async def expire_pending_orders() -> None:
    settings = get_settings()
    async with AsyncSessionLocal() as db:
        await expire_stale_pending_orders(
            db, ttl_minutes=settings.PENDING_ORDER_TTL_MINUTES
        )


async def run_tracking_sync(cache=None) -> None:
    async with _session_and_manager(cache) as (db, manager):
        await sync_tracking(db, manager)


async def run_inventory_sync(cache=None) -> None:
    async with _session_and_manager(cache) as (db, manager):
        await sync_inventory(db, manager)


async def run_price_sync(cache=None) -> None:
    async with _session_and_manager(cache) as (db, manager):
        await sync_prices(db, manager)
