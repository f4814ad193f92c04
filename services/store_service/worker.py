"""ARQ worker for store fulfillment, payment sweeps and supplier syncs."""

from arq import cron
from libs.common.arq_config import get_redis_settings
from libs.common.logging import configure_logging, get_logger
from services.store_service.suppliers import build_supplier_cache

logger = get_logger(__name__)


async def startup(ctx: dict):
    configure_logging()
    ctx["supplier_cache"] = await build_supplier_cache()


async def task_fulfill_order(ctx: dict, order_id: str):
    from services.store_service.tasks import fulfill_paid_order

    logger.info(f"Running: fulfill_paid_order {order_id}")
    await fulfill_paid_order(order_id, cache=ctx.get("supplier_cache"))


async def task_drain_outbox(ctx: dict):
    from services.store_service.tasks import drain_pending_outbox

    await drain_pending_outbox(cache=ctx.get("supplier_cache"))


async def task_expire_pending_orders(ctx: dict):
    from services.store_service.tasks import expire_pending_orders

    logger.info("Running: expire_pending_orders")
    await expire_pending_orders()


async def task_sync_tracking(ctx: dict):
    from services.store_service.tasks import run_tracking_sync

    logger.info("Running: run_tracking_sync")
    await run_tracking_sync(cache=ctx.get("supplier_cache"))


async def task_sync_inventory(ctx: dict):
    from services.store_service.tasks import run_inventory_sync

    logger.info("Running: run_inventory_sync")
    await run_inventory_sync(cache=ctx.get("supplier_cache"))


async def task_sync_prices(ctx: dict):
    from services.store_service.tasks import run_price_sync

    logger.info("Running: run_price_sync")
    await run_price_sync(cache=ctx.get("supplier_cache"))


class WorkerSettings:
    redis_settings = get_redis_settings()
    on_startup = startup

    functions = [
        task_fulfill_order,
        task_drain_outbox,
        task_expire_pending_orders,
        task_sync_tracking,
        task_sync_inventory,
        task_sync_prices,
    ]

    cron_jobs = [
        cron(task_drain_outbox, second=0, run_at_startup=True),
        cron(
            task_expire_pending_orders,
            minute={0, 10, 20, 30, 40, 50},
            run_at_startup=True,
        ),
        cron(task_sync_tracking, minute={15, 45}),
        cron(task_sync_inventory, minute=5),
        cron(task_sync_prices, hour={2, 14}, minute=30),
    ]
