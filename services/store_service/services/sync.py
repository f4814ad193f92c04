"""Supplier sync jobs and catalog import.

Each job writes one AutomationLog row and returns a SyncSummary. A failure on
one product or order is recorded in `errors` and the job moves on.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.store_service.models import (
    AutomationLog,
    AutomationStatus,
    AutomationType,
    FulfillmentStatus,
    Order,
    OrderStatus,
    Product,
    StockStatus,
    SupplierType,
    SyncStatus,
)
from services.store_service.pricing import (
    PricingMetadata,
    calculate_final_price,
    calculate_markup,
    detect_category,
)
from services.store_service.suppliers import (
    SupplierError,
    SupplierManager,
    SupplierOrderStatus,
    SupplierProduct,
    SupplierSearchParams,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

SHIPPED_STATES = {"shipped", "in_transit", "out_for_delivery", "delivered"}
DELIVERED_STATES = {"delivered", "finished", "completed"}


@dataclass
class SyncSummary:
    updated: int = 0
    added: int = 0
    errors: list[dict] = field(default_factory=list)

    def add_error(self, ref: str, message: str) -> None:
        self.errors.append({"id": ref, "error": message})

    def as_dict(self) -> dict:
        return {"updated": self.updated, "added": self.added, "errors": self.errors}


async def _start_log(db: AsyncSession, automation_type: AutomationType) -> AutomationLog:
    log = AutomationLog(
        automation_type=automation_type,
        status=AutomationStatus.RUNNING,
        details={},
    )
    db.add(log)
    await db.commit()
    return log


async def _finish_log(
    db: AsyncSession,
    log: AutomationLog,
    summary: SyncSummary,
    extra: Optional[dict] = None,
    error: Optional[str] = None,
) -> None:
    log.status = AutomationStatus.FAILED if error else AutomationStatus.COMPLETED
    log.error_message = error
    log.details = {**summary.as_dict(), **(extra or {})}
    log.completed_at = utc_now()
    await db.commit()


def build_variants(supplier_product: SupplierProduct, multiplier: Decimal) -> list[dict]:
    """Variant rows as stored on Product.variants, priced at retail."""
    return [
        {
            "id": v.id,
            "sku": v.sku,
            "title": v.name,
            "price": str(calculate_final_price(v.price, multiplier)),
            "inventory_quantity": v.inventory,
            "options": v.attributes,
        }
        for v in supplier_product.variants
    ]


def _product_ref(product: Product) -> str:
    return f"{product.supplier.value}:{product.supplier_product_id}"


async def _catalog(db: AsyncSession) -> list[Product]:
    result = await db.execute(select(Product).order_by(Product.created_at.asc()))
    return list(result.scalars().all())


# ============================================================================
# INVENTORY
# ============================================================================


async def sync_inventory(db: AsyncSession, manager: SupplierManager) -> SyncSummary:
    """Refresh stock status and per-variant inventory from each product's supplier."""
    summary = SyncSummary()
    log = await _start_log(db, AutomationType.INVENTORY_SYNC)

    for product in await _catalog(db):
        ref = _product_ref(product)
        try:
            fresh = await manager.get_product(
                product.supplier, product.supplier_product_id, use_cache=False
            )
        except SupplierError as e:
            product.sync_status = SyncStatus.FAILED
            summary.add_error(ref, e.message)
            continue

        stock_status = (
            StockStatus.IN_STOCK if fresh.is_available else StockStatus.OUT_OF_STOCK
        )
        inventory = {v.id: v.inventory for v in fresh.variants}
        variants = [
            {
                **v,
                "inventory_quantity": inventory.get(
                    str(v.get("id")), v.get("inventory_quantity")
                ),
            }
            for v in product.variants or []
        ]

        if stock_status != product.stock_status or variants != product.variants:
            summary.updated += 1
        product.stock_status = stock_status
        product.variants = variants
        product.sync_status = SyncStatus.SYNCED
        product.last_sync_at = utc_now()

    await db.commit()
    await _finish_log(db, log, summary)
    logger.info(
        f"Inventory sync: {summary.updated} updated, {len(summary.errors)} errors"
    )
    return summary


# ============================================================================
# PRICES
# ============================================================================


async def sync_prices(db: AsyncSession, manager: SupplierManager) -> SyncSummary:
    """Re-run the pricing engine against current supplier costs."""
    summary = SyncSummary()
    price_changes = []
    log = await _start_log(db, AutomationType.PRICE_UPDATE)

    for product in await _catalog(db):
        ref = _product_ref(product)
        try:
            fresh = await manager.get_product(
                product.supplier, product.supplier_product_id, use_cache=False
            )
            metadata = PricingMetadata(
                trending_score=fresh.trending_score
                if fresh.trending_score is not None
                else product.trending_score,
                sales_velocity=fresh.sales_velocity
                if fresh.sales_velocity is not None
                else product.sales_velocity,
            )
            multiplier = calculate_markup(fresh.price, product.category, metadata)
        except SupplierError as e:
            product.sync_status = SyncStatus.FAILED
            summary.add_error(ref, e.message)
            continue
        except ValueError as e:
            summary.add_error(ref, str(e))
            continue

        old_price = product.final_price
        product.supplier_cost = fresh.price
        product.markup_multiplier = multiplier
        product.trending_score = metadata.trending_score
        product.sales_velocity = metadata.sales_velocity
        if fresh.variants:
            product.variants = build_variants(fresh, multiplier)
        product.sync_status = SyncStatus.SYNCED
        product.last_sync_at = utc_now()

        if product.final_price != old_price:
            summary.updated += 1
            price_changes.append(
                {
                    "product_id": str(product.id),
                    "old_price": str(old_price),
                    "new_price": str(product.final_price),
                }
            )

    await db.commit()
    await _finish_log(db, log, summary, extra={"price_changes": price_changes})
    logger.info(f"Price sync: {summary.updated} prices changed")
    return summary


# ============================================================================
# TRACKING
# ============================================================================


def _rollup(statuses: list[SupplierOrderStatus]) -> Optional[FulfillmentStatus]:
    """Fulfillment state reached by every supplier order, if any."""
    states = [s.status.lower() for s in statuses]
    if all(state in DELIVERED_STATES for state in states):
        return FulfillmentStatus.DELIVERED
    if all(state in SHIPPED_STATES | DELIVERED_STATES for state in states):
        return FulfillmentStatus.SHIPPED
    return None


async def sync_tracking(db: AsyncSession, manager: SupplierManager) -> SyncSummary:
    """Pull tracking details for orders placed with suppliers."""
    summary = SyncSummary()
    log = await _start_log(db, AutomationType.TRACKING_SYNC)

    result = await db.execute(
        select(Order)
        .where(
            Order.fulfillment_status.in_(
                [FulfillmentStatus.PROCESSING, FulfillmentStatus.SHIPPED]
            )
        )
        .order_by(Order.created_at.asc())
    )
    orders = [o for o in result.scalars().all() if o.supplier_order_ids]

    for order in orders:
        statuses = []
        try:
            for supplier, supplier_order_id in order.supplier_order_ids.items():
                statuses.append(
                    await manager.get_order_status(
                        SupplierType(supplier), supplier_order_id
                    )
                )
        except (SupplierError, ValueError) as e:
            summary.add_error(order.order_number, getattr(e, "message", str(e)))
            continue

        tracked = next((s for s in statuses if s.tracking_number), None)
        changed = False
        if tracked and tracked.tracking_number != order.tracking_number:
            order.tracking_number = tracked.tracking_number
            order.tracking_url = tracked.tracking_url
            order.carrier = tracked.carrier
            changed = True

        tracking_status = ", ".join(sorted({s.status for s in statuses}))
        if tracking_status != order.tracking_status:
            order.tracking_status = tracking_status
            changed = True

        reached = _rollup(statuses)
        if reached and reached != order.fulfillment_status:
            order.fulfillment_status = reached
            order.status = (
                OrderStatus.DELIVERED
                if reached == FulfillmentStatus.DELIVERED
                else OrderStatus.SHIPPED
            )
            order.status_note = f"Order {reached.value}"
            changed = True

        if changed:
            summary.updated += 1

    await db.commit()
    await _finish_log(db, log, summary)
    logger.info(f"Tracking sync: {summary.updated} orders updated")
    return summary


# ============================================================================
# IMPORT
# ============================================================================


async def import_products(
    db: AsyncSession,
    manager: SupplierManager,
    *,
    supplier: SupplierType,
    query: str,
    category: Optional[str] = None,
    max_products: int = 20,
) -> SyncSummary:
    """Turn supplier search results into priced catalog products.

    Products already imported from the same supplier id are refreshed in
    place instead of duplicated.
    """
    summary = SyncSummary()
    log = await _start_log(db, AutomationType.PRODUCT_IMPORT)

    impl = manager.get_supplier(supplier)
    if impl is None:
        error = f"Supplier {supplier.value} is not configured"
        summary.add_error(supplier.value, error)
        await _finish_log(db, log, summary, error=error)
        return summary

    try:
        response = await impl.search_products(
            SupplierSearchParams(query=query, category=category, limit=min(max_products, 50))
        )
    except SupplierError as e:
        summary.add_error(supplier.value, e.message)
        await _finish_log(db, log, summary, error=e.message)
        return summary

    seen: set[str] = set()
    currency = get_settings().STORE_CURRENCY
    for item in response.products[:max_products]:
        if item.id in seen:
            continue
        seen.add(item.id)

        product_category = category or detect_category(item.name, item.description)
        try:
            multiplier = calculate_markup(
                item.price,
                product_category,
                PricingMetadata(
                    trending_score=item.trending_score,
                    sales_velocity=item.sales_velocity,
                ),
            )
        except ValueError as e:
            summary.add_error(item.id, str(e))
            continue

        product = (
            await db.execute(
                select(Product).where(
                    Product.supplier == supplier,
                    Product.supplier_product_id == item.id,
                )
            )
        ).scalar_one_or_none()
        if product is None:
            product = Product(supplier=supplier, supplier_product_id=item.id)
            db.add(product)
            summary.added += 1
        else:
            summary.updated += 1

        product.supplier_sku = item.sku
        product.title = item.name
        product.description = item.description
        product.images = list(item.images)
        product.currency = currency
        product.category = product_category
        product.supplier_cost = item.price
        product.markup_multiplier = multiplier
        product.variants = build_variants(item, multiplier)
        product.stock_status = (
            StockStatus.IN_STOCK if item.is_available else StockStatus.OUT_OF_STOCK
        )
        product.trending_score = item.trending_score
        product.sales_velocity = item.sales_velocity
        product.sync_status = SyncStatus.SYNCED
        product.last_sync_at = utc_now()

    await db.commit()
    await _finish_log(
        db, log, summary, extra={"supplier": supplier.value, "query": query}
    )
    logger.info(
        f"Imported from {supplier.value} for '{query}': "
        f"{summary.added} added, {summary.updated} updated"
    )
    return summary
