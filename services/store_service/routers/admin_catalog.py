"""Admin catalog router: product listing, supplier import and sync triggers."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.common.rate_limit import admin_limit
from libs.db.session import get_async_db
from services.store_service.models import Product, SupplierType, SyncStatus
from services.store_service.routers._helpers import get_supplier_manager
from services.store_service.schemas import (
    AdminProductResponse,
    ProductImportRequest,
    SyncSummaryResponse,
)
from services.store_service.services import sync
from services.store_service.suppliers import SupplierManager
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["admin-store"])
logger = get_logger(__name__)


@router.get("/products", response_model=list[AdminProductResponse])
async def list_products_admin(
    supplier: Optional[SupplierType] = None,
    sync_status: Optional[SyncStatus] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """List products with supplier cost, markup and sync state."""
    query = select(Product)
    if supplier:
        query = query.where(Product.supplier == supplier)
    if sync_status:
        query = query.where(Product.sync_status == sync_status)
    query = query.order_by(Product.created_at.desc()).offset(skip).limit(limit)

    result = await db.execute(query)
    return result.scalars().all()


@router.post("/products/import", response_model=SyncSummaryResponse)
@admin_limit
async def import_products(
    request: Request,
    import_in: ProductImportRequest,
    current_user: AuthUser = Depends(require_admin),
    manager: SupplierManager = Depends(get_supplier_manager),
    db: AsyncSession = Depends(get_async_db),
):
    """Import supplier search results as priced products."""
    logger.info(
        f"Product import from {import_in.supplier.value} by {current_user.email}"
    )
    summary = await sync.import_products(
        db,
        manager,
        supplier=import_in.supplier,
        query=import_in.query or "",
        category=import_in.category,
        max_products=import_in.max_products,
    )
    return summary.as_dict()


# ============================================================================
# SYNC TRIGGERS
# ============================================================================


@router.post("/sync/inventory", response_model=SyncSummaryResponse)
@admin_limit
async def trigger_inventory_sync(
    request: Request,
    current_user: AuthUser = Depends(require_admin),
    manager: SupplierManager = Depends(get_supplier_manager),
    db: AsyncSession = Depends(get_async_db),
):
    summary = await sync.sync_inventory(db, manager)
    return summary.as_dict()


@router.post("/sync/prices", response_model=SyncSummaryResponse)
@admin_limit
async def trigger_price_sync(
    request: Request,
    current_user: AuthUser = Depends(require_admin),
    manager: SupplierManager = Depends(get_supplier_manager),
    db: AsyncSession = Depends(get_async_db),
):
    summary = await sync.sync_prices(db, manager)
    return summary.as_dict()


@router.post("/sync/tracking", response_model=SyncSummaryResponse)
@admin_limit
async def trigger_tracking_sync(
    request: Request,
    current_user: AuthUser = Depends(require_admin),
    manager: SupplierManager = Depends(get_supplier_manager),
    db: AsyncSession = Depends(get_async_db),
):
    summary = await sync.sync_tracking(db, manager)
    return summary.as_dict()
