"""Admin supplier router: health, search, comparison, credentials and logs."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.store_service.models import (
    AutomationLog,
    AutomationStatus,
    AutomationType,
    SupplierCredential,
    SupplierType,
)
from services.store_service.routers._helpers import get_supplier_manager
from services.store_service.schemas import (
    AutomationLogResponse,
    SupplierCredentialResponse,
    SupplierCredentialUpdate,
    SupplierSearchRequest,
)
from services.store_service.suppliers import (
    ProductComparison,
    SupplierHealth,
    SupplierManager,
    SupplierSearchParams,
    SupplierSearchResponse,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["admin-store"])
logger = get_logger(__name__)


@router.get("/suppliers/health", response_model=list[SupplierHealth])
async def supplier_health(
    current_user: AuthUser = Depends(require_admin),
    manager: SupplierManager = Depends(get_supplier_manager),
):
    """Health of every configured supplier."""
    return await manager.check_health()


@router.post("/suppliers/search", response_model=dict[SupplierType, SupplierSearchResponse])
async def search_suppliers(
    search_in: SupplierSearchRequest,
    current_user: AuthUser = Depends(require_admin),
    manager: SupplierManager = Depends(get_supplier_manager),
):
    """Search configured suppliers concurrently; failing suppliers return no products."""
    params = SupplierSearchParams(**search_in.model_dump(exclude={"suppliers"}))
    return await manager.search_products(params, search_in.suppliers)


@router.get("/suppliers/compare", response_model=list[ProductComparison])
async def compare_suppliers(
    product_id: list[str] = Query(...),
    current_user: AuthUser = Depends(require_admin),
    manager: SupplierManager = Depends(get_supplier_manager),
):
    """Compare price, shipping and delivery for supplier product ids."""
    return await manager.compare_products(product_id)


@router.put(
    "/suppliers/{supplier_type}/credentials",
    response_model=SupplierCredentialResponse,
)
async def update_supplier_credentials(
    supplier_type: SupplierType,
    credentials_in: SupplierCredentialUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Store (or replace) the access token for a supplier account."""
    result = await db.execute(
        select(SupplierCredential).where(
            SupplierCredential.supplier_type == supplier_type
        )
    )
    credential = result.scalar_one_or_none()
    if credential is None:
        credential = SupplierCredential(supplier_type=supplier_type)
        db.add(credential)

    credential.access_token = credentials_in.access_token
    credential.refresh_token = credentials_in.refresh_token
    credential.expires_at = credentials_in.expires_at
    await db.commit()
    await db.refresh(credential)

    logger.info(
        f"Supplier credentials for {supplier_type.value} updated by {current_user.email}"
    )
    return credential


@router.get("/automation-logs", response_model=list[AutomationLogResponse])
async def list_automation_logs(
    automation_type: Optional[AutomationType] = None,
    status: Optional[AutomationStatus] = None,
    limit: int = Query(50, ge=1, le=200),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    query = select(AutomationLog)
    if automation_type:
        query = query.where(AutomationLog.automation_type == automation_type)
    if status:
        query = query.where(AutomationLog.status == status)
    query = query.order_by(AutomationLog.started_at.desc()).limit(limit)

    result = await db.execute(query)
    return result.scalars().all()
