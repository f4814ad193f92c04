"""Shared dependencies and error translation for store routers."""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from libs.db.session import get_async_db
from services.store_service.errors import StoreError
from services.store_service.paystack_client import PaystackClient
from services.store_service.services.payment_gateways import (
    GatewayFactory,
    build_payment_gateway,
)
from services.store_service.services.reconciliation import (
    ArqFulfillmentDispatcher,
    FulfillmentDispatcher,
)
from services.store_service.suppliers import SupplierManager, load_supplier_manager
from sqlalchemy.ext.asyncio import AsyncSession


def http_error(exc: StoreError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


def get_session_id(request: Request, session_id: Optional[str] = None) -> Optional[str]:
    """Guest cart key from the `session_id` query parameter or X-Session-ID header."""
    return session_id or request.headers.get("X-Session-ID")


async def get_supplier_manager(
    request: Request, db: AsyncSession = Depends(get_async_db)
) -> SupplierManager:
    cache = getattr(request.app.state, "supplier_cache", None)
    return await load_supplier_manager(db, cache=cache)


def get_gateway_factory() -> GatewayFactory:
    return build_payment_gateway


def get_fulfillment_dispatcher() -> Optional[FulfillmentDispatcher]:
    return ArqFulfillmentDispatcher()


def get_paystack() -> PaystackClient:
    try:
        return PaystackClient()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Paystack is not configured",
        )
