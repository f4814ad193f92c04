"""Checkout: create an order priced server-side and open a payment session."""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from libs.auth.dependencies import get_optional_user
from libs.auth.models import AuthUser
from libs.common.rate_limit import payment_limit
from libs.db.session import get_async_db
from services.store_service.errors import StoreError
from services.store_service.routers._helpers import get_gateway_factory, http_error
from services.store_service.schemas import CheckoutRequest, CheckoutResponse
from services.store_service.services.checkout import start_checkout
from services.store_service.services.payment_gateways import GatewayFactory
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store"])


@router.post("/checkout", response_model=CheckoutResponse)
@payment_limit
async def checkout(
    request: Request,
    checkout_in: CheckoutRequest,
    current_user: Optional[AuthUser] = Depends(get_optional_user),
    gateway_factory: GatewayFactory = Depends(get_gateway_factory),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Start checkout for the given items, or for the caller's cart when no
    items are sent.

    Client-supplied prices are ignored. The order is stored as pending before
    the payment provider is called; if the provider fails the order is marked
    payment_failed and 502 is returned.
    """
    try:
        result = await start_checkout(
            db,
            user=current_user,
            payload=checkout_in,
            gateway_factory=gateway_factory,
        )
    except StoreError as e:
        raise http_error(e)

    order, payment = result.order, result.payment
    return CheckoutResponse(
        order_id=order.id,
        order_number=order.order_number,
        total_amount=order.total_amount,
        currency=order.currency,
        payment_method=order.payment_method,
        payment_url=payment.payment_url,
        payment_reference=payment.provider_payment_id,
        pay_address=payment.pay_address,
        pay_amount=payment.pay_amount,
        pay_currency=payment.pay_currency,
    )
