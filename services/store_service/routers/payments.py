"""Client-initiated payment verification (return from the hosted payment page)."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from libs.common.logging import get_logger
from libs.common.rate_limit import payment_limit
from libs.db.session import get_async_db
from services.store_service.errors import StoreError
from services.store_service.paystack_client import PaystackClient, PaystackError
from services.store_service.routers._helpers import (
    get_fulfillment_dispatcher,
    get_paystack,
    http_error,
)
from services.store_service.schemas import PaymentVerificationResponse
from services.store_service.services.reconciliation import (
    FulfillmentDispatcher,
    apply_paystack_transaction,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store"])
logger = get_logger(__name__)


@router.post(
    "/payments/paystack/verify/{reference}",
    response_model=PaymentVerificationResponse,
)
@payment_limit
async def verify_paystack_payment(
    request: Request,
    reference: str,
    paystack: PaystackClient = Depends(get_paystack),
    dispatcher: Optional[FulfillmentDispatcher] = Depends(get_fulfillment_dispatcher),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Verify a Paystack transaction with Paystack and apply it.

    The order is found from the order number Paystack returns in the
    transaction metadata, not from anything the client sends.
    """
    try:
        tx = await paystack.verify_transaction(reference)
    except PaystackError as e:
        logger.error(f"Paystack verify failed for {reference}: {e.message}")
        raise HTTPException(status_code=502, detail="Could not verify payment")

    try:
        result = await apply_paystack_transaction(db, tx, dispatcher)
    except StoreError as e:
        raise http_error(e)

    if result.order is None:
        raise HTTPException(status_code=404, detail="Order not found for payment")

    order = result.order
    return PaymentVerificationResponse(
        order_number=order.order_number,
        payment_status=order.payment_status,
        status=order.status,
        status_note=order.status_note,
    )
