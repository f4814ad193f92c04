"""Payment provider webhooks (no auth; verified by signature)."""

import json
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from libs.common.config import get_settings
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.store_service.errors import AmountMismatchError
from services.store_service.nowpayments_client import (
    parse_payment,
    verify_ipn_signature,
)
from services.store_service.paystack_client import (
    parse_transaction,
    verify_paystack_signature,
)
from services.store_service.routers._helpers import get_fulfillment_dispatcher
from services.store_service.services.reconciliation import (
    FulfillmentDispatcher,
    apply_nowpayments_update,
    apply_paystack_transaction,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/webhooks", tags=["store-webhooks"])
logger = get_logger(__name__)

PAYSTACK_CHARGE_EVENTS = {"charge.success", "charge.failed"}


def _load_json(raw: bytes) -> dict:
    try:
        payload = json.loads(raw.decode("utf-8") or "{}")
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise HTTPException(status_code=400, detail="Invalid JSON payload")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON payload")
    return payload


@router.post("/paystack")
async def paystack_webhook(
    request: Request,
    dispatcher: Optional[FulfillmentDispatcher] = Depends(get_fulfillment_dispatcher),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Paystack webhook endpoint (verified by x-paystack-signature).
    """
    raw = await request.body()
    signature = request.headers.get("x-paystack-signature")
    if not verify_paystack_signature(raw, signature, get_settings().PAYSTACK_SECRET_KEY):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature"
        )

    payload = _load_json(raw)
    event = payload.get("event")
    if event not in PAYSTACK_CHARGE_EVENTS:
        logger.info(f"Ignoring Paystack event {event}")
        return {"received": True}

    tx = parse_transaction(payload.get("data") or {})
    try:
        result = await apply_paystack_transaction(db, tx, dispatcher)
        logger.info(f"Paystack {event} for {tx.reference}: {result.reason}")
    except AmountMismatchError as e:
        logger.error(f"Rejected Paystack {event} for {tx.reference}: {e.message}")

    return {"received": True}


@router.post("/nowpayments")
async def nowpayments_webhook(
    request: Request,
    dispatcher: Optional[FulfillmentDispatcher] = Depends(get_fulfillment_dispatcher),
    db: AsyncSession = Depends(get_async_db),
):
    """
    NowPayments IPN endpoint (verified by x-nowpayments-sig over the sorted body).
    """
    payload = _load_json(await request.body())
    signature = request.headers.get("x-nowpayments-sig")
    if not verify_ipn_signature(
        payload, signature, get_settings().NOWPAYMENTS_IPN_SECRET
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature"
        )

    payment = parse_payment(payload)
    if not payment.payment_id:
        return {"received": True}

    result = await apply_nowpayments_update(db, payment, dispatcher)
    logger.info(
        f"NowPayments {payment.payment_status} for {payment.payment_id}: {result.reason}"
    )
    return {"received": True}
