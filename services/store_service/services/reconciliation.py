"""Payment reconciliation.

Confirmations arrive from Paystack (verify call or webhook) and NowPayments
(IPN). Each path finds its order from provider-confirmed data only: the order
number Paystack echoes back in metadata, or the provider payment id recorded
when the NowPayments session was opened.

Marking an order paid and writing its order.paid outbox event happen in one
commit. Fulfillment is then handed to a dispatcher on a best-effort basis; the
worker drains any outbox event the dispatcher missed.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from libs.common.arq_config import get_arq_pool
from libs.common.currency import round2, to_minor_units
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.store_service.errors import AmountMismatchError
from services.store_service.models import (
    Order,
    OrderStatus,
    OutboxEvent,
    OutboxEventType,
    PaymentProvider,
    PaymentSession,
    PaymentStatus,
)
from services.store_service.nowpayments_client import (
    CONFIRMED_STATUSES,
    CryptoPayment,
)
from services.store_service.paystack_client import TransactionVerification
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

PAID_STATUS_NOTE = "Payment confirmed - awaiting fulfillment"
PAYMENT_FAILED_NOTE = "Payment failed"

PAYSTACK_FAILED_STATUSES = {"failed", "reversed"}

_NOWPAYMENTS_TERMINAL = {
    "failed": (PaymentStatus.FAILED, OrderStatus.PAYMENT_FAILED, "Payment failed"),
    "expired": (PaymentStatus.EXPIRED, OrderStatus.CANCELLED, "Payment expired"),
    "refunded": (PaymentStatus.REFUNDED, OrderStatus.REFUNDED, "Payment refunded"),
}


class FulfillmentDispatcher(Protocol):
    async def dispatch(self, order_id: uuid.UUID) -> None: ...


class ArqFulfillmentDispatcher:
    """Enqueue the fulfillment job on the store worker."""

    async def dispatch(self, order_id: uuid.UUID) -> None:
        pool = await get_arq_pool()
        await pool.enqueue_job(
            "task_fulfill_order", str(order_id), _job_id=f"fulfill:{order_id}"
        )


@dataclass
class ReconciliationResult:
    order: Optional[Order]
    applied: bool
    reason: str = ""


async def mark_order_paid(
    db: AsyncSession,
    order: Order,
    *,
    provider: PaymentProvider,
    provider_reference: Optional[str],
    paid_at: Optional[datetime] = None,
) -> bool:
    """
    Move an order to paid and record its outbox event.

    Returns False without changes when the order is already paid (or
    refunded). A concurrent confirmation that loses the race on the outbox
    unique constraint is rolled back and also returns False.
    """
    if order.payment_status in (PaymentStatus.PAID, PaymentStatus.REFUNDED):
        return False

    order.payment_status = PaymentStatus.PAID
    order.status = OrderStatus.PAYMENT_CONFIRMED
    order.status_note = PAID_STATUS_NOTE
    order.paid_at = paid_at or utc_now()
    if provider_reference:
        order.payment_reference = provider_reference
    db.add(OutboxEvent(event_type=OutboxEventType.ORDER_PAID, order_id=order.id))

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        await db.refresh(order)
        logger.info(f"Order {order.order_number} already confirmed by another request")
        return False

    logger.info(
        f"Order {order.order_number} marked paid via {provider.value}",
        extra={"extra_fields": {"order_id": str(order.id)}},
    )
    return True


async def dispatch_fulfillment(
    order_id: uuid.UUID, dispatcher: Optional[FulfillmentDispatcher]
) -> None:
    if dispatcher is None:
        return
    try:
        await dispatcher.dispatch(order_id)
    except Exception as e:
        # The outbox drain picks the event up later
        logger.warning(f"Could not enqueue fulfillment for order {order_id}: {e}")


async def _session_for(
    db: AsyncSession, provider: PaymentProvider, provider_payment_id: str
) -> Optional[PaymentSession]:
    result = await db.execute(
        select(PaymentSession).where(
            PaymentSession.provider == provider,
            PaymentSession.provider_payment_id == provider_payment_id,
        )
    )
    return result.scalar_one_or_none()


async def apply_paystack_transaction(
    db: AsyncSession,
    tx: TransactionVerification,
    dispatcher: Optional[FulfillmentDispatcher] = None,
) -> ReconciliationResult:
    """Apply a verified Paystack transaction to the order named in its metadata."""
    order_number = tx.order_number
    if not order_number:
        logger.warning(f"Paystack transaction {tx.reference} carries no order number")
        return ReconciliationResult(None, False, "missing_order_number")

    result = await db.execute(select(Order).where(Order.order_number == order_number))
    order = result.scalar_one_or_none()
    if not order:
        logger.warning(f"Paystack transaction {tx.reference} names unknown order {order_number}")
        return ReconciliationResult(None, False, "order_not_found")

    session = await _session_for(db, PaymentProvider.PAYSTACK, tx.reference)
    if session is not None:
        session.provider_status = tx.status

    if tx.status != "success":
        if tx.status in PAYSTACK_FAILED_STATUSES and order.payment_status == PaymentStatus.PENDING:
            order.payment_status = PaymentStatus.FAILED
            order.status = OrderStatus.PAYMENT_FAILED
            order.status_note = PAYMENT_FAILED_NOTE
        await db.commit()
        return ReconciliationResult(order, False, f"status:{tx.status or 'unknown'}")

    expected = to_minor_units(order.total_amount)
    if tx.amount != expected:
        await db.commit()
        logger.error(
            f"Paystack amount mismatch for {order_number}: got {tx.amount}, expected {expected}"
        )
        raise AmountMismatchError(expected, tx.amount)

    applied = await mark_order_paid(
        db,
        order,
        provider=PaymentProvider.PAYSTACK,
        provider_reference=tx.reference,
        paid_at=tx.paid_at,
    )
    if applied:
        await dispatch_fulfillment(order.id, dispatcher)
    return ReconciliationResult(order, applied, "paid" if applied else "already_paid")


async def apply_nowpayments_update(
    db: AsyncSession,
    payment: CryptoPayment,
    dispatcher: Optional[FulfillmentDispatcher] = None,
) -> ReconciliationResult:
    """Apply a NowPayments IPN to the order behind the recorded payment session."""
    session = await _session_for(db, PaymentProvider.NOWPAYMENTS, payment.payment_id)
    if session is None:
        logger.warning(f"NowPayments IPN for unknown payment {payment.payment_id}")
        return ReconciliationResult(None, False, "payment_not_found")

    order = await db.get(Order, session.order_id)
    if order is None:
        return ReconciliationResult(None, False, "order_not_found")

    if payment.order_id and payment.order_id != order.order_number:
        logger.error(
            f"NowPayments payment {payment.payment_id} claims order {payment.order_id}, "
            f"recorded for {order.order_number}"
        )
        return ReconciliationResult(order, False, "order_mismatch")

    session.provider_status = payment.payment_status
    session.raw_metadata = {
        **(session.raw_metadata or {}),
        "actually_paid": str(payment.actually_paid) if payment.actually_paid is not None else None,
    }

    status = payment.payment_status
    if status in CONFIRMED_STATUSES:
        if payment.price_amount is not None and round2(payment.price_amount) != order.total_amount:
            await db.commit()
            logger.error(
                f"NowPayments amount mismatch for {order.order_number}: "
                f"got {payment.price_amount}, expected {order.total_amount}"
            )
            return ReconciliationResult(order, False, "amount_mismatch")
        applied = await mark_order_paid(
            db,
            order,
            provider=PaymentProvider.NOWPAYMENTS,
            provider_reference=payment.payment_id,
        )
        if applied:
            await dispatch_fulfillment(order.id, dispatcher)
        return ReconciliationResult(order, applied, "paid" if applied else "already_paid")

    if status in _NOWPAYMENTS_TERMINAL:
        payment_status, order_status, note = _NOWPAYMENTS_TERMINAL[status]
        if order.payment_status != PaymentStatus.PAID or status == "refunded":
            order.payment_status = payment_status
            order.status = order_status
            order.status_note = note
        await db.commit()
        return ReconciliationResult(order, False, f"status:{status}")

    # waiting, confirming, sending, partially_paid: still pending
    await db.commit()
    return ReconciliationResult(order, False, f"status:{status or 'unknown'}")
