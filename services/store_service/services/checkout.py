"""Checkout: price the order server-side, persist it, then open a payment session.

Client-supplied prices are ignored. Every line is re-priced from the product
store and the order total is the sum of those server prices.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.currency import round2
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from pydantic import ValidationError
from services.store_service.errors import (
    CheckoutValidationError,
    PaymentInitializationError,
    ProductNotFoundError,
    StoreError,
)
from services.store_service.models import (
    Cart,
    Order,
    OrderStatus,
    PaymentSession,
    PaymentStatus,
    Product,
    StockStatus,
)
from services.store_service.schemas import CheckoutItem, CheckoutRequest
from services.store_service.services.cart_ops import clear_cart
from services.store_service.services.payment_gateways import (
    GatewayFactory,
    PaymentInitResult,
)
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

AWAITING_PAYMENT_NOTE = "Awaiting payment"
PAYMENT_INIT_FAILED_NOTE = "Payment could not be started"
EXPIRED_NOTE = "Payment window expired"


@dataclass
class CheckoutResult:
    order: Order
    payment: PaymentInitResult


async def _load_cart(
    db: AsyncSession, user_id: Optional[str], session_id: Optional[str]
) -> Optional[Cart]:
    if user_id:
        query = select(Cart).where(Cart.user_id == user_id)
    elif session_id:
        query = select(Cart).where(Cart.session_id == session_id, Cart.user_id.is_(None))
    else:
        return None
    return (await db.execute(query.limit(1))).scalar_one_or_none()


async def price_items(db: AsyncSession, items: list[CheckoutItem]) -> tuple[list[dict], Decimal]:
    """
    Build the order snapshot from authoritative product data.

    Raises ProductNotFoundError naming the first unknown product id and
    CheckoutValidationError for unknown variants or out-of-stock products.
    """
    product_ids = {item.product_id for item in items}
    result = await db.execute(select(Product).where(Product.id.in_(product_ids)))
    products = {p.id: p for p in result.scalars().all()}

    lines: list[dict] = []
    total = Decimal("0")
    for item in items:
        product = products.get(item.product_id)
        if product is None:
            raise ProductNotFoundError(item.product_id)

        variant = None
        if item.variant_id:
            variant = product.find_variant(item.variant_id)
            if variant is None:
                raise CheckoutValidationError(
                    f"Variant {item.variant_id} not found for product {product.id}"
                )
        if product.stock_status == StockStatus.OUT_OF_STOCK:
            raise CheckoutValidationError(f"{product.title} is out of stock")

        price = product.price_for(item.variant_id)
        if item.price is not None and round2(item.price) != price:
            logger.warning(
                f"Ignoring client price {item.price} for product {product.id}; "
                f"server price is {price}"
            )
        total += price * item.quantity
        lines.append(
            {
                "product_id": str(product.id),
                "title": product.title,
                "variant_id": item.variant_id,
                "sku": (variant or {}).get("sku") or product.supplier_sku,
                "quantity": item.quantity,
                "price": str(price),
                "supplier": product.supplier.value,
                "supplier_product_id": product.supplier_product_id,
                "image": product.primary_image,
            }
        )
    return lines, round2(total)


async def start_checkout(
    db: AsyncSession,
    *,
    user: Optional[AuthUser],
    payload: CheckoutRequest,
    gateway_factory: GatewayFactory,
) -> CheckoutResult:
    user_id = user.user_id if user else None

    cart = None
    items = payload.items
    if not items:
        cart = await _load_cart(db, user_id, payload.session_id)
        try:
            items = [
                CheckoutItem(
                    product_id=line.product_id,
                    variant_id=line.variant_id,
                    quantity=line.quantity,
                )
                for line in (cart.items if cart else [])
            ]
        except ValidationError as e:
            raise CheckoutValidationError(
                f"Cart contains an invalid line: {e.errors()[0]['msg']}"
            ) from e
    if not items:
        raise CheckoutValidationError("Cart is empty")

    email = payload.email or payload.shipping_address.email or (user.email if user else None)
    if not email:
        raise CheckoutValidationError("An email address is required")

    lines, total = await price_items(db, items)

    order = Order(
        order_number=Order.generate_order_number(),
        user_id=user_id,
        customer_email=str(email),
        items=lines,
        total_amount=total,
        currency=get_settings().STORE_CURRENCY,
        shipping_address=payload.shipping_address.model_dump(mode="json"),
        status=OrderStatus.PENDING,
        status_note=AWAITING_PAYMENT_NOTE,
        payment_status=PaymentStatus.PENDING,
        payment_method=payload.payment_method,
    )
    db.add(order)
    await db.commit()
    logger.info(
        f"Created order {order.order_number} total={total} {order.currency}",
        extra={"extra_fields": {"order_id": str(order.id)}},
    )

    try:
        gateway = gateway_factory(payload.payment_method, payload.pay_currency)
        init = await gateway.initialize(order)
    except Exception as e:
        logger.exception(f"Payment initialization failed for {order.order_number}")
        order.status = OrderStatus.PAYMENT_FAILED
        order.payment_status = PaymentStatus.FAILED
        order.status_note = PAYMENT_INIT_FAILED_NOTE
        await db.commit()
        if isinstance(e, PaymentInitializationError):
            raise
        message = e.message if isinstance(e, StoreError) else str(e)
        raise PaymentInitializationError(
            f"Payment service unavailable: {message or type(e).__name__}"
        ) from e

    db.add(
        PaymentSession(
            order_id=order.id,
            provider=init.provider,
            provider_payment_id=init.provider_payment_id,
            provider_status=init.provider_status,
            price_amount=total,
            price_currency=order.currency,
            pay_amount=init.pay_amount,
            pay_currency=init.pay_currency,
            pay_address=init.pay_address,
            payin_extra_id=init.payin_extra_id,
            authorization_url=init.payment_url,
            raw_metadata=init.raw or None,
        )
    )
    order.payment_reference = init.provider_payment_id
    await db.commit()

    if cart is not None:
        await clear_cart(db, cart)

    return CheckoutResult(order=order, payment=init)


async def expire_stale_pending_orders(
    db: AsyncSession, *, ttl_minutes: int, now: Optional[datetime] = None
) -> int:
    """Cancel orders still awaiting payment after the payment window."""
    cutoff = (now or utc_now()) - timedelta(minutes=ttl_minutes)
    result = await db.execute(
        update(Order)
        .where(
            Order.status == OrderStatus.PENDING,
            Order.payment_status == PaymentStatus.PENDING,
            Order.created_at < cutoff,
        )
        .values(
            status=OrderStatus.CANCELLED,
            payment_status=PaymentStatus.EXPIRED,
            status_note=EXPIRED_NOTE,
            updated_at=utc_now(),
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if result.rowcount:
        logger.info(f"Expired {result.rowcount} stale pending orders")
    return result.rowcount
