"""Payment providers behind one checkout-facing interface."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Optional, Protocol

from libs.common.config import get_settings
from libs.common.currency import to_minor_units
from services.store_service.errors import PaymentNotConfiguredError
from services.store_service.models import Order, PaymentMethod, PaymentProvider
from services.store_service.nowpayments_client import NowPaymentsClient
from services.store_service.paystack_client import PaystackClient


@dataclass
class PaymentInitResult:
    provider: PaymentProvider
    provider_payment_id: str
    payment_url: Optional[str] = None
    provider_status: str = "initialized"
    pay_address: Optional[str] = None
    pay_amount: Optional[Decimal] = None
    pay_currency: Optional[str] = None
    payin_extra_id: Optional[str] = None
    raw: dict = field(default_factory=dict)


class PaymentGateway(Protocol):
    provider: PaymentProvider

    async def initialize(self, order: Order) -> PaymentInitResult: ...


GatewayFactory = Callable[[PaymentMethod, Optional[str]], PaymentGateway]


class PaystackGateway:
    provider = PaymentProvider.PAYSTACK

    def __init__(self, client: PaystackClient):
        self.client = client

    async def initialize(self, order: Order) -> PaymentInitResult:
        settings = get_settings()
        callback_url = (
            settings.PAYSTACK_CALLBACK_URL
            or f"{settings.FRONTEND_URL.rstrip('/')}/payment-success"
        )
        tx = await self.client.initialize_transaction(
            email=order.customer_email,
            amount_kobo=to_minor_units(order.total_amount),
            reference=order.order_number,
            currency=order.currency,
            callback_url=callback_url,
            metadata={
                "order_number": order.order_number,
                "user_id": order.user_id,
                "items": order.items,
                "shipping_address": order.shipping_address,
            },
        )
        return PaymentInitResult(
            provider=self.provider,
            provider_payment_id=tx.reference,
            payment_url=tx.authorization_url,
            raw={"access_code": tx.access_code},
        )


class NowPaymentsGateway:
    provider = PaymentProvider.NOWPAYMENTS

    def __init__(self, client: NowPaymentsClient, pay_currency: Optional[str] = None):
        self.client = client
        self.pay_currency = pay_currency or get_settings().NOWPAYMENTS_DEFAULT_PAY_CURRENCY

    async def initialize(self, order: Order) -> PaymentInitResult:
        settings = get_settings()
        frontend = settings.FRONTEND_URL.rstrip("/")
        payment = await self.client.create_payment(
            price_amount=order.total_amount,
            price_currency=order.currency,
            pay_currency=self.pay_currency,
            order_id=order.order_number,
            order_description=f"Order {order.order_number}",
            ipn_callback_url=settings.NOWPAYMENTS_IPN_CALLBACK_URL,
            success_url=f"{frontend}/payment-success?order={order.order_number}",
            cancel_url=f"{frontend}/checkout?cancelled=true",
        )
        return PaymentInitResult(
            provider=self.provider,
            provider_payment_id=payment.payment_id,
            payment_url=payment.payment_url,
            provider_status=payment.payment_status or "waiting",
            pay_address=payment.pay_address,
            pay_amount=payment.pay_amount,
            pay_currency=payment.pay_currency or self.pay_currency,
            payin_extra_id=payment.payin_extra_id,
        )


def build_payment_gateway(
    method: PaymentMethod, pay_currency: Optional[str] = None
) -> PaymentGateway:
    """Gateway for a checkout's payment method; raises when the provider has no keys."""
    try:
        if method == PaymentMethod.CRYPTO:
            return NowPaymentsGateway(NowPaymentsClient(), pay_currency=pay_currency)
        return PaystackGateway(PaystackClient())
    except ValueError as e:
        raise PaymentNotConfiguredError(f"Payment provider not configured: {e}")
