"""Wire tests for the Paystack and NowPayments clients and gateways."""

import hashlib
import hmac
import json
from decimal import Decimal

import httpx
import pytest
from libs.common.config import get_settings
from services.store_service.errors import PaymentNotConfiguredError
from services.store_service.models import PaymentMethod, PaymentProvider
from services.store_service.nowpayments_client import (
    NowPaymentsClient,
    NowPaymentsError,
    sign_ipn_payload,
    verify_ipn_signature,
)
from services.store_service.paystack_client import (
    PaystackClient,
    PaystackError,
    parse_transaction,
    verify_paystack_signature,
)
from services.store_service.services.payment_gateways import (
    NowPaymentsGateway,
    PaystackGateway,
    build_payment_gateway,
)
from tests.factories import OrderFactory


def _paystack(handler) -> PaystackClient:
    return PaystackClient(
        secret_key="sk_test_wire",
        base_url="https://paystack.test",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def _nowpayments(handler) -> NowPaymentsClient:
    return NowPaymentsClient(
        api_key="np-wire",
        base_url="https://nowpayments.test/v1",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


# ---------------------------------------------------------------------------
# Paystack
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_paystack_gateway_initializes_in_kobo():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer sk_test_wire"
        assert request.url.path == "/transaction/initialize"
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "status": True,
                "data": {
                    "authorization_url": "https://checkout.paystack.com/abc",
                    "access_code": "abc",
                    "reference": seen["body"]["reference"],
                },
            },
        )

    order = OrderFactory.create(total_amount=Decimal("1234.56"))
    result = await PaystackGateway(_paystack(handler)).initialize(order)

    assert seen["body"]["amount"] == 123456
    assert seen["body"]["metadata"]["order_number"] == order.order_number
    assert result.provider == PaymentProvider.PAYSTACK
    assert result.provider_payment_id == order.order_number
    assert result.payment_url == "https://checkout.paystack.com/abc"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_paystack_verify_parses_transaction():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/transaction/verify/ORD-1"
        return httpx.Response(
            200,
            json={
                "status": True,
                "data": {
                    "reference": "ORD-1",
                    "status": "success",
                    "amount": 40000,
                    "currency": "NGN",
                    "paid_at": "2026-03-01T10:00:00.000Z",
                    "metadata": {"order_number": "ORD-1"},
                },
            },
        )

    tx = await _paystack(handler).verify_transaction("ORD-1")

    assert tx.status == "success"
    assert tx.amount == 40000
    assert tx.order_number == "ORD-1"
    assert tx.paid_at.year == 2026


@pytest.mark.asyncio
@pytest.mark.unit
async def test_paystack_http_error_raises():
    client = _paystack(
        lambda request: httpx.Response(400, json={"status": False, "message": "Invalid key"})
    )

    with pytest.raises(PaystackError) as exc_info:
        await client.verify_transaction("ORD-1")

    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "Invalid key"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_paystack_false_status_raises():
    client = _paystack(
        lambda request: httpx.Response(200, json={"status": False, "message": "Declined"})
    )

    with pytest.raises(PaystackError):
        await client.verify_transaction("ORD-1")


@pytest.mark.unit
def test_parse_transaction_tolerates_empty_metadata():
    tx = parse_transaction({"reference": "r", "status": "SUCCESS", "metadata": ""})

    assert tx.metadata == {}
    assert tx.status == "success"
    assert tx.order_number is None


@pytest.mark.unit
def test_paystack_signature_is_hmac_sha512_of_raw_body():
    body = b'{"event":"charge.success"}'
    signature = hmac.new(b"sk_secret", body, hashlib.sha512).hexdigest()

    assert verify_paystack_signature(body, signature, "sk_secret") is True
    assert verify_paystack_signature(body + b" ", signature, "sk_secret") is False
    assert verify_paystack_signature(body, "", "sk_secret") is False


# ---------------------------------------------------------------------------
# NowPayments
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_nowpayments_gateway_creates_payment():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["x-api-key"] == "np-wire"
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            201,
            json={
                "payment_id": 5077125051,
                "payment_status": "waiting",
                "pay_address": "TXyz",
                "pay_amount": 0.25,
                "pay_currency": "usdttrc20",
                "price_amount": 400,
                "price_currency": "ngn",
                "order_id": seen["body"]["order_id"],
            },
        )

    order = OrderFactory.create()
    gateway = NowPaymentsGateway(_nowpayments(handler), pay_currency="USDTTRC20")
    result = await gateway.initialize(order)

    assert seen["body"]["price_currency"] == "ngn"
    assert seen["body"]["pay_currency"] == "usdttrc20"
    assert seen["body"]["order_id"] == order.order_number
    assert result.provider == PaymentProvider.NOWPAYMENTS
    assert result.provider_payment_id == "5077125051"
    assert result.pay_address == "TXyz"
    assert result.pay_amount == Decimal("0.25")
    assert result.provider_status == "waiting"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_nowpayments_missing_payment_id_raises():
    client = _nowpayments(lambda request: httpx.Response(200, json={"payment_status": "waiting"}))

    with pytest.raises(NowPaymentsError):
        await client.create_payment(
            price_amount=Decimal("400"),
            price_currency="NGN",
            pay_currency="USDT",
            order_id="ORD-1",
            order_description="Order ORD-1",
        )


@pytest.mark.unit
def test_ipn_signature_ignores_key_order_and_case():
    payload = {"payment_status": "finished", "payment_id": 1, "order_id": "ORD-1"}
    reordered = {"order_id": "ORD-1", "payment_id": 1, "payment_status": "finished"}
    signature = sign_ipn_payload(payload, "ipn-secret")

    assert verify_ipn_signature(reordered, signature, "ipn-secret") is True
    assert verify_ipn_signature(payload, signature.upper(), "ipn-secret") is True
    assert verify_ipn_signature({**payload, "payment_id": 2}, signature, "ipn-secret") is False
    assert verify_ipn_signature(payload, signature, "") is False


# ---------------------------------------------------------------------------
# build_payment_gateway
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_build_payment_gateway_by_method():
    assert isinstance(build_payment_gateway(PaymentMethod.PAYSTACK), PaystackGateway)
    crypto = build_payment_gateway(PaymentMethod.CRYPTO, "BTC")
    assert isinstance(crypto, NowPaymentsGateway)
    assert crypto.pay_currency == "BTC"


@pytest.mark.unit
def test_build_payment_gateway_without_keys(monkeypatch):
    monkeypatch.setattr(get_settings(), "PAYSTACK_SECRET_KEY", None)

    with pytest.raises(PaymentNotConfiguredError):
        build_payment_gateway(PaymentMethod.PAYSTACK)
