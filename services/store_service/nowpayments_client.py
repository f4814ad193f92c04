"""
NowPayments API client for crypto checkout.

Provides async methods for:
- Creating a payment (deposit address + amount in the chosen coin)
- Fetching a payment's status
- Checking IPN (webhook) signatures
"""

import hashlib
import hmac
import json
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import httpx
from libs.common.config import get_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)

# Statuses that mean the funds arrived
CONFIRMED_STATUSES = {"confirmed", "finished"}
FAILED_STATUSES = {"failed", "expired", "refunded"}


@dataclass
class CryptoPayment:
    """A payment as reported by NowPayments."""

    payment_id: str
    payment_status: str
    pay_address: Optional[str]
    pay_amount: Optional[Decimal]
    pay_currency: Optional[str]
    price_amount: Optional[Decimal]
    price_currency: Optional[str]
    payin_extra_id: Optional[str] = None
    payment_url: Optional[str] = None
    order_id: Optional[str] = None
    actually_paid: Optional[Decimal] = None


class NowPaymentsError(Exception):
    """Base exception for NowPayments API errors."""

    def __init__(
        self, message: str, status_code: int = None, response_data: dict = None
    ):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}
        super().__init__(message)


def _decimal(value) -> Optional[Decimal]:
    if value in (None, ""):
        return None
    return Decimal(str(value))


def sign_ipn_payload(payload: dict, secret: str) -> str:
    """HMAC-SHA512 over the key-sorted, whitespace-free JSON body."""
    message = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hmac.new(
        secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha512
    ).hexdigest()


def verify_ipn_signature(payload: dict, signature: str, secret: str) -> bool:
    if not signature or not secret:
        return False
    return hmac.compare_digest(sign_ipn_payload(payload, secret), signature.lower())


def parse_payment(data: dict) -> CryptoPayment:
    return CryptoPayment(
        payment_id=str(data.get("payment_id") or ""),
        payment_status=str(data.get("payment_status") or "").lower(),
        pay_address=data.get("pay_address"),
        pay_amount=_decimal(data.get("pay_amount")),
        pay_currency=data.get("pay_currency"),
        price_amount=_decimal(data.get("price_amount")),
        price_currency=data.get("price_currency"),
        payin_extra_id=data.get("payin_extra_id"),
        payment_url=data.get("payment_url") or data.get("invoice_url"),
        order_id=str(data["order_id"]) if data.get("order_id") else None,
        actually_paid=_decimal(data.get("actually_paid")),
    )


class NowPaymentsClient:
    """Async client for the NowPayments v1 API."""

    def __init__(
        self,
        api_key: str = None,
        base_url: str = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.api_key = api_key or settings.NOWPAYMENTS_API_KEY
        if not self.api_key:
            raise ValueError("NOWPAYMENTS_API_KEY is required")
        self.base_url = (base_url or settings.NOWPAYMENTS_API_BASE_URL).rstrip("/")
        self._client = client
        self._headers = {
            "x-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, endpoint: str, json_data: dict = None) -> dict:
        url = f"{self.base_url}{endpoint}"
        try:
            if self._client is not None:
                response = await self._client.request(
                    method, url, headers=self._headers, json=json_data
                )
            else:
                async with httpx.AsyncClient(timeout=30.0) as client:
                    response = await client.request(
                        method, url, headers=self._headers, json=json_data
                    )
        except httpx.HTTPError as e:
            logger.error(f"NowPayments request failed: {e}")
            raise NowPaymentsError(message=f"NowPayments unreachable: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {"message": response.text}

        if not response.is_success:
            logger.error(f"NowPayments API error: {response.status_code} - {data}")
            raise NowPaymentsError(
                message=data.get("message", "NowPayments API error"),
                status_code=response.status_code,
                response_data=data,
            )
        return data

    async def create_payment(
        self,
        price_amount: Decimal,
        price_currency: str,
        pay_currency: str,
        order_id: str,
        order_description: str,
        ipn_callback_url: str = None,
        success_url: str = None,
        cancel_url: str = None,
    ) -> CryptoPayment:
        payload = {
            "price_amount": float(price_amount),
            "price_currency": price_currency.lower(),
            "pay_currency": pay_currency.lower(),
            "order_id": order_id,
            "order_description": order_description,
        }
        if ipn_callback_url:
            payload["ipn_callback_url"] = ipn_callback_url
        if success_url:
            payload["success_url"] = success_url
        if cancel_url:
            payload["cancel_url"] = cancel_url

        data = await self._request("POST", "/payment", json_data=payload)
        payment = parse_payment(data)
        if not payment.payment_id:
            raise NowPaymentsError(
                message="NowPayments did not return a payment id", response_data=data
            )
        return payment

    async def get_payment(self, payment_id: str) -> CryptoPayment:
        data = await self._request("GET", f"/payment/{payment_id}")
        return parse_payment(data)


def get_nowpayments_client() -> NowPaymentsClient:
    return NowPaymentsClient()
