"""
Paystack API client for store checkout.

Provides async methods for:
- Initializing a transaction (hosted payment page)
- Verifying a transaction by reference
- Checking webhook signatures
"""

import hashlib
import hmac
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import httpx
from libs.common.config import get_settings
from libs.common.datetime_utils import parse_iso
from libs.common.logging import get_logger

logger = get_logger(__name__)


@dataclass
class TransactionInit:
    """Result of initializing a transaction."""

    authorization_url: str
    access_code: str
    reference: str


@dataclass
class TransactionVerification:
    """Transaction state as reported by Paystack."""

    reference: str
    status: str  # success, failed, abandoned, ongoing, ...
    amount: int  # in kobo
    currency: str
    metadata: dict = field(default_factory=dict)
    paid_at: Optional[datetime] = None
    gateway_response: Optional[str] = None

    @property
    def order_number(self) -> Optional[str]:
        return (self.metadata or {}).get("order_number")


class PaystackError(Exception):
    """Base exception for Paystack API errors."""

    def __init__(
        self, message: str, status_code: int = None, response_data: dict = None
    ):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}
        super().__init__(message)


def verify_paystack_signature(raw_body: bytes, signature: str, secret: str) -> bool:
    """x-paystack-signature is HMAC-SHA512 of the raw body keyed by the secret key."""
    if not signature or not secret:
        return False
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha512).hexdigest()
    return hmac.compare_digest(digest, signature)


class PaystackClient:
    """Async client for the Paystack Transaction API."""

    def __init__(
        self,
        secret_key: str = None,
        base_url: str = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.secret_key = secret_key or settings.PAYSTACK_SECRET_KEY
        if not self.secret_key:
            raise ValueError("PAYSTACK_SECRET_KEY is required")
        self.base_url = (base_url or settings.PAYSTACK_API_BASE_URL).rstrip("/")
        self._client = client
        self._headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict = None,
        json_data: dict = None,
    ) -> dict:
        """Make an async request to Paystack API."""
        url = f"{self.base_url}{endpoint}"

        try:
            if self._client is not None:
                response = await self._client.request(
                    method, url, headers=self._headers, params=params, json=json_data
                )
            else:
                async with httpx.AsyncClient(timeout=30.0) as client:
                    response = await client.request(
                        method, url, headers=self._headers, params=params, json=json_data
                    )
        except httpx.HTTPError as e:
            logger.error(f"Paystack request failed: {e}")
            raise PaystackError(message=f"Paystack unreachable: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {"message": response.text}

        if not response.is_success:
            logger.error(f"Paystack API error: {response.status_code} - {data}")
            raise PaystackError(
                message=data.get("message", "Unknown Paystack error"),
                status_code=response.status_code,
                response_data=data,
            )

        if not data.get("status"):
            raise PaystackError(
                message=data.get("message", "Paystack request failed"),
                response_data=data,
            )

        return data

    async def initialize_transaction(
        self,
        email: str,
        amount_kobo: int,
        reference: str,
        currency: str = "NGN",
        callback_url: str = None,
        metadata: dict = None,
    ) -> TransactionInit:
        """
        Start a transaction and get the hosted payment page URL.

        Metadata is echoed back on verify and in webhooks; the order number
        placed there is how confirmations find their order.
        """
        payload = {
            "email": email,
            "amount": amount_kobo,
            "currency": currency,
            "reference": reference,
            "metadata": metadata or {},
        }
        if callback_url:
            payload["callback_url"] = callback_url

        data = await self._request("POST", "/transaction/initialize", json_data=payload)

        tx = data.get("data") or {}
        if not tx.get("authorization_url"):
            raise PaystackError(
                message="Paystack did not return an authorization URL",
                response_data=data,
            )
        return TransactionInit(
            authorization_url=tx["authorization_url"],
            access_code=tx.get("access_code", ""),
            reference=tx.get("reference", reference),
        )

    async def verify_transaction(self, reference: str) -> TransactionVerification:
        data = await self._request("GET", f"/transaction/verify/{reference}")
        return parse_transaction(data.get("data") or {}, reference)


def parse_transaction(tx: dict, reference: str = None) -> TransactionVerification:
    """Build a TransactionVerification from a verify response or webhook data."""
    metadata = tx.get("metadata")
    if not isinstance(metadata, dict):
        # Paystack sends "" or 0 when no metadata was attached
        metadata = {}
    return TransactionVerification(
        reference=tx.get("reference") or reference or "",
        status=str(tx.get("status") or "").lower(),
        amount=int(tx.get("amount") or 0),
        currency=tx.get("currency") or "NGN",
        metadata=metadata,
        paid_at=parse_iso(tx.get("paid_at") or tx.get("paidAt")),
        gateway_response=tx.get("gateway_response"),
    )


def get_paystack_client() -> PaystackClient:
    """Get a PaystackClient instance."""
    return PaystackClient()
