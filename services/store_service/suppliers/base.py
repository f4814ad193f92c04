"""Supplier adapter contract."""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional

import httpx
from libs.common.logging import get_logger
from services.store_service.models.enums import SupplierType
from services.store_service.suppliers.types import (
    SupplierError,
    SupplierOrderRequest,
    SupplierOrderResult,
    SupplierOrderStatus,
    SupplierProduct,
    SupplierRateLimitInfo,
    SupplierSearchParams,
    SupplierSearchResponse,
)

logger = get_logger(__name__)


class BaseSupplier(ABC):
    """
    One upstream supplier.

    Subclasses talk to their API, normalise the payloads and raise
    SupplierError for every failure. An httpx client can be injected; when
    none is given a short-lived client is opened per request.
    """

    def __init__(self, timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None):
        self.timeout = timeout
        self._client = client
        self._rate_limit = SupplierRateLimitInfo(
            requests_remaining=1000,
            reset_time=datetime.now(timezone.utc) + timedelta(hours=1),
            limit=1000,
        )

    @abstractmethod
    def get_type(self) -> SupplierType: ...

    @abstractmethod
    def get_name(self) -> str: ...

    @abstractmethod
    def get_description(self) -> str: ...

    @abstractmethod
    def get_features(self) -> list[str]: ...

    @abstractmethod
    def get_supported_countries(self) -> list[str]: ...

    @abstractmethod
    async def search_products(
        self, params: SupplierSearchParams
    ) -> SupplierSearchResponse: ...

    @abstractmethod
    async def get_product(self, product_id: str) -> SupplierProduct: ...

    @abstractmethod
    async def create_order(self, order: SupplierOrderRequest) -> SupplierOrderResult: ...

    @abstractmethod
    async def get_order_status(self, order_id: str) -> SupplierOrderStatus: ...

    @abstractmethod
    async def is_healthy(self) -> bool: ...

    def get_rate_limit_info(self) -> SupplierRateLimitInfo:
        return self._rate_limit.model_copy()

    def update_rate_limit(self, headers: Mapping[str, str]) -> None:
        remaining = headers.get("x-ratelimit-remaining")
        reset = headers.get("x-ratelimit-reset")
        limit = headers.get("x-ratelimit-limit")
        try:
            if remaining is not None:
                self._rate_limit.requests_remaining = int(remaining)
            if reset is not None:
                self._rate_limit.reset_time = datetime.fromtimestamp(
                    int(reset), tz=timezone.utc
                )
            if limit is not None:
                self._rate_limit.limit = int(limit)
        except ValueError:
            logger.warning(f"Ignoring malformed rate limit headers from {self.get_type()}")

    def error(self, message: str, code: str = "OPERATION_ERROR", **details) -> SupplierError:
        return SupplierError(message, code, self.get_type(), details or None)

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Send one HTTP request, converting transport failures to SupplierError."""
        try:
            if self._client is not None:
                response = await self._client.request(method, url, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{self.get_name()} request failed: {e}")
            raise self.error(str(e) or "Network error", "NETWORK_ERROR") from e

        self.update_rate_limit(response.headers)
        return response
