"""TTL caches injected into components that memoise remote calls.

Callers own the cache instance and pass it in explicitly; nothing here is a
module-level singleton. Values must be JSON-serialisable so the Redis
backend and the in-memory backend behave the same.

Usage:
    cache = MemoryTTLCache(ttl_seconds=300)
    manager = SupplierManager(suppliers, cache=cache)
"""

import json
import time
from collections import OrderedDict
from typing import Any, Callable, Optional, Protocol

from redis.asyncio import Redis

from libs.common.logging import get_logger

logger = get_logger(__name__)


class TTLCache(Protocol):
    """Async key/value cache with per-entry expiry."""

    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None: ...

    async def clear(self) -> None: ...


class MemoryTTLCache:
    """Process-local cache. One instance per owning component.

    Holds at most max_size entries; the least recently used entry is evicted
    when a new key would exceed that.
    """

    def __init__(
        self,
        ttl_seconds: int = 300,
        max_size: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, str]] = OrderedDict()

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, payload = entry
        if self._clock() > expires_at:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return json.loads(payload)

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self.ttl_seconds
        now = self._clock()
        if key in self._entries:
            self._entries.move_to_end(key)
        else:
            self._purge_expired(now)
            while len(self._entries) >= self.max_size:
                self._entries.popitem(last=False)
        self._entries[key] = (now + ttl, json.dumps(value, default=str))

    def _purge_expired(self, now: float) -> None:
        expired = [k for k, (expires_at, _) in self._entries.items() if now > expires_at]
        for key in expired:
            del self._entries[key]

    async def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RedisTTLCache:
    """Redis-backed cache shared across processes, scoped by a key prefix."""

    def __init__(self, redis: Redis, prefix: str, ttl_seconds: int = 300):
        self.redis = redis
        self.prefix = prefix
        self.ttl_seconds = ttl_seconds

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        try:
            payload = await self.redis.get(self._key(key))
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None
        return json.loads(payload) if payload else None

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self.ttl_seconds
        try:
            await self.redis.set(self._key(key), json.dumps(value, default=str), ex=ttl)
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    async def clear(self) -> None:
        async for key in self.redis.scan_iter(match=f"{self.prefix}:*"):
            await self.redis.delete(key)
