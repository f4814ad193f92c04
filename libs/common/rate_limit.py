"""Rate limiting for the store API (slowapi).

Callers are bucketed by user id when authenticated, by cart session when a
guest sends one, and by client IP otherwise. Counters live wherever
RATE_LIMIT_STORAGE_URI points, so API processes can share them via Redis.
"""

from functools import lru_cache
from typing import Callable

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from libs.common.config import get_settings

LIMITS = {
    "default": "120/minute",
    "payment": "10/minute",
    "admin": "30/minute",
}


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


def rate_limit_key(request: Request) -> str:
    user = getattr(request.state, "user", None)
    if user is not None:
        return f"user:{user.user_id}"
    session_id = request.headers.get("X-Session-ID")
    if session_id:
        return f"session:{session_id}"
    return f"ip:{client_ip(request)}"


@lru_cache
def get_limiter() -> Limiter:
    settings = get_settings()
    return Limiter(
        key_func=rate_limit_key,
        default_limits=[LIMITS["default"]],
        storage_uri=settings.RATE_LIMIT_STORAGE_URI,
        strategy="fixed-window",
        enabled=settings.RATE_LIMIT_ENABLED,
    )


limiter = get_limiter()


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """JSON 429 with a Retry-After hint."""
    return JSONResponse(
        status_code=429,
        content={
            "detail": f"Rate limit exceeded: {exc.detail}",
            "code": "RATE_LIMIT_EXCEEDED",
        },
        headers={"Retry-After": "60"},
    )


def payment_limit(func: Callable) -> Callable:
    """Checkout and payment verification: every call can reach a payment provider."""
    return limiter.limit(LIMITS["payment"])(func)


def admin_limit(func: Callable) -> Callable:
    """Admin imports and sync triggers, which fan out to supplier APIs."""
    return limiter.limit(LIMITS["admin"])(func)
