"""Request context middleware.

Every request gets an X-Request-ID (taken from the caller when present) that
is attached to all log records emitted while it is handled and echoed back in
the response. Shopper e-mail addresses used for order tracking are masked
before query strings are logged.

Usage:
    from libs.common.middleware import add_observability_middleware

    app = FastAPI()
    add_observability_middleware(app)
"""
import time
from typing import Callable, Optional
from urllib.parse import parse_qsl, urlencode

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from libs.common.logging import (
    clear_request_context,
    configure_logging,
    get_logger,
    set_request_context,
)

logger = get_logger(__name__)

QUIET_PATHS = frozenset({"/health"})
REDACTED_PARAMS = frozenset({"email", "session_id"})


def redact_query(query: str) -> Optional[str]:
    if not query:
        return None
    pairs = [
        (key, "***" if key in REDACTED_PARAMS else value)
        for key, value in parse_qsl(query, keep_blank_values=True)
    ]
    return urlencode(pairs)


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = set_request_context(
            request_id=request.headers.get("X-Request-ID"),
            path=request.url.path,
            method=request.method,
        )
        quiet = request.url.path in QUIET_PATHS
        start = time.perf_counter()

        if not quiet:
            logger.info(
                "Request started",
                extra={"extra_fields": {"query": redact_query(request.url.query)}},
            )

        try:
            response = await call_next(request)
            if not quiet:
                # auth dependencies leave the resolved user on request.state
                user = getattr(request.state, "user", None)
                fields = {
                    "status_code": response.status_code,
                    "duration_ms": _elapsed_ms(start),
                    "user_id": getattr(user, "user_id", None),
                }
                level = "warning" if response.status_code >= 400 else "info"
                getattr(logger, level)("Request completed", extra={"extra_fields": fields})
            response.headers["X-Request-ID"] = request_id
            return response
        except Exception as e:
            logger.exception(
                "Request failed with unhandled exception",
                extra={"extra_fields": {"error": str(e), "duration_ms": _elapsed_ms(start)}},
            )
            raise
        finally:
            clear_request_context()


def add_observability_middleware(app: FastAPI) -> None:
    """Configure logging and install the request context middleware."""
    configure_logging()
    app.add_middleware(RequestContextMiddleware)
