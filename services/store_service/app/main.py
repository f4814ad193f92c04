"""FastAPI application for the Store Service."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from libs.common.arq_config import close_arq_pool
from libs.common.config import get_settings
from libs.common.middleware import add_observability_middleware
from libs.common.rate_limit import limiter, rate_limit_exceeded_handler
from libs.common.redis import close_redis
from services.store_service.routers import (
    admin_catalog_router,
    admin_orders_router,
    admin_suppliers_router,
    cart_router,
    catalog_router,
    checkout_router,
    orders_router,
    payments_router,
    webhooks_router,
)
from services.store_service.suppliers import build_supplier_cache


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One supplier cache per process, shared by every request's manager
    app.state.supplier_cache = await build_supplier_cache()
    yield
    await close_arq_pool()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the Store Service FastAPI app."""
    settings = get_settings()
    app = FastAPI(
        title="Dropship Store Service",
        version="0.1.0",
        description="Dropshipping storefront - catalog, cart, checkout, payments and supplier fulfillment.",
        lifespan=lifespan,
    )

    # Add rate limiter state to app
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add observability (structured logging + request tracing)
    add_observability_middleware(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "store"}

    # Public store routes
    app.include_router(catalog_router, prefix="/store")
    app.include_router(cart_router, prefix="/store")
    app.include_router(checkout_router, prefix="/store")
    app.include_router(payments_router, prefix="/store")
    app.include_router(webhooks_router, prefix="/store")
    app.include_router(orders_router, prefix="/store")

    # Admin routes (catalog import, syncs, suppliers, fulfillment)
    app.include_router(admin_catalog_router, prefix="/admin/store")
    app.include_router(admin_suppliers_router, prefix="/admin/store")
    app.include_router(admin_orders_router, prefix="/admin/store")

    return app


app = create_app()
