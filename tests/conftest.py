"""Store fixtures: fakes wired into the app through dependency overrides."""

from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from services.store_service.models import PaymentMethod, PaymentProvider, SupplierType
from services.store_service.suppliers import SupplierManager
from tests.fakes import FakeGateway, FakeSupplier, RecordingDispatcher


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def fake_supplier() -> FakeSupplier:
    return FakeSupplier(SupplierType.CUSTOM)


@pytest.fixture
def supplier_manager(fake_supplier) -> SupplierManager:
    return SupplierManager([fake_supplier])


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def gateway_factory(gateway):
    crypto_gateway = FakeGateway(PaymentProvider.NOWPAYMENTS)

    def _factory(method: PaymentMethod, pay_currency: Optional[str] = None):
        return crypto_gateway if method == PaymentMethod.CRYPTO else gateway

    _factory.crypto = crypto_gateway
    return _factory


@pytest_asyncio.fixture
async def store_app(db_session, dispatcher):
    """
    The store FastAPI app with the DB and fulfillment dispatcher overridden.
    Tests add auth/provider overrides on top; all are cleared afterwards.
    """
    from libs.db.session import get_async_db
    from services.store_service.app.main import app
    from services.store_service.routers._helpers import get_fulfillment_dispatcher

    app.dependency_overrides[get_async_db] = lambda: db_session
    app.dependency_overrides[get_fulfillment_dispatcher] = lambda: dispatcher
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(store_app) -> AsyncGenerator[AsyncClient, None]:
    """
    Yield an AsyncClient bound to the store app.
    """
    async with AsyncClient(
        transport=ASGITransport(app=store_app), base_url="http://test"
    ) as ac:
        yield ac
