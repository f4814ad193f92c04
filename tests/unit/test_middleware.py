import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from libs.common.middleware import RequestContextMiddleware, redact_query


@pytest.mark.unit
def test_redact_query_masks_shopper_identifiers():
    query = "email=buyer%40example.com&order_number=ORD-1&session_id=abc"

    assert redact_query(query) == "email=%2A%2A%2A&order_number=ORD-1&session_id=%2A%2A%2A"
    assert redact_query("") is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_request_id_is_propagated():
    app = FastAPI()
    app.add_middleware(RequestContextMiddleware)

    @app.get("/ping")
    async def ping():
        return {"ok": True}

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        echoed = await ac.get("/ping", headers={"X-Request-ID": "req-123"})
        generated = await ac.get("/ping")

    assert echoed.headers["X-Request-ID"] == "req-123"
    assert generated.headers["X-Request-ID"]
