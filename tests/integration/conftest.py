"""
Shared fixtures for integration tests.

Integration tests drive the FastAPI app through httpx.AsyncClient over
ASGITransport. The lifespan does not run under ASGITransport, so the
`client` fixture wires a fresh in-memory store and a TelegramBridge with
recording transports onto app.state itself.

Example:
    @pytest.mark.asyncio
    async def test_something(client):
        response = await client.post(f"{API_PREFIX}/verify-account", json={...})
        assert response.status_code == 200
"""

from unittest.mock import AsyncMock

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from account_gate.core.rate_limit import limiter
from account_gate.main import app
from account_gate.telegram.bot import TelegramBridge
from account_gate.telegram.client import TelegramApiClient
from account_gate.verification.store import VerificationStore
from tests.conftest import (
    ADMIN_CHAT_ID,
    SECOND_ADMIN_CHAT_ID,
    TEST_DATABASE_URL,
    RecordingTransport,
)


# All API routes are prefixed with this. Use it in your tests!
API_PREFIX = "/api"


@pytest_asyncio.fixture
async def test_store():
    """Fresh in-memory verification store for each test."""
    store = VerificationStore.from_url(TEST_DATABASE_URL)
    await store.create_tables()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def telegram_client():
    client = AsyncMock(spec=TelegramApiClient)
    client.answer_callback_query.return_value = True
    client.edit_message_text.return_value = {"message_id": 77}
    return client


@pytest_asyncio.fixture
async def delivery_transport():
    return RecordingTransport("direct_api")


@pytest_asyncio.fixture
async def bridge(test_store, telegram_client, delivery_transport):
    telegram_bridge = TelegramBridge(
        test_store,
        token="123456:TEST-TOKEN",
        admin_chat_ids=[ADMIN_CHAT_ID, SECOND_ADMIN_CHAT_ID],
        transports=[delivery_transport],
        client=telegram_client,
    )
    telegram_bridge.dispatcher.callbacks_enabled = True
    return telegram_bridge


@pytest_asyncio.fixture
async def client(test_store, bridge):
    """
    Async test client bound to the test store and bridge.

    Rate limit counters are reset so tests do not affect each other.
    """
    app.state.verification_store = test_store
    app.state.telegram_bridge = bridge
    limiter.reset()

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
