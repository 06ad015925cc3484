"""
Pytest configuration and shared fixtures for account verification tests.
"""

import os

# Set required environment variables BEFORE importing app modules
os.environ.setdefault("LOG_LEVEL", "INFO")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
# Note: This is a test-only dummy value, not a real bot token
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "123456:TEST-TOKEN")
os.environ.setdefault("ADMIN_CHAT_IDS", "1001,1002")
os.environ.setdefault("VERIFY_RATE_LIMIT", "1000/minute")
os.environ.setdefault("TELEGRAM_WEBHOOK_SECRET", "test-webhook-secret")

from typing import List, Optional

import pytest
import pytest_asyncio

from account_gate.telegram.exceptions import DeliveryFailure
from account_gate.telegram.schemas import (
    CallbackQuery,
    DeliveryOutcome,
    OutboundMessage,
    TelegramChat,
    TelegramMessage,
    TelegramUser,
)
from account_gate.telegram.transports import DeliveryTransport
from account_gate.verification.store import VerificationStore


# In-memory SQLite for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ADMIN_CHAT_ID = 1001
SECOND_ADMIN_CHAT_ID = 1002
STRANGER_CHAT_ID = 4242
WEBHOOK_SECRET = "test-webhook-secret"


class RecordingTransport(DeliveryTransport):
    """Transport double that records sends and returns a scripted outcome."""

    def __init__(
        self,
        name: str,
        ok: bool = True,
        error: Optional[str] = None,
        failing_recipients: Optional[List[int]] = None,
    ):
        self.name = name
        self.ok = ok
        self.error = error
        self.failing_recipients = set(failing_recipients or [])
        self.sent: List[tuple] = []
        self.closed = False

    async def send(self, recipient: int, message: OutboundMessage) -> DeliveryOutcome:
        self.sent.append((recipient, message))
        if not self.ok or recipient in self.failing_recipients:
            raise DeliveryFailure(self.name, self.error or "rejected")
        return DeliveryOutcome(message_id=len(self.sent))

    async def close(self) -> None:
        self.closed = True


@pytest_asyncio.fixture
async def store():
    """Fresh in-memory verification store for each test."""
    verification_store = VerificationStore.from_url(TEST_DATABASE_URL)
    await verification_store.create_tables()
    yield verification_store
    await verification_store.close()


@pytest.fixture
def primary_transport():
    return RecordingTransport("direct_api")


@pytest.fixture
def secondary_transport():
    return RecordingTransport("bot_library")


def make_callback_query(
    data: str,
    chat_id: int = ADMIN_CHAT_ID,
    message_id: Optional[int] = 77,
    first_name: str = "Alice",
) -> CallbackQuery:
    """Build a CallbackQuery as Telegram would send it for an inline button."""
    message = None
    if message_id is not None:
        message = TelegramMessage(
            message_id=message_id,
            chat=TelegramChat(id=chat_id, type="private"),
            text="notification",
        )
    return CallbackQuery(
        id=f"cbq-{chat_id}-{data}",
        from_user=TelegramUser(id=chat_id, first_name=first_name),
        message=message,
        data=data,
    )


def make_text_message(text: str, chat_id: int = ADMIN_CHAT_ID) -> TelegramMessage:
    return TelegramMessage(
        message_id=1,
        chat=TelegramChat(id=chat_id, type="private"),
        from_user=TelegramUser(id=chat_id, first_name="Alice"),
        text=text,
    )
