"""
Unit tests for NotificationDispatcher.
Transports are replaced with recording doubles; no network access.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from account_gate.core.config import settings
from account_gate.models import AccountVerification, VerificationStatus
from account_gate.telegram.dispatcher import NotificationDispatcher
from account_gate.telegram.formatting import MARKDOWN_V2
from account_gate.telegram.schemas import DeliveryOutcome, OutboundMessage
from account_gate.telegram.transports import DeliveryTransport
from tests.conftest import ADMIN_CHAT_ID, SECOND_ADMIN_CHAT_ID, RecordingTransport


def _record() -> AccountVerification:
    now = datetime(2024, 5, 1, 13, 45, tzinfo=timezone.utc)
    return AccountVerification(
        id=5,
        external_user_id="abc123",
        status=VerificationStatus.PENDING,
        created_at=now,
        updated_at=now,
    )


class SlowTransport(DeliveryTransport):
    name = "slow"

    async def send(self, recipient, message):
        await asyncio.sleep(5)
        return DeliveryOutcome()


class ExplodingTransport(DeliveryTransport):
    name = "exploding"

    async def send(self, recipient, message):
        raise RuntimeError("boom")


class TestNotifyNewVerification:
    """Tests for notify_new_verification."""

    @pytest.mark.asyncio
    async def test_one_attempt_per_recipient(self, primary_transport, secondary_transport):
        dispatcher = NotificationDispatcher(
            [primary_transport, secondary_transport],
            [ADMIN_CHAT_ID, SECOND_ADMIN_CHAT_ID],
            callbacks_enabled=True,
        )

        results = await dispatcher.notify_new_verification(_record())

        assert [r.recipient for r in results] == [ADMIN_CHAT_ID, SECOND_ADMIN_CHAT_ID]
        assert all(r.delivered for r in results)
        assert all(r.transport == "direct_api" for r in results)
        assert len(primary_transport.sent) == 2
        assert secondary_transport.sent == []

    @pytest.mark.asyncio
    async def test_message_is_markdown_with_callback_buttons(self, primary_transport):
        dispatcher = NotificationDispatcher(
            [primary_transport], [ADMIN_CHAT_ID], callbacks_enabled=True
        )

        await dispatcher.notify_new_verification(_record())

        _, message = primary_transport.sent[0]
        assert message.parse_mode == MARKDOWN_V2
        assert "abc123" in message.text
        assert message.reply_markup() == {
            "inline_keyboard": [
                [{"text": "✅ Approve", "callback_data": "approve_5"}],
                [{"text": "❌ Reject", "callback_data": "reject_5"}],
            ]
        }

    @pytest.mark.asyncio
    async def test_no_recipients_returns_empty(self, primary_transport):
        dispatcher = NotificationDispatcher([primary_transport], [])

        assert await dispatcher.notify_new_verification(_record()) == []
        assert primary_transport.sent == []

    @pytest.mark.asyncio
    async def test_fallback_transport_used_after_primary_failure(
        self, secondary_transport
    ):
        primary = RecordingTransport("direct_api", ok=False, error="Bad Request")
        dispatcher = NotificationDispatcher(
            [primary, secondary_transport], [ADMIN_CHAT_ID], callbacks_enabled=True
        )

        [result] = await dispatcher.notify_new_verification(_record())

        assert result.delivered is True
        assert result.transport == "bot_library"
        assert [(a.transport, a.ok) for a in result.attempts] == [
            ("direct_api", False),
            ("bot_library", True),
        ]
        assert result.attempts[0].error == "Bad Request"
        assert len(secondary_transport.sent) == 1

    @pytest.mark.asyncio
    async def test_recipients_are_independent(self, secondary_transport):
        primary = RecordingTransport(
            "direct_api", failing_recipients=[ADMIN_CHAT_ID]
        )
        dispatcher = NotificationDispatcher(
            [primary, secondary_transport],
            [ADMIN_CHAT_ID, SECOND_ADMIN_CHAT_ID],
            callbacks_enabled=True,
        )

        first, second = await dispatcher.notify_new_verification(_record())

        assert first.transport == "bot_library"
        assert second.transport == "direct_api"
        assert [recipient for recipient, _ in secondary_transport.sent] == [ADMIN_CHAT_ID]

    @pytest.mark.asyncio
    async def test_all_transports_failing_never_raises(self):
        dispatcher = NotificationDispatcher(
            [ExplodingTransport(), RecordingTransport("bot_library", ok=False)],
            [ADMIN_CHAT_ID],
        )

        [result] = await dispatcher.notify_new_verification(_record())

        assert result.delivered is False
        assert result.transport is None
        assert result.attempts[0].error == "RuntimeError: boom"
        assert len(result.attempts) == 2

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, secondary_transport):
        dispatcher = NotificationDispatcher(
            [SlowTransport(), secondary_transport],
            [ADMIN_CHAT_ID],
            timeout_seconds=0.05,
        )

        result = await dispatcher.send_text(ADMIN_CHAT_ID, "hello")

        assert result.attempts[0].ok is False
        assert "Timed out" in result.attempts[0].error
        assert result.transport == "bot_library"

    @pytest.mark.asyncio
    async def test_no_transports(self):
        dispatcher = NotificationDispatcher([], [ADMIN_CHAT_ID])

        [result] = await dispatcher.notify_new_verification(_record())

        assert result.delivered is False
        assert result.attempts == []


class TestActionKeyboard:
    """Tests for callback vs link button encoding."""

    def test_links_used_without_callback_consumer(self):
        dispatcher = NotificationDispatcher([], [ADMIN_CHAT_ID], callbacks_enabled=False)

        with patch.object(settings, "BASE_URL", "https://verify.example.com"):
            keyboard = dispatcher.build_action_keyboard(_record())

        approve, reject = keyboard[0][0], keyboard[1][0]
        assert approve.callback_data is None
        assert approve.url.startswith(
            "https://verify.example.com/api/admin/account-verifications/5?action=approve"
        )
        assert "action=reject" in reject.url

    def test_callbacks_used_without_base_url(self):
        dispatcher = NotificationDispatcher([], [ADMIN_CHAT_ID], callbacks_enabled=False)

        with patch.object(settings, "BASE_URL", None):
            keyboard = dispatcher.build_action_keyboard(_record())

        assert [row[0].callback_data for row in keyboard] == ["approve_5", "reject_5"]
        assert all(row[0].url is None for row in keyboard)

    def test_callbacks_preferred_when_consumer_running(self):
        dispatcher = NotificationDispatcher([], [ADMIN_CHAT_ID], callbacks_enabled=True)

        with patch.object(settings, "BASE_URL", "https://verify.example.com"):
            keyboard = dispatcher.build_action_keyboard(_record())

        assert [row[0].callback_data for row in keyboard] == ["approve_5", "reject_5"]


class TestBroadcastAndClose:
    @pytest.mark.asyncio
    async def test_broadcast_plain_message(self, primary_transport):
        dispatcher = NotificationDispatcher(
            [primary_transport], [ADMIN_CHAT_ID, SECOND_ADMIN_CHAT_ID]
        )

        results = await dispatcher.broadcast(OutboundMessage(text="hi"))

        assert len(results) == 2
        assert all(message.reply_markup() is None for _, message in primary_transport.sent)

    @pytest.mark.asyncio
    async def test_close_closes_transports(self, primary_transport, secondary_transport):
        dispatcher = NotificationDispatcher(
            [primary_transport, secondary_transport], [ADMIN_CHAT_ID]
        )

        await dispatcher.close()

        assert primary_transport.closed is True
        assert secondary_transport.closed is True
