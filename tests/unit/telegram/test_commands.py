"""
Unit tests for admin bot commands.
"""

import pytest

from account_gate.models import VerificationStatus
from account_gate.telegram.admins import AdminRegistry
from account_gate.telegram.commands import (
    UNAUTHORIZED_REPLY,
    AdminCommandHandler,
    parse_command,
)
from account_gate.telegram.dispatcher import NotificationDispatcher
from tests.conftest import (
    ADMIN_CHAT_ID,
    SECOND_ADMIN_CHAT_ID,
    STRANGER_CHAT_ID,
    make_text_message,
)


@pytest.fixture
def commands(store):
    return AdminCommandHandler(store, [ADMIN_CHAT_ID, SECOND_ADMIN_CHAT_ID])


class TestParseCommand:
    def test_plain_command(self):
        assert parse_command("/approve 12") == ("approve", ["12"])

    def test_strips_bot_mention(self):
        assert parse_command("/Stats@AccountGateBot") == ("stats", [])

    def test_not_a_command(self):
        assert parse_command("hello") is None
        assert parse_command(None) is None
        assert parse_command("/") is None


class TestAuthorization:
    @pytest.mark.asyncio
    async def test_unauthorized_start_is_refused(self, commands):
        reply = await commands.handle(make_text_message("/start", chat_id=STRANGER_CHAT_ID))

        assert reply == UNAUTHORIZED_REPLY

    @pytest.mark.asyncio
    async def test_unauthorized_commands_are_ignored(self, commands, store):
        outcome = await store.submit("abc123")

        reply = await commands.handle(
            make_text_message(f"/approve {outcome.record.id}", chat_id=STRANGER_CHAT_ID)
        )

        assert reply is None
        assert (await store.get_by_id(outcome.record.id)).status == VerificationStatus.PENDING


class TestCommands:
    @pytest.mark.asyncio
    async def test_help(self, commands):
        reply = await commands.handle(make_text_message("/help"))

        assert "/approve <id>" in reply

    @pytest.mark.asyncio
    async def test_unknown_command(self, commands):
        reply = await commands.handle(make_text_message("/frobnicate"))

        assert "Unknown command /frobnicate" in reply

    @pytest.mark.asyncio
    async def test_list_empty(self, commands):
        assert await commands.handle(make_text_message("/list")) == (
            "No account verifications found."
        )

    @pytest.mark.asyncio
    async def test_pending_lists_records(self, commands, store):
        await store.submit("abc123")

        reply = await commands.handle(make_text_message("/pending"))

        assert "Pending Verifications (1)" in reply
        assert "abc123" in reply

    @pytest.mark.asyncio
    async def test_approve(self, commands, store):
        outcome = await store.submit("abc123")

        reply = await commands.handle(make_text_message(f"/approve {outcome.record.id}"))

        assert reply == "✅ Successfully approved User ID: abc123"
        record = await store.get_by_id(outcome.record.id)
        assert record.status == VerificationStatus.APPROVED
        assert record.notes == f"Approved via Telegram bot by admin {ADMIN_CHAT_ID}"

    @pytest.mark.asyncio
    async def test_approve_requires_id(self, commands):
        reply = await commands.handle(make_text_message("/approve"))

        assert reply == "Please provide a verification ID: /approve <id>"

    @pytest.mark.asyncio
    async def test_approve_unknown_id(self, commands):
        reply = await commands.handle(make_text_message("/approve 999"))

        assert reply == "❌ Verification with ID 999 not found."

    @pytest.mark.asyncio
    async def test_approve_out_of_range_id_not_found(self, commands):
        reply = await commands.handle(make_text_message("/approve 99999999999999999999"))

        assert reply == "❌ Verification with ID 99999999999999999999 not found."

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["/approve ²", "/info ١٢", "/reject -4 spam"])
    async def test_non_ascii_or_signed_id_asks_for_id(self, commands, text):
        reply = await commands.handle(make_text_message(text))

        assert reply.startswith("Please provide a verification ID")

    @pytest.mark.asyncio
    async def test_reject_with_reason(self, commands, store):
        outcome = await store.submit("abc123")

        reply = await commands.handle(
            make_text_message(f"/reject {outcome.record.id} duplicate account")
        )

        assert "Reason: duplicate account" in reply
        record = await store.get_by_id(outcome.record.id)
        assert record.status == VerificationStatus.REJECTED
        assert record.notes == "duplicate account"

    @pytest.mark.asyncio
    async def test_info(self, commands, store):
        outcome = await store.submit("abc123")

        reply = await commands.handle(make_text_message(f"/info {outcome.record.id}"))

        assert "User ID: abc123" in reply
        assert "Status: PENDING" in reply

    @pytest.mark.asyncio
    async def test_stats(self, commands, store):
        await store.submit("a")
        await store.submit("b")

        reply = await commands.handle(make_text_message("/stats"))

        assert "Total: 2" in reply
        assert "Pending: 2" in reply

    @pytest.mark.asyncio
    async def test_admins(self, commands):
        reply = await commands.handle(make_text_message("/admins"))

        assert f"1. {ADMIN_CHAT_ID}" in reply
        assert f"2. {SECOND_ADMIN_CHAT_ID}" in reply


class TestAddAdmin:
    """Runtime admin registration via /addadmin."""

    @pytest.fixture
    def registry(self):
        return AdminRegistry([ADMIN_CHAT_ID])

    @pytest.fixture
    def dispatcher(self, registry, primary_transport):
        return NotificationDispatcher([primary_transport], registry)

    @pytest.fixture
    def commands(self, store, registry, dispatcher):
        return AdminCommandHandler(store, registry, dispatcher)

    @pytest.mark.asyncio
    async def test_adds_admin_and_welcomes_them(
        self, commands, registry, dispatcher, primary_transport
    ):
        reply = await commands.handle(make_text_message(f"/addadmin {STRANGER_CHAT_ID}"))

        assert reply == f"✅ Successfully added Chat ID {STRANGER_CHAT_ID} as an admin."
        assert STRANGER_CHAT_ID in registry
        assert STRANGER_CHAT_ID in dispatcher.recipients
        [(recipient, message)] = primary_transport.sent
        assert recipient == STRANGER_CHAT_ID
        assert f"added as an admin by Chat ID {ADMIN_CHAT_ID}" in message.text

    @pytest.mark.asyncio
    async def test_new_admin_can_use_commands(self, commands):
        await commands.handle(make_text_message(f"/addadmin {STRANGER_CHAT_ID}"))

        reply = await commands.handle(
            make_text_message("/admins", chat_id=STRANGER_CHAT_ID)
        )

        assert f"2. {STRANGER_CHAT_ID}" in reply

    @pytest.mark.asyncio
    async def test_existing_admin_is_reported(self, commands, primary_transport):
        reply = await commands.handle(make_text_message(f"/addadmin {ADMIN_CHAT_ID}"))

        assert reply == f"❌ Chat ID {ADMIN_CHAT_ID} is already an admin."
        assert primary_transport.sent == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["/addadmin", "/addadmin abc", "/addadmin ²"])
    async def test_requires_numeric_chat_id(self, commands, registry, text):
        reply = await commands.handle(make_text_message(text))

        assert reply == "Please provide a chat ID: /addadmin <chat_id>"
        assert len(registry) == 1

    @pytest.mark.asyncio
    async def test_unauthorized_chat_cannot_add(self, commands, registry):
        reply = await commands.handle(
            make_text_message(f"/addadmin {STRANGER_CHAT_ID}", chat_id=STRANGER_CHAT_ID)
        )

        assert reply is None
        assert STRANGER_CHAT_ID not in registry

    @pytest.mark.asyncio
    async def test_works_without_dispatcher(self, store):
        commands = AdminCommandHandler(store, [ADMIN_CHAT_ID])

        reply = await commands.handle(make_text_message("/addadmin -100123"))

        assert reply == "✅ Successfully added Chat ID -100123 as an admin."
        assert -100123 in commands.admin_chat_ids
