"""
Slash commands for admin chats.

Only chats in the admin registry (ADMIN_CHAT_IDS plus /addadmin) are
served. An unauthorized ``/start`` gets a refusal; every other message
from an unknown chat is ignored.
"""

import logging
import re
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from account_gate.models import VerificationStatus
from account_gate.telegram.admins import as_registry
from account_gate.telegram.dispatcher import NotificationDispatcher
from account_gate.telegram.formatting import (
    format_record_details,
    format_record_list,
    format_stats,
)
from account_gate.telegram.schemas import TelegramMessage
from account_gate.verification.actions import (
    AdminAction,
    apply_admin_action,
    build_audit_note,
    parse_verification_id,
)
from account_gate.verification.exceptions import VerificationNotFoundError
from account_gate.verification.store import VerificationStore

logger = logging.getLogger(__name__)

COMMAND_SOURCE = "Telegram bot"

UNAUTHORIZED_REPLY = (
    "🔒 You are not authorized to use this bot. Please contact the administrator."
)

HELP_TEXT = "\n".join(
    [
        "Available commands:",
        "",
        "/list - List all verifications",
        "/pending - Show pending verifications",
        "/approved - Show approved verifications",
        "/rejected - Show rejected verifications",
        "/approve <id> - Approve a verification",
        "/reject <id> [reason] - Reject a verification",
        "/info <id> - Show details about a verification",
        "/stats - Show verification statistics",
        "/admins - List all admin chat IDs",
        "/addadmin <chat_id> - Add a new admin chat ID",
        "/help - Show this help message",
    ]
)

WELCOME_TEXT = (
    "👋 Welcome to the Account Admin Bot!\n\n"
    "Use this bot to manage user verifications.\n\n" + HELP_TEXT
)

_CHAT_ID_PATTERN = re.compile(r"-?[0-9]{1,20}")

NEW_ADMIN_WELCOME = (
    "🔔 Welcome Admin!\n\n"
    "You have been added as an admin by Chat ID {added_by}. "
    "Use /help to see available commands."
)

CommandHandler = Callable[[int, List[str]], Awaitable[str]]


def parse_command(text: Optional[str]) -> Optional[tuple]:
    """
    Split ``/cmd@BotName arg1 arg2`` into ``("cmd", ["arg1", "arg2"])``.

    Returns None for text that is not a command.
    """
    if not text or not text.startswith("/"):
        return None
    parts = text.strip().split()
    name = parts[0][1:].split("@", 1)[0].lower()
    if not name:
        return None
    return name, parts[1:]


def _parse_id(args: List[str]) -> Optional[int]:
    if not args:
        return None
    return parse_verification_id(args[0])


def _parse_chat_id(args: List[str]) -> Optional[int]:
    if not args or not _CHAT_ID_PATTERN.fullmatch(args[0]):
        return None
    return int(args[0])


class AdminCommandHandler:
    def __init__(
        self,
        store: VerificationStore,
        admin_chat_ids: Iterable[int],
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        self.store = store
        self.admin_chat_ids = as_registry(admin_chat_ids)
        self.dispatcher = dispatcher
        self._commands: Dict[str, CommandHandler] = {
            "start": self._start,
            "help": self._help,
            "list": self._list,
            "pending": self._pending,
            "approved": self._approved,
            "rejected": self._rejected,
            "approve": self._approve,
            "reject": self._reject,
            "info": self._info,
            "stats": self._stats,
            "admins": self._admins,
            "addadmin": self._addadmin,
        }

    def is_authorized(self, chat_id: int) -> bool:
        return chat_id in self.admin_chat_ids

    async def handle(self, message: TelegramMessage) -> Optional[str]:
        """Return the reply for ``message``, or None when nothing is sent."""
        parsed = parse_command(message.text)
        if parsed is None:
            return None

        name, args = parsed
        chat_id = message.chat.id

        if not self.is_authorized(chat_id):
            logger.warning(f"Unauthorized /{name} from chat {chat_id}")
            return UNAUTHORIZED_REPLY if name == "start" else None

        handler = self._commands.get(name)
        if handler is None:
            return f"Unknown command /{name}. Use /help to see available commands."

        logger.info(f"Admin command /{name} from chat {chat_id}")
        try:
            return await handler(chat_id, args)
        except Exception:
            logger.exception(f"Admin command /{name} failed")
            return "❌ An error occurred while processing your request. Please try again."

    async def _start(self, chat_id: int, args: List[str]) -> str:
        return WELCOME_TEXT

    async def _help(self, chat_id: int, args: List[str]) -> str:
        return HELP_TEXT

    async def _list(self, chat_id: int, args: List[str]) -> str:
        records = await self.store.list_all()
        if not records:
            return "No account verifications found."
        return format_record_list(
            "📋 All Account Verifications", records, with_status=True
        )

    async def _list_status(self, status: VerificationStatus, title: str, empty: str) -> str:
        records = await self.store.list_by_status(status)
        if not records:
            return empty
        return format_record_list(title, records)

    async def _pending(self, chat_id: int, args: List[str]) -> str:
        return await self._list_status(
            VerificationStatus.PENDING,
            "⏳ Pending Verifications",
            "✅ No pending verifications.",
        )

    async def _approved(self, chat_id: int, args: List[str]) -> str:
        return await self._list_status(
            VerificationStatus.APPROVED,
            "✅ Approved Verifications",
            "No approved verifications.",
        )

    async def _rejected(self, chat_id: int, args: List[str]) -> str:
        return await self._list_status(
            VerificationStatus.REJECTED,
            "❌ Rejected Verifications",
            "No rejected verifications.",
        )

    async def _approve(self, chat_id: int, args: List[str]) -> str:
        verification_id = _parse_id(args)
        if verification_id is None:
            return "Please provide a verification ID: /approve <id>"

        notes = build_audit_note(AdminAction.APPROVE, f"admin {chat_id}", COMMAND_SOURCE)
        try:
            record = await apply_admin_action(
                self.store, AdminAction.APPROVE, verification_id, notes
            )
        except VerificationNotFoundError:
            return f"❌ Verification with ID {verification_id} not found."
        return f"✅ Successfully approved User ID: {record.external_user_id}"

    async def _reject(self, chat_id: int, args: List[str]) -> str:
        verification_id = _parse_id(args)
        if verification_id is None:
            return "Please provide a verification ID: /reject <id> [reason]"

        reason = " ".join(args[1:]).strip()
        notes = reason or build_audit_note(
            AdminAction.REJECT, f"admin {chat_id}", COMMAND_SOURCE
        )
        try:
            record = await apply_admin_action(
                self.store, AdminAction.REJECT, verification_id, notes
            )
        except VerificationNotFoundError:
            return f"❌ Verification with ID {verification_id} not found."
        return f"❌ Rejected User ID: {record.external_user_id}\nReason: {notes}"

    async def _info(self, chat_id: int, args: List[str]) -> str:
        verification_id = _parse_id(args)
        if verification_id is None:
            return "Please provide a verification ID: /info <id>"

        record = await self.store.get_by_id(verification_id)
        if record is None:
            return f"❌ Verification with ID {verification_id} not found."
        return f"ℹ️ Verification Details\n\n{format_record_details(record)}"

    async def _stats(self, chat_id: int, args: List[str]) -> str:
        return format_stats(await self.store.count_by_status())

    async def _admins(self, chat_id: int, args: List[str]) -> str:
        if not self.admin_chat_ids:
            return "No admin chat IDs configured."
        rows = "\n".join(f"{index}. {admin_id}" for index, admin_id in enumerate(self.admin_chat_ids, 1))
        return f"👥 Admin Chat IDs ({len(self.admin_chat_ids)})\n\n{rows}"

    async def _addadmin(self, chat_id: int, args: List[str]) -> str:
        new_admin_id = _parse_chat_id(args)
        if new_admin_id is None:
            return "Please provide a chat ID: /addadmin <chat_id>"

        if not self.admin_chat_ids.add(new_admin_id):
            return f"❌ Chat ID {new_admin_id} is already an admin."

        logger.info(f"Chat {chat_id} added admin chat {new_admin_id}")
        if self.dispatcher is not None:
            result = await self.dispatcher.send_text(
                new_admin_id, NEW_ADMIN_WELCOME.format(added_by=chat_id)
            )
            if not result.delivered:
                logger.warning(f"Could not welcome new admin chat {new_admin_id}")
        return f"✅ Successfully added Chat ID {new_admin_id} as an admin."
