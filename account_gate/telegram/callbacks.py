"""
ActionCallbackHandler: turns an inline-button press into a status change.

Steps: authorize -> parse -> resolve -> apply -> acknowledge. Answering the
callback and editing the original message are best-effort; a failed edit is
replaced by a fresh confirmation message sent through the dispatcher.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from account_gate.models import AccountVerification
from account_gate.telegram.admins import as_registry
from account_gate.telegram.client import TelegramApiClient
from account_gate.telegram.dispatcher import NotificationDispatcher
from account_gate.telegram.formatting import MARKDOWN_V2, build_processed_text
from account_gate.telegram.schemas import CallbackQuery
from account_gate.verification.actions import (
    DiagnosticAction,
    InvalidAction,
    ResolvedAction,
    apply_admin_action,
    build_audit_note,
    parse_action_token,
)
from account_gate.verification.exceptions import (
    UnauthorizedActionError,
    VerificationNotFoundError,
)
from account_gate.verification.store import VerificationStore

logger = logging.getLogger(__name__)

CALLBACK_SOURCE = "Telegram"
UNAUTHORIZED_TEXT = "Unauthorized: You are not registered as an admin."
GENERIC_ERROR_TEXT = "Error: Failed to process your request"


class CallbackOutcome(str, enum.Enum):
    APPLIED = "applied"
    UNAUTHORIZED = "unauthorized"
    INVALID_ACTION = "invalid_action"
    NOT_FOUND = "not_found"
    IGNORED = "ignored"
    ERROR = "error"


@dataclass
class CallbackResult:
    outcome: CallbackOutcome
    verification_id: Optional[int] = None
    record: Optional[AccountVerification] = None
    detail: Optional[str] = None


class ActionCallbackHandler:
    def __init__(
        self,
        store: VerificationStore,
        client: TelegramApiClient,
        dispatcher: NotificationDispatcher,
        admin_chat_ids: Iterable[int],
    ):
        self.store = store
        self.client = client
        self.dispatcher = dispatcher
        self.admin_chat_ids = as_registry(admin_chat_ids)

    def authorize(self, query: CallbackQuery) -> None:
        """Raise UnauthorizedActionError unless the chat or sender is an admin."""
        if (
            query.chat_id not in self.admin_chat_ids
            and query.from_user.id not in self.admin_chat_ids
        ):
            raise UnauthorizedActionError(
                f"Chat {query.chat_id} is not registered as an admin"
            )

    async def handle(self, query: CallbackQuery) -> CallbackResult:
        """Process one callback query. Never raises."""
        try:
            return await self._handle(query)
        except Exception as e:
            logger.exception(f"Failed to process callback query {query.id}")
            await self._answer(query, GENERIC_ERROR_TEXT, show_alert=True)
            return CallbackResult(outcome=CallbackOutcome.ERROR, detail=str(e))

    async def _handle(self, query: CallbackQuery) -> CallbackResult:
        chat_id = query.chat_id
        logger.info(f"Callback query from chat {chat_id}: {query.data!r}")

        try:
            self.authorize(query)
        except UnauthorizedActionError as e:
            logger.warning(f"Unauthorized callback attempt: {e}")
            await self._answer(query, UNAUTHORIZED_TEXT, show_alert=True)
            return CallbackResult(outcome=CallbackOutcome.UNAUTHORIZED)

        parsed = parse_action_token(query.data)

        if isinstance(parsed, DiagnosticAction):
            await self._answer(
                query, f"Test button {parsed.label} clicked successfully!", show_alert=True
            )
            return CallbackResult(outcome=CallbackOutcome.IGNORED, detail=parsed.label)

        if isinstance(parsed, InvalidAction):
            logger.warning(f"Invalid callback data {parsed.raw!r}: {parsed.reason}")
            await self._answer(query, f"Error: {parsed.reason}", show_alert=True)
            return CallbackResult(
                outcome=CallbackOutcome.INVALID_ACTION, detail=parsed.reason
            )

        return await self._apply(query, parsed)

    async def _apply(
        self, query: CallbackQuery, parsed: ResolvedAction
    ) -> CallbackResult:
        chat_id = query.chat_id
        actor = f"admin {chat_id} ({query.from_user.display_name})"
        notes = build_audit_note(parsed.action, actor, CALLBACK_SOURCE)

        try:
            record = await apply_admin_action(
                self.store, parsed.action, parsed.verification_id, notes
            )
        except VerificationNotFoundError as e:
            await self._answer(query, f"Error: {e}", show_alert=True)
            return CallbackResult(
                outcome=CallbackOutcome.NOT_FOUND,
                verification_id=parsed.verification_id,
                detail=str(e),
            )

        await self._answer(
            query,
            f"Verification #{record.id} {parsed.action.target_status.value} successfully",
        )
        await self._acknowledge(query, record, parsed, actor)

        return CallbackResult(
            outcome=CallbackOutcome.APPLIED,
            verification_id=record.id,
            record=record,
        )

    async def _acknowledge(
        self,
        query: CallbackQuery,
        record: AccountVerification,
        parsed: ResolvedAction,
        actor: str,
    ) -> None:
        text = build_processed_text(record, parsed.action, actor)

        if query.message is not None:
            try:
                await self.client.edit_message_text(
                    chat_id=query.message.chat.id,
                    message_id=query.message.message_id,
                    text=text,
                    parse_mode=MARKDOWN_V2,
                )
                return
            except Exception as e:
                logger.warning(
                    f"Could not edit notification for verification #{record.id}: {e}"
                )

        result = await self.dispatcher.send_text(query.chat_id, text, MARKDOWN_V2)
        if not result.delivered:
            logger.error(
                f"Could not confirm verification #{record.id} to chat {query.chat_id}"
            )

    async def _answer(
        self, query: CallbackQuery, text: str, show_alert: bool = False
    ) -> None:
        try:
            await self.client.answer_callback_query(query.id, text, show_alert)
        except Exception as e:
            logger.warning(f"Could not answer callback query {query.id}: {e}")
