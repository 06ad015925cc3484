"""
TelegramBridge: builds and owns every Telegram component from settings.

Created once in the application lifespan and kept on ``app.state``. When no
bot token is configured the bridge still exists: notifications are skipped
with an error log and the status endpoint reports the missing token.
"""

import logging
import secrets
from typing import Iterable, List, Optional

import httpx

from account_gate.core.config import settings
from account_gate.telegram.admins import AdminRegistry
from account_gate.telegram.callbacks import ActionCallbackHandler
from account_gate.telegram.client import TelegramApiClient, TelegramApiError
from account_gate.telegram.commands import AdminCommandHandler
from account_gate.telegram.dispatcher import NotificationDispatcher
from account_gate.telegram.poller import TelegramPoller
from account_gate.telegram.schemas import BotStatusResponse, OutboundMessage
from account_gate.telegram.service import TelegramBotService
from account_gate.telegram.transports import (
    BotLibraryTransport,
    DeliveryTransport,
    DirectApiTransport,
)
from account_gate.verification.store import VerificationStore

logger = logging.getLogger(__name__)

STARTUP_ANNOUNCEMENT = (
    "🤖 Verification bot is online.\n\nUse /help to see available commands."
)


class TelegramBridge:
    def __init__(
        self,
        store: VerificationStore,
        token: Optional[str] = None,
        admin_chat_ids: Optional[Iterable[int]] = None,
        transports: Optional[List[DeliveryTransport]] = None,
        client: Optional[TelegramApiClient] = None,
    ):
        self.token = token if token is not None else settings.TELEGRAM_BOT_TOKEN
        self.admin_chat_ids = AdminRegistry(
            admin_chat_ids if admin_chat_ids is not None else settings.admin_chat_ids
        )
        self.client = client or TelegramApiClient(token=self.token or "")

        if transports is None:
            transports = self._default_transports() if self.token else []

        self.dispatcher = NotificationDispatcher(
            transports=transports, recipients=self.admin_chat_ids
        )
        self.callback_handler = ActionCallbackHandler(
            store, self.client, self.dispatcher, self.admin_chat_ids
        )
        self.command_handler = AdminCommandHandler(
            store, self.admin_chat_ids, self.dispatcher
        )
        self.service = TelegramBotService(
            self.callback_handler, self.command_handler, self.dispatcher
        )
        self.poller: Optional[TelegramPoller] = None
        self.last_error: Optional[str] = None
        self._generated_webhook_secret: Optional[str] = None

    def _default_transports(self) -> List[DeliveryTransport]:
        return [
            DirectApiTransport(self.client),
            BotLibraryTransport.from_token(self.token),
        ]

    @property
    def webhook_secret(self) -> Optional[str]:
        """Secret Telegram must echo on webhook calls; None until one exists."""
        return settings.TELEGRAM_WEBHOOK_SECRET or self._generated_webhook_secret

    @property
    def is_configured(self) -> bool:
        return bool(self.token)

    async def start(self) -> None:
        """Register the inbound consumer and optionally greet the admins."""
        if not self.is_configured:
            self.last_error = "TELEGRAM_BOT_TOKEN is not configured"
            logger.warning("Telegram bot token not configured, admin notifications disabled")
            return

        if not self.admin_chat_ids:
            logger.warning("No ADMIN_CHAT_IDS configured, nobody will be notified")

        if settings.TELEGRAM_WEBHOOK_URL:
            await self._register_webhook(settings.TELEGRAM_WEBHOOK_URL)
        elif settings.TELEGRAM_POLLING_ENABLED:
            self.poller = TelegramPoller(self.client, self.service)
            await self.poller.start()
            self.dispatcher.callbacks_enabled = True
        else:
            logger.info(
                "No webhook or polling configured, notifications will use action links"
            )

        if settings.TELEGRAM_ANNOUNCE_STARTUP:
            await self.dispatcher.broadcast(OutboundMessage(text=STARTUP_ANNOUNCEMENT))

    async def _register_webhook(self, url: str) -> None:
        if not self.webhook_secret:
            logger.warning(
                "TELEGRAM_WEBHOOK_SECRET not configured, using a generated secret "
                "for this process"
            )
            self._generated_webhook_secret = secrets.token_urlsafe(32)

        try:
            await self.client.set_webhook(url, self.webhook_secret)
        except (TelegramApiError, httpx.HTTPError) as e:
            self.last_error = f"Webhook registration failed: {e}"
            logger.error(self.last_error)
            return

        self.dispatcher.callbacks_enabled = True
        logger.info("Telegram webhook registered")

    async def stop(self) -> None:
        if self.poller is not None:
            await self.poller.stop()
        await self.dispatcher.close()

    def status(self) -> BotStatusResponse:
        return BotStatusResponse(
            is_configured=self.is_configured,
            admin_ids=list(self.admin_chat_ids),
            callbacks_enabled=self.dispatcher.callbacks_enabled,
            error=self.last_error,
        )
