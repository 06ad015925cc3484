"""
Delivery transports for admin notifications.

A transport sends one OutboundMessage to one recipient and returns a
DeliveryOutcome, or raises DeliveryFailure. The dispatcher walks an ordered
list of transports per recipient:

1. DirectApiTransport: raw Bot API ``sendMessage`` over httpx
2. BotLibraryTransport: aiogram ``Bot.send_message``
"""

import logging
from abc import ABC, abstractmethod

import httpx
from aiogram import Bot
from aiogram.exceptions import TelegramAPIError
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from account_gate.telegram.client import TelegramApiClient, TelegramApiError
from account_gate.telegram.exceptions import DeliveryFailure
from account_gate.telegram.schemas import DeliveryOutcome, OutboundMessage

logger = logging.getLogger(__name__)


class DeliveryTransport(ABC):
    """One tier of the notification delivery chain."""

    name: str = "transport"

    @abstractmethod
    async def send(self, recipient: int, message: OutboundMessage) -> DeliveryOutcome:
        """
        Send ``message`` to ``recipient``.

        Raises:
            DeliveryFailure: provider rejection or network error

        Anything else may propagate and is handled by the dispatcher.
        """

    async def close(self) -> None:
        pass


class DirectApiTransport(DeliveryTransport):
    name = "direct_api"

    def __init__(self, client: TelegramApiClient):
        self.client = client

    async def send(self, recipient: int, message: OutboundMessage) -> DeliveryOutcome:
        try:
            result = await self.client.send_message(
                chat_id=recipient,
                text=message.text,
                parse_mode=message.parse_mode,
                reply_markup=message.reply_markup(),
            )
        except TelegramApiError as e:
            raise DeliveryFailure(self.name, e.description) from e
        except httpx.HTTPError as e:
            raise DeliveryFailure(self.name, f"{type(e).__name__}: {e}") from e

        message_id = result.get("message_id") if isinstance(result, dict) else None
        return DeliveryOutcome(message_id=message_id)


class BotLibraryTransport(DeliveryTransport):
    name = "bot_library"

    def __init__(self, bot: Bot):
        self.bot = bot

    @classmethod
    def from_token(cls, token: str) -> "BotLibraryTransport":
        return cls(Bot(token=token))

    @staticmethod
    def _markup(message: OutboundMessage):
        if not message.keyboard:
            return None
        return InlineKeyboardMarkup(
            inline_keyboard=[
                [InlineKeyboardButton(**button.to_dict()) for button in row]
                for row in message.keyboard
            ]
        )

    async def send(self, recipient: int, message: OutboundMessage) -> DeliveryOutcome:
        try:
            sent = await self.bot.send_message(
                chat_id=recipient,
                text=message.text,
                parse_mode=message.parse_mode,
                reply_markup=self._markup(message),
            )
        except TelegramAPIError as e:
            raise DeliveryFailure(self.name, f"{type(e).__name__}: {e}") from e

        return DeliveryOutcome(message_id=sent.message_id)

    async def close(self) -> None:
        await self.bot.session.close()
