"""
Telegram payload models.

Inbound: the subset of the Bot API ``Update`` object the bot consumes.
Outbound: provider-neutral message/button descriptions and delivery results,
rendered into wire format by each transport.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from pydantic import BaseModel, Field


# ------------------ Inbound (Bot API) ------------------ #
class TelegramUser(BaseModel):
    id: int
    is_bot: bool = False
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.first_name:
            return self.first_name
        if self.username:
            return f"@{self.username}"
        return "Admin"


class TelegramChat(BaseModel):
    id: int
    type: Optional[str] = None


class TelegramMessage(BaseModel):
    message_id: int
    chat: TelegramChat
    from_user: Optional[TelegramUser] = Field(None, alias="from")
    date: Optional[int] = None
    text: Optional[str] = None

    class Config:
        populate_by_name = True


class CallbackQuery(BaseModel):
    id: str
    from_user: TelegramUser = Field(..., alias="from")
    message: Optional[TelegramMessage] = None
    data: Optional[str] = None

    class Config:
        populate_by_name = True

    @property
    def chat_id(self) -> int:
        """Chat the button was pressed in (falls back to the sender)."""
        if self.message is not None:
            return self.message.chat.id
        return self.from_user.id


class Update(BaseModel):
    update_id: int
    message: Optional[TelegramMessage] = None
    callback_query: Optional[CallbackQuery] = None


# ------------------ Outbound ------------------ #
@dataclass(frozen=True)
class ActionButton:
    """Inline button carrying either a callback token or a URL."""

    text: str
    callback_data: Optional[str] = None
    url: Optional[str] = None

    def to_dict(self) -> dict:
        button = {"text": self.text}
        if self.callback_data is not None:
            button["callback_data"] = self.callback_data
        if self.url is not None:
            button["url"] = self.url
        return button


@dataclass
class OutboundMessage:
    text: str
    parse_mode: Optional[str] = None
    keyboard: List[List[ActionButton]] = field(default_factory=list)

    def reply_markup(self) -> Optional[dict]:
        if not self.keyboard:
            return None
        return {
            "inline_keyboard": [
                [button.to_dict() for button in row] for row in self.keyboard
            ]
        }


@dataclass
class DeliveryOutcome:
    """Successful send; failures are raised as DeliveryFailure."""

    message_id: Optional[int] = None


@dataclass
class DeliveryAttempt:
    transport: str
    ok: bool
    error: Optional[str] = None
    message_id: Optional[int] = None


@dataclass
class DeliveryResult:
    recipient: int
    attempts: List[DeliveryAttempt] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        return any(attempt.ok for attempt in self.attempts)

    @property
    def transport(self) -> Optional[str]:
        """Name of the transport that delivered the message, if any."""
        for attempt in self.attempts:
            if attempt.ok:
                return attempt.transport
        return None


class BotStatusResponse(BaseModel):
    is_configured: bool = Field(..., alias="isConfigured")
    admin_ids: List[int] = Field(..., alias="adminIds")
    callbacks_enabled: bool = Field(..., alias="callbacksEnabled")
    error: Optional[str] = None

    class Config:
        populate_by_name = True
