"""
Thin async client for the Telegram Bot API over httpx.

Every call is ``POST {base_url}/bot<token>/<method>`` with a JSON body; the
``{"ok": ..., "result": ...}`` envelope is unwrapped and ``ok: false`` is
raised as TelegramApiError. The URL embeds the bot token, so it is never
logged.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from account_gate.core.config import settings

logger = logging.getLogger(__name__)


class TelegramApiError(Exception):
    def __init__(
        self, method: str, description: str, error_code: Optional[int] = None
    ):
        self.method = method
        self.description = description
        self.error_code = error_code
        super().__init__(f"Telegram {method} failed: {description}")


class TelegramApiClient:
    def __init__(
        self,
        token: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._token = token
        self.base_url = (base_url or settings.TELEGRAM_API_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.NOTIFICATION_TIMEOUT_SECONDS
        self._transport = transport

    def _method_url(self, method: str) -> str:
        return f"{self.base_url}/bot{self._token}/{method}"

    async def call(
        self,
        method: str,
        payload: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Invoke a Bot API method and return its ``result``."""
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(
                self._method_url(method),
                json=payload or {},
                timeout=timeout or self.timeout,
            )

        try:
            data = response.json()
        except ValueError:
            raise TelegramApiError(
                method, f"Non-JSON response (HTTP {response.status_code})"
            )

        if not data.get("ok"):
            raise TelegramApiError(
                method,
                data.get("description") or f"HTTP {response.status_code}",
                data.get("error_code"),
            )
        return data.get("result")

    async def send_message(
        self,
        chat_id: int,
        text: str,
        parse_mode: Optional[str] = None,
        reply_markup: Optional[dict] = None,
        timeout: Optional[float] = None,
    ) -> dict:
        payload: Dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "disable_notification": False,
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode
        if reply_markup:
            payload["reply_markup"] = reply_markup
        return await self.call("sendMessage", payload, timeout=timeout)

    async def answer_callback_query(
        self, callback_query_id: str, text: str, show_alert: bool = False
    ) -> bool:
        return await self.call(
            "answerCallbackQuery",
            {
                "callback_query_id": callback_query_id,
                "text": text,
                "show_alert": show_alert,
            },
        )

    async def edit_message_text(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        parse_mode: Optional[str] = None,
    ) -> Any:
        payload: Dict[str, Any] = {
            "chat_id": chat_id,
            "message_id": message_id,
            "text": text,
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode
        return await self.call("editMessageText", payload)

    async def get_updates(
        self, offset: Optional[int] = None, timeout: int = 10
    ) -> List[dict]:
        payload: Dict[str, Any] = {
            "timeout": timeout,
            "allowed_updates": ["message", "callback_query"],
        }
        if offset is not None:
            payload["offset"] = offset
        # HTTP timeout must outlive the long-poll timeout
        return await self.call("getUpdates", payload, timeout=timeout + 10)

    async def set_webhook(self, url: str, secret_token: Optional[str] = None) -> bool:
        payload: Dict[str, Any] = {
            "url": url,
            "allowed_updates": ["message", "callback_query"],
        }
        if secret_token:
            payload["secret_token"] = secret_token
        return await self.call("setWebhook", payload)

    async def delete_webhook(self) -> bool:
        return await self.call("deleteWebhook", {"drop_pending_updates": False})
