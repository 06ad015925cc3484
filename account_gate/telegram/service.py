import logging
import time
from collections import OrderedDict
from threading import Lock
from typing import Any, Dict

from account_gate.core.logging_config import clear_update_id, set_update_id
from account_gate.telegram.callbacks import ActionCallbackHandler
from account_gate.telegram.commands import AdminCommandHandler
from account_gate.telegram.dispatcher import NotificationDispatcher
from account_gate.telegram.schemas import Update

logger = logging.getLogger(__name__)


class UpdateDeduplicationCache:
    """Thread-safe in-memory cache of processed update ids with TTL"""

    def __init__(self, ttl_seconds: int = 300, max_size: int = 1000):
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._cache: OrderedDict[int, float] = OrderedDict()
        self._lock = Lock()

    def is_duplicate(self, update_id: int) -> bool:
        """Check if update was already processed. Returns True if duplicate."""
        with self._lock:
            current_time = time.time()

            if update_id in self._cache:
                timestamp = self._cache[update_id]
                if current_time - timestamp <= self.ttl_seconds:
                    logger.warning(
                        f"Duplicate update detected: {update_id} "
                        f"(originally processed {current_time - timestamp:.1f}s ago)"
                    )
                    return True
                # Expired - remove and treat as new
                del self._cache[update_id]

            return False

    def mark_processed(self, update_id: int) -> None:
        with self._lock:
            self._cache[update_id] = time.time()

            if len(self._cache) > self.max_size:
                self._cleanup()

    def _cleanup(self) -> None:
        """Remove expired entries, then the oldest ones beyond max_size"""
        current_time = time.time()
        expired = [
            uid for uid, ts in self._cache.items()
            if current_time - ts > self.ttl_seconds
        ]
        for uid in expired:
            del self._cache[uid]
        while len(self._cache) > self.max_size:
            self._cache.popitem(last=False)
        if expired:
            logger.info(f"Cleaned up {len(expired)} expired updates")


class TelegramBotService:
    """Routes inbound updates (webhook or long-poll) to the admin handlers."""

    def __init__(
        self,
        callback_handler: ActionCallbackHandler,
        command_handler: AdminCommandHandler,
        dispatcher: NotificationDispatcher,
        dedupe_cache: UpdateDeduplicationCache = None,
    ):
        self.callback_handler = callback_handler
        self.command_handler = command_handler
        self.dispatcher = dispatcher
        self.dedupe_cache = dedupe_cache or UpdateDeduplicationCache()

    async def process_update(self, update: Update) -> Dict[str, Any]:
        """
        Handle one update.

        Returns a small summary dict (``{"status": ...}``) used as the webhook
        response body and in logs.
        """
        if self.dedupe_cache.is_duplicate(update.update_id):
            return {"status": "duplicate", "update_id": update.update_id}

        # Mark early so a redelivery during processing is not handled twice
        self.dedupe_cache.mark_processed(update.update_id)

        set_update_id(str(update.update_id))
        try:
            if update.callback_query is not None:
                result = await self.callback_handler.handle(update.callback_query)
                return {
                    "status": "callback",
                    "outcome": result.outcome.value,
                    "verification_id": result.verification_id,
                }

            if update.message is not None and update.message.text:
                reply = await self.command_handler.handle(update.message)
                if reply is None:
                    return {"status": "ignored"}
                await self.dispatcher.send_text(update.message.chat.id, reply)
                return {"status": "command"}

            logger.debug(f"Ignoring update {update.update_id} without handled content")
            return {"status": "ignored"}
        finally:
            clear_update_id()
