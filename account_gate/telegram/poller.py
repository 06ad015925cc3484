import asyncio
import logging
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from account_gate.core.config import settings
from account_gate.telegram.client import TelegramApiClient
from account_gate.telegram.schemas import Update
from account_gate.telegram.service import TelegramBotService

logger = logging.getLogger(__name__)


class TelegramPoller:
    """
    Long-poll consumer for bot updates, used when no webhook is configured.

    Runs ``getUpdates`` in a background task and feeds every update to
    ``TelegramBotService.process_update``. The offset only moves forward, so
    a failing update is logged and skipped instead of being retried forever.
    """

    def __init__(
        self,
        client: TelegramApiClient,
        service: TelegramBotService,
        poll_timeout: Optional[int] = None,
        error_backoff_seconds: float = 5,
    ):
        self.worker_name = "telegram_poller"
        self.client = client
        self.service = service
        self.poll_timeout = (
            poll_timeout
            if poll_timeout is not None
            else settings.TELEGRAM_POLL_TIMEOUT_SECONDS
        )
        self.error_backoff_seconds = error_backoff_seconds
        self.offset: Optional[int] = None
        self.running = False
        self.worker_task = None

    async def start(self):
        if self.running:
            logger.warning(f"Worker {self.worker_name} is already running")
            return

        # getUpdates is refused while a webhook is registered
        try:
            await self.client.delete_webhook()
        except Exception as e:
            logger.warning(f"Could not delete webhook before polling: {e}")

        self.running = True
        self.worker_task = asyncio.create_task(self._run_worker())
        logger.info(f"Worker {self.worker_name} started")

    async def stop(self):
        if not self.running:
            return

        self.running = False
        if self.worker_task:
            self.worker_task.cancel()
            try:
                await self.worker_task
            except asyncio.CancelledError:
                pass

        logger.info(f"Worker {self.worker_name} stopped")

    async def poll_once(self) -> int:
        """Fetch and process one batch of updates. Returns the batch size."""
        raw_updates = await self.client.get_updates(
            offset=self.offset, timeout=self.poll_timeout
        )

        for raw in raw_updates:
            update_id = raw.get("update_id")
            if update_id is not None:
                self.offset = update_id + 1

            try:
                update = Update.model_validate(raw)
            except PydanticValidationError:
                logger.error(f"Skipping unparseable update {update_id}")
                continue

            try:
                await self.service.process_update(update)
            except Exception:
                logger.exception(f"Worker {self.worker_name} failed to process update {update_id}")

        return len(raw_updates)

    async def _run_worker(self):
        while self.running:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception(f"Worker {self.worker_name} encountered error")
                await asyncio.sleep(self.error_backoff_seconds)
