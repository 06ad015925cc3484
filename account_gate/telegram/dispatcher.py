"""
NotificationDispatcher: best-effort delivery of admin notifications.

For every recipient the configured transports are tried in order until one
succeeds. Each attempt is bounded by a timeout and logged with its outcome.
Recipients are handled concurrently and independently, and no delivery
error ever reaches the caller.
"""

import asyncio
import logging
from typing import Iterable, List, Optional, Sequence

from account_gate.core.config import settings
from account_gate.models import AccountVerification
from account_gate.telegram.admins import as_registry
from account_gate.telegram.exceptions import DeliveryFailure
from account_gate.telegram.formatting import MARKDOWN_V2, build_new_verification_text
from account_gate.telegram.schemas import (
    ActionButton,
    DeliveryAttempt,
    DeliveryResult,
    OutboundMessage,
)
from account_gate.telegram.transports import DeliveryTransport
from account_gate.verification.actions import AdminAction, build_action_token
from account_gate.verification.links import build_action_link

logger = logging.getLogger(__name__)

BUTTON_LABELS = {
    AdminAction.APPROVE: "✅ Approve",
    AdminAction.REJECT: "❌ Reject",
}


class NotificationDispatcher:
    def __init__(
        self,
        transports: Sequence[DeliveryTransport],
        recipients: Iterable[int],
        timeout_seconds: Optional[float] = None,
        callbacks_enabled: bool = False,
    ):
        """
        Args:
            transports: Delivery tiers, tried in order for each recipient
            recipients: Admin chat IDs that receive notifications; an
                AdminRegistry is shared so runtime additions are notified
            timeout_seconds: Bound for a single transport attempt
            callbacks_enabled: True when an inbound consumer (webhook or
                poller) will receive button callbacks
        """
        self.transports = list(transports)
        self.recipients = as_registry(recipients)
        self.timeout_seconds = timeout_seconds or settings.NOTIFICATION_TIMEOUT_SECONDS
        self.callbacks_enabled = callbacks_enabled

    # ------------------------------------------------------------------
    # Message composition
    # ------------------------------------------------------------------

    def build_action_keyboard(
        self, record: AccountVerification
    ) -> List[List[ActionButton]]:
        """
        Approve/reject buttons for a verification.

        Callback buttons are used while callbacks can be received; otherwise
        signed links are used when a public base URL is configured.
        """
        actions = (AdminAction.APPROVE, AdminAction.REJECT)

        if not self.callbacks_enabled:
            links = [build_action_link(action, record.id) for action in actions]
            if all(links):
                return [
                    [ActionButton(text=BUTTON_LABELS[action], url=url)]
                    for action, url in zip(actions, links)
                ]
            logger.warning(
                "No inbound callback consumer and no BASE_URL configured; "
                "falling back to callback buttons"
            )

        return [
            [
                ActionButton(
                    text=BUTTON_LABELS[action],
                    callback_data=build_action_token(action, record.id),
                )
            ]
            for action in actions
        ]

    def build_new_verification_message(
        self, record: AccountVerification
    ) -> OutboundMessage:
        return OutboundMessage(
            text=build_new_verification_text(record),
            parse_mode=MARKDOWN_V2,
            keyboard=self.build_action_keyboard(record),
        )

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def notify_new_verification(
        self, record: AccountVerification
    ) -> List[DeliveryResult]:
        """Notify every admin about a new pending verification."""
        if not self.recipients:
            logger.warning(
                f"No admin chat IDs configured. Skipping notification for "
                f"verification #{record.id}"
            )
            return []

        logger.info(
            f"Sending notification for verification #{record.id} "
            f"to {len(self.recipients)} admin(s)"
        )
        results = await self.broadcast(self.build_new_verification_message(record))

        delivered = sum(1 for result in results if result.delivered)
        logger.info(
            f"Notification for verification #{record.id} delivered to "
            f"{delivered}/{len(results)} admin(s)"
        )
        return results

    async def broadcast(self, message: OutboundMessage) -> List[DeliveryResult]:
        return list(
            await asyncio.gather(
                *(self.deliver(recipient, message) for recipient in self.recipients)
            )
        )

    async def send_text(
        self, recipient: int, text: str, parse_mode: Optional[str] = None
    ) -> DeliveryResult:
        return await self.deliver(
            recipient, OutboundMessage(text=text, parse_mode=parse_mode)
        )

    async def deliver(self, recipient: int, message: OutboundMessage) -> DeliveryResult:
        """Walk the transport chain for one recipient. Never raises."""
        result = DeliveryResult(recipient=recipient)

        if not self.transports:
            logger.error(f"No delivery transports configured, cannot reach {recipient}")
            return result

        for transport in self.transports:
            attempt = await self._attempt(transport, recipient, message)
            result.attempts.append(attempt)
            if attempt.ok:
                logger.info(f"Message sent to {recipient} via {transport.name}")
                return result
            logger.warning(
                f"Delivery to {recipient} via {transport.name} failed: {attempt.error}"
            )

        logger.error(f"All delivery transports failed for {recipient}")
        return result

    async def _attempt(
        self, transport: DeliveryTransport, recipient: int, message: OutboundMessage
    ) -> DeliveryAttempt:
        try:
            outcome = await asyncio.wait_for(
                transport.send(recipient, message), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            return DeliveryAttempt(
                transport=transport.name,
                ok=False,
                error=f"Timed out after {self.timeout_seconds}s",
            )
        except DeliveryFailure as e:
            return DeliveryAttempt(transport=transport.name, ok=False, error=e.reason)
        except Exception as e:
            logger.exception(f"Unexpected error in {transport.name} transport")
            return DeliveryAttempt(
                transport=transport.name, ok=False, error=f"{type(e).__name__}: {e}"
            )

        return DeliveryAttempt(
            transport=transport.name, ok=True, message_id=outcome.message_id
        )

    async def close(self) -> None:
        for transport in self.transports:
            try:
                await transport.close()
            except Exception:
                logger.exception(f"Error closing {transport.name} transport")
