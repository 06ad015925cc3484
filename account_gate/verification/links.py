"""
Signed approve/reject links.

Links are the fallback action transport for notifications when no inbound
Telegram consumer is running. The ``sig`` query parameter is an
HMAC-SHA256 of ``"<action>:<verification_id>"``, so a link can only apply
the action it was issued for.
"""

import hashlib
import hmac
import logging
from typing import Optional
from urllib.parse import urlencode

from account_gate.core.config import settings
from account_gate.verification.actions import AdminAction

logger = logging.getLogger(__name__)

LINK_SOURCE_TELEGRAM = "telegram"


def sign_action(action: AdminAction, verification_id: int) -> Optional[str]:
    secret = settings.action_link_secret
    if not secret:
        return None

    message = f"{action.value}:{verification_id}"
    return hmac.new(
        key=secret.encode("utf-8"),
        msg=message.encode("utf-8"),
        digestmod=hashlib.sha256,
    ).hexdigest()


def verify_action_signature(
    action: AdminAction, verification_id: int, signature: Optional[str]
) -> bool:
    if not signature:
        return False

    expected = sign_action(action, verification_id)
    if expected is None:
        logger.warning("Action link received but no signing secret is configured")
        return False

    return hmac.compare_digest(expected, signature)


def build_action_link(
    action: AdminAction,
    verification_id: int,
    source: str = LINK_SOURCE_TELEGRAM,
) -> Optional[str]:
    """
    Fully-qualified link that applies ``action`` to the verification.

    Returns None when no public BASE_URL is configured.
    """
    base_url = settings.public_base_url
    if not base_url:
        return None

    params = {"action": action.value, "source": source}
    signature = sign_action(action, verification_id)
    if signature:
        params["sig"] = signature

    return (
        f"{base_url}{settings.API_PREFIX}/admin/account-verifications/"
        f"{verification_id}?{urlencode(params)}"
    )
