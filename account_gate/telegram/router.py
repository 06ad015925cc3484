"""
Telegram inbound endpoints.

Endpoint: POST /api/telegram/webhook (called by Telegram)
Endpoint: GET /api/telegram/status

Security: Telegram echoes the webhook secret (TELEGRAM_WEBHOOK_SECRET, or one
generated when the webhook is registered) in the
X-Telegram-Bot-Api-Secret-Token header of every webhook call. Calls are
rejected while no secret exists.
"""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from account_gate.api.dependencies import get_telegram_bridge
from account_gate.core.rate_limit import limiter
from account_gate.telegram.bot import TelegramBridge
from account_gate.telegram.schemas import Update
from account_gate.verification.schemas import to_envelope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/telegram", tags=["telegram"])


def verify_webhook_secret(expected: Optional[str], received: Optional[str]) -> bool:
    """Constant-time header check; no secret means no webhook is accepted."""
    if not expected:
        return False
    return hmac.compare_digest(expected, received or "")


@router.post("/webhook")
@limiter.limit("120/minute")
async def telegram_webhook(
    request: Request,
    bridge: TelegramBridge = Depends(get_telegram_bridge),
    x_telegram_bot_api_secret_token: str = Header(
        None, alias="X-Telegram-Bot-Api-Secret-Token"
    ),
):
    """
    Receive one Update from Telegram.

    Always answers 200 for well-formed updates, including those that were
    ignored or failed, so Telegram does not redeliver them.
    """
    if not verify_webhook_secret(bridge.webhook_secret, x_telegram_bot_api_secret_token):
        logger.warning("Telegram webhook rejected: invalid secret token")
        raise HTTPException(status_code=403, detail="Invalid webhook secret")

    try:
        payload = await request.json()
    except ValueError as e:
        logger.error(f"Failed to parse Telegram webhook JSON: {e}")
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    try:
        update = Update.model_validate(payload)
    except ValidationError as e:
        logger.error(f"Invalid Telegram update payload: {e}")
        raise HTTPException(status_code=400, detail="Invalid update payload")

    result = await bridge.service.process_update(update)
    return JSONResponse(status_code=200, content={"ok": True, **result})


@router.get("/status")
async def telegram_status(bridge: TelegramBridge = Depends(get_telegram_bridge)):
    status = bridge.status()
    message = "Telegram bot configured" if status.is_configured else "Telegram bot not configured"
    return to_envelope(True, message, status)
