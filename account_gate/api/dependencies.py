from fastapi import Request

from account_gate.telegram.bot import TelegramBridge
from account_gate.telegram.dispatcher import NotificationDispatcher
from account_gate.verification.store import VerificationStore


def get_verification_store(request: Request) -> VerificationStore:
    return request.app.state.verification_store


def get_telegram_bridge(request: Request) -> TelegramBridge:
    return request.app.state.telegram_bridge


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.telegram_bridge.dispatcher
