"""
Centralized logging configuration using loguru.

Standard ``logging`` calls are intercepted and forwarded to loguru so every
module can keep using ``logging.getLogger(__name__)``. Two context variables
are attached to each record when set:

- ``request_id``: the HTTP request being served
- ``update_id``: the Telegram update being processed (webhook or poller)
"""

import json
import logging
import sys
import traceback
from contextvars import ContextVar
from types import FrameType
from typing import Optional

from loguru import logger

from account_gate.core.config import settings

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")
update_id_var: ContextVar[str] = ContextVar("update_id", default="-")


class InterceptHandler(logging.Handler):
    """Redirect standard logging records to loguru."""

    def emit(self, record: logging.LogRecord):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where the logging call originated
        frame: Optional[FrameType] = sys._getframe(settings.LOGGING_FRAME_DEPTH)
        depth: int = settings.LOGGING_FRAME_DEPTH

        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def context_filter(record):
    """Copy request_id / update_id from contextvars into the record extras."""
    request_id = request_id_var.get()
    if request_id and request_id != "-":
        record["extra"]["request_id"] = request_id

    update_id = update_id_var.get()
    if update_id and update_id != "-":
        record["extra"]["update_id"] = update_id

    return record


def build_json_record(record) -> dict:
    """Build the JSON log line for a loguru record."""
    log_record = {
        "timestamp": record["time"].strftime("%Y-%m-%d %H:%M:%S"),
        "level": record["level"].name,
        "logger": record["name"],
        "message": record["message"],
    }

    for key in ("request_id", "update_id"):
        if key in record["extra"]:
            log_record[key] = record["extra"][key]

    exception = record["exception"]
    if exception:
        traceback_text = None
        if exception.traceback:
            try:
                traceback_text = "".join(
                    traceback.format_exception(
                        exception.type, exception.value, exception.traceback
                    )
                ).strip()
            except Exception:
                traceback_text = str(exception.traceback)

        log_record["exception"] = {
            "type": exception.type.__name__ if exception.type else None,
            "value": str(exception.value) if exception.value else None,
            "traceback": traceback_text,
        }
    else:
        log_record["exception"] = None

    return log_record


def json_sink(message):
    sys.stderr.write(json.dumps(build_json_record(message.record)) + "\n")


def configure_logging():
    """
    Configure loguru as the single logging backend.

    Removes the default loguru handler, installs the JSON sink with the context
    filter, intercepts stdlib logging and quiets noisy libraries.
    """
    logger.remove()

    log_level = settings.LOG_LEVEL

    logger.add(
        json_sink,
        level=log_level,
        backtrace=True,
        diagnose=False,  # Never dump local variables (bot token lives in them)
        filter=context_filter,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("aiogram").setLevel(logging.WARNING)

    logger.info("Logging configured successfully with loguru")


def set_request_id(request_id: str):
    """Set the request_id for the current context (called by middleware)."""
    request_id_var.set(request_id)


def clear_request_id():
    request_id_var.set("-")


def set_update_id(update_id: str):
    """Set the Telegram update_id for the current context."""
    update_id_var.set(update_id)


def clear_update_id():
    update_id_var.set("-")


def get_update_id() -> str:
    return update_id_var.get()
