"""Logging setup for the focus timer."""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime
from typing import Deque

logger = logging.getLogger("focus_timer")

# Recent log entries for the CLI dump (max 100)
log_buffer: Deque[dict] = deque(maxlen=100)


class LogBufferHandler(logging.Handler):
    """Captures log records to the circular buffer."""

    def emit(self, record: logging.LogRecord):
        try:
            log_buffer.append({
                "timestamp": datetime.fromtimestamp(record.created).strftime("%H:%M:%S"),
                "level": record.levelname,
                "logger": record.name,
                "message": self.format(record),
            })
        except Exception:
            self.handleError(record)


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach the buffer handler (once) and set the package log level."""
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if not any(isinstance(h, LogBufferHandler) for h in logger.handlers):
        handler = LogBufferHandler()
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    return logger


def asyncio_exception_handler(loop, context):
    """Log uncaught exceptions from asyncio tasks, then defer to the default handler."""
    exception = context.get("exception")
    if exception is not None:
        logger.error(
            f"Unhandled asyncio error: {type(exception).__name__}: {exception}",
            exc_info=(type(exception), exception, exception.__traceback__),
        )
    else:
        logger.error(f"Asyncio error: {context.get('message', context)}")
    loop.default_exception_handler(context)
