"""In-memory log sink for the front desk.

Recent log records are kept in a bounded buffer so the UI can show what
happened lately, and listeners are notified as records arrive.
"""

from __future__ import annotations

import datetime as dt
import logging
from collections import deque
from typing import Callable

LOGGER_NAME = "groomingdesk"

LogListener = Callable[[dict], None]


class RingBufferHandler(logging.Handler):
    """Logging handler that keeps the last ``capacity`` records as dicts."""

    def __init__(self, capacity: int = 200, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.events: deque[dict] = deque(maxlen=capacity)
        self.listeners: list[LogListener] = []

    def emit(self, record: logging.LogRecord) -> None:
        try:
            event = {
                "time": dt.datetime.fromtimestamp(record.created).isoformat(timespec="seconds"),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
            }
            if record.exc_info and record.exc_info[1] is not None:
                event["error"] = repr(record.exc_info[1])
            self.events.append(event)
            for listener in list(self.listeners):
                listener(event)
        except Exception:
            self.handleError(record)

    def add_listener(self, listener: LogListener) -> None:
        self.listeners.append(listener)

    def remove_listener(self, listener: LogListener) -> None:
        if listener in self.listeners:
            self.listeners.remove(listener)

    def recent(self, limit: int | None = None) -> list[dict]:
        events = list(self.events)
        return events[-limit:] if limit else events

    def clear(self) -> None:
        self.events.clear()


def configure_logging(level: str | int = "INFO", capacity: int = 200) -> RingBufferHandler:
    """Attach a fresh ring buffer to the package logger and return it.

    A buffer left by an earlier call is removed first, so the package logger
    never holds more than one.
    """

    logger = logging.getLogger(LOGGER_NAME)
    for existing in list(logger.handlers):
        if isinstance(existing, RingBufferHandler):
            logger.removeHandler(existing)
    logger.setLevel(level)
    handler = RingBufferHandler(capacity)
    logger.addHandler(handler)
    return handler


def detach(handler: RingBufferHandler) -> None:
    logging.getLogger(LOGGER_NAME).removeHandler(handler)
