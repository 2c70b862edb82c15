"""Structured JSON logging with a per-task diagnostic context."""

import logging
import json
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator

_sync_context: ContextVar[dict[str, Any]] = ContextVar("solarsync_context", default={})


def current_context() -> dict[str, Any]:
    """Return a copy of the diagnostic fields bound to the running task."""
    return dict(_sync_context.get())


@contextmanager
def sync_context(**fields: Any) -> Iterator[dict[str, Any]]:
    """Bind diagnostic fields (source, vendor_id, operation...) for the enclosed block.

    Fields are layered on top of whatever the caller already bound, and each
    asyncio task gets its own copy, so concurrent vendor syncs never see each
    other's fields.
    """
    merged = {**_sync_context.get(), **{k: v for k, v in fields.items() if v is not None}}
    token = _sync_context.set(merged)
    try:
        yield merged
    finally:
        _sync_context.reset(token)


class JSONFormatter(logging.Formatter):
    """Format log records as JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = _sync_context.get()
        if context:
            log_entry["context"] = context
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Configure structured logging for the application."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())

    root = logging.getLogger("solarsync_engine")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers = [handler]
    root.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Get a logger scoped under solarsync_engine."""
    return logging.getLogger(f"solarsync_engine.{name}")
