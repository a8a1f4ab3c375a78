"""Logging utilities for Tenderwatch.

Centralised logging configuration plus helpers for contextual logging. Sync
cycles wrap their work in :func:`log_context` so every line emitted while a
cycle runs carries the run id and fetch date.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


class ContextualFormatter(logging.Formatter):
    """Formatter that appends the active context fields to each message."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        ctx = _log_context.get()
        if not ctx:
            return message
        ctx_str = " ".join(f"{k}={v}" for k, v in ctx.items())
        return f"{message} [{ctx_str}]"


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Temporarily add context fields to all log messages.

    Usage::

        with log_context(sync_run_id=42, fetch_date="18102026"):
            logger.info("Fetched summaries")

    Fields are merged with any existing context and restored on exit. The
    context is carried by a ``ContextVar``, so tasks spawned inside the block
    (and ``asyncio.to_thread`` calls) inherit it.
    """
    current = _log_context.get()
    token = _log_context.set({**current, **fields})
    try:
        yield
    finally:
        _log_context.reset(token)


def current_log_context() -> dict[str, Any]:
    return dict(_log_context.get())


_configured = False


def configure_logging(
    level: int = logging.INFO,
    third_party_level: int = logging.WARNING,
) -> None:
    """Configure application-wide logging.

    Call once at startup (CLI group, FastAPI lifespan). Later calls are
    ignored.

    Args:
        level: Log level for application loggers.
        third_party_level: Log level for chatty third-party libraries.
    """
    global _configured
    if _configured:
        return
    _configured = True

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ContextualFormatter(LOG_FORMAT))
    root.addHandler(handler)

    for name in ("urllib3", "requests", "httpx", "asyncio", "uvicorn.access"):
        logging.getLogger(name).setLevel(third_party_level)


def get_logger(name: str) -> logging.Logger:
    """Return a logger for the given name.

    If :func:`configure_logging` has not run and nothing else configured the
    root logger, a plain stderr handler is attached so messages are not lost.
    """
    logger = logging.getLogger(name)
    if not _configured and not logger.handlers and not logging.getLogger().handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(ContextualFormatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


def log_exception(
    logger: logging.Logger,
    message: str,
    exc: BaseException,
    **context: Any,
) -> None:
    """Log an exception (with traceback) and extra context fields."""
    with log_context(**context):
        logger.exception("%s: %s", message, exc)
