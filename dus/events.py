from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timezone
from threading import Lock
from typing import Any

from .settings import settings


logger = logging.getLogger("dus")

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

_lock = Lock()
_recent: deque[dict[str, Any]] = deque(maxlen=max(1, settings.event_log_size))
_next_id = 1


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def configure_logging(level: str | None = None) -> None:
    log_level = _LEVELS.get((level or settings.log_level).upper(), logging.INFO)
    logging.basicConfig(level=log_level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    logger.setLevel(log_level)


def log_event(level: str, message: str, **context: Any) -> None:
    """Record a discovery event.

    Events go to the ``dus`` logger and to a bounded in-memory buffer that
    the API exposes under ``/events``. ``context`` carries identifying
    fields such as ``container_id`` or ``key``.
    """
    global _next_id
    level = level.upper()
    py_level = _LEVELS.get(level, logging.INFO)
    if context:
        detail = " ".join(f"{k}={v}" for k, v in context.items())
        logger.log(py_level, "%s (%s)", message, detail)
    else:
        logger.log(py_level, "%s", message)

    with _lock:
        _recent.append({"id": _next_id, "ts": utc_now(), "level": level, "message": message, "context": context})
        _next_id += 1


def latest_events(limit: int = 100) -> list[dict[str, Any]]:
    with _lock:
        rows = list(_recent)
    rows.reverse()
    return rows[: max(0, limit)]


def clear_events() -> None:
    with _lock:
        _recent.clear()
