"""
Logging setup for LeakScan.

Every line names the ``action`` being logged and the ``target`` it concerns
(usually the scanned hostname or the scan id), e.g.::

    2026-10-19T14:30:05+0000 | INFO     | leakscan.engine.prober | action=probe_completed | target=example.com | Probed 10 candidates, 1 confirmed in 5.0s

Call sites pass both through ``extra``.  Records that omit them, such as those
from libraries or ad hoc debugging, render a dash instead.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

from leakscan.config import get_settings

# ── Constants ────────────────────────────────────────────────────────────────

_LOG_FORMAT: str = (
    "%(asctime)s | %(levelname)-8s | %(name)s | "
    "action=%(action)s | target=%(target)s | %(message)s"
)
_DATE_FORMAT: str = "%Y-%m-%dT%H:%M:%S%z"
_ROOT_LOGGER_NAME: str = "leakscan"
_STRUCTURED_FIELDS: tuple[str, ...] = ("action", "target")
_MISSING_FIELD: str = "-"

# Failed probes against unreachable hosts are routine and would flood the
# output at INFO level.
_QUIET_LOGGERS: tuple[str, ...] = (
    "uvicorn.access",
    "sqlalchemy.engine",
    "celery",
    "httpx",
    "httpcore",
)


class StructuredFormatter(logging.Formatter):
    """A :class:`logging.Formatter` that tolerates records without ``action``/``target``."""

    def format(self, record: logging.LogRecord) -> str:
        for field in _STRUCTURED_FIELDS:
            record.__dict__.setdefault(field, _MISSING_FIELD)
        return super().format(record)


def configure_logging(level: Optional[str] = None) -> None:
    """Attach the structured stdout handler to the ``leakscan`` logger.

    Runs in the API startup hook and in every Celery worker process.  Calling
    it again only adjusts the level.

    Args:
        level: Explicit level name.  Defaults to ``DEBUG`` when the app runs
            with ``DEBUG=true`` and ``INFO`` otherwise.
    """
    settings = get_settings()
    level = level or ("DEBUG" if settings.DEBUG else "INFO")

    app_logger = logging.getLogger(_ROOT_LOGGER_NAME)
    app_logger.setLevel(level)

    if not app_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
        app_logger.addHandler(handler)
    for handler in app_logger.handlers:
        handler.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    app_logger.info(
        "Logging configured at %s level",
        level,
        extra={"action": "logging_init", "target": settings.APP_NAME},
    )


def get_logger(name: str) -> logging.Logger:
    """Return the logger for *name* inside the ``leakscan`` hierarchy.

    Module names from this package (``leakscan.engine.prober``) are used
    as-is; anything else is nested under ``leakscan.``.
    """
    if name == _ROOT_LOGGER_NAME or name.startswith(f"{_ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_ROOT_LOGGER_NAME}.{name}")
