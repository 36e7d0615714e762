from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from logging.config import dictConfig
from typing import Iterable, Sequence

from settings import get_settings

_DEFAULT_EXTRA_KEYS = (
    "channel",
    "lookback_hours",
    "resolution",
    "source",
    "point_count",
    "state",
    "elapsed_seconds",
    "row_number",
    "reason",
    "row_count",
    "error_count",
)

# Door state transitions and raised alerts log at INFO regardless of the root
# level; the scheduler only reports warnings.
_SUBSYSTEM_LEVELS = {
    "services.door_security": "INFO",
    "services.alert_monitor": "INFO",
    "services.scheduling": "WARNING",
}

_configured = False


class ContextualFormatter(logging.Formatter):
    """Appends known ``extra=`` keys and stamps records in the reporting timezone."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
        extra_keys: Iterable[str] | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self._extra_keys: Sequence[str] = tuple(extra_keys or _DEFAULT_EXTRA_KEYS)
        self._tz = tz

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        if self._tz is None:
            return super().formatTime(record, datefmt)
        moment = datetime.fromtimestamp(record.created, self._tz)
        if datefmt:
            return moment.strftime(datefmt)
        return moment.isoformat(timespec="seconds")

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context_parts = [
            f"{key}={getattr(record, key)}"
            for key in self._extra_keys
            if getattr(record, key, None) is not None
        ]
        if context_parts:
            return f"{message} | {' '.join(context_parts)}"
        return message


def configure_logging(level: str | int | None = None) -> None:
    """Configure service-wide logging; later calls are no-ops."""
    global _configured
    if _configured:
        return

    settings = get_settings()
    log_level = level if level is not None else settings.log_level

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "contextual": {
                    "()": "logging_config.ContextualFormatter",
                    "fmt": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S%z",
                    "style": "%",
                    "extra_keys": list(_DEFAULT_EXTRA_KEYS),
                    "tz": settings.timezone,
                }
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "contextual",
                }
            },
            "loggers": {
                name: {"level": subsystem_level}
                for name, subsystem_level in _SUBSYSTEM_LEVELS.items()
            },
            "root": {"handlers": ["default"], "level": log_level},
        }
    )

    _configured = True
