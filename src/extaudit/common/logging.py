"""Shared logging helpers for extaudit."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping

REDACTED = "***REDACTED***"
SENSITIVE_KEYS = frozenset(
    {
        "authorization",
        "access_token",
        "refresh_token",
        "token",
        "password",
        "client_secret",
    }
)


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Initialise the root logger once with sensible defaults.

    Parameters mirror ``logging.basicConfig`` with a simplified contract: we default
    to INFO level and a terse format suitable for CLI output. Pass ``force=True`` to
    reconfigure during tests or specialised entry points.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )


def redact_fields(value: object) -> object:
    """Return ``value`` with sensitive mapping keys masked, recursing into containers."""

    if isinstance(value, Mapping):
        return {
            key: REDACTED if str(key).casefold() in SENSITIVE_KEYS else redact_fields(item)
            for key, item in value.items()
        }
    if isinstance(value, list | tuple):
        return [redact_fields(item) for item in value]
    return value


class LoggingEventSink:
    """Event sink that forwards structured events to a stdlib logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("extaudit.events")

    def debug(self, message: str, **fields: object) -> None:
        self._emit(logging.DEBUG, message, fields)

    def info(self, message: str, **fields: object) -> None:
        self._emit(logging.INFO, message, fields)

    def warning(self, message: str, **fields: object) -> None:
        self._emit(logging.WARNING, message, fields)

    def error(self, message: str, **fields: object) -> None:
        self._emit(logging.ERROR, message, fields)

    def _emit(self, level: int, message: str, fields: dict[str, object]) -> None:
        if not self._logger.isEnabledFor(level):
            return
        if not fields:
            self._logger.log(level, message)
            return
        safe = redact_fields(fields)
        self._logger.log(
            level,
            "%s | %s",
            message,
            json.dumps(safe, default=str, sort_keys=True),
            extra={"fields": safe},
        )
