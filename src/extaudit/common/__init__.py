from __future__ import annotations

from .logging import LoggingEventSink, configure_logging, redact_fields

__all__ = [
    "LoggingEventSink",
    "configure_logging",
    "redact_fields",
]
