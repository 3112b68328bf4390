"""Domain port definitions for adapters."""

from __future__ import annotations

from .directory import IdentityGateway
from .events import EventSink, ProgressEvent, ProgressListener, report
from .results import ResultSink

__all__ = [
    "EventSink",
    "IdentityGateway",
    "ProgressEvent",
    "ProgressListener",
    "ResultSink",
    "report",
]
