"""Output channels: progress notifications and leveled diagnostic events."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol


@dataclass(slots=True, frozen=True)
class ProgressEvent:
    stage: str
    current: int | None = None
    total: int | None = None


ProgressListener = Callable[[ProgressEvent], None]


class EventSink(Protocol):
    """Structured diagnostic events; implementations redact sensitive fields."""

    def debug(self, message: str, **fields: object) -> None: ...

    def info(self, message: str, **fields: object) -> None: ...

    def warning(self, message: str, **fields: object) -> None: ...

    def error(self, message: str, **fields: object) -> None: ...


def report(
    listener: ProgressListener | None,
    stage: str,
    current: int | None = None,
    total: int | None = None,
) -> None:
    if listener is not None:
        listener(ProgressEvent(stage=stage, current=current, total=total))


__all__ = ["EventSink", "ProgressEvent", "ProgressListener", "report"]
