"""Cooperative cancellation for long-running audit operations."""

from __future__ import annotations

import threading


class OperationCancelledError(RuntimeError):
    """Raised when the caller cancelled the running operation."""


class CancellationToken:
    """Flag checked at each loop iteration and before each network call.

    Safe to cancel from another thread (e.g. a signal handler) while the audit
    runs in an event loop.
    """

    __slots__ = ("_event",)

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError("Operation cancelled")


def check_cancelled(token: CancellationToken | None) -> None:
    if token is not None:
        token.raise_if_cancelled()
