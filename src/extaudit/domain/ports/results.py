"""Port for materialising classification and patch rows."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path


class ResultSink(Protocol):
    def write(self, rows: Sequence[object], prefix: str, *, row_type: type) -> Path: ...


__all__ = ["ResultSink"]
