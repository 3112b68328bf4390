"""CSV materialisation of audit and patch rows."""

from __future__ import annotations

import csv
from dataclasses import fields, is_dataclass
from datetime import datetime
from enum import Enum
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

log = getLogger(__name__)


def _cell(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


class CsvResultSink:
    """Write one timestamped CSV file per row collection into ``out_dir``."""

    def __init__(self, out_dir: Path, *, clock: Callable[[], datetime] = datetime.now) -> None:
        self._out_dir = out_dir
        self._clock = clock

    def write(self, rows: Sequence[object], prefix: str, *, row_type: type) -> Path:
        if not is_dataclass(row_type):
            raise TypeError(f"CSV rows must be dataclasses, got {row_type!r}")
        columns = [field.name for field in fields(row_type)]

        self._out_dir.mkdir(parents=True, exist_ok=True)
        path = self._out_dir / f"{prefix}_{self._clock():%Y%m%d_%H%M%S}.csv"
        with path.open("w", encoding="utf-8-sig", newline="") as handle:
            writer = csv.writer(handle)
            writer.writerow(columns)
            for row in rows:
                writer.writerow([_cell(getattr(row, column)) for column in columns])

        log.info("CSV exported: path=%s, rows=%s", path, len(rows))
        return path
