from __future__ import annotations

import pytest

from extaudit.config.directory import (
    ACCESS_TOKEN_ENV,
    API_BASE_URL_ENV,
    INCLUDE_INACTIVE_ENV,
    MAX_CALLS_PER_SECOND_ENV,
)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        ACCESS_TOKEN_ENV,
        API_BASE_URL_ENV,
        INCLUDE_INACTIVE_ENV,
        MAX_CALLS_PER_SECOND_ENV,
    ):
        monkeypatch.delenv(name, raising=False)
