"""Directory API configuration values."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .env import get_env_flag, get_env_positive_int, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig

DEFAULT_API_BASE_URL = "https://api.mypurecloud.com"
DIRECTORY_TIMEOUT_SECONDS = 30.0

ACCESS_TOKEN_ENV = "EXTAUDIT_ACCESS_TOKEN"
API_BASE_URL_ENV = "EXTAUDIT_API_BASE_URL"
INCLUDE_INACTIVE_ENV = "EXTAUDIT_INCLUDE_INACTIVE"
MAX_CALLS_PER_SECOND_ENV = "EXTAUDIT_MAX_CALLS_PER_SECOND"


@dataclass(frozen=True)
class DirectoryConfig:
    """Holds the directory API endpoint and credentials for one audit run."""

    api_base_url: str
    access_token: str = field(repr=False)
    include_inactive: bool = False
    resilience: ResilienceConfig = field(
        default_factory=lambda: default_resilience_config(DEFAULT_API_BASE_URL)
    )


def default_resilience_config(
    api_base_url: str,
    *,
    max_calls_per_second: int | None = None,
) -> ResilienceConfig:
    return ResilienceConfig(
        name="directory",
        base_url=api_base_url.rstrip("/"),
        timeout_seconds=DIRECTORY_TIMEOUT_SECONDS,
        ratelimit=(
            RateLimit(max_calls=max_calls_per_second, per_seconds=1.0)
            if max_calls_per_second is not None
            else None
        ),
    )


def get_directory_config(
    *,
    include_inactive: bool | None = None,
    resilience: ResilienceConfig | None = None,
) -> DirectoryConfig:
    values = require_env_vars((ACCESS_TOKEN_ENV,))
    base_url = (os.getenv(API_BASE_URL_ENV) or "").strip() or DEFAULT_API_BASE_URL
    base_url = base_url.rstrip("/")
    return DirectoryConfig(
        api_base_url=base_url,
        access_token=values[ACCESS_TOKEN_ENV].strip(),
        include_inactive=(
            include_inactive
            if include_inactive is not None
            else get_env_flag(INCLUDE_INACTIVE_ENV)
        ),
        resilience=resilience
        or default_resilience_config(
            base_url,
            max_calls_per_second=get_env_positive_int(MAX_CALLS_PER_SECOND_ENV),
        ),
    )
