"""Application configuration helpers."""

from __future__ import annotations

from extaudit.common.logging import configure_logging

from .audit import AuditSettings, get_audit_settings
from .directory import DirectoryConfig, default_resilience_config, get_directory_config
from .env import get_env_flag, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import (
    RateLimit,
    RateLimitHeaders,
    ResilienceConfig,
    RetryPolicy,
    ThrottlePolicy,
)

__all__ = [
    "AuditSettings",
    "ConfigurationError",
    "DirectoryConfig",
    "MissingConfigurationError",
    "RateLimit",
    "RateLimitHeaders",
    "ResilienceConfig",
    "RetryPolicy",
    "ThrottlePolicy",
    "configure_logging",
    "default_resilience_config",
    "get_audit_settings",
    "get_directory_config",
    "get_env_flag",
    "require_env_vars",
]
