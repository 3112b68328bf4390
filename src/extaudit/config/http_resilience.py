"""Configuration types for resilient HTTP clients."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Retry on 429/5xx and network errors with capped exponential backoff.

    The wait before the next attempt is ``max(Retry-After, backoff)`` capped at
    ``max_wait``, plus up to ``max_jitter`` seconds of random jitter.
    """

    max_attempts: int = 5
    initial_backoff: float = 0.5
    backoff_multiplier: float = 1.8
    max_backoff: float = 8.0
    max_wait: float = 60.0
    max_jitter: float = 0.2
    respect_retry_after_header: bool = True
    allowed_methods: frozenset[str] = field(
        default_factory=lambda: frozenset({"GET", "HEAD", "OPTIONS", "PATCH", "POST", "PUT"})
    )
    status_forcelist: frozenset[int] = field(
        default_factory=lambda: frozenset({429, *range(500, 600)})
    )
    retry_on_exceptions: tuple[type[httpx.HTTPError], ...] = (
        httpx.TimeoutException,
        httpx.NetworkError,
        httpx.RemoteProtocolError,
    )

    def backoff(self, retry_number: int) -> float:
        """Backoff floor before retry ``retry_number`` (1-based), jitter excluded."""

        exponent = max(0, retry_number - 1)
        return min(self.max_backoff, self.initial_backoff * self.backoff_multiplier**exponent)


@dataclass(slots=True, frozen=True)
class ThrottlePolicy:
    """Sleep until the provider's reset instant when the remaining budget is low."""

    enabled: bool = True
    remaining_threshold: int = 2
    safety_margin: float = 0.25
    max_delay: float = 60.0


@dataclass(slots=True, frozen=True)
class RateLimit:
    max_calls: int
    per_seconds: float


@dataclass(slots=True, frozen=True)
class RateLimitHeaders:
    limit: str = "X-RateLimit-Limit"
    remaining: str = "X-RateLimit-Remaining"
    reset: str = "X-RateLimit-Reset"


@dataclass(slots=True, frozen=True)
class ResilienceConfig:
    name: str
    base_url: str | None = None
    timeout_seconds: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    throttle: ThrottlePolicy = field(default_factory=ThrottlePolicy)
    ratelimit: RateLimit | None = None
    ratelimit_headers: RateLimitHeaders = field(default_factory=RateLimitHeaders)
    default_headers: Mapping[str, str] | None = None
