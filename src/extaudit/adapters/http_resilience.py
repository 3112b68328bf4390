from __future__ import annotations

import asyncio
import math
import random
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from email.utils import parsedate_to_datetime
from logging import getLogger
from typing import TYPE_CHECKING, TypedDict

import httpx
from aiolimiter import AsyncLimiter
from httpx_retries import Retry, RetryTransport

from extaudit.common.logging import LoggingEventSink
from extaudit.domain.cancellation import check_cancelled

if TYPE_CHECKING:
    from types import TracebackType

    from httpx._types import HeaderTypes, QueryParamTypes, TimeoutTypes

    from extaudit.config.http_resilience import (
        RateLimitHeaders,
        ResilienceConfig,
        RetryPolicy,
        ThrottlePolicy,
    )
    from extaudit.domain.cancellation import CancellationToken
    from extaudit.domain.ports.events import EventSink

log = getLogger(__name__)

TokenProvider = Callable[[], str]
Sleeper = Callable[[float], Awaitable[None]]
Clock = Callable[[], datetime]
Jitter = Callable[[float], float]

MILLISECOND_EPOCH_THRESHOLD = 1e12
SECOND_EPOCH_THRESHOLD = 1e9

CANCELLATION_EXTENSION = "extaudit.cancellation"
ATTEMPT_EXTENSION = "extaudit.attempt"


class TransportError(RuntimeError):
    """Raised for non-retryable responses or when retries are exhausted."""

    def __init__(self, method: str, path: str, *, status: int | None, body: str = "") -> None:
        detail = f"HTTP {status}" if status is not None else "no response"
        super().__init__(f"API call failed: {method} {path} ({detail}). {body}".rstrip())
        self.method = method
        self.path = path
        self.status = status
        self.body = body


@dataclass(slots=True, frozen=True)
class RateLimitSnapshot:
    limit: int | None
    remaining: int | None
    reset_at: datetime | None
    captured_at: datetime


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _random_jitter(upper: float) -> float:
    return random.uniform(0.0, upper) if upper > 0 else 0.0  # noqa: S311


def _parse_number(raw: str | None) -> float | None:
    if raw is None or not raw.strip():
        return None
    try:
        value = float(raw.strip())
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def _parse_count(raw: str | None) -> int | None:
    value = _parse_number(raw)
    return None if value is None else int(value)


def parse_reset(raw: str | None, *, now: datetime) -> datetime | None:
    """Interpret a reset header as a ms epoch, a s epoch or seconds from ``now``."""

    value = _parse_number(raw)
    if value is None:
        return None
    try:
        if value > MILLISECOND_EPOCH_THRESHOLD:
            return datetime.fromtimestamp(math.floor(value) / 1000, tz=UTC)
        if value > SECOND_EPOCH_THRESHOLD:
            return datetime.fromtimestamp(math.floor(value), tz=UTC)
        return now + timedelta(seconds=max(0.0, value))
    except (OverflowError, OSError, ValueError):
        return None


def capture_rate_limit(
    headers: Mapping[str, str],
    previous: RateLimitSnapshot | None,
    *,
    now: datetime,
    names: RateLimitHeaders,
) -> RateLimitSnapshot | None:
    """Return the snapshot described by ``headers``, or ``previous`` if none parse."""

    limit = _parse_count(headers.get(names.limit))
    remaining = _parse_count(headers.get(names.remaining))
    reset_at = parse_reset(headers.get(names.reset), now=now)
    if limit is None and remaining is None and reset_at is None:
        return previous
    return RateLimitSnapshot(limit=limit, remaining=remaining, reset_at=reset_at, captured_at=now)


def throttle_delay(
    snapshot: RateLimitSnapshot | None,
    *,
    now: datetime,
    policy: ThrottlePolicy,
) -> float:
    """Seconds to wait before the next request; ``0.0`` when no throttling applies."""

    if not policy.enabled or snapshot is None:
        return 0.0
    if snapshot.remaining is None or snapshot.reset_at is None:
        return 0.0
    if snapshot.remaining > policy.remaining_threshold:
        return 0.0
    delay = (snapshot.reset_at - now).total_seconds() + policy.safety_margin
    if delay <= 0:
        return 0.0
    return min(delay, policy.max_delay)


def parse_retry_after(raw: str | None, *, now: datetime) -> float | None:
    """Parse ``Retry-After`` given as delta seconds or an HTTP date."""

    if raw is None or not raw.strip():
        return None
    text = raw.strip()
    try:
        return max(0.0, float(text))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    return max(0.0, (when - now).total_seconds())


def retry_delay(retry_after: float | None, *, backoff: float, policy: RetryPolicy) -> float:
    """Wait before the next attempt, jitter excluded."""

    delay = backoff
    if policy.respect_retry_after_header and retry_after is not None:
        delay = max(retry_after, backoff)
    return min(delay, policy.max_wait)


class PolicyRetry(Retry):
    """``httpx_retries`` retry state driven by a :class:`RetryPolicy`.

    Backoff grows by ``backoff_multiplier`` per retry up to ``max_backoff``; a
    ``Retry-After`` header only ever lengthens the wait. Sleep, clock and jitter
    are injectable so tests never wait.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        *,
        sleep: Sleeper = asyncio.sleep,
        clock: Clock = _utcnow,
        jitter: Jitter = _random_jitter,
        attempts_made: int = 0,
    ) -> None:
        super().__init__(
            total=max(0, policy.max_attempts - 1),
            allowed_methods=policy.allowed_methods,
            status_forcelist=policy.status_forcelist,
            retry_on_exceptions=policy.retry_on_exceptions,
            backoff_factor=policy.initial_backoff,
            respect_retry_after_header=policy.respect_retry_after_header,
            max_backoff_wait=policy.max_wait,
            backoff_jitter=0.0,
            attempts_made=attempts_made,
        )
        self.policy = policy
        self._sleep = sleep
        self._clock = clock
        self._jitter = jitter

    def increment(self) -> PolicyRetry:
        return PolicyRetry(
            self.policy,
            sleep=self._sleep,
            clock=self._clock,
            jitter=self._jitter,
            attempts_made=self.attempts_made + 1,
        )

    def backoff_strategy(self) -> float:
        return self.policy.backoff(self.attempts_made)

    def wait_for(self, response: httpx.Response | Exception) -> float:
        retry_after = None
        if isinstance(response, httpx.Response):
            retry_after = parse_retry_after(response.headers.get("Retry-After"), now=self._clock())
        return retry_delay(retry_after, backoff=self.backoff_strategy(), policy=self.policy)

    async def asleep(self, response: httpx.Response | Exception) -> None:
        await self._sleep(self.wait_for(response) + self._jitter(self.policy.max_jitter))


class AttemptTransport(httpx.AsyncBaseTransport):
    """Inner transport run once per attempt beneath ``RetryTransport``.

    Checks cancellation, sleeps when the last rate-limit snapshot says the budget
    is nearly spent, and replaces the snapshot from every response.
    """

    def __init__(
        self,
        wrapped: httpx.AsyncBaseTransport,
        config: ResilienceConfig,
        *,
        events: EventSink,
        sleep: Sleeper,
        clock: Clock,
    ) -> None:
        self._wrapped = wrapped
        self._config = config
        self._events = events
        self._sleep = sleep
        self._clock = clock
        self.rate_limit: RateLimitSnapshot | None = None

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        cancellation: CancellationToken | None = request.extensions.get(CANCELLATION_EXTENSION)
        attempt = int(request.extensions.get(ATTEMPT_EXTENSION, 0)) + 1
        request.extensions[ATTEMPT_EXTENSION] = attempt

        check_cancelled(cancellation)
        await self._pre_throttle(cancellation)

        try:
            response = await self._wrapped.handle_async_request(request)
        except httpx.TransportError as exc:
            self._events.warning(
                "API request errored",
                attempt=attempt,
                method=request.method,
                path=request.url.path,
                error=str(exc) or type(exc).__name__,
            )
            raise

        self.rate_limit = capture_rate_limit(
            response.headers,
            self.rate_limit,
            now=self._clock(),
            names=self._config.ratelimit_headers,
        )
        if not response.is_success:
            self._events.warning(
                "API request failed",
                attempt=attempt,
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                retryable=response.status_code in self._config.retry.status_forcelist,
            )
        return response

    async def aclose(self) -> None:
        await self._wrapped.aclose()

    async def _pre_throttle(self, cancellation: CancellationToken | None) -> None:
        snapshot = self.rate_limit
        delay = throttle_delay(snapshot, now=self._clock(), policy=self._config.throttle)
        if delay <= 0 or snapshot is None:
            return
        self._events.warning(
            "Rate limit low; throttling",
            remaining=snapshot.remaining,
            limit=snapshot.limit,
            reset_at=snapshot.reset_at,
            delay_ms=int(delay * 1000),
        )
        await self._sleep(delay)
        check_cancelled(cancellation)


class AsyncClientOptions(TypedDict, total=False):
    base_url: str
    timeout: TimeoutTypes
    headers: HeaderTypes
    transport: httpx.AsyncBaseTransport


class ResilientClient:
    """Authenticated JSON client with retries, backoff and rate-limit throttling.

    Requests are strictly sequential per instance; the last observed rate-limit
    snapshot is replaced after every response and consulted before every attempt.
    """

    def __init__(
        self,
        config: ResilienceConfig,
        *,
        token_provider: TokenProvider | None = None,
        events: EventSink | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleeper = asyncio.sleep,
        clock: Clock = _utcnow,
        jitter: Jitter = _random_jitter,
    ) -> None:
        self.config = config
        self._token_provider = token_provider
        self._limiter: AsyncLimiter | None = (
            AsyncLimiter(config.ratelimit.max_calls, config.ratelimit.per_seconds)
            if config.ratelimit
            else None
        )

        self._attempts = AttemptTransport(
            transport or httpx.AsyncHTTPTransport(),
            config,
            events=events or LoggingEventSink(log),
            sleep=sleep,
            clock=clock,
        )
        retry = PolicyRetry(config.retry, sleep=sleep, clock=clock, jitter=jitter)
        retry_transport = RetryTransport(transport=self._attempts, retry=retry)

        headers = {"Accept": "application/json"}
        if config.default_headers:
            headers.update(config.default_headers)

        client_kwargs: AsyncClientOptions = {
            "timeout": config.timeout_seconds,
            "headers": headers,
            "transport": retry_transport,
        }
        if config.base_url is not None:
            client_kwargs["base_url"] = config.base_url.rstrip("/")

        self._client = httpx.AsyncClient(**client_kwargs)

    @property
    def rate_limit(self) -> RateLimitSnapshot | None:
        return self._attempts.rate_limit

    @property
    def limiter(self) -> AsyncLimiter | None:
        return self._limiter

    async def __aenter__(self) -> ResilientClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get(
        self,
        path: str,
        *,
        params: QueryParamTypes | None = None,
        cancellation: CancellationToken | None = None,
    ) -> object:
        return await self.send("GET", path, params=params, cancellation=cancellation)

    async def patch(
        self,
        path: str,
        *,
        json: object,
        cancellation: CancellationToken | None = None,
    ) -> object:
        return await self.send("PATCH", path, json=json, cancellation=cancellation)

    async def send(
        self,
        method: str,
        path: str,
        *,
        params: QueryParamTypes | None = None,
        json: object = None,
        cancellation: CancellationToken | None = None,
    ) -> object:
        """Send one logical request and return its decoded JSON body (``None`` if empty)."""

        check_cancelled(cancellation)
        headers: dict[str, str] = {}
        if self._token_provider is not None:
            headers["Authorization"] = f"Bearer {self._token_provider()}"

        async def do_request() -> httpx.Response:
            return await self._client.request(
                method,
                path,
                params=params,
                json=json,
                headers=headers,
                extensions={CANCELLATION_EXTENSION: cancellation},
            )

        try:
            response = await self._send(do_request)
        except httpx.TransportError as exc:
            error = str(exc) or type(exc).__name__
            raise TransportError(method, path, status=None, body=error) from exc

        if not response.is_success:
            raise TransportError(method, path, status=response.status_code, body=response.text)
        return self._decode(method, path, response)

    async def _send(self, func: Callable[[], Awaitable[httpx.Response]]) -> httpx.Response:
        if self._limiter is None:
            return await func()
        async with self._limiter:
            return await func()

    @staticmethod
    def _decode(method: str, path: str, response: httpx.Response) -> object:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(
                method,
                path,
                status=response.status_code,
                body=f"Invalid JSON response: {exc}",
            ) from exc
