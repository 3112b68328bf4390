"""Reusable builders and fakes for directory, audit and repair tests."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime

import httpx

from extaudit.adapters.directory.schema import ExtensionsPage, UsersPage
from extaudit.adapters.http_resilience import ResilientClient
from extaudit.config.http_resilience import ResilienceConfig, RetryPolicy, ThrottlePolicy
from extaudit.domain.context import build_audit_context
from extaudit.domain.model import (
    Address,
    AuditContext,
    ExtensionMode,
    ExtensionRecord,
    Identity,
    IdentityPatch,
)
from extaudit.domain.ports.events import EventSink

FIXED_NOW = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)
BASE_URL = "https://directory.example.test"

Handler = Callable[[httpx.Request], httpx.Response]


def phone(
    extension: str | None,
    address_type: str = "WORK",
    **extras: object,
) -> Address:
    return Address(
        media_type="PHONE", address_type=address_type, extension=extension, extras=extras
    )


def make_identity(
    user_id: str,
    extension: str | None = None,
    *,
    name: str | None = None,
    email: str | None = None,
    state: str = "active",
    version: int = 1,
    addresses: Iterable[Address] | None = None,
) -> Identity:
    if addresses is None:
        addresses = [phone(extension)] if extension is not None else []
    return Identity(
        id=user_id,
        name=name if name is not None else f"User {user_id}",
        email=email,
        state=state,
        version=version,
        addresses=tuple(addresses),
    )


def make_record(
    number: str,
    owner_id: str | None,
    *,
    record_id: str | None = None,
    owner_type: str = "USER",
    pool_id: str | None = "pool-1",
) -> ExtensionRecord:
    return ExtensionRecord(
        id=record_id or f"ext-{number}-{owner_id}",
        number=number,
        owner_type=owner_type,
        owner_id=owner_id,
        extension_pool_id=pool_id,
    )


def make_context(
    identities: Iterable[Identity],
    records: Iterable[ExtensionRecord] = (),
    *,
    mode: ExtensionMode = ExtensionMode.FULL,
) -> AuditContext:
    return build_audit_context(
        api_base_url=BASE_URL,
        include_inactive=False,
        identities=identities,
        extension_records=records,
        extension_mode=mode,
    )


@dataclass
class RecordingEventSink:
    """Collects emitted events as ``(level, message, fields)`` tuples."""

    events: list[tuple[str, str, dict[str, object]]] = field(
        default_factory=list[tuple[str, str, dict[str, object]]]
    )

    def debug(self, message: str, **fields: object) -> None:
        self.events.append(("debug", message, fields))

    def info(self, message: str, **fields: object) -> None:
        self.events.append(("info", message, fields))

    def warning(self, message: str, **fields: object) -> None:
        self.events.append(("warning", message, fields))

    def error(self, message: str, **fields: object) -> None:
        self.events.append(("error", message, fields))

    def messages(self, level: str | None = None) -> list[str]:
        return [message for lvl, message, _ in self.events if level is None or lvl == level]


@dataclass
class RecordingSleeper:
    delays: list[float] = field(default_factory=list[float])

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeIdentityGateway:
    """In-memory identity store that records every patch it receives."""

    def __init__(
        self,
        identities: Iterable[Identity] = (),
        *,
        failing_patches: Mapping[str, Exception] | None = None,
    ) -> None:
        self.identities = {identity.id: identity for identity in identities if identity.id}
        self.failing_patches = dict(failing_patches or {})
        self.gets: list[str] = []
        self.patches: list[IdentityPatch] = []

    async def get_identity(
        self, identity_id: str, *, cancellation: object = None
    ) -> Identity | None:
        del cancellation
        self.gets.append(identity_id)
        return self.identities.get(identity_id)

    async def patch_identity(self, patch: IdentityPatch, *, cancellation: object = None) -> None:
        del cancellation
        error = self.failing_patches.get(patch.identity_id)
        if error is not None:
            raise error
        self.patches.append(patch)


class FakeDirectoryReader:
    """Serves pre-built pages and records which lookups were requested."""

    def __init__(
        self,
        *,
        user_pages: Iterable[Mapping[str, object]] = (),
        extension_pages: Iterable[Mapping[str, object]] = (),
        by_number: Mapping[str, Mapping[str, object] | Exception] | None = None,
    ) -> None:
        self.user_pages = [UsersPage.model_validate(page) for page in user_pages]
        self.extension_pages = [ExtensionsPage.model_validate(page) for page in extension_pages]
        self.by_number = dict(by_number or {})
        self.user_page_requests: list[int] = []
        self.extension_page_requests: list[int] = []
        self.number_requests: list[str] = []

    async def get_users_page(
        self, *, page_size: int, page_number: int, cancellation: object = None
    ) -> UsersPage:
        del page_size, cancellation
        self.user_page_requests.append(page_number)
        return self.user_pages[page_number - 1]

    async def get_extensions_page(
        self, *, page_size: int, page_number: int, cancellation: object = None
    ) -> ExtensionsPage:
        del page_size, cancellation
        self.extension_page_requests.append(page_number)
        return self.extension_pages[page_number - 1]

    async def get_extensions_by_number(
        self, number: str, *, cancellation: object = None
    ) -> ExtensionsPage:
        del cancellation
        self.number_requests.append(number)
        result = self.by_number.get(number, {"entities": []})
        if isinstance(result, Exception):
            raise result
        return ExtensionsPage.model_validate(result)


def user_payload(
    user_id: str,
    extension: str | None = None,
    *,
    version: int = 1,
    address_type: str = "WORK",
) -> dict[str, object]:
    addresses: list[dict[str, object]] = []
    if extension is not None:
        addresses.append({"mediaType": "PHONE", "type": address_type, "extension": extension})
    return {
        "id": user_id,
        "name": f"User {user_id}",
        "email": f"{user_id}@example.test",
        "state": "active",
        "version": version,
        "addresses": addresses,
    }


def extension_payload(
    number: str, owner_id: str | None, *, owner_type: str = "USER"
) -> dict[str, object]:
    return {
        "id": f"ext-{number}",
        "number": number,
        "ownerType": owner_type,
        "owner": {"id": owner_id} if owner_id is not None else None,
        "extensionPool": {"id": "pool-1"},
    }


def page(entities: list[dict[str, object]], *, page_count: int = 1) -> dict[str, object]:
    return {"entities": entities, "pageCount": page_count}


def resilience_config(
    *,
    max_attempts: int = 5,
    throttle: ThrottlePolicy | None = None,
    retry: RetryPolicy | None = None,
) -> ResilienceConfig:
    return ResilienceConfig(
        name="directory-test",
        base_url=BASE_URL,
        retry=retry or RetryPolicy(max_attempts=max_attempts),
        throttle=throttle or ThrottlePolicy(),
    )


def make_resilient_client(
    handler: Handler,
    *,
    config: ResilienceConfig | None = None,
    sleeper: RecordingSleeper | None = None,
    clock: Callable[[], datetime] = lambda: FIXED_NOW,
    token: str | None = "test-token",
    events: EventSink | None = None,
) -> ResilientClient:
    return ResilientClient(
        config or resilience_config(),
        token_provider=(lambda: token) if token is not None else None,
        events=events,
        transport=httpx.MockTransport(handler),
        sleep=sleeper or RecordingSleeper(),
        clock=clock,
        jitter=lambda _upper: 0.0,
    )
