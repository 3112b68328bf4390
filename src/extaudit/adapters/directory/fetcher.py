"""Exhaustive and targeted fetchers for identities and extension records."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Protocol

from extaudit.adapters.http_resilience import TransportError
from extaudit.config.audit import (
    DEFAULT_EXTENSIONS_PAGE_SIZE,
    DEFAULT_MAX_FULL_EXTENSION_PAGES,
    DEFAULT_TARGETED_LOOKUP_DELAY_SECONDS,
    DEFAULT_USERS_PAGE_SIZE,
)
from extaudit.domain.cancellation import check_cancelled
from extaudit.domain.model import ExtensionMode
from extaudit.domain.ports.events import report

from .client import DirectoryAPIError
from .translator import translate_extension, translate_user

if TYPE_CHECKING:
    from collections.abc import Sequence

    from extaudit.domain.cancellation import CancellationToken
    from extaudit.domain.model import ExtensionRecord, Identity
    from extaudit.domain.ports.events import EventSink, ProgressListener

    from .schema import ExtensionsPage, UsersPage

log = getLogger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


class DirectoryReader(Protocol):
    async def get_users_page(
        self,
        *,
        page_size: int,
        page_number: int,
        cancellation: CancellationToken | None = None,
    ) -> UsersPage: ...

    async def get_extensions_page(
        self,
        *,
        page_size: int,
        page_number: int,
        cancellation: CancellationToken | None = None,
    ) -> ExtensionsPage: ...

    async def get_extensions_by_number(
        self,
        number: str,
        *,
        cancellation: CancellationToken | None = None,
    ) -> ExtensionsPage: ...


@dataclass(slots=True, frozen=True)
class ExtensionFetchResult:
    records: tuple[ExtensionRecord, ...]
    mode: ExtensionMode
    probe_page_count: int
    failed_numbers: tuple[str, ...] = ()


def select_extension_mode(page_count: int, max_full_pages: int) -> ExtensionMode:
    """FULL when the registry is small enough to crawl, TARGETED otherwise."""

    if 0 < page_count <= max_full_pages:
        return ExtensionMode.FULL
    return ExtensionMode.TARGETED


async def fetch_identities(
    reader: DirectoryReader,
    *,
    page_size: int = DEFAULT_USERS_PAGE_SIZE,
    progress: ProgressListener | None = None,
    events: EventSink | None = None,
    cancellation: CancellationToken | None = None,
) -> list[Identity]:
    """Fetch every identity page until the reported page count is exhausted."""

    identities: list[Identity] = []
    page_number = 1
    while True:
        check_cancelled(cancellation)
        report(progress, "Fetching users", page_number)
        page = await reader.get_users_page(
            page_size=page_size, page_number=page_number, cancellation=cancellation
        )
        identities.extend(translate_user(entity) for entity in page.entities)
        if events is not None:
            events.info(
                "Users page fetched",
                page_number=page_number,
                page_count=page.page_count,
                entities=len(page.entities),
                total_so_far=len(identities),
            )
        page_number += 1
        if page.page_count <= 0 or page_number > page.page_count:
            return identities


async def _crawl_extensions(
    reader: DirectoryReader,
    first_page: ExtensionsPage,
    *,
    page_size: int,
    progress: ProgressListener | None,
    events: EventSink | None,
    cancellation: CancellationToken | None,
) -> list[ExtensionRecord]:
    records: list[ExtensionRecord] = []
    page = first_page
    page_number = 1
    while True:
        records.extend(translate_extension(entity) for entity in page.entities)
        if events is not None:
            events.info(
                "Extensions page fetched",
                page_number=page_number,
                page_count=page.page_count,
                entities=len(page.entities),
                total_so_far=len(records),
            )
        page_number += 1
        if page.page_count <= 0 or page_number > page.page_count:
            return records
        check_cancelled(cancellation)
        report(progress, "Fetching extensions (full)", page_number, page.page_count)
        page = await reader.get_extensions_page(
            page_size=page_size, page_number=page_number, cancellation=cancellation
        )


async def _lookup_extensions(
    reader: DirectoryReader,
    numbers: Sequence[str],
    *,
    delay: float,
    sleep: Sleeper,
    progress: ProgressListener | None,
    events: EventSink | None,
    cancellation: CancellationToken | None,
) -> tuple[list[ExtensionRecord], list[str]]:
    records: list[ExtensionRecord] = []
    failed: list[str] = []
    for position, number in enumerate(numbers, start=1):
        check_cancelled(cancellation)
        report(progress, "Fetching extensions (targeted)", position, len(numbers))
        try:
            page = await reader.get_extensions_by_number(number, cancellation=cancellation)
        except (TransportError, DirectoryAPIError) as exc:
            failed.append(number)
            log.debug("Extension lookup failed for %s", number, exc_info=True)
            if events is not None:
                events.warning(f"Extension lookup failed for number {number}", error=str(exc))
        else:
            records.extend(translate_extension(entity) for entity in page.entities)
        if delay > 0:
            await sleep(delay)
    return records, failed


async def fetch_extension_records(
    reader: DirectoryReader,
    *,
    numbers: Sequence[str],
    page_size: int = DEFAULT_EXTENSIONS_PAGE_SIZE,
    max_full_pages: int = DEFAULT_MAX_FULL_EXTENSION_PAGES,
    targeted_delay: float = DEFAULT_TARGETED_LOOKUP_DELAY_SECONDS,
    sleep: Sleeper = asyncio.sleep,
    progress: ProgressListener | None = None,
    events: EventSink | None = None,
    cancellation: CancellationToken | None = None,
) -> ExtensionFetchResult:
    """Probe the extension registry, then crawl it or look up ``numbers`` one by one.

    In TARGETED mode only the given profile numbers are covered and failed
    lookups are skipped; FULL mode is exhaustive and any failure is fatal.
    """

    check_cancelled(cancellation)
    report(progress, "Probing extensions")
    probe = await reader.get_extensions_page(
        page_size=page_size, page_number=1, cancellation=cancellation
    )
    mode = select_extension_mode(probe.page_count, max_full_pages)

    failed: list[str] = []
    if mode is ExtensionMode.FULL:
        if events is not None:
            events.info(
                "Fetching extensions (full crawl)",
                page_size=page_size,
                page_count=probe.page_count,
            )
        records = await _crawl_extensions(
            reader,
            probe,
            page_size=page_size,
            progress=progress,
            events=events,
            cancellation=cancellation,
        )
    else:
        if events is not None:
            events.info(
                "Fetching extensions (targeted by number)",
                distinct_numbers=len(numbers),
                sleep_ms=int(targeted_delay * 1000),
            )
        records, failed = await _lookup_extensions(
            reader,
            numbers,
            delay=targeted_delay,
            sleep=sleep,
            progress=progress,
            events=events,
            cancellation=cancellation,
        )

    if events is not None:
        events.info(
            "Extensions loaded",
            mode=str(mode),
            probe_page_count=probe.page_count,
            extensions_loaded=len(records),
            failed_lookups=len(failed),
        )
    return ExtensionFetchResult(
        records=tuple(records),
        mode=mode,
        probe_page_count=probe.page_count,
        failed_numbers=tuple(failed),
    )
