from __future__ import annotations

import asyncio

import pytest

from extaudit.adapters.directory import (
    ExtensionsPage,
    fetch_extension_records,
    fetch_identities,
    select_extension_mode,
)
from extaudit.adapters.http_resilience import TransportError
from extaudit.domain.cancellation import CancellationToken, OperationCancelledError
from extaudit.domain.model import ExtensionMode
from extaudit.domain.ports.events import ProgressEvent
from tests.helpers.directory import (
    FakeDirectoryReader,
    RecordingEventSink,
    RecordingSleeper,
    extension_payload,
    page,
    user_payload,
)


@pytest.mark.parametrize(
    ("page_count", "expected"),
    [
        (1, ExtensionMode.FULL),
        (25, ExtensionMode.FULL),
        (26, ExtensionMode.TARGETED),
        (0, ExtensionMode.TARGETED),
    ],
)
def test_select_extension_mode(page_count: int, expected: ExtensionMode) -> None:
    assert select_extension_mode(page_count, 25) is expected


def test_fetch_identities_walks_every_page() -> None:
    reader = FakeDirectoryReader(
        user_pages=[
            page([user_payload("u1", "1001"), user_payload("u2")], page_count=2),
            page([user_payload("u3", "1003")], page_count=2),
        ]
    )
    progress: list[ProgressEvent] = []

    identities = asyncio.run(fetch_identities(reader, page_size=2, progress=progress.append))

    assert [identity.id for identity in identities] == ["u1", "u2", "u3"]
    assert reader.user_page_requests == [1, 2]
    assert [event.current for event in progress] == [1, 2]


def test_fetch_identities_stops_when_page_count_is_missing() -> None:
    reader = FakeDirectoryReader(user_pages=[{"entities": [user_payload("u1")]}])

    identities = asyncio.run(fetch_identities(reader))

    assert len(identities) == 1
    assert reader.user_page_requests == [1]


def test_small_registry_is_crawled_in_full() -> None:
    reader = FakeDirectoryReader(
        extension_pages=[
            page([extension_payload("1001", "u1")], page_count=3),
            page([extension_payload("1002", "u2")], page_count=3),
            page([extension_payload("1003", None, owner_type="GROUP")], page_count=3),
        ]
    )
    events = RecordingEventSink()

    result = asyncio.run(
        fetch_extension_records(reader, numbers=["1001"], max_full_pages=25, events=events)
    )

    assert result.mode is ExtensionMode.FULL
    assert result.probe_page_count == 3
    assert reader.extension_page_requests == [1, 2, 3]
    assert reader.number_requests == []
    assert [record.number for record in result.records] == ["1001", "1002", "1003"]
    assert result.records[2].owner_id is None
    assert "Fetching extensions (full crawl)" in events.messages("info")


def test_large_registry_switches_to_targeted_lookups() -> None:
    reader = FakeDirectoryReader(
        extension_pages=[page([extension_payload("9999", "x")], page_count=40)],
        by_number={
            "1001": page([extension_payload("1001", "u1")]),
            "1002": TransportError("GET", "/extensions", status=500, body="boom"),
            "1003": page([]),
        },
    )
    sleeper = RecordingSleeper()
    events = RecordingEventSink()

    result = asyncio.run(
        fetch_extension_records(
            reader,
            numbers=["1001", "1002", "1003"],
            max_full_pages=25,
            targeted_delay=0.075,
            sleep=sleeper,
            events=events,
        )
    )

    assert result.mode is ExtensionMode.TARGETED
    assert result.probe_page_count == 40
    assert reader.extension_page_requests == [1]
    assert reader.number_requests == ["1001", "1002", "1003"]
    assert [record.number for record in result.records] == ["1001"]
    assert result.failed_numbers == ("1002",)
    assert sleeper.delays == [0.075, 0.075, 0.075]
    assert "Extension lookup failed for number 1002" in events.messages("warning")


def test_full_crawl_failure_is_fatal() -> None:
    class FailingReader(FakeDirectoryReader):
        async def get_extensions_page(
            self, *, page_size: int, page_number: int, cancellation: object = None
        ) -> ExtensionsPage:
            if page_number == 2:
                raise TransportError("GET", "/extensions", status=500)
            return await super().get_extensions_page(
                page_size=page_size, page_number=page_number, cancellation=cancellation
            )

    reader = FailingReader(extension_pages=[page([], page_count=2)])

    with pytest.raises(TransportError):
        asyncio.run(fetch_extension_records(reader, numbers=[]))


def test_fetch_extension_records_honours_cancellation() -> None:
    reader = FakeDirectoryReader(extension_pages=[page([], page_count=1)])
    token = CancellationToken()
    token.cancel()

    with pytest.raises(OperationCancelledError):
        asyncio.run(fetch_extension_records(reader, numbers=["1001"], cancellation=token))

    assert reader.extension_page_requests == []
