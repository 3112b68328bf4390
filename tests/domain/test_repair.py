from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from extaudit.domain.cancellation import CancellationToken, OperationCancelledError
from extaudit.domain.model import (
    Address,
    IdentityPatch,
    PatchStatus,
    SkipReason,
)
from extaudit.domain.ports.events import ProgressEvent
from extaudit.domain.repair import (
    RepairCancelledError,
    RepairOptions,
    patch_missing_assignments,
)
from tests.helpers.directory import (
    FakeIdentityGateway,
    RecordingEventSink,
    RecordingSleeper,
    make_context,
    make_identity,
    make_record,
    phone,
)

if TYPE_CHECKING:
    from extaudit.domain.model import AuditContext


def _missing_context() -> AuditContext:
    return make_context(
        [
            make_identity("u1", "1001", name="Ada", email="ada@example.test"),
            make_identity("u2", "1002"),
            make_identity("u3", "1003"),
            make_identity("u4", "2000"),
            make_identity("u5", "2000"),
        ],
        [make_record("9999", "u9")],
    )


def test_simulation_never_touches_the_gateway() -> None:
    gateway = FakeIdentityGateway()

    result = asyncio.run(
        patch_missing_assignments(_missing_context(), gateway, options=RepairOptions())
    )

    assert result.simulate
    assert result.missing_found == 3
    assert [(row.user_id, row.status, row.patched_version) for row in result.updated_rows] == [
        ("u1", PatchStatus.WHAT_IF, 0),
        ("u2", PatchStatus.WHAT_IF, 0),
        ("u3", PatchStatus.WHAT_IF, 0),
    ]
    assert result.updated_rows[0].user == "Ada <ada@example.test>"
    assert gateway.gets == []
    assert gateway.patches == []


def test_apply_writes_extension_to_work_phone_and_bumps_version() -> None:
    live = make_identity(
        "u1",
        version=3,
        addresses=[
            Address(media_type="EMAIL", address_type="WORK", extras={"address": "a@x.test"}),
            phone("", "HOME"),
            phone(None, "WORK", display="+1 555 0100"),
        ],
    )
    context = make_context([make_identity("u1", "1001")])
    gateway = FakeIdentityGateway([live])

    result = asyncio.run(
        patch_missing_assignments(context, gateway, options=RepairOptions(simulate=False))
    )

    assert gateway.patches == [
        IdentityPatch(
            identity_id="u1",
            addresses=(
                live.addresses[0],
                live.addresses[1],
                phone("1001", "WORK", display="+1 555 0100"),
            ),
            version=4,
        )
    ]
    assert [(row.status, row.patched_version) for row in result.updated_rows] == [
        (PatchStatus.PATCHED, 4)
    ]
    assert result.failed == 0


def test_falls_back_to_first_phone_entry() -> None:
    live = make_identity("u1", version=1, addresses=[phone("", "HOME"), phone("", "MOBILE")])
    gateway = FakeIdentityGateway([live])

    asyncio.run(
        patch_missing_assignments(
            make_context([make_identity("u1", "1001")]),
            gateway,
            options=RepairOptions(simulate=False),
        )
    )

    patched = gateway.patches[0]
    assert [address.extension for address in patched.addresses] == ["1001", ""]


def test_failures_are_recorded_and_do_not_stop_the_run() -> None:
    gateway = FakeIdentityGateway(
        [
            make_identity("u2", addresses=[Address(media_type="EMAIL", address_type="WORK")]),
            make_identity("u3", "0000", version=5),
        ],
        failing_patches={"u3": RuntimeError("API call failed: PATCH (HTTP 409). conflict")},
    )
    events = RecordingEventSink()
    sleeper = RecordingSleeper()

    result = asyncio.run(
        patch_missing_assignments(
            _missing_context(),
            gateway,
            options=RepairOptions(simulate=False, sleep_between=0.5),
            events=events,
            sleep=sleeper,
        )
    )

    assert [(row.user_id, row.error) for row in result.failed_rows] == [
        ("u1", "Failed to GET user u1."),
        ("u2", "User u2 has no PHONE address entry to set extension."),
        ("u3", "API call failed: PATCH (HTTP 409). conflict"),
    ]
    assert result.updated == 0
    assert gateway.gets == ["u1", "u2", "u3"]
    assert sleeper.delays == []
    assert events.messages("error") == ["Patch failed"] * 3


def test_max_updates_skips_remaining_rows() -> None:
    gateway = FakeIdentityGateway(
        [make_identity(user_id, "0") for user_id in ("u1", "u2", "u3")]
    )
    sleeper = RecordingSleeper()

    result = asyncio.run(
        patch_missing_assignments(
            _missing_context(),
            gateway,
            options=RepairOptions(simulate=False, max_updates=2, sleep_between=0.25),
            sleep=sleeper,
        )
    )

    assert [row.user_id for row in result.updated_rows] == ["u1", "u2"]
    assert [(row.reason, row.user_id) for row in result.skipped_rows] == [
        (SkipReason.MAX_UPDATES_REACHED, "u3")
    ]
    assert [patch.identity_id for patch in gateway.patches] == ["u1", "u2"]
    assert sleeper.delays == [0.25, 0.25]


def test_max_updates_applies_to_simulation() -> None:
    result = asyncio.run(
        patch_missing_assignments(
            _missing_context(),
            FakeIdentityGateway(),
            options=RepairOptions(max_updates=1),
        )
    )

    assert result.updated == 1
    assert result.skipped == 2


def test_reports_progress_per_row() -> None:
    progress: list[ProgressEvent] = []

    asyncio.run(
        patch_missing_assignments(
            _missing_context(), FakeIdentityGateway(), progress=progress.append
        )
    )

    assert [(event.current, event.total) for event in progress] == [(1, 3), (2, 3), (3, 3)]
    assert {event.stage for event in progress} == {"Patching missing assignments"}


def test_cancellation_before_start_raises() -> None:
    token = CancellationToken()
    token.cancel()
    gateway = FakeIdentityGateway()

    with pytest.raises(OperationCancelledError):
        asyncio.run(
            patch_missing_assignments(
                _missing_context(),
                gateway,
                options=RepairOptions(simulate=False),
                cancellation=token,
            )
        )

    assert gateway.gets == []


def test_cancellation_mid_run_aborts_remaining_rows() -> None:
    token = CancellationToken()

    class CancellingGateway(FakeIdentityGateway):
        async def patch_identity(
            self, patch: IdentityPatch, *, cancellation: object = None
        ) -> None:
            await super().patch_identity(patch, cancellation=cancellation)
            token.cancel()

    gateway = CancellingGateway([make_identity(user_id, "0") for user_id in ("u1", "u2", "u3")])

    with pytest.raises(RepairCancelledError) as excinfo:
        asyncio.run(
            patch_missing_assignments(
                _missing_context(),
                gateway,
                options=RepairOptions(simulate=False),
                cancellation=token,
            )
        )

    assert [patch.identity_id for patch in gateway.patches] == ["u1"]
    partial = excinfo.value.result
    assert isinstance(excinfo.value, OperationCancelledError)
    assert partial.cancelled
    assert partial.missing_found == 3
    assert [(row.user_id, row.status) for row in partial.updated_rows] == [
        ("u1", PatchStatus.PATCHED)
    ]
    assert partial.skipped_rows == ()
    assert partial.failed_rows == ()
    assert partial.processed == 1


def test_cancellation_raised_by_gateway_is_not_recorded_as_failure() -> None:
    gateway = FakeIdentityGateway(
        [make_identity("u1", "0")],
        failing_patches={"u1": OperationCancelledError("Operation cancelled")},
    )

    with pytest.raises(OperationCancelledError):
        asyncio.run(
            patch_missing_assignments(
                _missing_context(), gateway, options=RepairOptions(simulate=False)
            )
        )
