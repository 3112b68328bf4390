"""Apply corrective extension patches to identities with missing assignments."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from logging import getLogger
from typing import TYPE_CHECKING

from extaudit.domain.cancellation import OperationCancelledError, check_cancelled
from extaudit.domain.extensions import patch_target_index
from extaudit.domain.model import (
    IdentityPatch,
    PatchFailedRow,
    PatchResult,
    PatchSkippedRow,
    PatchStatus,
    PatchUpdatedRow,
    SkipReason,
    number_key,
)
from extaudit.domain.ports.events import report
from extaudit.domain.reconciliation import duplicate_user_numbers, find_missing_assignments

if TYPE_CHECKING:
    from extaudit.domain.cancellation import CancellationToken
    from extaudit.domain.model import AuditContext, MissingAssignmentRow
    from extaudit.domain.ports.directory import IdentityGateway
    from extaudit.domain.ports.events import EventSink, ProgressListener

log = getLogger(__name__)

Sleeper = Callable[[float], Awaitable[None]]

PATCH_STAGE = "Patching missing assignments"


class RepairError(RuntimeError):
    """Raised when a single identity cannot be patched."""

    def __init__(self, message: str, *, user_id: str) -> None:
        super().__init__(message)
        self.user_id = user_id


class RepairCancelledError(OperationCancelledError):
    """Raised when a repair batch is cancelled; ``result`` holds the rows processed so far."""

    def __init__(self, result: PatchResult) -> None:
        super().__init__("Operation cancelled")
        self.result = result


@dataclass(slots=True, frozen=True)
class RepairOptions:
    simulate: bool = True
    max_updates: int = 0
    sleep_between: float = 0.0


async def repair_row(
    row: MissingAssignmentRow,
    gateway: IdentityGateway,
    *,
    cancellation: CancellationToken | None = None,
) -> int:
    """Write ``row.profile_extension`` onto the identity and return the new version."""

    identity = await gateway.get_identity(row.user_id, cancellation=cancellation)
    if identity is None or not identity.id:
        raise RepairError(f"Failed to GET user {row.user_id}.", user_id=row.user_id)

    addresses = list(identity.addresses)
    index = patch_target_index(addresses)
    if index is None:
        raise RepairError(
            f"User {row.user_id} has no PHONE address entry to set extension.",
            user_id=row.user_id,
        )
    addresses[index] = replace(addresses[index], extension=row.profile_extension)

    new_version = identity.version + 1
    await gateway.patch_identity(
        IdentityPatch(identity_id=identity.id, addresses=tuple(addresses), version=new_version),
        cancellation=cancellation,
    )
    return new_version



async def patch_missing_assignments(
    context: AuditContext,
    gateway: IdentityGateway,
    *,
    options: RepairOptions | None = None,
    progress: ProgressListener | None = None,
    events: EventSink | None = None,
    cancellation: CancellationToken | None = None,
    sleep: Sleeper = asyncio.sleep,
) -> PatchResult:
    """Patch each missing assignment in order; failures are recorded per row.

    Cancellation aborts the remaining rows by raising ``RepairCancelledError``
    carrying the rows processed before it.
    """

    opts = options or RepairOptions()
    missing = find_missing_assignments(context)
    contended = duplicate_user_numbers(context)

    updated: list[PatchUpdatedRow] = []
    skipped: list[PatchSkippedRow] = []
    failed: list[PatchFailedRow] = []
    done = 0

    def result(*, cancelled: bool = False) -> PatchResult:
        return PatchResult(
            missing_found=len(missing),
            simulate=opts.simulate,
            updated_rows=tuple(updated),
            skipped_rows=tuple(skipped),
            failed_rows=tuple(failed),
            cancelled=cancelled,
        )

    try:
        for position, row in enumerate(missing, start=1):
            check_cancelled(cancellation)
            report(progress, PATCH_STAGE, position, len(missing))
            display = context.display_for(row.user_id)

            if number_key(row.profile_extension) in contended:
                skipped.append(
                    PatchSkippedRow(
                        SkipReason.DUPLICATE_USER_ASSIGNMENT,
                        row.user_id,
                        display,
                        row.profile_extension,
                    )
                )
                continue

            if opts.max_updates > 0 and done >= opts.max_updates:
                skipped.append(
                    PatchSkippedRow(
                        SkipReason.MAX_UPDATES_REACHED,
                        row.user_id,
                        display,
                        row.profile_extension,
                    )
                )
                continue

            if events is not None:
                events.info(
                    "Patching missing assignment (user resync)",
                    user_id=row.user_id,
                    user=display,
                    extension=row.profile_extension,
                    simulate=opts.simulate,
                )

            if opts.simulate:
                updated.append(
                    PatchUpdatedRow(
                        row.user_id, display, row.profile_extension, PatchStatus.WHAT_IF, 0
                    )
                )
                done += 1
                continue

            try:
                new_version = await repair_row(row, gateway, cancellation=cancellation)
            except OperationCancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                failed.append(
                    PatchFailedRow(row.user_id, display, row.profile_extension, str(exc))
                )
                log.debug("Patch failed for %s", row.user_id, exc_info=True)
                if events is not None:
                    events.error(
                        "Patch failed",
                        user_id=row.user_id,
                        extension=row.profile_extension,
                        error=str(exc),
                    )
                continue

            updated.append(
                PatchUpdatedRow(
                    row.user_id, display, row.profile_extension, PatchStatus.PATCHED, new_version
                )
            )
            done += 1
            if opts.sleep_between > 0:
                await sleep(opts.sleep_between)
    except OperationCancelledError as exc:
        partial = result(cancelled=True)
        if events is not None:
            events.warning(
                "Patch run cancelled",
                updated=partial.updated,
                skipped=partial.skipped,
                failed=partial.failed,
                remaining=len(missing) - partial.processed,
            )
        raise RepairCancelledError(partial) from exc

    return result()
