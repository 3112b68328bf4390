"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from extaudit.adapters.directory import DirectoryClient, fetch_extension_records, fetch_identities
from extaudit.adapters.http_resilience import ResilientClient
from extaudit.common.logging import LoggingEventSink
from extaudit.config import AuditSettings, DirectoryConfig, get_audit_settings, get_directory_config
from extaudit.domain.context import (
    build_audit_context,
    distinct_numbers,
    profile_claims,
    summarize_context,
)
from extaudit.domain.model import (
    DiscrepancyRow,
    DuplicateExtensionRecordRow,
    DuplicateUserAssignmentRow,
    MissingAssignmentRow,
    PatchFailedRow,
    PatchSkippedRow,
    PatchUpdatedRow,
)
from extaudit.domain.reconciliation import run_reconciliation
from extaudit.domain.repair import (
    RepairCancelledError,
    RepairOptions,
    patch_missing_assignments,
)

if TYPE_CHECKING:
    from pathlib import Path

    from extaudit.domain.cancellation import CancellationToken
    from extaudit.domain.model import AuditContext, ContextSummary, PatchResult
    from extaudit.domain.ports.events import EventSink, ProgressListener
    from extaudit.domain.ports.results import ResultSink
    from extaudit.domain.reconciliation import ReconciliationReport
    from extaudit.domain.session import AuditSession

ClientFactory = Callable[[DirectoryConfig, "EventSink"], ResilientClient]

log = getLogger(__name__)


def _default_client_factory(config: DirectoryConfig, events: EventSink) -> ResilientClient:
    return ResilientClient(
        config.resilience,
        token_provider=lambda: config.access_token,
        events=events,
    )


@dataclass(slots=True)
class AuditOutcome:
    context: AuditContext
    summary: ContextSummary
    report: ReconciliationReport
    exports: dict[str, Path] = field(default_factory=dict)


@dataclass(slots=True)
class PatchOutcome:
    context: AuditContext
    summary: ContextSummary
    result: PatchResult
    exports: dict[str, Path] = field(default_factory=dict)


async def build_context_async(
    config: DirectoryConfig,
    settings: AuditSettings,
    *,
    client: DirectoryClient,
    progress: ProgressListener | None = None,
    events: EventSink | None = None,
    cancellation: CancellationToken | None = None,
) -> tuple[AuditContext, ContextSummary]:
    """Fetch identities and extension records and index them into an audit context."""

    if events is not None:
        events.info(
            "Building audit context",
            api_base_url=config.api_base_url,
            include_inactive=config.include_inactive,
            users_page_size=settings.users_page_size,
            extensions_page_size=settings.extensions_page_size,
            max_full_extension_pages=settings.max_full_extension_pages,
        )

    identities = await fetch_identities(
        client,
        page_size=settings.users_page_size,
        progress=progress,
        events=events,
        cancellation=cancellation,
    )
    numbers = distinct_numbers(claim.profile_extension for claim in profile_claims(identities))

    fetched = await fetch_extension_records(
        client,
        numbers=numbers,
        page_size=settings.extensions_page_size,
        max_full_pages=settings.max_full_extension_pages,
        targeted_delay=settings.targeted_lookup_delay,
        progress=progress,
        events=events,
        cancellation=cancellation,
    )

    context = build_audit_context(
        api_base_url=config.api_base_url,
        include_inactive=config.include_inactive,
        identities=identities,
        extension_records=fetched.records,
        extension_mode=fetched.mode,
    )
    summary = summarize_context(
        context,
        built_at=datetime.now(UTC),
        probe_page_count=fetched.probe_page_count,
    )
    if events is not None:
        events.info(
            "User profile extensions collected",
            users_total=summary.users_total,
            users_with_profile_extension=summary.users_with_profile_extension,
            distinct_profile_extensions=summary.distinct_profile_extensions,
        )
    return context, summary


async def _context_for(
    config: DirectoryConfig,
    settings: AuditSettings,
    *,
    client: DirectoryClient,
    session: AuditSession | None,
    reuse: bool,
    progress: ProgressListener | None,
    events: EventSink,
    cancellation: CancellationToken | None,
) -> tuple[AuditContext, ContextSummary]:
    if reuse and session is not None and session.context and session.summary:
        return session.context, session.summary
    context, summary = await build_context_async(
        config,
        settings,
        client=client,
        progress=progress,
        events=events,
        cancellation=cancellation,
    )
    if session is not None:
        session.set_context(context, summary)
    return context, summary


def build_context(
    config: DirectoryConfig | None = None,
    settings: AuditSettings | None = None,
    *,
    client_factory: ClientFactory | None = None,
    session: AuditSession | None = None,
    progress: ProgressListener | None = None,
    events: EventSink | None = None,
    cancellation: CancellationToken | None = None,
) -> tuple[AuditContext, ContextSummary]:
    effective_config = config or get_directory_config()
    effective_settings = settings or get_audit_settings()
    effective_events = events or LoggingEventSink(log)
    factory = client_factory or _default_client_factory

    async def run() -> tuple[AuditContext, ContextSummary]:
        async with factory(effective_config, effective_events) as transport:
            client = DirectoryClient(
                transport=transport, include_inactive=effective_config.include_inactive
            )
            return await _context_for(
                effective_config,
                effective_settings,
                client=client,
                session=session,
                reuse=False,
                progress=progress,
                events=effective_events,
                cancellation=cancellation,
            )

    return asyncio.run(run())


def export_report(sink: ResultSink, report: ReconciliationReport) -> dict[str, Path]:
    return {
        "duplicate_user_assignments": sink.write(
            report.duplicate_user_assignments,
            "DuplicateUserAssignments",
            row_type=DuplicateUserAssignmentRow,
        ),
        "duplicate_extension_records": sink.write(
            report.duplicate_extension_records,
            "DuplicateExtensionRecords",
            row_type=DuplicateExtensionRecordRow,
        ),
        "discrepancies": sink.write(
            report.discrepancies, "Discrepancies", row_type=DiscrepancyRow
        ),
        "missing_assignments": sink.write(
            report.missing_assignments, "MissingAssignments", row_type=MissingAssignmentRow
        ),
    }


def export_patch_result(sink: ResultSink, result: PatchResult) -> dict[str, Path]:
    return {
        "updated": sink.write(result.updated_rows, "PatchUpdated", row_type=PatchUpdatedRow),
        "skipped": sink.write(result.skipped_rows, "PatchSkipped", row_type=PatchSkippedRow),
        "failed": sink.write(result.failed_rows, "PatchFailed", row_type=PatchFailedRow),
    }


def run_audit(
    config: DirectoryConfig | None = None,
    settings: AuditSettings | None = None,
    *,
    sink: ResultSink | None = None,
    client_factory: ClientFactory | None = None,
    session: AuditSession | None = None,
    progress: ProgressListener | None = None,
    events: EventSink | None = None,
    cancellation: CancellationToken | None = None,
) -> AuditOutcome:
    """Build a fresh context, classify every claim and optionally export the rows."""

    effective_events = events or LoggingEventSink(log)
    context, summary = build_context(
        config,
        settings,
        client_factory=client_factory,
        session=session,
        progress=progress,
        events=effective_events,
        cancellation=cancellation,
    )
    report = run_reconciliation(context, events=effective_events)
    outcome = AuditOutcome(context=context, summary=summary, report=report)
    if sink is not None:
        outcome.exports = export_report(sink, report)

    log.info(
        f"Finished audit: mode={summary.extension_mode}, users={summary.users_total}, "
        f"extensions={summary.extensions_loaded}, "
        f"duplicate_users={len(report.duplicate_user_assignments)}, "
        f"duplicate_records={len(report.duplicate_extension_records)}, "
        f"discrepancies={len(report.discrepancies)}, missing={len(report.missing_assignments)}"
    )
    return outcome


def patch_missing(
    config: DirectoryConfig | None = None,
    settings: AuditSettings | None = None,
    *,
    options: RepairOptions | None = None,
    sink: ResultSink | None = None,
    client_factory: ClientFactory | None = None,
    session: AuditSession | None = None,
    progress: ProgressListener | None = None,
    events: EventSink | None = None,
    cancellation: CancellationToken | None = None,
) -> PatchOutcome:
    """Repair missing assignments, reusing the session's context when one is held."""

    effective_config = config or get_directory_config()
    effective_settings = settings or get_audit_settings()
    effective_options = options or RepairOptions(
        max_updates=effective_settings.max_updates,
        sleep_between=effective_settings.patch_delay,
    )
    effective_events = events or LoggingEventSink(log)
    factory = client_factory or _default_client_factory

    async def run() -> PatchOutcome:
        async with factory(effective_config, effective_events) as transport:
            client = DirectoryClient(
                transport=transport, include_inactive=effective_config.include_inactive
            )
            context, summary = await _context_for(
                effective_config,
                effective_settings,
                client=client,
                session=session,
                reuse=True,
                progress=progress,
                events=effective_events,
                cancellation=cancellation,
            )
            result = await patch_missing_assignments(
                context,
                client,
                options=effective_options,
                progress=progress,
                events=effective_events,
                cancellation=cancellation,
            )
            return PatchOutcome(context=context, summary=summary, result=result)

    try:
        outcome = asyncio.run(run())
    except RepairCancelledError as exc:
        partial = exc.result
        if sink is not None:
            for name, path in export_patch_result(sink, partial).items():
                log.info(f"Exported partial {name} rows to {path}")
        log.warning(
            f"Patch run cancelled after {partial.processed} of {partial.missing_found} rows: "
            f"updated={partial.updated}, skipped={partial.skipped}, failed={partial.failed}"
        )
        raise
    if sink is not None:
        outcome.exports = export_patch_result(sink, outcome.result)

    result = outcome.result
    log.info(
        f"Finished patch run: simulate={result.simulate}, missing={result.missing_found}, "
        f"updated={result.updated}, skipped={result.skipped}, failed={result.failed}"
    )
    return outcome
