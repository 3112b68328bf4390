"""Classify profile-extension claims against the extension registry.

Every function here is pure over an :class:`AuditContext`: no network calls and
no mutation, so repeated calls on the same context return equal results.

Each claim is assigned exactly one :class:`ClaimClass`. Contended numbers
(claimed by several identities, or backed by several records) are classified
first and never reach the discrepancy or missing checks.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from extaudit.domain.model import (
    OWNER_TYPE_USER,
    ClaimClass,
    ClassifiedClaim,
    DiscrepancyIssue,
    DiscrepancyRow,
    DuplicateExtensionRecordRow,
    DuplicateUserAssignmentRow,
    MissingAssignmentRow,
    id_key,
    number_key,
)

if TYPE_CHECKING:
    from extaudit.domain.model import AuditContext, ProfileExtensionClaim
    from extaudit.domain.ports.events import EventSink


@dataclass(slots=True, frozen=True)
class ReconciliationReport:
    duplicate_user_assignments: tuple[DuplicateUserAssignmentRow, ...]
    duplicate_extension_records: tuple[DuplicateExtensionRecordRow, ...]
    discrepancies: tuple[DiscrepancyRow, ...]
    missing_assignments: tuple[MissingAssignmentRow, ...]


def _claims_by_number(context: AuditContext) -> dict[str, list[ProfileExtensionClaim]]:
    grouped: dict[str, list[ProfileExtensionClaim]] = {}
    for claim in context.claims:
        key = number_key(claim.profile_extension)
        if key:
            grouped.setdefault(key, []).append(claim)
    return grouped


def duplicate_user_numbers(context: AuditContext) -> frozenset[str]:
    """Number keys claimed by more than one identity."""

    return frozenset(key for key, group in _claims_by_number(context).items() if len(group) > 1)


def duplicate_record_numbers(context: AuditContext) -> frozenset[str]:
    """Number keys backed by more than one extension record."""

    return frozenset(
        key for key, records in context.records_by_number.items() if len(records) > 1
    )


def classify_claims(context: AuditContext) -> tuple[ClassifiedClaim, ...]:
    contended_users = duplicate_user_numbers(context)
    contended_records = duplicate_record_numbers(context)

    classified: list[ClassifiedClaim] = []
    for claim in context.claims:
        key = number_key(claim.profile_extension)
        if not key:
            continue
        if key in contended_users:
            classified.append(ClassifiedClaim(claim, ClaimClass.DUPLICATE_USER))
            continue
        if key in contended_records:
            classified.append(ClassifiedClaim(claim, ClaimClass.DUPLICATE_RECORD))
            continue
        records = context.records_for(key)
        if not records:
            classified.append(ClassifiedClaim(claim, ClaimClass.MISSING))
        else:
            classified.append(ClassifiedClaim(claim, ClaimClass.SINGLE_RECORD, records[0]))
    return tuple(classified)


def find_duplicate_user_assignments(context: AuditContext) -> list[DuplicateUserAssignmentRow]:
    rows: list[DuplicateUserAssignmentRow] = []
    for group in _claims_by_number(context).values():
        if len(group) <= 1:
            continue
        number = group[0].profile_extension
        rows.extend(
            DuplicateUserAssignmentRow(
                profile_extension=number,
                user_id=claim.user_id,
                user_name=claim.user_name,
                user_email=claim.user_email,
                user_state=claim.user_state,
            )
            for claim in group
        )
    return rows


def find_duplicate_extension_records(
    context: AuditContext,
) -> list[DuplicateExtensionRecordRow]:
    rows: list[DuplicateExtensionRecordRow] = []
    for records in context.records_by_number.values():
        if len(records) <= 1:
            continue
        number = (records[0].number or "").strip()
        rows.extend(
            DuplicateExtensionRecordRow(
                extension_number=number,
                extension_id=record.id,
                owner_type=record.owner_type,
                owner_id=record.owner_id,
                extension_pool_id=record.extension_pool_id,
            )
            for record in records
        )
    return rows


def _discrepancy_for(classified: ClassifiedClaim) -> DiscrepancyRow | None:
    record = classified.record
    if record is None:
        return None
    claim = classified.claim
    owner_type = (record.owner_type or "").strip()
    owner_id = (record.owner_id or "").strip()

    if owner_type.casefold() != OWNER_TYPE_USER.casefold():
        issue = DiscrepancyIssue.OWNER_TYPE_NOT_USER
    elif owner_id and id_key(owner_id) != id_key(claim.user_id):
        issue = DiscrepancyIssue.OWNER_MISMATCH
    else:
        return None

    return DiscrepancyRow(
        issue=issue,
        profile_extension=claim.profile_extension.strip(),
        user_id=claim.user_id,
        user_name=claim.user_name,
        user_email=claim.user_email,
        extension_id=record.id,
        extension_owner_type=owner_type,
        extension_owner_id=owner_id,
    )


def find_discrepancies(context: AuditContext) -> list[DiscrepancyRow]:
    rows: list[DiscrepancyRow] = []
    for classified in classify_claims(context):
        if classified.claim_class is not ClaimClass.SINGLE_RECORD:
            continue
        row = _discrepancy_for(classified)
        if row is not None:
            rows.append(row)
    return rows


def find_missing_assignments(context: AuditContext) -> list[MissingAssignmentRow]:
    return [
        MissingAssignmentRow(
            profile_extension=classified.claim.profile_extension.strip(),
            user_id=classified.claim.user_id,
            user_name=classified.claim.user_name,
            user_email=classified.claim.user_email,
            user_state=classified.claim.user_state,
        )
        for classified in classify_claims(context)
        if classified.claim_class is ClaimClass.MISSING
    ]


def run_reconciliation(
    context: AuditContext,
    *,
    events: EventSink | None = None,
) -> ReconciliationReport:
    report = ReconciliationReport(
        duplicate_user_assignments=tuple(find_duplicate_user_assignments(context)),
        duplicate_extension_records=tuple(find_duplicate_extension_records(context)),
        discrepancies=tuple(find_discrepancies(context)),
        missing_assignments=tuple(find_missing_assignments(context)),
    )
    if events is not None:
        events.info(
            "Duplicate user extension assignments",
            duplicate_rows=len(report.duplicate_user_assignments),
            duplicate_extensions=len(
                {number_key(r.profile_extension) for r in report.duplicate_user_assignments}
            ),
        )
        events.info(
            "Duplicate extension records",
            duplicate_rows=len(report.duplicate_extension_records),
            duplicate_numbers=len(
                {number_key(r.extension_number) for r in report.duplicate_extension_records}
            ),
        )
        events.info("Extension discrepancies found", count=len(report.discrepancies))
        events.info(
            "Missing assignments found (profile extension not in extension list)",
            count=len(report.missing_assignments),
        )
    return report
