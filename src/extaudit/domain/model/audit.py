"""Audit context, classification rows and repair results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .enums import ClaimClass, DiscrepancyIssue, ExtensionMode, PatchStatus, SkipReason

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from .directory import ExtensionRecord, Identity


def number_key(number: str | None) -> str:
    """Comparison key for extension numbers (trimmed, case-insensitive)."""

    return (number or "").strip().casefold()


def id_key(identifier: str | None) -> str:
    return (identifier or "").strip().casefold()


@dataclass(slots=True, frozen=True)
class ProfileExtensionClaim:
    """An identity together with the extension it declares on its profile."""

    user_id: str
    user_name: str | None
    user_email: str | None
    user_state: str | None
    profile_extension: str


@dataclass(slots=True, frozen=True)
class AuditContext:
    """Read-only, indexed view over one run's fetched records.

    Mapping fields are keyed by :func:`number_key` / :func:`id_key` and are
    wrapped in ``MappingProxyType`` by the builder.
    """

    api_base_url: str
    include_inactive: bool
    identities: tuple[Identity, ...]
    identity_by_id: Mapping[str, Identity]
    claims: tuple[ProfileExtensionClaim, ...]
    profile_extension_numbers: tuple[str, ...]
    extension_records: tuple[ExtensionRecord, ...]
    records_by_number: Mapping[str, tuple[ExtensionRecord, ...]]
    extension_mode: ExtensionMode

    def records_for(self, number: str | None) -> tuple[ExtensionRecord, ...]:
        return self.records_by_number.get(number_key(number), ())

    def identity_for(self, user_id: str) -> Identity | None:
        return self.identity_by_id.get(id_key(user_id))

    def display_for(self, user_id: str) -> str:
        identity = self.identity_for(user_id)
        return identity.display if identity is not None else user_id


@dataclass(slots=True, frozen=True)
class ContextSummary:
    built_at: datetime
    api_base_url: str
    include_inactive: bool
    users_total: int
    users_with_profile_extension: int
    distinct_profile_extensions: int
    extensions_loaded: int
    extension_mode: ExtensionMode
    probe_page_count: int


@dataclass(slots=True, frozen=True)
class ClassifiedClaim:
    """A claim with its exclusive class; ``record`` is set only for single-record claims."""

    claim: ProfileExtensionClaim
    claim_class: ClaimClass
    record: ExtensionRecord | None = None

    def __post_init__(self) -> None:
        has_record = self.record is not None
        if has_record != (self.claim_class is ClaimClass.SINGLE_RECORD):
            raise ValueError(
                f"Claim class {self.claim_class} is inconsistent with record presence"
            )


@dataclass(slots=True, frozen=True)
class DuplicateUserAssignmentRow:
    profile_extension: str
    user_id: str
    user_name: str | None
    user_email: str | None
    user_state: str | None


@dataclass(slots=True, frozen=True)
class DuplicateExtensionRecordRow:
    extension_number: str
    extension_id: str | None
    owner_type: str | None
    owner_id: str | None
    extension_pool_id: str | None


@dataclass(slots=True, frozen=True)
class DiscrepancyRow:
    issue: DiscrepancyIssue
    profile_extension: str
    user_id: str
    user_name: str | None
    user_email: str | None
    extension_id: str | None
    extension_owner_type: str
    extension_owner_id: str


@dataclass(slots=True, frozen=True)
class MissingAssignmentRow:
    profile_extension: str
    user_id: str
    user_name: str | None
    user_email: str | None
    user_state: str | None


@dataclass(slots=True, frozen=True)
class PatchUpdatedRow:
    user_id: str
    user: str
    extension: str
    status: PatchStatus
    patched_version: int


@dataclass(slots=True, frozen=True)
class PatchSkippedRow:
    reason: SkipReason
    user_id: str
    user: str
    extension: str


@dataclass(slots=True, frozen=True)
class PatchFailedRow:
    user_id: str
    user: str
    extension: str
    error: str


@dataclass(slots=True, frozen=True)
class PatchResult:
    """Audit trail of one repair run."""

    missing_found: int
    simulate: bool
    updated_rows: tuple[PatchUpdatedRow, ...] = ()
    skipped_rows: tuple[PatchSkippedRow, ...] = ()
    failed_rows: tuple[PatchFailedRow, ...] = ()
    cancelled: bool = False

    @property
    def updated(self) -> int:
        return len(self.updated_rows)

    @property
    def skipped(self) -> int:
        return len(self.skipped_rows)

    @property
    def failed(self) -> int:
        return len(self.failed_rows)

    @property
    def processed(self) -> int:
        return self.updated + self.skipped + self.failed
