"""Public domain model surface."""

from __future__ import annotations

from extaudit.domain.model.audit import (
    AuditContext,
    ClassifiedClaim,
    ContextSummary,
    DiscrepancyRow,
    DuplicateExtensionRecordRow,
    DuplicateUserAssignmentRow,
    MissingAssignmentRow,
    PatchFailedRow,
    PatchResult,
    PatchSkippedRow,
    PatchUpdatedRow,
    ProfileExtensionClaim,
    id_key,
    number_key,
)
from extaudit.domain.model.directory import Address, ExtensionRecord, Identity, IdentityPatch
from extaudit.domain.model.enums import (
    ADDRESS_TYPE_WORK,
    MEDIA_TYPE_PHONE,
    OWNER_TYPE_USER,
    ClaimClass,
    DiscrepancyIssue,
    ExtensionMode,
    PatchStatus,
    SkipReason,
)

__all__ = [
    "ADDRESS_TYPE_WORK",
    "MEDIA_TYPE_PHONE",
    "OWNER_TYPE_USER",
    "Address",
    "AuditContext",
    "ClaimClass",
    "ClassifiedClaim",
    "ContextSummary",
    "DiscrepancyIssue",
    "DiscrepancyRow",
    "DuplicateExtensionRecordRow",
    "DuplicateUserAssignmentRow",
    "ExtensionMode",
    "ExtensionRecord",
    "Identity",
    "IdentityPatch",
    "MissingAssignmentRow",
    "PatchFailedRow",
    "PatchResult",
    "PatchSkippedRow",
    "PatchStatus",
    "PatchUpdatedRow",
    "ProfileExtensionClaim",
    "SkipReason",
    "id_key",
    "number_key",
]
