"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class ExtensionMode(StrEnum):
    """How the extension-record list of an audit context was collected."""

    FULL = "FULL"
    TARGETED = "TARGETED"


class ClaimClass(StrEnum):
    """Exclusive classification of a single profile-extension claim."""

    DUPLICATE_USER = "DuplicateUserAssignment"
    DUPLICATE_RECORD = "DuplicateExtensionRecord"
    MISSING = "Missing"
    SINGLE_RECORD = "SingleRecord"


class DiscrepancyIssue(StrEnum):
    OWNER_TYPE_NOT_USER = "OwnerTypeNotUser"
    OWNER_MISMATCH = "OwnerMismatch"


class PatchStatus(StrEnum):
    WHAT_IF = "WhatIf"
    PATCHED = "Patched"


class SkipReason(StrEnum):
    DUPLICATE_USER_ASSIGNMENT = "DuplicateUserAssignment"
    MAX_UPDATES_REACHED = "MaxUpdatesReached"


MEDIA_TYPE_PHONE = "PHONE"
ADDRESS_TYPE_WORK = "WORK"
OWNER_TYPE_USER = "USER"
