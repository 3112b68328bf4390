"""Assemble fetched records into an immutable, indexed audit context."""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING

from extaudit.domain.extensions import profile_extension
from extaudit.domain.model import (
    AuditContext,
    ContextSummary,
    ProfileExtensionClaim,
    id_key,
    number_key,
)

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from extaudit.domain.model import ExtensionMode, ExtensionRecord, Identity


def profile_claims(identities: Iterable[Identity]) -> list[ProfileExtensionClaim]:
    """One claim per identity that has an id and a derived profile extension."""

    claims: list[ProfileExtensionClaim] = []
    for identity in identities:
        if not identity.id or not identity.id.strip():
            continue
        extension = profile_extension(identity)
        if not extension:
            continue
        claims.append(
            ProfileExtensionClaim(
                user_id=identity.id,
                user_name=identity.name,
                user_email=identity.email,
                user_state=identity.state,
                profile_extension=extension,
            )
        )
    return claims


def distinct_numbers(numbers: Iterable[str]) -> tuple[str, ...]:
    """Distinct trimmed numbers (first spelling kept), sorted case-insensitively."""

    seen: dict[str, str] = {}
    for number in numbers:
        trimmed = number.strip()
        if not trimmed:
            continue
        seen.setdefault(number_key(trimmed), trimmed)
    return tuple(sorted(seen.values(), key=str.casefold))


def index_records(
    records: Iterable[ExtensionRecord],
) -> dict[str, tuple[ExtensionRecord, ...]]:
    grouped: dict[str, list[ExtensionRecord]] = {}
    for record in records:
        key = number_key(record.number)
        if not key:
            continue
        grouped.setdefault(key, []).append(record)
    return {key: tuple(group) for key, group in grouped.items()}


def build_audit_context(
    *,
    api_base_url: str,
    include_inactive: bool,
    identities: Iterable[Identity],
    extension_records: Iterable[ExtensionRecord],
    extension_mode: ExtensionMode,
) -> AuditContext:
    identity_list = tuple(identities)
    record_list = tuple(extension_records)

    identity_by_id: dict[str, Identity] = {}
    for identity in identity_list:
        if not identity.id or not identity.id.strip():
            continue
        identity_by_id[id_key(identity.id)] = identity

    claims = profile_claims(identity_list)

    return AuditContext(
        api_base_url=api_base_url,
        include_inactive=include_inactive,
        identities=identity_list,
        identity_by_id=MappingProxyType(identity_by_id),
        claims=tuple(claims),
        profile_extension_numbers=distinct_numbers(claim.profile_extension for claim in claims),
        extension_records=record_list,
        records_by_number=MappingProxyType(index_records(record_list)),
        extension_mode=extension_mode,
    )


def summarize_context(
    context: AuditContext,
    *,
    built_at: datetime,
    probe_page_count: int,
) -> ContextSummary:
    return ContextSummary(
        built_at=built_at,
        api_base_url=context.api_base_url,
        include_inactive=context.include_inactive,
        users_total=len(context.identities),
        users_with_profile_extension=len(context.claims),
        distinct_profile_extensions=len(context.profile_extension_numbers),
        extensions_loaded=len(context.extension_records),
        extension_mode=context.extension_mode,
        probe_page_count=probe_page_count,
    )
