"""Defaults for context building and repair runs."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_USERS_PAGE_SIZE = 200
DEFAULT_EXTENSIONS_PAGE_SIZE = 100
DEFAULT_MAX_FULL_EXTENSION_PAGES = 25
DEFAULT_TARGETED_LOOKUP_DELAY_SECONDS = 0.075


@dataclass(frozen=True, slots=True)
class AuditSettings:
    users_page_size: int = DEFAULT_USERS_PAGE_SIZE
    extensions_page_size: int = DEFAULT_EXTENSIONS_PAGE_SIZE
    max_full_extension_pages: int = DEFAULT_MAX_FULL_EXTENSION_PAGES
    targeted_lookup_delay: float = DEFAULT_TARGETED_LOOKUP_DELAY_SECONDS
    patch_delay: float = 0.0
    max_updates: int = 0


def get_audit_settings() -> AuditSettings:
    return AuditSettings()
