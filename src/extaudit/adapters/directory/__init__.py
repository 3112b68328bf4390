"""Directory API adapter package."""

from __future__ import annotations

from .client import DirectoryAPIError, DirectoryClient
from .fetcher import (
    DirectoryReader,
    ExtensionFetchResult,
    fetch_extension_records,
    fetch_identities,
    select_extension_mode,
)
from .schema import (
    AddressPayload,
    ExtensionPayload,
    ExtensionsPage,
    UserPatch,
    UserPayload,
    UsersPage,
)
from .translator import translate_extension, translate_user, user_patch

__all__ = [
    "AddressPayload",
    "DirectoryAPIError",
    "DirectoryClient",
    "DirectoryReader",
    "ExtensionFetchResult",
    "ExtensionPayload",
    "ExtensionsPage",
    "UserPatch",
    "UserPayload",
    "UsersPage",
    "fetch_extension_records",
    "fetch_identities",
    "select_extension_mode",
    "translate_extension",
    "translate_user",
    "user_patch",
]
