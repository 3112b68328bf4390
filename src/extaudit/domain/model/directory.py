"""Directory records as seen by the audit: identities and extension records."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field


@dataclass(slots=True, frozen=True)
class Address:
    """One contact address of an identity.

    ``extras`` carries provider fields the audit does not interpret so that a
    patched address list can be written back without losing them.
    """

    media_type: str | None = None
    address_type: str | None = None
    extension: str | None = None
    extras: Mapping[str, object] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class Identity:
    id: str | None
    name: str | None = None
    email: str | None = None
    state: str | None = None
    version: int = 0
    addresses: tuple[Address, ...] = ()

    @property
    def display(self) -> str:
        if self.email and self.email.strip():
            return f"{self.name or self.id} <{self.email}>"
        return self.name or self.id or ""


@dataclass(slots=True, frozen=True)
class ExtensionRecord:
    id: str | None
    number: str | None
    owner_type: str | None = None
    owner_id: str | None = None
    extension_pool_id: str | None = None


@dataclass(slots=True, frozen=True)
class IdentityPatch:
    """Partial identity update: the full address list and the next version."""

    identity_id: str
    addresses: tuple[Address, ...]
    version: int
