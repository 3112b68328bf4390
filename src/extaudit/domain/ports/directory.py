"""Ports for reading and updating directory identities."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from extaudit.domain.cancellation import CancellationToken
    from extaudit.domain.model import Identity, IdentityPatch


class IdentityGateway(Protocol):
    """Read-modify-write access to a single identity."""

    async def get_identity(
        self,
        identity_id: str,
        *,
        cancellation: CancellationToken | None = None,
    ) -> Identity | None: ...

    async def patch_identity(
        self,
        patch: IdentityPatch,
        *,
        cancellation: CancellationToken | None = None,
    ) -> None: ...


__all__ = ["IdentityGateway"]
