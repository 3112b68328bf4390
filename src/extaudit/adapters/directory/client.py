"""Directory API client (users and telephony extensions)."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, TypeVar
from urllib.parse import quote

from pydantic import BaseModel, ValidationError

from .schema import ExtensionsPage, UserPayload, UsersPage
from .translator import translate_user, user_patch

if TYPE_CHECKING:
    from extaudit.adapters.http_resilience import ResilientClient
    from extaudit.domain.cancellation import CancellationToken
    from extaudit.domain.model import Identity, IdentityPatch

    from .schema import UserPatch

log = getLogger(__name__)

USERS_PATH = "/api/v2/users"
EXTENSIONS_PATH = "/api/v2/telephony/providers/edges/extensions"

ModelT = TypeVar("ModelT", bound=BaseModel)


class DirectoryAPIError(RuntimeError):
    """Raised when the directory API returns an unexpected payload."""


def _user_path(user_id: str) -> str:
    return f"{USERS_PATH}/{quote(user_id, safe='')}"


class DirectoryClient:
    """Typed access to the directory endpoints over a :class:`ResilientClient`."""

    def __init__(self, *, transport: ResilientClient, include_inactive: bool = False) -> None:
        self._transport = transport
        self._include_inactive = include_inactive

    async def get_users_page(
        self,
        *,
        page_size: int,
        page_number: int,
        cancellation: CancellationToken | None = None,
    ) -> UsersPage:
        params: dict[str, str | int] = {"pageSize": page_size, "pageNumber": page_number}
        if not self._include_inactive:
            params["state"] = "active"
        payload = await self._transport.get(USERS_PATH, params=params, cancellation=cancellation)
        return self._validate(UsersPage, payload, USERS_PATH)

    async def get_extensions_page(
        self,
        *,
        page_size: int,
        page_number: int,
        cancellation: CancellationToken | None = None,
    ) -> ExtensionsPage:
        params = {"pageSize": page_size, "pageNumber": page_number}
        payload = await self._transport.get(
            EXTENSIONS_PATH, params=params, cancellation=cancellation
        )
        return self._validate(ExtensionsPage, payload, EXTENSIONS_PATH)

    async def get_extensions_by_number(
        self,
        number: str,
        *,
        cancellation: CancellationToken | None = None,
    ) -> ExtensionsPage:
        payload = await self._transport.get(
            EXTENSIONS_PATH, params={"number": number}, cancellation=cancellation
        )
        return self._validate(ExtensionsPage, payload, EXTENSIONS_PATH)

    async def get_user(
        self,
        user_id: str,
        *,
        cancellation: CancellationToken | None = None,
    ) -> UserPayload | None:
        path = _user_path(user_id)
        payload = await self._transport.get(path, cancellation=cancellation)
        if payload is None:
            return None
        return self._validate(UserPayload, payload, path)

    async def patch_user(
        self,
        user_id: str,
        body: UserPatch,
        *,
        cancellation: CancellationToken | None = None,
    ) -> UserPayload | None:
        path = _user_path(user_id)
        payload = await self._transport.patch(path, json=body.to_json(), cancellation=cancellation)
        if payload is None:
            return None
        return self._validate(UserPayload, payload, path)

    async def get_identity(
        self,
        identity_id: str,
        *,
        cancellation: CancellationToken | None = None,
    ) -> Identity | None:
        payload = await self.get_user(identity_id, cancellation=cancellation)
        return translate_user(payload) if payload is not None else None

    async def patch_identity(
        self,
        patch: IdentityPatch,
        *,
        cancellation: CancellationToken | None = None,
    ) -> None:
        await self.patch_user(patch.identity_id, user_patch(patch), cancellation=cancellation)

    @staticmethod
    def _validate(model: type[ModelT], payload: object, path: str) -> ModelT:
        if not isinstance(payload, dict):
            raise DirectoryAPIError(f"Unexpected directory response payload from {path}")
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            log.debug("Invalid payload from %s: %s", path, exc)
            raise DirectoryAPIError(f"Invalid directory response payload from {path}") from exc
