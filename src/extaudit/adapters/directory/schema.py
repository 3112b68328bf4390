"""Pydantic models for the directory (users / telephony extensions) API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DirectoryBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class IdRef(DirectoryBaseModel):
    id: str | None = None


class AddressPayload(BaseModel):
    # Unknown address fields survive a read-modify-write round trip.
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    media_type: str | None = Field(default=None, alias="mediaType")
    type: str | None = None
    extension: str | None = None


class UserPayload(DirectoryBaseModel):
    id: str | None = None
    name: str | None = None
    email: str | None = None
    state: str | None = None
    version: int = 0
    addresses: list[AddressPayload] = Field(default_factory=list["AddressPayload"])

    @field_validator("addresses", mode="before")
    @classmethod
    def _none_to_empty(cls, value: object) -> object:
        return [] if value is None else value

    @field_validator("version", mode="before")
    @classmethod
    def _none_to_zero(cls, value: object) -> object:
        return 0 if value is None else value


class ExtensionPayload(DirectoryBaseModel):
    id: str | None = None
    number: str | None = None
    owner_type: str | None = Field(default=None, alias="ownerType")
    owner: IdRef | None = None
    extension_pool: IdRef | None = Field(default=None, alias="extensionPool")


class DirectoryPage(DirectoryBaseModel):
    page_size: int | None = Field(default=None, alias="pageSize")
    page_number: int | None = Field(default=None, alias="pageNumber")
    total: int | None = None
    page_count: int = Field(default=0, alias="pageCount")

    @field_validator("page_count", mode="before")
    @classmethod
    def _none_to_zero(cls, value: object) -> object:
        return 0 if value is None else value


class UsersPage(DirectoryPage):
    entities: list[UserPayload] = Field(default_factory=list["UserPayload"])

    @field_validator("entities", mode="before")
    @classmethod
    def _none_to_empty(cls, value: object) -> object:
        return [] if value is None else value


class ExtensionsPage(DirectoryPage):
    entities: list[ExtensionPayload] = Field(default_factory=list["ExtensionPayload"])

    @field_validator("entities", mode="before")
    @classmethod
    def _none_to_empty(cls, value: object) -> object:
        return [] if value is None else value


class UserPatch(DirectoryBaseModel):
    """Body of a partial user update."""

    addresses: list[AddressPayload]
    version: int

    def to_json(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
