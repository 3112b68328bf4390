"""Translate directory API payloads into domain records and back."""

from __future__ import annotations

from typing import TYPE_CHECKING

from extaudit.domain.model import Address, ExtensionRecord, Identity

from .schema import AddressPayload, UserPatch

if TYPE_CHECKING:
    from extaudit.domain.model import IdentityPatch

    from .schema import ExtensionPayload, UserPayload


def translate_address(payload: AddressPayload) -> Address:
    return Address(
        media_type=payload.media_type,
        address_type=payload.type,
        extension=payload.extension,
        extras=dict(payload.model_extra or {}),
    )


def translate_user(payload: UserPayload) -> Identity:
    return Identity(
        id=payload.id,
        name=payload.name,
        email=payload.email,
        state=payload.state,
        version=payload.version,
        addresses=tuple(translate_address(address) for address in payload.addresses),
    )


def translate_extension(payload: ExtensionPayload) -> ExtensionRecord:
    return ExtensionRecord(
        id=payload.id,
        number=payload.number,
        owner_type=payload.owner_type,
        owner_id=payload.owner.id if payload.owner is not None else None,
        extension_pool_id=(
            payload.extension_pool.id if payload.extension_pool is not None else None
        ),
    )


def address_payload(address: Address) -> AddressPayload:
    data: dict[str, object] = dict(address.extras)
    data["mediaType"] = address.media_type
    data["type"] = address.address_type
    data["extension"] = address.extension
    return AddressPayload.model_validate(data)


def user_patch(patch: IdentityPatch) -> UserPatch:
    return UserPatch(
        addresses=[address_payload(address) for address in patch.addresses],
        version=patch.version,
    )
