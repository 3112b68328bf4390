"""Rules for deriving and writing a profile extension from address entries."""

from __future__ import annotations

from typing import TYPE_CHECKING

from extaudit.domain.model import ADDRESS_TYPE_WORK, MEDIA_TYPE_PHONE

if TYPE_CHECKING:
    from collections.abc import Sequence

    from extaudit.domain.model import Address, Identity


def _is(value: str | None, expected: str) -> bool:
    return (value or "").casefold() == expected.casefold()


def _has_extension(address: Address) -> bool:
    return bool(address.extension and address.extension.strip())


def profile_extension(identity: Identity) -> str | None:
    """Return the extension an identity declares on its profile, if any.

    Only PHONE addresses count. The first WORK address with an extension wins;
    otherwise the first PHONE address with any extension.
    """

    phones = [
        address for address in identity.addresses if _is(address.media_type, MEDIA_TYPE_PHONE)
    ]
    for address in phones:
        if _is(address.address_type, ADDRESS_TYPE_WORK) and _has_extension(address):
            return (address.extension or "").strip()
    for address in phones:
        if _has_extension(address):
            return (address.extension or "").strip()
    return None


def patch_target_index(addresses: Sequence[Address]) -> int | None:
    """Index of the address a repair should write to: WORK/PHONE, else first PHONE."""

    for index, address in enumerate(addresses):
        if _is(address.media_type, MEDIA_TYPE_PHONE) and _is(
            address.address_type, ADDRESS_TYPE_WORK
        ):
            return index
    for index, address in enumerate(addresses):
        if _is(address.media_type, MEDIA_TYPE_PHONE):
            return index
    return None
