"""Handling of received ADVERT and PATH payloads against a contact store."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from meshdevice.contact import (
    PATH_UNKNOWN,
    ContactError,
    ContactInfo,
    ContactNotFoundError,
)
from meshdevice.contact_manager import ContactStore

COORD_SCALE = 1_000_000
"""Coordinates are stored as degrees times this factor."""


@dataclass
class AdvertAppData:
    """Application data carried by an ADVERT: node type, name and location."""

    node_type: int = 0
    name: str = ""
    lat: Optional[float] = None
    lon: Optional[float] = None

    def has_location(self) -> bool:
        return self.lat is not None and self.lon is not None


@dataclass
class AdvertPayload:
    """A parsed ADVERT: sender key, timestamp, signature and app data."""

    pub_key: bytes = bytes(32)
    timestamp: int = 0
    signature: bytes = bytes(64)
    app_data: Optional[AdvertAppData] = None


@dataclass
class PathContent:
    """A parsed PATH payload with an optional piggybacked extra payload."""

    path_len: int = 0
    path: Optional[bytes] = None
    extra_type: int = 0
    extra: Optional[bytes] = None


@dataclass
class AdvertResult:
    """Outcome of processing a received ADVERT.

    For an ADVERT rejected because auto-add is off, ``contact`` is a
    temporary contact built from the ADVERT and not stored.
    """

    contact: Optional[ContactInfo] = None
    is_new: bool = False
    rejected: bool = False
    reject_reason: str = ""


def _scale_coord(value: float) -> int:
    scaled = value * COORD_SCALE
    rounded = math.floor(abs(scaled) + 0.5)
    return int(-rounded if scaled < 0 else rounded)


def _contact_from_advert(advert: AdvertPayload, now_timestamp: int) -> ContactInfo:
    app_data = advert.app_data
    assert app_data is not None
    contact = ContactInfo(
        id=bytes(advert.pub_key),
        name=app_data.name,
        type=app_data.node_type,
        out_path_len=PATH_UNKNOWN,
        last_advert_timestamp=advert.timestamp,
        last_mod=now_timestamp,
    )
    if app_data.has_location():
        contact.gps_lat = _scale_coord(app_data.lat)
        contact.gps_lon = _scale_coord(app_data.lon)
    return contact


def process_advert(
    store: ContactStore,
    advert: AdvertPayload,
    now_timestamp: int,
    auto_add: bool,
    verify: Callable[[AdvertPayload], bool],
) -> AdvertResult:
    """Verify an ADVERT, reject replays, and add or update the sender's contact.

    ``verify`` checks the ADVERT's signature and returns True when it is valid.
    """
    app_data = advert.app_data
    if app_data is None or not app_data.name:
        return AdvertResult(rejected=True, reject_reason="advert missing name")

    if not verify(advert):
        return AdvertResult(rejected=True, reject_reason="invalid signature")

    advert_id = bytes(advert.pub_key)
    existing = store.get_by_pub_key(advert_id)

    if existing is not None and advert.timestamp <= existing.last_advert_timestamp:
        return AdvertResult(
            contact=existing, rejected=True, reject_reason="possible replay"
        )

    if existing is None:
        new_contact = _contact_from_advert(advert, now_timestamp)
        if not auto_add:
            return AdvertResult(
                contact=new_contact, rejected=True, reject_reason="auto-add disabled"
            )
        try:
            stored = store.add_contact(new_contact)
        except ContactError:
            return AdvertResult(rejected=True, reject_reason="contacts full")
        return AdvertResult(contact=stored, is_new=True)

    updated = ContactInfo(
        id=existing.id,
        name=app_data.name,
        type=app_data.node_type,
        flags=existing.flags,
        out_path_len=existing.out_path_len,
        out_path=existing.out_path,
        last_advert_timestamp=advert.timestamp,
        last_mod=now_timestamp,
        gps_lat=existing.gps_lat,
        gps_lon=existing.gps_lon,
        sync_since=existing.sync_since,
    )
    if app_data.has_location():
        updated.gps_lat = _scale_coord(app_data.lat)
        updated.gps_lon = _scale_coord(app_data.lon)
    try:
        store.update_contact(updated)
    except ContactNotFoundError:
        pass
    return AdvertResult(contact=store.get_by_pub_key(advert_id))


def process_path(
    store: ContactStore,
    sender_id: bytes,
    path_content: PathContent,
    now_timestamp: int,
) -> Tuple[ContactInfo, int, Optional[bytes]]:
    """Record the direct path a PATH packet carries for its sender.

    Returns the updated contact with the extra type and data piggybacked on
    the PATH. Raises ContactNotFoundError when the sender is unknown.
    """
    found = store.get_by_pub_key(bytes(sender_id))
    if found is None:
        raise ContactNotFoundError()

    length = path_content.path_len
    found.out_path_len = length
    if length > 0:
        found.out_path = bytes(path_content.path or b"")[:length].ljust(length, b"\0")
    else:
        found.out_path = None
    found.last_mod = now_timestamp
    return found, path_content.extra_type, path_content.extra