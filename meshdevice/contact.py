"""Known mesh peers with their routing data and cached shared secret."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Callable, Optional

MAX_NAME_LEN = 32
"""Maximum contact name length."""

FLAG_FAVORITE = 0x01
"""Flag bit marking a contact that is never evicted."""

PATH_UNKNOWN = -1
"""``out_path_len`` value when only flood routing can reach the contact."""

PUB_KEY_SIZE = 32


class ContactError(Exception):
    """Base class for contact store errors."""


class ContactsFullError(ContactError):
    """The contact list is full and no slot could be freed."""

    def __init__(self, message: str = "contact list full") -> None:
        super().__init__(message)


class ContactNotFoundError(ContactError):
    """No contact matches the given key."""

    def __init__(self, message: str = "contact not found") -> None:
        super().__init__(message)


@dataclass
class ContactInfo:
    """A known peer: identity, routing path, timestamps and location.

    ``gps_lat`` and ``gps_lon`` are degrees times 1,000,000.
    """

    id: bytes = bytes(PUB_KEY_SIZE)
    name: str = ""
    type: int = 0
    flags: int = 0
    out_path_len: int = 0
    out_path: Optional[bytes] = None
    last_advert_timestamp: int = 0
    last_mod: int = 0
    gps_lat: int = 0
    gps_lon: int = 0
    sync_since: int = 0
    _secret_lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )
    _shared_secret: Optional[bytes] = field(
        default=None, init=False, repr=False, compare=False
    )

    @property
    def pub_key_hash(self) -> int:
        """One-byte hash of the public key: its first byte."""
        return self.id[0]

    @property
    def shared_secret_valid(self) -> bool:
        with self._secret_lock:
            return self._shared_secret is not None

    def is_favorite(self) -> bool:
        return bool(self.flags & FLAG_FAVORITE)

    def set_favorite(self, favorite: bool) -> None:
        if favorite:
            self.flags |= FLAG_FAVORITE
        else:
            self.flags &= ~FLAG_FAVORITE & 0xFF

    def has_direct_path(self) -> bool:
        return self.out_path_len >= 0

    def get_shared_secret(self, compute: Callable[[bytes], bytes]) -> bytes:
        """Return the cached shared secret, computing it from this contact's key.

        ``compute`` receives the contact's public key and returns the secret;
        any error it raises propagates and nothing is cached.
        """
        with self._secret_lock:
            if self._shared_secret is None:
                self._shared_secret = bytes(compute(bytes(self.id)))
            return self._shared_secret

    def invalidate_shared_secret(self) -> None:
        """Force the next ``get_shared_secret`` call to recompute."""
        with self._secret_lock:
            self._shared_secret = None