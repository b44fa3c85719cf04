"""In-memory contact store with eviction of the oldest non-favorite contact."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterator, List, Optional, Protocol, runtime_checkable

from meshdevice.contact import ContactInfo, ContactNotFoundError, ContactsFullError

DEFAULT_MAX_CONTACTS = 32
"""Default maximum number of stored contacts."""

MAX_SEARCH_RESULTS = 8
"""Maximum number of contacts returned by a hash search."""

_NO_MOD = 0xFFFFFFFF


@runtime_checkable
class ContactStore(Protocol):
    """Storage backend for contacts.

    Lookups return the stored objects themselves, not copies; changes
    should go through ``update_contact``.
    """

    def add_contact(self, contact: ContactInfo) -> ContactInfo:
        """Store a new contact and return the stored object.

        Raises ContactsFullError when no slot is available.
        """

    def update_contact(self, contact: ContactInfo) -> None:
        """Update the stored contact with the same id.

        Raises ContactNotFoundError when it does not exist.
        """

    def remove_contact(self, contact_id: bytes) -> None:
        """Remove a contact; raises ContactNotFoundError when absent."""

    def get_by_pub_key(self, contact_id: bytes) -> Optional[ContactInfo]:
        """Return the contact with this exact public key, or None."""

    def search_by_hash(self, hash_byte: int) -> List[ContactInfo]:
        """Return contacts whose key hash (first byte) matches."""

    def get_shared_secret(self, contact_id: bytes) -> bytes:
        """Return the contact's cached shared secret, computing it if needed."""

    def count(self) -> int:
        """Return the number of stored contacts."""

    def for_each(self, callback: Callable[[ContactInfo], bool]) -> None:
        """Call ``callback`` for each contact until it returns False."""


def _copy_path(path: Optional[bytes]) -> Optional[bytes]:
    return bytes(path) if path else None


class ContactManager:
    """Thread-safe contact store with firmware-compatible eviction.

    ``compute_secret`` receives a contact's public key and returns the
    shared secret between this node and that contact.
    """

    def __init__(
        self,
        compute_secret: Callable[[bytes], bytes],
        max_contacts: int = DEFAULT_MAX_CONTACTS,
        overwrite_when_full: bool = False,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._compute_secret = compute_secret
        self._max_contacts = max_contacts if max_contacts > 0 else DEFAULT_MAX_CONTACTS
        self._overwrite_when_full = overwrite_when_full
        self._log = (logger or logging.getLogger(__name__)).getChild("contacts")
        self._lock = threading.RLock()
        self._contacts: List[ContactInfo] = []
        self._on_contact_added: Optional[Callable[[ContactInfo, bool], None]] = None
        self._on_contact_removed: Optional[Callable[[bytes], None]] = None
        self._on_contact_overwrite: Optional[Callable[[bytes], None]] = None

    @property
    def max_contacts(self) -> int:
        return self._max_contacts

    @property
    def overwrite_when_full(self) -> bool:
        return self._overwrite_when_full

    def set_on_contact_added(
        self, callback: Optional[Callable[[ContactInfo, bool], None]]
    ) -> None:
        """Set the callback run on add (``is_new`` True) or update (False)."""
        with self._lock:
            self._on_contact_added = callback

    def set_on_contact_removed(self, callback: Optional[Callable[[bytes], None]]) -> None:
        """Set the callback run when a contact is removed."""
        with self._lock:
            self._on_contact_removed = callback

    def set_on_contact_overwrite(self, callback: Optional[Callable[[bytes], None]]) -> None:
        """Set the callback run before a contact is evicted for a new one."""
        with self._lock:
            self._on_contact_overwrite = callback

    def add_contact(self, contact: ContactInfo) -> ContactInfo:
        """Store a copy of ``contact`` and return the stored object.

        When full and overwriting is enabled, the non-favorite contact with
        the oldest ``last_mod`` is evicted; otherwise ContactsFullError.
        """
        with self._lock:
            stored = self._allocate_slot()
            if stored is None:
                raise ContactsFullError()
            stored.id = bytes(contact.id)
            stored.name = contact.name
            stored.type = contact.type
            stored.flags = contact.flags
            stored.out_path_len = contact.out_path_len
            stored.out_path = _copy_path(contact.out_path)
            stored.last_advert_timestamp = contact.last_advert_timestamp
            stored.last_mod = contact.last_mod
            stored.gps_lat = contact.gps_lat
            stored.gps_lon = contact.gps_lon
            stored.sync_since = contact.sync_since
            stored.invalidate_shared_secret()
            if self._on_contact_added is not None:
                self._on_contact_added(stored, True)
            return stored

    def update_contact(self, contact: ContactInfo) -> None:
        """Copy mutable fields onto the stored contact with the same id."""
        with self._lock:
            for existing in self._contacts:
                if existing.id == contact.id:
                    existing.name = contact.name
                    existing.type = contact.type
                    existing.flags = contact.flags
                    existing.out_path_len = contact.out_path_len
                    existing.out_path = _copy_path(contact.out_path)
                    existing.last_advert_timestamp = contact.last_advert_timestamp
                    existing.last_mod = contact.last_mod
                    existing.gps_lat = contact.gps_lat
                    existing.gps_lon = contact.gps_lon
                    existing.sync_since = contact.sync_since
                    if self._on_contact_added is not None:
                        self._on_contact_added(existing, False)
                    return
        raise ContactNotFoundError()

    def remove_contact(self, contact_id: bytes) -> None:
        """Remove the contact with this public key."""
        with self._lock:
            for index, existing in enumerate(self._contacts):
                if existing.id == contact_id:
                    del self._contacts[index]
                    if self._on_contact_removed is not None:
                        self._on_contact_removed(contact_id)
                    return
        raise ContactNotFoundError()

    def get_by_pub_key(self, contact_id: bytes) -> Optional[ContactInfo]:
        with self._lock:
            return next((c for c in self._contacts if c.id == contact_id), None)

    def search_by_hash(self, hash_byte: int) -> List[ContactInfo]:
        """Return up to MAX_SEARCH_RESULTS contacts whose key starts with ``hash_byte``."""
        with self._lock:
            matches = (c for c in self._contacts if c.pub_key_hash == hash_byte)
            return [c for _, c in zip(range(MAX_SEARCH_RESULTS), matches)]

    def get_shared_secret(self, contact_id: bytes) -> bytes:
        contact = self.get_by_pub_key(contact_id)
        if contact is None:
            raise ContactNotFoundError()
        return contact.get_shared_secret(self._compute_secret)

    def count(self) -> int:
        with self._lock:
            return len(self._contacts)

    def __len__(self) -> int:
        return self.count()

    def __iter__(self) -> Iterator[ContactInfo]:
        with self._lock:
            snapshot = list(self._contacts)
        return iter(snapshot)

    def for_each(self, callback: Callable[[ContactInfo], bool]) -> None:
        """Call ``callback`` for each contact; stop when it returns False."""
        with self._lock:
            for contact in self._contacts:
                if not callback(contact):
                    return

    def _allocate_slot(self) -> Optional[ContactInfo]:
        if len(self._contacts) < self._max_contacts:
            slot = ContactInfo()
            self._contacts.append(slot)
            return slot
        if not self._overwrite_when_full:
            return None

        oldest_index = -1
        oldest_mod = _NO_MOD
        for index, contact in enumerate(self._contacts):
            if contact.is_favorite():
                continue
            if contact.last_mod < oldest_mod:
                oldest_mod = contact.last_mod
                oldest_index = index
        if oldest_index < 0:
            return None

        evicted_id = self._contacts[oldest_index].id
        self._log.debug("evicting contact %s", bytes(evicted_id).hex())
        if self._on_contact_overwrite is not None:
            self._on_contact_overwrite(evicted_id)
        slot = ContactInfo()
        self._contacts[oldest_index] = slot
        return slot