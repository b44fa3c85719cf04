"""Tracking of outbound messages that expect an acknowledgement."""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

DEFAULT_ACK_TIMEOUT = 12.0
"""Seconds to wait for an ACK before a send attempt counts as failed."""

DEFAULT_MAX_RETRIES = 3
"""Retry attempts after the initial send (total attempts = 1 + retries)."""

CHECK_INTERVAL = 1.0
"""Resolution, in seconds, of the timeout check loop."""


@dataclass
class PendingAck:
    """An outbound message awaiting acknowledgement.

    ``on_ack`` runs when the ACK arrives, ``on_timeout`` when every attempt
    is exhausted and ``resend`` for each retry. Any of them may be None;
    without ``resend`` no retries are made.
    """

    on_ack: Optional[Callable[[], None]] = None
    on_timeout: Optional[Callable[[], None]] = None
    resend: Optional[Callable[[], None]] = None
    sent_at: float = field(default=0.0, init=False, repr=False)
    retries: int = field(default=0, init=False)


class AckTracker:
    """Tracks pending ACKs keyed by their 4-byte hash and handles retries."""

    def __init__(
        self,
        ack_timeout: float = DEFAULT_ACK_TIMEOUT,
        max_retries: int = 0,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ack_timeout = ack_timeout if ack_timeout > 0 else DEFAULT_ACK_TIMEOUT
        self._max_retries = max_retries if max_retries >= 0 else DEFAULT_MAX_RETRIES
        self._log = (logger or logging.getLogger(__name__)).getChild("ack")
        self._clock = clock
        self._lock = threading.Lock()
        self._pending: Dict[int, PendingAck] = {}
        self._stop: Optional[threading.Event] = None

    @property
    def ack_timeout(self) -> float:
        return self._ack_timeout

    @property
    def max_retries(self) -> int:
        return self._max_retries

    def track(self, ack_hash: int, pending: PendingAck) -> None:
        """Register a pending ACK, replacing any entry with the same hash."""
        entry = dataclasses.replace(pending)
        with self._lock:
            entry.sent_at = self._clock()
            entry.retries = 0
            self._pending[ack_hash] = entry

    def resolve(self, ack_hash: int) -> bool:
        """Mark an ACK as received; return True if it was pending."""
        with self._lock:
            entry = self._pending.pop(ack_hash, None)
        if entry is None:
            return False
        if entry.on_ack is not None:
            entry.on_ack()
        return True

    def cancel(self, ack_hash: int) -> None:
        """Drop a pending ACK without calling any callback."""
        with self._lock:
            self._pending.pop(ack_hash, None)

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def check_timeouts(self) -> None:
        """Retry or expire every entry whose attempt has timed out."""
        with self._lock:
            now = self._clock()
            retry_entries: Dict[int, PendingAck] = {}
            timeout_entries: Dict[int, PendingAck] = {}
            for ack_hash, entry in self._pending.items():
                if now - entry.sent_at < self._ack_timeout:
                    continue
                if entry.retries < self._max_retries and entry.resend is not None:
                    retry_entries[ack_hash] = entry
                else:
                    timeout_entries[ack_hash] = entry
            for entry in retry_entries.values():
                entry.retries += 1
                entry.sent_at = now
            for ack_hash in timeout_entries:
                del self._pending[ack_hash]

        for ack_hash, entry in retry_entries.items():
            try:
                entry.resend()
            except Exception as exc:  # a failed retry still counts as an attempt
                self._log.warning(
                    "retry failed hash=%#010x attempt=%d error=%s",
                    ack_hash, entry.retries, exc,
                )
            else:
                self._log.debug("retrying hash=%#010x attempt=%d", ack_hash, entry.retries)

        for ack_hash, entry in timeout_entries.items():
            self._log.debug("ack timed out hash=%#010x retries=%d", ack_hash, entry.retries)
            if entry.on_timeout is not None:
                entry.on_timeout()

    def start(self, stop_event: Optional[threading.Event] = None) -> None:
        """Run the timeout loop until ``stop`` is called or ``stop_event`` is set."""
        stop = threading.Event()
        with self._lock:
            self._stop = stop
        while not stop.wait(CHECK_INTERVAL):
            if stop_event is not None and stop_event.is_set():
                return
            self.check_timeouts()

    def stop(self) -> None:
        """Stop a running timeout loop."""
        with self._lock:
            if self._stop is not None:
                self._stop.set()
                self._stop = None