"""Keep-alive and inactivity timeout tracking for connected peers."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, List, Optional

DEFAULT_KEEP_ALIVE_INTERVAL = 30.0
"""Expected seconds between keep-alive messages."""

DEFAULT_TIMEOUT_MULTIPLIER = 2.5
"""Multiplier applied to the keep-alive interval to get the disconnect timeout."""

CHECK_INTERVAL = 1.0
"""Resolution, in seconds, of the timeout check loop."""


@dataclass
class PeerState:
    """A connected peer and when it was last heard from."""

    peer_id: Hashable
    last_seen: float


def _describe(peer_id: Hashable) -> str:
    if isinstance(peer_id, (bytes, bytearray)):
        return bytes(peer_id).hex()
    return str(peer_id)


class ConnectionManager:
    """Tracks connected peers and disconnects those that fall silent."""

    def __init__(
        self,
        keep_alive_interval: float = DEFAULT_KEEP_ALIVE_INTERVAL,
        timeout_multiplier: float = DEFAULT_TIMEOUT_MULTIPLIER,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._keep_alive_interval = (
            keep_alive_interval if keep_alive_interval > 0 else DEFAULT_KEEP_ALIVE_INTERVAL
        )
        self._timeout_multiplier = (
            timeout_multiplier if timeout_multiplier > 0 else DEFAULT_TIMEOUT_MULTIPLIER
        )
        self._log = (logger or logging.getLogger(__name__)).getChild("connection")
        self._clock = clock
        self._lock = threading.Lock()
        self._peers: Dict[Hashable, PeerState] = {}
        self._on_disconnect: Optional[Callable[[Hashable], None]] = None
        self._stop: Optional[threading.Event] = None

    @property
    def keep_alive_interval(self) -> float:
        return self._keep_alive_interval

    @property
    def timeout_multiplier(self) -> float:
        return self._timeout_multiplier

    @property
    def timeout(self) -> float:
        """Seconds of silence after which a peer is disconnected."""
        return self._keep_alive_interval * self._timeout_multiplier

    def set_on_disconnect(self, callback: Optional[Callable[[Hashable], None]]) -> None:
        """Set the callback run when a peer times out."""
        with self._lock:
            self._on_disconnect = callback

    def register(self, peer_id: Hashable) -> None:
        """Start tracking a peer, or refresh it if already tracked."""
        with self._lock:
            self._peers[peer_id] = PeerState(peer_id, self._clock())

    def touch(self, peer_id: Hashable) -> None:
        """Refresh a tracked peer's last-seen time; unknown peers are ignored."""
        with self._lock:
            state = self._peers.get(peer_id)
            if state is not None:
                state.last_seen = self._clock()

    def remove(self, peer_id: Hashable) -> None:
        """Stop tracking a peer without running the disconnect callback."""
        with self._lock:
            self._peers.pop(peer_id, None)

    def is_connected(self, peer_id: Hashable) -> bool:
        with self._lock:
            return peer_id in self._peers

    def connected_count(self) -> int:
        with self._lock:
            return len(self._peers)

    def check_timeouts(self) -> None:
        """Drop every peer silent for longer than the timeout."""
        with self._lock:
            now = self._clock()
            timeout = self.timeout
            disconnected: List[Hashable] = [
                peer_id
                for peer_id, state in self._peers.items()
                if now - state.last_seen > timeout
            ]
            for peer_id in disconnected:
                del self._peers[peer_id]
            on_disconnect = self._on_disconnect

        if on_disconnect is not None:
            for peer_id in disconnected:
                self._log.debug("peer timed out peer=%s", _describe(peer_id))
                on_disconnect(peer_id)

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