"""Periodic self-advertisement over the mesh."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional, Protocol

DEFAULT_LOCAL_ADVERT_INTERVAL = 1
"""Default local (zero-hop) advert interval in units of two minutes."""

DEFAULT_FLOOD_ADVERT_INTERVAL = 12
"""Default flood advert interval in hours."""

TICK_INTERVAL = 1.0
"""Resolution, in seconds, of the scheduler's timer loop."""


class AdvertRouter(Protocol):
    """What the scheduler needs from a router to send advertisements."""

    def send_flood(self, packet: Any) -> Any:
        """Send a packet with flood routing."""

    def send_zero_hop(self, packet: Any) -> Any:
        """Send a packet to direct neighbours only."""


def local_advert_duration(interval: int) -> float:
    """Seconds between local adverts: ``interval`` times two minutes."""
    return interval * 2 * 60.0


def flood_advert_duration(interval: int) -> float:
    """Seconds between flood adverts: ``interval`` hours."""
    return interval * 60 * 60.0


class AdvertScheduler:
    """Broadcasts self-advertisements on a local and a flood timer.

    A flood advert also resets the local timer. An interval of 0 disables
    that timer; when both are 0 the defaults are used.
    """

    def __init__(
        self,
        router: AdvertRouter,
        build: Callable[[], Any],
        local_advert_interval: int = 0,
        flood_advert_interval: int = 0,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if local_advert_interval == 0 and flood_advert_interval == 0:
            local_advert_interval = DEFAULT_LOCAL_ADVERT_INTERVAL
            flood_advert_interval = DEFAULT_FLOOD_ADVERT_INTERVAL
        self._local_interval = local_advert_interval
        self._flood_interval = flood_advert_interval
        self._router = router
        self._build = build
        self._log = (logger or logging.getLogger(__name__)).getChild("advert")
        self._clock = clock
        self._lock = threading.Lock()
        self._next_local: Optional[float] = None
        self._next_flood: Optional[float] = None
        self._stop: Optional[threading.Event] = None

    @property
    def local_advert_interval(self) -> int:
        return self._local_interval

    @property
    def flood_advert_interval(self) -> int:
        return self._flood_interval

    @property
    def next_local_advert(self) -> Optional[float]:
        """Clock time of the next local advert, or None when disabled."""
        return self._next_local

    @property
    def next_flood_advert(self) -> Optional[float]:
        """Clock time of the next flood advert, or None when disabled."""
        return self._next_flood

    def start(self, stop_event: Optional[threading.Event] = None) -> None:
        """Run the advert loop until ``stop`` is called or ``stop_event`` is set."""
        stop = threading.Event()
        with self._lock:
            self._stop = stop
        self.reset_timers()
        while not stop.wait(TICK_INTERVAL):
            if stop_event is not None and stop_event.is_set():
                return
            self.check_timers()

    def stop(self) -> None:
        """Stop a running advert loop."""
        with self._lock:
            if self._stop is not None:
                self._stop.set()
                self._stop = None

    def send_now(self, flood: bool) -> None:
        """Send an advert immediately and reset the matching timers."""
        packet = self._build()
        if packet is None:
            self._log.warning("failed to build advert for immediate send")
            return
        with self._lock:
            if flood:
                self._router.send_flood(packet)
                self._log.debug("sent immediate flood advert")
                self._reset_flood_locked()
                self._reset_local_locked()
            else:
                self._router.send_zero_hop(packet)
                self._log.debug("sent immediate local advert")
                self._reset_local_locked()

    def update_intervals(self, local_interval: int, flood_interval: int) -> None:
        """Change both intervals and reschedule; 0 disables a timer."""
        with self._lock:
            self._local_interval = local_interval
            self._flood_interval = flood_interval
            self._reset_local_locked()
            self._reset_flood_locked()

    def reset_timers(self) -> None:
        """Schedule both timers from the current time."""
        with self._lock:
            self._reset_local_locked()
            self._reset_flood_locked()

    def check_timers(self) -> None:
        """Send a due advert; the flood timer takes precedence."""
        with self._lock:
            now = self._clock()
            flood_due = self._next_flood is not None and now >= self._next_flood
            local_due = self._next_local is not None and now >= self._next_local

        if flood_due:
            packet = self._build()
            if packet is not None:
                self._router.send_flood(packet)
                self._log.debug("sent scheduled flood advert")
            with self._lock:
                self._reset_flood_locked()
                self._reset_local_locked()
            return

        if local_due:
            packet = self._build()
            if packet is not None:
                self._router.send_zero_hop(packet)
                self._log.debug("sent scheduled local advert")
            with self._lock:
                self._reset_local_locked()

    def _reset_local_locked(self) -> None:
        if self._local_interval > 0:
            self._next_local = self._clock() + local_advert_duration(self._local_interval)
        else:
            self._next_local = None

    def _reset_flood_locked(self) -> None:
        if self._flood_interval > 0:
            self._next_flood = self._clock() + flood_advert_duration(self._flood_interval)
        else:
            self._next_flood = None