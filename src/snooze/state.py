"""Activity state: the up flag and last-activity timestamp, guarded together.

This is the only mutable state shared between the request path and the
monitor. Every access goes through a ``threading.Lock`` so a reader never
sees one half of an update; the lock also makes ``record_activity`` safe
to call from worker threads.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class ActivitySnapshot:
    containers_up: bool
    last_activity: datetime


class ActivityState:
    def __init__(self, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._containers_up = False
        self._last_activity = clock()

    def is_up(self) -> bool:
        with self._lock:
            return self._containers_up

    def set_up(self, up: bool) -> bool:
        """Set the flag; return the previous value."""
        with self._lock:
            previous = self._containers_up
            self._containers_up = up
            return previous

    def record_activity(self) -> None:
        """Stamp now as the latest activity. Hot path: memory only."""
        now = self._clock()
        with self._lock:
            # never move backwards, even if a slower caller stamps late
            if now > self._last_activity:
                self._last_activity = now

    def last_activity(self) -> datetime:
        with self._lock:
            return self._last_activity

    def idle_for(self) -> timedelta:
        now = self._clock()
        with self._lock:
            return now - self._last_activity

    def snapshot(self) -> ActivitySnapshot:
        with self._lock:
            return ActivitySnapshot(self._containers_up, self._last_activity)
