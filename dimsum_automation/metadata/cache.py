"""
Thread-safe store of the latest metadata snapshot per sponsor.
"""

import threading
import time
from datetime import datetime
from typing import Callable, Dict, Optional, Tuple

from ..core.models import Libraries


class ReadWriteLock:
    """
    Lock allowing many concurrent readers or one exclusive writer.

    Waiting writers block new readers so a steady stream of reads cannot
    starve a write.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self):
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self):
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self):
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True

    def release_write(self):
        with self._cond:
            self._writer = False
            self._cond.notify_all()


class SnapshotStore:
    """
    Holds the most recently fetched Libraries per sponsor.

    Snapshots are replaced wholesale by set() and never modified in place, so
    a reader sees either the old or the new snapshot, never a mix.

    Args:
        lifetime: Seconds a snapshot stays fresh after it was stored
        clock: Monotonic clock used for freshness, for testing
    """

    def __init__(self, lifetime: float, clock: Callable[[], float] = time.monotonic):
        self.lifetime = lifetime
        self._clock = clock
        self._lock = ReadWriteLock()
        self._snapshots: Dict[str, Libraries] = {}
        self._fetched_at: Dict[str, float] = {}
        self._last_success: Optional[datetime] = None

    def get(self, sponsor: str) -> Tuple[bool, Libraries]:
        """
        Get the stored snapshot for a sponsor.

        Returns:
            Tuple of (is_fresh, snapshot). The snapshot is returned even when
            stale, and is empty if the sponsor was never stored.
        """
        self._lock.acquire_read()
        try:
            snapshot = self._snapshots.get(sponsor, [])
            fetched_at = self._fetched_at.get(sponsor)
        finally:
            self._lock.release_read()

        is_fresh = fetched_at is not None and self._clock() < fetched_at + self.lifetime

        return is_fresh, snapshot

    def set(self, sponsor: str, snapshot: Libraries):
        """Replace the snapshot for a sponsor and mark it fresh from now."""
        now = self._clock()
        wall = datetime.now()

        self._lock.acquire_write()
        try:
            self._snapshots[sponsor] = snapshot
            self._fetched_at[sponsor] = now
            self._last_success = wall
        finally:
            self._lock.release_write()

    def last_success_time(self) -> Optional[datetime]:
        """Time of the most recent set() for any sponsor, or None if never set."""
        self._lock.acquire_read()
        try:
            return self._last_success
        finally:
            self._lock.release_read()
