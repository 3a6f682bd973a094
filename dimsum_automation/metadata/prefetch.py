"""
Background refresh of cached metadata.
"""

import logging
import threading
import time
from datetime import datetime
from typing import List, Optional

from .cache import SnapshotStore
from .fetcher import MetadataFetcher

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """
    Keeps the snapshots of some sponsors warm by refetching them every lifetime.

    A failed fetch never evicts the last good snapshot. The failure is kept
    for last_error() and the remaining sponsors are skipped until the next
    tick. A successful fetch for any sponsor clears the stored error.

    Args:
        fetcher: Fetches consolidated metadata for one sponsor
        store: Store the fetched snapshots are written to
        sponsors: Sponsors to keep warm, refreshed in this order
        lifetime: Seconds between refreshes
    """

    def __init__(
        self,
        fetcher: MetadataFetcher,
        store: SnapshotStore,
        sponsors: List[str],
        lifetime: float,
    ):
        self.fetcher = fetcher
        self.store = store
        self.sponsors = list(sponsors)
        self.lifetime = lifetime
        self._stop_event = threading.Event()
        self._stop_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._error: Optional[Exception] = None
        self._error_lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        """True if there is anything to prefetch."""
        return bool(self.sponsors) and self.lifetime > 0

    @property
    def running(self) -> bool:
        """True between start() and stop()."""
        return self._thread is not None and not self._stop_event.is_set()

    def covers(self, sponsor: str) -> bool:
        """True if the background loop owns refreshing this sponsor."""
        return self.running and sponsor in self.sponsors

    def start(self) -> bool:
        """
        Warm the store synchronously, then start refreshing in the background.

        Returns:
            False without doing anything if prefetching is not enabled
        """
        if not self.enabled:
            return False

        with self._stop_lock:
            if self._stop_event.is_set():
                return False

            if self._thread is not None:
                return True

            logger.info(f"Prefetching metadata for {', '.join(self.sponsors)} every {self.lifetime}s")
            self.refresh()

            self._thread = threading.Thread(target=self._run, name="metadata-prefetch", daemon=True)
            self._thread.start()

        return True

    def refresh(self) -> bool:
        """
        Fetch and store each sponsor in order, stopping at the first failure.

        Returns:
            True if every sponsor was refreshed
        """
        for sponsor in self.sponsors:
            try:
                snapshot = self.fetcher.fetch(sponsor)
            except Exception as e:
                logger.warning(f"Prefetch for {sponsor} failed, keeping cached data: {e}")
                self._set_error(e)
                return False

            self._set_error(None)
            self.store.set(sponsor, snapshot)

        return True

    def _run(self):
        next_wait = self.lifetime

        while not self._stop_event.wait(next_wait):
            start = time.monotonic()
            self.refresh()
            elapsed = time.monotonic() - start
            next_wait = max(0.0, self.lifetime - elapsed)

    def stop(self):
        """Stop the background loop. Safe to call more than once."""
        with self._stop_lock:
            if self._stop_event.is_set():
                return

            self._stop_event.set()
            thread = self._thread

        if thread is not None and thread is not threading.current_thread():
            # An in-flight fetch is left to finish on its own
            thread.join(timeout=self.lifetime + 1)

        logger.debug("Stopped metadata prefetching")

    def _set_error(self, error: Optional[Exception]):
        with self._error_lock:
            self._error = error

    def last_error(self) -> Optional[Exception]:
        """The error from the most recent failed fetch, or None after a success."""
        with self._error_lock:
            return self._error

    def last_prefetch_success(self) -> Optional[datetime]:
        """When the store was last successfully updated, or None if never."""
        return self.store.last_success_time()
