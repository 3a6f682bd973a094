"""
Cached access to consolidated sample metadata.
"""

import logging
import time
from datetime import datetime
from typing import Callable, List, Optional

from ..core.models import Libraries
from .cache import SnapshotStore
from .fetcher import MetadataFetcher
from .prefetch import RefreshScheduler

logger = logging.getLogger(__name__)


class Client:
    """
    Single entry point for consolidated metadata per sponsor.

    Results are cached for cache_lifetime seconds. Sponsors listed in
    prefetch are refreshed in the background every cache_lifetime, and for
    those for_sponsor() always answers from the cache, even when stale,
    without ever querying on the caller's thread. Check last_error() and
    last_prefetch_success() if you need to know how fresh that is.

    Args:
        registry: Sample registry, e.g. MLWH; closed by close()
        metadata_service: Spreadsheet metadata source, e.g. SheetsMetadata
        sheet_id: Spreadsheet to read metadata from
        cache_lifetime: Maximum age in seconds of cached results
        prefetch: Sponsors to keep warm in the background
        clock: Monotonic clock used for cache freshness, for testing
    """

    def __init__(
        self,
        registry,
        metadata_service,
        sheet_id: str,
        cache_lifetime: float,
        prefetch: Optional[List[str]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.registry = registry
        self.fetcher = MetadataFetcher(registry, metadata_service, sheet_id)
        self.store = SnapshotStore(cache_lifetime, clock=clock)
        self.scheduler = RefreshScheduler(self.fetcher, self.store, prefetch or [], cache_lifetime)
        self._closed = False

        self.scheduler.start()

    def for_sponsor(self, sponsor: str) -> Libraries:
        """
        Get the consolidated metadata tree for a sponsor.

        The returned tree is shared with the cache and must not be modified;
        use core.selection.subset() to get a private copy of the part you
        need.

        Raises:
            Whatever the registry or metadata service raised, if a fetch was
            needed and failed
        """
        fresh, snapshot = self.store.get(sponsor)

        if self.scheduler.covers(sponsor):
            return snapshot

        if fresh:
            logger.debug(f"Using cached metadata for {sponsor}")
            return snapshot

        snapshot = self.fetcher.fetch(sponsor)
        self.store.set(sponsor, snapshot)

        return snapshot

    # Name used by callers that think in terms of the cache's partitions
    for_partition = for_sponsor

    def last_error(self) -> Optional[Exception]:
        """Error from the most recent failed background refresh, if any."""
        return self.scheduler.last_error()

    def last_prefetch_success(self) -> Optional[datetime]:
        """When cached data was last successfully refreshed, or None."""
        return self.scheduler.last_prefetch_success()

    def close(self):
        """Stop prefetching and close the registry connection. Safe to repeat."""
        self.scheduler.stop()

        if self._closed:
            return

        self._closed = True
        self.registry.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
