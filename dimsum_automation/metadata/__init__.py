"""
Consolidated, cached sample metadata.
"""

from .cache import ReadWriteLock, SnapshotStore
from .client import Client
from .fetcher import MetadataFetcher, consolidate, count_samples
from .prefetch import RefreshScheduler

__all__ = [
    'Client',
    'SnapshotStore',
    'ReadWriteLock',
    'MetadataFetcher',
    'consolidate',
    'count_samples',
    'RefreshScheduler',
]
