"""Tests for dimsum_automation.metadata.cache."""

import threading

import pytest

from dimsum_automation.core.models import Library
from dimsum_automation.metadata.cache import ReadWriteLock, SnapshotStore


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class TestSnapshotStore:
    """Test SnapshotStore freshness and contents."""

    def test_never_stored(self):
        """Test unknown sponsors are stale and empty."""
        store = SnapshotStore(60, clock=FakeClock())

        fresh, snapshot = store.get("A")

        assert fresh is False
        assert snapshot == []
        assert store.last_success_time() is None

    def test_fresh_after_set(self):
        clock = FakeClock()
        store = SnapshotStore(60, clock=clock)
        snapshot = [Library(library_id="L1")]

        store.set("A", snapshot)
        clock.advance(59)

        fresh, got = store.get("A")
        assert fresh is True
        assert got is snapshot

    def test_stale_after_lifetime(self):
        """Test stale snapshots are still returned."""
        clock = FakeClock()
        store = SnapshotStore(60, clock=clock)
        snapshot = [Library(library_id="L1")]

        store.set("A", snapshot)
        clock.advance(60)

        fresh, got = store.get("A")
        assert fresh is False
        assert got is snapshot

    def test_freshness_is_per_sponsor(self):
        clock = FakeClock()
        store = SnapshotStore(60, clock=clock)

        store.set("A", [])
        clock.advance(45)
        store.set("B", [])
        clock.advance(30)

        assert store.get("A")[0] is False
        assert store.get("B")[0] is True

    def test_set_replaces(self):
        store = SnapshotStore(60, clock=FakeClock())
        new = [Library(library_id="L2")]

        store.set("A", [Library(library_id="L1")])
        store.set("A", new)

        assert store.get("A")[1] is new

    def test_last_success_time(self):
        """Test last success is set by any sponsor's store."""
        store = SnapshotStore(60, clock=FakeClock())

        store.set("A", [])
        first = store.last_success_time()
        store.set("B", [])

        assert first is not None
        assert store.last_success_time() >= first

    def test_zero_lifetime_never_fresh(self):
        store = SnapshotStore(0, clock=FakeClock())
        store.set("A", [])
        assert store.get("A")[0] is False

    def test_concurrent_readers_and_writers(self):
        """Test readers only ever see whole snapshots."""
        store = SnapshotStore(60)
        snapshots = [[Library(library_id=str(i))] * 3 for i in range(50)]
        seen = []

        def write():
            for snapshot in snapshots:
                store.set("A", snapshot)

        def read():
            for _ in range(200):
                seen.append(store.get("A")[1])

        threads = [threading.Thread(target=write)] + [threading.Thread(target=read) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        for snapshot in seen:
            assert snapshot == [] or any(snapshot is s for s in snapshots)


class TestReadWriteLock:
    """Test ReadWriteLock exclusion."""

    def test_readers_share(self):
        lock = ReadWriteLock()
        lock.acquire_read()
        lock.acquire_read()
        lock.release_read()
        lock.release_read()

    def test_writer_waits_for_readers(self):
        """Test a writer cannot enter while a reader holds the lock."""
        lock = ReadWriteLock()
        acquired = threading.Event()

        def write():
            lock.acquire_write()
            acquired.set()
            lock.release_write()

        lock.acquire_read()
        writer = threading.Thread(target=write)
        writer.start()

        assert not acquired.wait(0.1)

        lock.release_read()
        assert acquired.wait(2)
        writer.join()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
