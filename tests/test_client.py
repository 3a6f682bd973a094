"""Tests for dimsum_automation.metadata.client."""

import pytest

from dimsum_automation.core.models import Experiment, Library, Sample
from dimsum_automation.integrations.mlwh import RegistrySample
from dimsum_automation.metadata.client import Client


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeRegistry:
    """Registry answering every sponsor with one sample, or failing if told to."""

    def __init__(self):
        self.calls = []
        self.closed = 0
        self.error = None

    def samples_for_partition(self, sponsor):
        self.calls.append(sponsor)
        if self.error:
            raise self.error
        return [RegistrySample(
            study_id="st1", study_name="Study", run_id="100",
            sample_id="id1", sample_name="sample1", manual_qc=True,
        )]

    def close(self):
        self.closed += 1


class FakeMetadata:
    def fetch_tree(self, sheet_id):
        return [Library(library_id="L1", experiments=[
            Experiment(experiment_id="E1", samples=[Sample(sample_name="sample1")]),
        ])]


def make_client(prefetch=None, lifetime=60):
    registry = FakeRegistry()
    clock = FakeClock()
    client = Client(registry, FakeMetadata(), "sheet", lifetime, prefetch=prefetch, clock=clock)
    return client, registry, clock


class TestOnDemand:
    """Test sponsors fetched when asked for."""

    def test_fetches_then_caches(self):
        client, registry, _ = make_client()

        first = client.for_sponsor("A")
        second = client.for_sponsor("A")

        assert registry.calls == ["A"]
        assert first is second
        assert first[0].experiments[0].samples[0].key == "id1.100"
        client.close()

    def test_refetches_when_stale(self):
        client, registry, clock = make_client()

        client.for_sponsor("A")
        clock.advance(61)
        client.for_sponsor("A")

        assert registry.calls == ["A", "A"]
        client.close()

    def test_sponsors_cached_separately(self):
        client, registry, _ = make_client()

        client.for_sponsor("A")
        client.for_sponsor("B")
        client.for_sponsor("A")

        assert registry.calls == ["A", "B"]
        client.close()

    def test_fetch_error_raised(self):
        """Test on-demand errors reach the caller and nothing is cached."""
        client, registry, _ = make_client()
        registry.error = ConnectionError("db down")

        with pytest.raises(ConnectionError):
            client.for_sponsor("A")

        registry.error = None
        assert len(client.for_sponsor("A")) == 1
        assert registry.calls == ["A", "A"]
        client.close()

    def test_for_partition_alias(self):
        client, registry, _ = make_client()
        client.for_partition("A")
        assert registry.calls == ["A"]
        client.close()


class TestPrefetch:
    """Test sponsors kept warm in the background."""

    def test_warmed_at_construction(self):
        client, registry, _ = make_client(prefetch=["A"])

        assert registry.calls == ["A"]
        assert client.last_prefetch_success() is not None
        client.close()

    def test_serves_stale_without_fetching(self):
        """Test prefetched sponsors never fetch on the caller's thread."""
        client, registry, clock = make_client(prefetch=["A"])
        registry.error = TimeoutError("slow registry")

        clock.advance(3600)
        result = client.for_sponsor("A")

        assert registry.calls == ["A"]
        assert len(result) == 1
        client.close()

    def test_failed_warmup_serves_empty(self):
        registry = FakeRegistry()
        registry.error = ConnectionError("db down")

        client = Client(registry, FakeMetadata(), "sheet", 60, prefetch=["A"], clock=FakeClock())

        assert client.for_sponsor("A") == []
        assert isinstance(client.last_error(), ConnectionError)
        assert client.last_prefetch_success() is None
        client.close()

    def test_other_sponsors_on_demand(self):
        client, registry, _ = make_client(prefetch=["A"])

        client.for_sponsor("B")

        assert registry.calls == ["A", "B"]
        client.close()

    def test_on_demand_after_close(self):
        """Test a closed client no longer relies on the background loop."""
        client, registry, clock = make_client(prefetch=["A"])
        client.close()

        clock.advance(61)
        client.for_sponsor("A")

        assert registry.calls == ["A", "A"]


class TestClose:
    """Test closing the client."""

    def test_close_is_idempotent(self):
        client, registry, _ = make_client(prefetch=["A"])

        client.close()
        client.close()

        assert registry.closed == 1
        assert not client.scheduler.running

    def test_context_manager(self):
        registry = FakeRegistry()

        with Client(registry, FakeMetadata(), "sheet", 60) as client:
            client.for_sponsor("A")

        assert registry.closed == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
