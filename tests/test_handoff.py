"""Tests for perfgate.handoff.store - run-scoped artifact handoff."""

from __future__ import annotations

import threading

import pytest

from perfgate.errors import (
    ArtifactConsumed,
    ArtifactExpired,
    ArtifactNotFound,
    HandoffError,
)
from perfgate.handoff.store import ArtifactHandoff
from perfgate.models.run import BuildArtifact


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _artifact(digest: str = "d1") -> BuildArtifact:
    return BuildArtifact(digest=digest, location=f"/builds/{digest}")


class TestStoreRetrieve:
    """Basic store/retrieve semantics."""

    def test_store_returns_run_scoped_ref(self):
        handoff = ArtifactHandoff()
        ref = handoff.store("run-1", _artifact())
        assert ref.run_id == "run-1"
        assert ref.digest == "d1"
        assert ref.location == "/builds/d1"

    def test_retrieve_returns_stored_ref(self):
        handoff = ArtifactHandoff()
        ref = handoff.store("run-1", _artifact())
        assert handoff.retrieve("run-1") == ref

    def test_unknown_run_not_found(self):
        with pytest.raises(ArtifactNotFound):
            ArtifactHandoff().retrieve("missing")

    def test_second_retrieve_is_consumed(self):
        handoff = ArtifactHandoff()
        handoff.store("run-1", _artifact())
        handoff.retrieve("run-1")
        with pytest.raises(ArtifactConsumed):
            handoff.retrieve("run-1")

    def test_peek_does_not_consume(self):
        handoff = ArtifactHandoff()
        ref = handoff.store("run-1", _artifact())
        assert handoff.peek("run-1") == ref
        assert handoff.retrieve("run-1") == ref

    def test_duplicate_store_rejected(self):
        handoff = ArtifactHandoff()
        handoff.store("run-1", _artifact())
        with pytest.raises(HandoffError):
            handoff.store("run-1", _artifact("d2"))

    def test_runs_are_isolated(self):
        handoff = ArtifactHandoff()
        handoff.store("run-1", _artifact("same"))
        handoff.store("run-2", _artifact("same"))
        first = handoff.retrieve("run-1")
        second = handoff.retrieve("run-2")
        assert first.run_id == "run-1"
        assert second.run_id == "run-2"


class TestExpiry:
    """Grace period after release."""

    def test_not_expired_before_release(self):
        clock = FakeClock()
        handoff = ArtifactHandoff(grace_seconds=5, clock=clock)
        handoff.store("run-1", _artifact())
        clock.advance(10_000)
        assert handoff.peek("run-1").run_id == "run-1"

    def test_zero_grace_expires_on_release(self):
        clock = FakeClock()
        handoff = ArtifactHandoff(clock=clock)
        handoff.store("run-1", _artifact())
        handoff.release("run-1")
        with pytest.raises(ArtifactExpired):
            handoff.retrieve("run-1")

    def test_retrievable_within_grace(self):
        clock = FakeClock()
        handoff = ArtifactHandoff(grace_seconds=30, clock=clock)
        handoff.store("run-1", _artifact())
        handoff.release("run-1")
        clock.advance(29)
        assert handoff.retrieve("run-1").run_id == "run-1"

    def test_expired_after_grace(self):
        clock = FakeClock()
        handoff = ArtifactHandoff(grace_seconds=30, clock=clock)
        handoff.store("run-1", _artifact())
        handoff.release("run-1")
        clock.advance(30)
        with pytest.raises(ArtifactExpired):
            handoff.retrieve("run-1")
        # Tombstone keeps reporting expiry rather than not-found.
        with pytest.raises(ArtifactExpired):
            handoff.peek("run-1")

    def test_second_release_does_not_extend(self):
        clock = FakeClock()
        handoff = ArtifactHandoff(grace_seconds=10, clock=clock)
        handoff.store("run-1", _artifact())
        handoff.release("run-1")
        clock.advance(8)
        handoff.release("run-1")
        clock.advance(3)
        with pytest.raises(ArtifactExpired):
            handoff.peek("run-1")

    def test_release_unknown_is_noop(self):
        ArtifactHandoff().release("missing")

    def test_purge_expired_counts_and_keeps_tombstones(self):
        clock = FakeClock()
        handoff = ArtifactHandoff(grace_seconds=1, clock=clock)
        handoff.store("run-1", _artifact())
        handoff.store("run-2", _artifact())
        handoff.release("run-1")
        clock.advance(2)
        assert handoff.purge_expired() == 1
        assert handoff.purge_expired() == 0
        with pytest.raises(ArtifactExpired):
            handoff.retrieve("run-1")
        assert handoff.retrieve("run-2").run_id == "run-2"

    def test_zero_grace_release_discards_ref(self):
        handoff = ArtifactHandoff()
        for i in range(10):
            handoff.store(f"run-{i}", _artifact(f"d{i}"))
            handoff.release(f"run-{i}")
        assert handoff.live_count() == 0
        assert "run-3" in handoff

    def test_stale_tombstones_evicted(self):
        clock = FakeClock()
        handoff = ArtifactHandoff(clock=clock, tombstone_seconds=60)
        handoff.store("run-1", _artifact())
        handoff.release("run-1")
        clock.advance(59)
        handoff.purge_expired()
        assert "run-1" in handoff

        clock.advance(1)
        handoff.purge_expired()
        assert "run-1" not in handoff
        assert len(handoff) == 0
        with pytest.raises(ArtifactNotFound):
            handoff.retrieve("run-1")

    def test_live_refs_survive_purge(self):
        clock = FakeClock()
        handoff = ArtifactHandoff(clock=clock, tombstone_seconds=1)
        handoff.store("run-1", _artifact())
        clock.advance(10_000)
        assert handoff.purge_expired() == 0
        assert handoff.live_count() == 1


class TestConcurrency:
    """Thread safety of retrieval."""

    def test_concurrent_retrieve_hands_out_once(self):
        handoff = ArtifactHandoff()
        handoff.store("run-1", _artifact())
        successes: list[str] = []
        failures: list[Exception] = []
        barrier = threading.Barrier(8)

        def worker() -> None:
            barrier.wait()
            try:
                successes.append(handoff.retrieve("run-1").run_id)
            except ArtifactConsumed as exc:
                failures.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert successes == ["run-1"]
        assert len(failures) == 7

    def test_concurrent_stores_for_distinct_runs(self):
        handoff = ArtifactHandoff()

        def worker(i: int) -> None:
            handoff.store(f"run-{i}", _artifact(f"d{i}"))

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        for i in range(20):
            assert handoff.retrieve(f"run-{i}").digest == f"d{i}"
