"""Artifact handoff between the build and deploy stages.

Binds a build artifact to its run id so the deploy stage can pick it
up without rebuilding. Each reference is handed out at most once and
is discarded a grace period after its run reaches a terminal state
(immediately with the default zero grace). The store knows nothing
about gating; the orchestrator decides when retrieval is allowed.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from perfgate.errors import (
    ArtifactConsumed,
    ArtifactExpired,
    ArtifactNotFound,
    HandoffError,
)
from perfgate.models.run import ArtifactRef, BuildArtifact

logger = logging.getLogger(__name__)

DEFAULT_TOMBSTONE_SECONDS = 3600.0


@dataclass
class _Entry:
    ref: ArtifactRef | None
    consumed: bool = False
    expires_at: float | None = None
    dropped_at: float | None = None


class ArtifactHandoff:
    """Thread-safe in-memory artifact store keyed by run id.

    Discarded references leave a tombstone, so a late retrieval reports
    ArtifactExpired rather than ArtifactNotFound. Tombstones themselves
    are evicted by ``purge_expired()`` once they are older than
    ``tombstone_seconds``.

    Args:
        grace_seconds: Retention after ``release()`` before a reference is discarded.
        clock: Monotonic clock, injectable for tests.
        tombstone_seconds: How long a discarded reference is remembered.
    """

    def __init__(
        self,
        grace_seconds: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
        tombstone_seconds: float = DEFAULT_TOMBSTONE_SECONDS,
    ) -> None:
        self._grace_seconds = grace_seconds
        self._clock = clock
        self._tombstone_seconds = tombstone_seconds
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def __contains__(self, run_id: object) -> bool:
        with self._lock:
            return run_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def live_count(self) -> int:
        """Number of references that have not been discarded yet."""
        with self._lock:
            return sum(1 for entry in self._entries.values() if entry.ref is not None)

    def store(self, run_id: str, artifact: BuildArtifact) -> ArtifactRef:
        """Bind ``artifact`` to ``run_id`` and return the run-scoped reference.

        Raises:
            HandoffError: If an artifact was already stored for the run.
        """
        ref = ArtifactRef(
            run_id=run_id,
            digest=artifact.digest,
            location=artifact.location,
        )
        with self._lock:
            if run_id in self._entries:
                raise HandoffError(run_id, f"Artifact already stored for run {run_id}")
            self._entries[run_id] = _Entry(ref=ref)
        logger.debug("Stored artifact %s for run %s", ref.digest, run_id)
        return ref

    def retrieve(self, run_id: str) -> ArtifactRef:
        """Hand out the reference for ``run_id``; each reference is handed out once.

        Raises:
            ArtifactNotFound: Nothing was ever stored for the run.
            ArtifactExpired: The retention window has elapsed.
            ArtifactConsumed: The reference was already retrieved.
        """
        with self._lock:
            entry = self._lookup(run_id)
            if entry.consumed:
                raise ArtifactConsumed(run_id)
            entry.consumed = True
            assert entry.ref is not None
            return entry.ref

    def peek(self, run_id: str) -> ArtifactRef:
        """Return the reference without consuming it.

        Raises:
            ArtifactNotFound: Nothing was ever stored for the run.
            ArtifactExpired: The retention window has elapsed.
        """
        with self._lock:
            entry = self._lookup(run_id)
            assert entry.ref is not None
            return entry.ref

    def release(self, run_id: str) -> None:
        """Start the grace period for a run that reached a terminal state.

        With a zero grace period the reference is discarded right away.
        Releasing an unknown or already released run is a no-op.
        """
        with self._lock:
            entry = self._entries.get(run_id)
            if entry is None or entry.expires_at is not None:
                return
            now = self._clock()
            entry.expires_at = now + self._grace_seconds
            if self._grace_seconds <= 0:
                self._drop(entry, now)
        logger.debug("Released artifact for run %s (grace %.1fs)", run_id, self._grace_seconds)

    def purge_expired(self) -> int:
        """Discard expired references and evict stale tombstones.

        Returns:
            The number of references discarded by this call.
        """
        dropped = 0
        with self._lock:
            now = self._clock()
            for run_id, entry in list(self._entries.items()):
                if entry.ref is not None and self._is_expired(entry, now):
                    self._drop(entry, now)
                    dropped += 1
                if entry.dropped_at is not None and now - entry.dropped_at >= self._tombstone_seconds:
                    del self._entries[run_id]
        return dropped

    def _lookup(self, run_id: str) -> _Entry:
        """Return the live entry for ``run_id``. Caller holds the lock."""
        entry = self._entries.get(run_id)
        if entry is None:
            raise ArtifactNotFound(run_id)
        now = self._clock()
        if entry.ref is not None and self._is_expired(entry, now):
            self._drop(entry, now)
        if entry.ref is None:
            raise ArtifactExpired(run_id)
        return entry

    @staticmethod
    def _drop(entry: _Entry, now: float) -> None:
        entry.ref = None
        entry.dropped_at = now

    @staticmethod
    def _is_expired(entry: _Entry, now: float) -> bool:
        return entry.expires_at is not None and now >= entry.expires_at
