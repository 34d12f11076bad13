"""Run lifecycle and artifact data models.

PipelineRun carries the run state machine (pending -> running ->
passed | failed | errored). ArtifactRef and MetricSample are frozen
once created; AggregatedMetric is derived from samples and never
edited directly.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from perfgate.errors import InvalidTransition


class RunStatus(str, Enum):
    """Lifecycle status of a pipeline run."""

    pending = "pending"
    running = "running"
    passed = "passed"
    failed = "failed"
    errored = "errored"


TERMINAL_STATUSES: frozenset[RunStatus] = frozenset(
    {RunStatus.passed, RunStatus.failed, RunStatus.errored}
)

_ALLOWED_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.pending: frozenset({RunStatus.running, RunStatus.errored}),
    RunStatus.running: TERMINAL_STATUSES,
    RunStatus.passed: frozenset(),
    RunStatus.failed: frozenset(),
    RunStatus.errored: frozenset(),
}


def new_run_id() -> str:
    """Generate a unique run id."""
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PipelineRun(BaseModel):
    """One execution of the pipeline for a single source revision.

    Only ``transition()`` moves the status; terminal runs reject every
    further transition with InvalidTransition.
    """

    model_config = {"extra": "forbid"}

    run_id: str = Field(default_factory=new_run_id, frozen=True)
    revision: str = Field(frozen=True)
    status: RunStatus = RunStatus.pending
    started_at: datetime | None = None
    finished_at: datetime | None = None
    error: str | None = None
    error_type: str | None = None
    transient_error: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition(
        self,
        target: RunStatus,
        error: str | None = None,
        error_type: str | None = None,
        transient: bool = False,
    ) -> None:
        """Move the run to ``target``, stamping start/finish times.

        The error fields are only recorded for ``errored``; ``transient``
        marks failures a fresh run may get past (timeouts, dropped connections).

        Raises:
            InvalidTransition: If the state machine does not allow the move.
        """
        if target not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransition(self.run_id, self.status.value, target.value)

        now = _utcnow()
        if target == RunStatus.running:
            self.started_at = now
        if target in TERMINAL_STATUSES:
            self.finished_at = now
        if target == RunStatus.errored:
            self.error = error
            self.error_type = error_type
            self.transient_error = transient
        self.status = target


class BuildArtifact(BaseModel):
    """Raw output of the build collaborator, before it is bound to a run."""

    model_config = {"extra": "forbid", "frozen": True}

    digest: str
    location: str


class ArtifactRef(BaseModel):
    """Opaque handle to a build output, scoped to exactly one run."""

    model_config = {"extra": "forbid", "frozen": True}

    run_id: str
    digest: str
    location: str
    stored_at: datetime = Field(default_factory=_utcnow)


class MetricSample(BaseModel):
    """One raw measurement of one category from one audit pass."""

    model_config = {"extra": "forbid", "frozen": True}

    category: str
    score: float = Field(ge=0.0, le=1.0)
    pass_index: int = Field(ge=1)


class AggregatedMetric(BaseModel):
    """Median score for a category across all passes of a run."""

    model_config = {"extra": "forbid", "frozen": True}

    category: str
    score: float
    samples: list[float]

    @property
    def sample_count(self) -> int:
        return len(self.samples)
