"""Exception hierarchy for the gating pipeline.

Errors fall into four groups: upstream stage failures that turn a run
into ``errored`` (build, audit, timeout, abort), state machine misuse
(always fatal), artifact handoff misuse (surfaced, never retried), and
deploy failures that leave the gate verdict intact.
"""

from __future__ import annotations


class PerfgateError(Exception):
    """Base class for all perfgate errors."""


class ConfigError(PerfgateError):
    """Raised when pipeline configuration or collaborator resolution is invalid."""


class StageError(PerfgateError):
    """Base class for failures that move a run to ``errored``."""


class BuildError(StageError):
    """The build collaborator could not produce an artifact."""


class AuditError(StageError):
    """The audit stage could not produce the required samples."""


class MeasurementError(AuditError):
    """The measurement engine failed for one category on one pass."""

    def __init__(self, message: str, category: str | None = None, pass_index: int | None = None) -> None:
        self.category = category
        self.pass_index = pass_index
        super().__init__(message)


class MissingSamples(AuditError):
    """A category did not collect the expected number of samples."""

    def __init__(self, category: str, expected: int, actual: int) -> None:
        self.category = category
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Category '{category}' collected {actual} sample(s), expected {expected}"
        )


class StageTimeout(StageError):
    """A stage exceeded its configured timeout."""

    def __init__(self, stage: str, timeout: float) -> None:
        self.stage = stage
        self.timeout = timeout
        super().__init__(f"Stage '{stage}' timed out after {timeout:g}s")


class RunAborted(StageError):
    """The run was aborted by the caller."""


class InvalidTransition(PerfgateError):
    """A run state transition that the state machine does not allow."""

    def __init__(self, run_id: str, current: str, target: str) -> None:
        self.run_id = run_id
        self.current = current
        self.target = target
        super().__init__(f"Run {run_id}: invalid transition {current} -> {target}")


class HandoffError(PerfgateError):
    """Base class for artifact handoff misuse."""

    def __init__(self, run_id: str, message: str) -> None:
        self.run_id = run_id
        super().__init__(message)


class ArtifactNotFound(HandoffError):
    """No artifact was ever stored for the run."""

    def __init__(self, run_id: str) -> None:
        super().__init__(run_id, f"No artifact stored for run {run_id}")


class ArtifactExpired(HandoffError):
    """The artifact for the run outlived its retention window."""

    def __init__(self, run_id: str) -> None:
        super().__init__(run_id, f"Artifact for run {run_id} has expired")


class ArtifactConsumed(HandoffError):
    """The artifact for the run was already retrieved."""

    def __init__(self, run_id: str) -> None:
        super().__init__(run_id, f"Artifact for run {run_id} was already consumed")


class PublishError(PerfgateError):
    """The publisher rejected or failed the deployment."""
