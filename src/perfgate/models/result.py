"""Gate and run record models.

These models encode the pipeline output contract: the classified
outcome of every assertion, the gate verdict built from them, the
deploy record, and the exported run report.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from perfgate.models.config import Severity
from perfgate.models.run import AggregatedMetric, PipelineRun


class AssertionOutcome(BaseModel):
    """Result of evaluating one assertion against one aggregated metric.

    ``missing_metric`` separates "never measured" from "measured and
    scored too low"; a missing metric is always unsatisfied.
    """

    model_config = {"extra": "forbid", "frozen": True}

    category: str
    severity: Severity
    threshold: float
    actual: float | None
    satisfied: bool
    missing_metric: bool = False

    def describe(self) -> str:
        """One-line description used in reason trails and terminal output."""
        if self.missing_metric:
            return f"{self.category}: no samples recorded (threshold {self.threshold:.2f})"
        state = "meets" if self.satisfied else "below"
        return f"{self.category}: {self.actual:.2f} {state} threshold {self.threshold:.2f}"


class GateDecision(str, Enum):
    """Overall gate decision."""

    passed = "passed"
    failed = "failed"


class GateVerdict(BaseModel):
    """Overall gate verdict for a run, with every outcome retained."""

    model_config = {"extra": "forbid", "frozen": True}

    decision: GateDecision
    outcomes: list[AssertionOutcome] = Field(default_factory=list)
    reasons: list[str] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.decision == GateDecision.passed

    @property
    def blocking_failures(self) -> list[AssertionOutcome]:
        return [
            o for o in self.outcomes
            if o.severity == Severity.blocking and not o.satisfied
        ]

    @property
    def advisory_warnings(self) -> list[AssertionOutcome]:
        return [
            o for o in self.outcomes
            if o.severity == Severity.advisory and not o.satisfied
        ]


class DeployResult(BaseModel):
    """What the publisher returns for a successful deployment."""

    model_config = {"extra": "forbid", "frozen": True}

    deployment_id: str
    url: str | None = None


class DeployStatus(str, Enum):
    """Whether and how the deploy stage ran."""

    not_attempted = "not_attempted"
    skipped = "skipped"
    succeeded = "succeeded"
    failed = "failed"


class DeployRecord(BaseModel):
    """Deploy stage record attached to a run report."""

    model_config = {"extra": "forbid"}

    status: DeployStatus = DeployStatus.not_attempted
    target_name: str | None = None
    result: DeployResult | None = None
    error: str | None = None


class PipelineOutcome(str, Enum):
    """Overall pipeline result, distinguishing gate from hosting failures."""

    deployed = "deployed"
    deploy_skipped = "deploy_skipped"
    deploy_failed = "deploy_failed"
    gate_rejected = "gate_rejected"
    errored = "errored"


class RunReport(BaseModel):
    """Exported record of one run.

    Designed for JSON serialization and lossless round-trip
    deserialization through RunStore.
    """

    model_config = {"extra": "forbid"}

    run: PipelineRun
    outcome: PipelineOutcome
    number_of_passes: int
    metrics: dict[str, AggregatedMetric] = Field(default_factory=dict)
    verdict: GateVerdict | None = None
    deploy: DeployRecord = Field(default_factory=DeployRecord)

    @property
    def run_id(self) -> str:
        return self.run.run_id

    @property
    def outcomes(self) -> list[AssertionOutcome]:
        return self.verdict.outcomes if self.verdict is not None else []

    @property
    def deployment_id(self) -> str | None:
        if self.deploy.result is None:
            return None
        return self.deploy.result.deployment_id
