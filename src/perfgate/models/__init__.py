"""perfgate data models - re-exports all public model classes."""

from perfgate.models.config import AssertionConfig, CollaboratorSpec, PipelineConfig, Severity
from perfgate.models.result import (
    AssertionOutcome,
    DeployRecord,
    DeployResult,
    DeployStatus,
    GateDecision,
    GateVerdict,
    PipelineOutcome,
    RunReport,
)
from perfgate.models.run import (
    AggregatedMetric,
    ArtifactRef,
    BuildArtifact,
    MetricSample,
    PipelineRun,
    RunStatus,
)

__all__ = [
    "AggregatedMetric",
    "ArtifactRef",
    "AssertionConfig",
    "AssertionOutcome",
    "BuildArtifact",
    "CollaboratorSpec",
    "DeployRecord",
    "DeployResult",
    "DeployStatus",
    "GateDecision",
    "GateVerdict",
    "MetricSample",
    "PipelineConfig",
    "PipelineOutcome",
    "PipelineRun",
    "RunReport",
    "RunStatus",
    "Severity",
]
