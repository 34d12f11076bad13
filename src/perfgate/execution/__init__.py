"""perfgate execution - audit passes, pipeline orchestration, and fresh-run retry."""

from perfgate.execution.audit import AuditRunner
from perfgate.execution.pipeline import PipelineOrchestrator, derive_outcome
from perfgate.execution.retry import is_retryable, is_transient_error, run_with_fresh_retries

__all__ = [
    "AuditRunner",
    "PipelineOrchestrator",
    "derive_outcome",
    "is_retryable",
    "is_transient_error",
    "run_with_fresh_retries",
]
