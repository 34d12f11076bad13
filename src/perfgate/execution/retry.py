"""Fresh-run retry of transient pipeline failures with backoff and jitter.

A run that errored on something likely transient (a stage timeout, a
dropped connection) may be retried by starting a brand new run with a
new run id. Partially completed runs are never resumed, and gate
rejections or deploy failures are never retried.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable

from perfgate.errors import StageTimeout
from perfgate.models.result import PipelineOutcome, RunReport

logger = logging.getLogger(__name__)

# Exception types considered transient (network-level issues)
TRANSIENT_EXCEPTIONS: tuple[type[BaseException], ...] = (
    StageTimeout,
    TimeoutError,
    ConnectionError,
)


def is_transient_error(exc: BaseException) -> bool:
    """Check if a stage error, or the error it wraps, is transient."""
    if isinstance(exc, TRANSIENT_EXCEPTIONS):
        return True
    cause = exc.__cause__
    return cause is not None and isinstance(cause, TRANSIENT_EXCEPTIONS)


def is_retryable(report: RunReport) -> bool:
    """Whether a fresh run may be attempted after ``report``."""
    return report.outcome == PipelineOutcome.errored and report.run.transient_error


async def run_with_fresh_retries(
    execute: Callable[[str], Awaitable[RunReport]],
    revision: str,
    max_retries: int = 0,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
) -> tuple[RunReport, list[RunReport]]:
    """Execute the pipeline, starting fresh runs after transient errors.

    Uses exponential backoff with full jitter between attempts.

    Args:
        execute: Callable starting a new run for a revision.
        revision: Source revision to run.
        max_retries: Maximum number of fresh runs after the first.
        base_delay: Initial backoff delay in seconds.
        max_delay: Maximum backoff delay cap in seconds.

    Returns:
        Tuple of (final report, earlier errored reports in order).
    """
    attempts: list[RunReport] = []

    for attempt in range(max_retries + 1):
        report = await execute(revision)
        if not is_retryable(report) or attempt == max_retries:
            return (report, attempts)

        attempts.append(report)
        delay = min(base_delay * (2 ** attempt), max_delay)
        jitter = random.uniform(0, delay)  # noqa: S311
        logger.warning(
            "Run %s errored transiently (%s); starting a fresh run in %.1fs",
            report.run_id, report.run.error, jitter,
        )
        await asyncio.sleep(jitter)

    # Unreachable, but satisfies type checker
    raise RuntimeError("Retry loop exited unexpectedly")  # pragma: no cover
