"""AuditRunner: N-pass measurement engine with bounded concurrency.

Runs the configured number of audit passes against one artifact, each
pass measuring every category once. Passes are independent and may run
concurrently via asyncio.Semaphore + TaskGroup; the TaskGroup exit is
the barrier after which all samples are available for aggregation.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence

from perfgate.collaborators.base import BaseMeasurementEngine
from perfgate.errors import MeasurementError, StageError, StageTimeout
from perfgate.models.run import ArtifactRef, MetricSample

logger = logging.getLogger(__name__)


class AuditRunner:
    """Collects exactly one sample per category per pass (or none if skipped).

    Any measurement failure or timeout aborts the whole audit; the
    remaining passes are cancelled.
    """

    def __init__(
        self,
        engine: BaseMeasurementEngine,
        categories: Sequence[str],
        n_passes: int = 3,
        max_parallel: int = 1,
        measure_timeout: float = 120.0,
    ) -> None:
        self._engine = engine
        self._categories = list(categories)
        self._n_passes = n_passes
        self._max_parallel = max_parallel
        self._measure_timeout = measure_timeout

    async def run(
        self,
        artifact: ArtifactRef,
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> list[MetricSample]:
        """Run all passes and return every sample collected.

        Args:
            artifact: The run-scoped artifact under audit.
            progress_callback: Optional callback(pass_index, total) called
                after each pass completes.

        Returns:
            Samples ordered by pass index, then category order.

        Raises:
            StageError: MeasurementError or StageTimeout from any pass.
        """
        if self._max_parallel <= 1:
            per_pass = await self._run_sequential(artifact, progress_callback)
        else:
            per_pass = await self._run_concurrent(artifact, progress_callback)

        return [sample for samples in per_pass for sample in samples]

    async def _run_sequential(
        self,
        artifact: ArtifactRef,
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> list[list[MetricSample]]:
        """Execute passes one at a time."""
        results: list[list[MetricSample]] = []
        for pass_index in range(1, self._n_passes + 1):
            results.append(await self._execute_pass(artifact, pass_index))
            if progress_callback is not None:
                progress_callback(pass_index, self._n_passes)
        return results

    async def _run_concurrent(
        self,
        artifact: ArtifactRef,
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> list[list[MetricSample]]:
        """Execute passes concurrently with bounded parallelism."""
        semaphore = asyncio.Semaphore(self._max_parallel)
        results: list[list[MetricSample]] = [[] for _ in range(self._n_passes)]

        async def run_one(pass_index: int) -> None:
            async with semaphore:
                results[pass_index - 1] = await self._execute_pass(artifact, pass_index)
                if progress_callback is not None:
                    progress_callback(pass_index, self._n_passes)

        try:
            async with asyncio.TaskGroup() as tg:
                for pass_index in range(1, self._n_passes + 1):
                    tg.create_task(run_one(pass_index))
        except ExceptionGroup as group:
            # Surface the first stage error; anything else is a crash.
            raise _first_stage_error(group)

        return results

    async def _execute_pass(self, artifact: ArtifactRef, pass_index: int) -> list[MetricSample]:
        """Measure every category once for ``pass_index``."""
        samples: list[MetricSample] = []
        for category in self._categories:
            sample = await self._measure(artifact, category, pass_index)
            if sample is not None:
                samples.append(sample)
        logger.debug(
            "Pass %d/%d collected %d sample(s)", pass_index, self._n_passes, len(samples)
        )
        return samples

    async def _measure(
        self,
        artifact: ArtifactRef,
        category: str,
        pass_index: int,
    ) -> MetricSample | None:
        try:
            sample = await asyncio.wait_for(
                self._engine.measure(artifact, category, pass_index),
                timeout=self._measure_timeout,
            )
        except TimeoutError as exc:
            raise StageTimeout("measure", self._measure_timeout) from exc
        except StageError:
            raise
        except Exception as exc:
            raise MeasurementError(
                f"Measurement of '{category}' crashed on pass {pass_index}: {exc}",
                category=category,
                pass_index=pass_index,
            ) from exc

        if sample is None:
            return None
        if sample.category != category or sample.pass_index != pass_index:
            raise MeasurementError(
                f"Engine returned a sample for {sample.category!r} pass "
                f"{sample.pass_index}, expected {category!r} pass {pass_index}",
                category=category,
                pass_index=pass_index,
            )
        return sample


def _first_stage_error(group: BaseExceptionGroup) -> Exception:
    leaves: list[BaseException] = []

    def collect(exc: BaseException) -> None:
        if isinstance(exc, BaseExceptionGroup):
            for inner in exc.exceptions:
                collect(inner)
        else:
            leaves.append(exc)

    collect(group)
    for exc in leaves:
        if isinstance(exc, StageError):
            return exc
    first = leaves[0]
    return MeasurementError(f"Audit pass crashed: {first}")
