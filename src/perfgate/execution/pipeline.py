"""PipelineOrchestrator: build -> audit -> gate -> deploy for one revision.

Runs the stages strictly in order. Any stage failure (error, crash,
timeout, abort) marks the run errored and stops the sequence; a failed
gate still evaluates every assertion before skipping deploy. Deploy is
only reachable from a passed gate and, once started, is never
interrupted by abort().
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from perfgate.collaborators.base import BaseBuilder, BaseMeasurementEngine, BasePublisher
from perfgate.errors import (
    BuildError,
    InvalidTransition,
    PublishError,
    RunAborted,
    StageError,
    StageTimeout,
)
from perfgate.evaluation.aggregation import aggregate_samples
from perfgate.evaluation.assertions import evaluate_assertions
from perfgate.evaluation.gate import GateDecisionEngine
from perfgate.execution.audit import AuditRunner
from perfgate.execution.retry import is_transient_error
from perfgate.handoff.store import ArtifactHandoff
from perfgate.models.config import PipelineConfig
from perfgate.models.result import (
    DeployRecord,
    DeployStatus,
    GateVerdict,
    PipelineOutcome,
    RunReport,
)
from perfgate.models.run import AggregatedMetric, PipelineRun, RunStatus, new_run_id

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _RunControl:
    """Per-run abort flag and deploy latch."""

    aborted: asyncio.Event = field(default_factory=asyncio.Event)
    deploy_started: bool = False


def derive_outcome(run: PipelineRun, deploy: DeployRecord) -> PipelineOutcome:
    """Map a terminal run and its deploy record to the pipeline outcome."""
    if run.status == RunStatus.errored:
        return PipelineOutcome.errored
    if run.status == RunStatus.failed:
        return PipelineOutcome.gate_rejected
    if deploy.status == DeployStatus.succeeded:
        return PipelineOutcome.deployed
    if deploy.status == DeployStatus.failed:
        return PipelineOutcome.deploy_failed
    return PipelineOutcome.deploy_skipped


class PipelineOrchestrator:
    """Sequences one pipeline run per call to execute().

    Configuration is passed in once and never mutated, so a single
    orchestrator can drive concurrent runs; each run gets its own run id,
    handoff entry, and abort control.
    """

    def __init__(
        self,
        config: PipelineConfig,
        builder: BaseBuilder,
        engine: BaseMeasurementEngine,
        publisher: BasePublisher,
        handoff: ArtifactHandoff | None = None,
        gate: GateDecisionEngine | None = None,
        deploy_enabled: bool = True,
    ) -> None:
        self._config = config
        self._builder = builder
        self._engine = engine
        self._publisher = publisher
        self._handoff = handoff or ArtifactHandoff(grace_seconds=config.artifact_grace_seconds)
        self._gate = gate or GateDecisionEngine()
        self._deploy_enabled = deploy_enabled
        self._controls: dict[str, _RunControl] = {}
        self._finished: set[str] = set()

    @property
    def config(self) -> PipelineConfig:
        return self._config

    @property
    def handoff(self) -> ArtifactHandoff:
        return self._handoff

    def active_runs(self) -> list[str]:
        """Run ids currently executing."""
        return list(self._controls)

    def abort(self, run_id: str) -> bool:
        """Prevent deploy from ever starting for ``run_id``.

        An in-flight build or audit stage is cancelled and the run ends
        errored. A deploy that already started runs to completion.

        Returns:
            True if the abort took effect, False if the run is unknown,
            finished, or already deploying.
        """
        control = self._controls.get(run_id)
        if control is None or control.deploy_started:
            return False
        control.aborted.set()
        logger.warning("Run %s: abort requested", run_id)
        return True

    async def execute(
        self,
        revision: str,
        run_id: str | None = None,
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> RunReport:
        """Run the full pipeline for ``revision`` and return its report.

        Args:
            revision: Source revision to build.
            run_id: Optional run id (generated when omitted).
            progress_callback: Optional callback(pass_index, total) for
                audit progress.

        Returns:
            RunReport for the terminal run.

        Raises:
            ValueError: If ``run_id`` is executing or was used before.
            InvalidTransition: On a state machine ordering defect.
            HandoffError: On artifact handoff misuse.
        """
        run = PipelineRun(run_id=run_id or new_run_id(), revision=revision)
        if run.run_id in self._controls:
            raise ValueError(f"Run {run.run_id} is already executing")
        if run.run_id in self._finished or run.run_id in self._handoff:
            raise ValueError(f"Run {run.run_id} has already been used")
        control = _RunControl()
        self._controls[run.run_id] = control

        metrics: dict[str, AggregatedMetric] = {}
        verdict: GateVerdict | None = None
        deploy = DeployRecord()

        try:
            run.transition(RunStatus.running)
            logger.info("Run %s started for revision %s", run.run_id, revision)

            try:
                metrics = await self._build_and_audit(run, control, progress_callback)
            except StageError as exc:
                run.transition(
                    RunStatus.errored,
                    error=str(exc),
                    error_type=type(exc).__name__,
                    transient=is_transient_error(exc),
                )
                logger.error("Run %s errored: %s", run.run_id, exc)
            else:
                outcomes = evaluate_assertions(metrics, self._config.assertions)
                verdict = self._gate.apply(run, outcomes)
                if verdict.passed:
                    deploy = await self._deploy(run, control)
                else:
                    deploy = DeployRecord(status=DeployStatus.skipped, error="gate rejected")
        finally:
            self._controls.pop(run.run_id, None)
            self._finished.add(run.run_id)
            self._handoff.release(run.run_id)
            self._handoff.purge_expired()
            self._engine.forget(run.run_id)

        outcome = derive_outcome(run, deploy)
        logger.info("Run %s finished: %s", run.run_id, outcome.value)
        return RunReport(
            run=run,
            outcome=outcome,
            number_of_passes=self._config.number_of_passes,
            metrics=metrics,
            verdict=verdict,
            deploy=deploy,
        )

    async def _build_and_audit(
        self,
        run: PipelineRun,
        control: _RunControl,
        progress_callback: Callable[[int, int], None] | None,
    ) -> dict[str, AggregatedMetric]:
        """Build, store the artifact, run every audit pass, and aggregate."""
        config = self._config

        artifact = await self._stage(
            control,
            "build",
            self._builder.build(run.revision),
            timeout=config.build_timeout_seconds,
            wrap=BuildError,
        )
        ref = self._handoff.store(run.run_id, artifact)
        logger.info("Run %s built artifact %s", run.run_id, ref.digest[:12])

        audit = AuditRunner(
            engine=self._engine,
            categories=config.measured_categories(),
            n_passes=config.number_of_passes,
            max_parallel=config.max_parallel_passes,
            measure_timeout=config.measure_timeout_seconds,
        )
        samples = await self._stage(
            control,
            "audit",
            audit.run(ref, progress_callback=progress_callback),
            timeout=None,
            wrap=StageError,
        )
        logger.info("Run %s collected %d sample(s)", run.run_id, len(samples))

        return aggregate_samples(
            samples,
            expected_passes=config.number_of_passes,
            required_categories=config.required_categories,
        )

    async def _stage(
        self,
        control: _RunControl,
        stage: str,
        coro: Awaitable[T],
        timeout: float | None,
        wrap: type[StageError],
    ) -> T:
        """Await one stage, racing it against its timeout and the abort flag.

        Raises:
            RunAborted: The run was aborted before or during the stage.
            StageTimeout: The stage exceeded ``timeout``.
            StageError: The stage failed; non-stage exceptions are wrapped
                in ``wrap``.
        """
        task = asyncio.ensure_future(coro)
        if control.aborted.is_set():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise RunAborted(f"Run aborted before {stage}")

        abort_wait = asyncio.ensure_future(control.aborted.wait())
        try:
            done, _ = await asyncio.wait(
                {task, abort_wait},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            abort_wait.cancel()
            if not task.done():
                task.cancel()

        if task in done:
            try:
                return task.result()
            except StageError:
                raise
            except Exception as exc:
                raise wrap(f"Stage '{stage}' crashed: {exc}") from exc

        # Let the cancelled stage unwind (kills child processes).
        await asyncio.gather(task, return_exceptions=True)
        if control.aborted.is_set():
            raise RunAborted(f"Run aborted during {stage}")
        assert timeout is not None
        raise StageTimeout(stage, timeout)

    async def _deploy(self, run: PipelineRun, control: _RunControl) -> DeployRecord:
        """Publish the run's artifact. Only called after a passed gate."""
        target = self._config.target_name

        if run.status != RunStatus.passed:
            raise InvalidTransition(run.run_id, run.status.value, "deploy")
        if not self._deploy_enabled:
            logger.info("Run %s: deploy disabled", run.run_id)
            return DeployRecord(status=DeployStatus.skipped, target_name=target, error="deploy disabled")
        if control.aborted.is_set():
            logger.warning("Run %s: aborted, deploy skipped", run.run_id)
            return DeployRecord(status=DeployStatus.skipped, target_name=target, error="run aborted")

        control.deploy_started = True
        ref = self._handoff.retrieve(run.run_id)
        logger.info(
            "Run %s deploying %s to %s via %s",
            run.run_id, ref.digest[:12], target, self._publisher.provider_name(),
        )

        try:
            result = await asyncio.wait_for(
                self._publisher.publish(ref, target),
                timeout=self._config.deploy_timeout_seconds,
            )
        except TimeoutError:
            error = str(StageTimeout("deploy", self._config.deploy_timeout_seconds))
        except PublishError as exc:
            error = str(exc)
        except Exception as exc:
            error = f"Publisher crashed: {exc}"
        else:
            logger.info("Run %s deployed: %s", run.run_id, result.deployment_id)
            return DeployRecord(status=DeployStatus.succeeded, target_name=target, result=result)

        logger.warning("Run %s deploy failed: %s", run.run_id, error)
        return DeployRecord(status=DeployStatus.failed, target_name=target, error=error)
