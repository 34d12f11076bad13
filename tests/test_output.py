"""Tests for perfgate.cli.output - Rich report rendering layer."""

from __future__ import annotations

import json
from io import StringIO

from rich.console import Console

from perfgate.cli.output import (
    create_pass_progress,
    output_json,
    render_headline,
    render_outcomes,
)
from perfgate.models.config import Severity
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
from perfgate.models.run import AggregatedMetric, PipelineRun, RunStatus


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_report(
    outcome: PipelineOutcome = PipelineOutcome.deployed,
    outcomes: list[AssertionOutcome] | None = None,
    deploy: DeployRecord | None = None,
    error: str | None = None,
) -> RunReport:
    run = PipelineRun(run_id="run-001", revision="abc1234")
    run.transition(RunStatus.running)
    if error is not None:
        run.transition(RunStatus.errored, error=error, error_type="BuildError")
    else:
        run.transition(RunStatus.passed)

    if outcomes is None:
        outcomes = [
            AssertionOutcome(
                category="performance",
                severity=Severity.blocking,
                threshold=0.9,
                actual=0.93,
                satisfied=True,
            )
        ]
    verdict = None if error is not None else GateVerdict(
        decision=GateDecision.passed
        if all(o.satisfied or o.severity == Severity.advisory for o in outcomes)
        else GateDecision.failed,
        outcomes=outcomes,
    )
    metrics = {} if error is not None else {
        "performance": AggregatedMetric(
            category="performance", score=0.93, samples=[0.91, 0.93, 0.95]
        )
    }
    return RunReport(
        run=run,
        outcome=outcome,
        number_of_passes=3,
        metrics=metrics,
        verdict=verdict,
        deploy=deploy or DeployRecord(),
    )


def _capture_console() -> tuple[Console, StringIO]:
    """Create a Console that captures output to a StringIO buffer."""
    buf = StringIO()
    console = Console(file=buf, force_terminal=False, width=120)
    return console, buf


# ---------------------------------------------------------------------------
# Tests: render_headline
# ---------------------------------------------------------------------------


class TestRenderHeadline:
    """Headline table for each outcome."""

    def test_deployed(self):
        report = _make_report(
            deploy=DeployRecord(
                status=DeployStatus.succeeded,
                target_name="production",
                result=DeployResult(deployment_id="dep-1", url="https://dep-1.pages.dev"),
            )
        )
        console, buf = _capture_console()
        render_headline(report, console)
        output = buf.getvalue()
        assert "✓ DEPLOYED" in output
        assert "performance=0.93 (median)" in output
        assert "production: https://dep-1.pages.dev" in output

    def test_gate_rejected(self):
        console, buf = _capture_console()
        render_headline(_make_report(outcome=PipelineOutcome.gate_rejected), console)
        assert "✗ GATE REJECTED" in buf.getvalue()

    def test_deploy_failed_shows_error(self):
        report = _make_report(
            outcome=PipelineOutcome.deploy_failed,
            deploy=DeployRecord(status=DeployStatus.failed, error="quota exceeded"),
        )
        console, buf = _capture_console()
        render_headline(report, console)
        output = buf.getvalue()
        assert "! DEPLOY FAILED" in output
        assert "failed (quota exceeded)" in output

    def test_errored_shows_error_type(self):
        report = _make_report(outcome=PipelineOutcome.errored, error="tsc exited 2")
        console, buf = _capture_console()
        render_headline(report, console)
        output = buf.getvalue()
        assert "! ERRORED" in output
        assert "BuildError: tsc exited 2" in output
        assert "Scores" not in output


# ---------------------------------------------------------------------------
# Tests: render_outcomes
# ---------------------------------------------------------------------------


class TestRenderOutcomes:
    """Per-assertion breakdown."""

    def test_every_outcome_kind(self):
        outcomes = [
            AssertionOutcome(
                category="performance", severity=Severity.blocking,
                threshold=0.9, actual=0.93, satisfied=True,
            ),
            AssertionOutcome(
                category="accessibility", severity=Severity.blocking,
                threshold=0.9, actual=0.7, satisfied=False,
            ),
            AssertionOutcome(
                category="seo", severity=Severity.advisory,
                threshold=0.8, actual=0.6, satisfied=False,
            ),
            AssertionOutcome(
                category="pwa", severity=Severity.advisory,
                threshold=0.5, actual=None, satisfied=False, missing_metric=True,
            ),
        ]
        console, buf = _capture_console()
        render_outcomes(_make_report(outcomes=outcomes), console)
        output = buf.getvalue()
        assert "✓ performance: 0.93 meets threshold 0.90" in output
        assert "✗ accessibility: 0.70 below threshold 0.90" in output
        assert "~ seo: 0.60 below threshold 0.80 (advisory)" in output
        assert "? pwa: no samples recorded" in output
        assert "performance: [0.91, 0.93, 0.95]" in output

    def test_nothing_for_errored_run(self):
        console, buf = _capture_console()
        render_outcomes(_make_report(outcome=PipelineOutcome.errored, error="boom"), console)
        assert buf.getvalue() == ""


# ---------------------------------------------------------------------------
# Tests: progress and JSON
# ---------------------------------------------------------------------------


class TestProgressAndJson:
    def test_no_progress_off_terminal(self):
        console, _ = _capture_console()
        assert create_pass_progress(console) is None

    def test_progress_on_terminal(self):
        console = Console(file=StringIO(), force_terminal=True)
        assert create_pass_progress(console) is not None

    def test_output_json(self, capsys):
        output_json(_make_report())
        data = json.loads(capsys.readouterr().out)
        assert data["outcome"] == "deployed"
        assert data["run"]["run_id"] == "run-001"
        assert data["metrics"]["performance"]["samples"] == [0.91, 0.93, 0.95]
