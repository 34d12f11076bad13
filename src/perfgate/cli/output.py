"""Rich terminal output for pipeline run reports.

Provides the audit progress bar, the headline outcome table, the
per-assertion breakdown, and JSON output for RunReport display in
terminal and CI.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from rich import box
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from perfgate.models.config import Severity

if TYPE_CHECKING:
    from perfgate.models.result import AssertionOutcome, RunReport


# Outcome value -> (label, Rich style)
_OUTCOME_STYLES: dict[str, tuple[str, str]] = {
    "deployed": ("✓ DEPLOYED", "bold green"),
    "deploy_skipped": ("✓ PASSED (deploy skipped)", "bold green"),
    "deploy_failed": ("! DEPLOY FAILED", "bold bright_red"),
    "gate_rejected": ("✗ GATE REJECTED", "bold red"),
    "errored": ("! ERRORED", "bold bright_red"),
}


def create_pass_progress(console: Console) -> Progress | None:
    """Progress bar for audit passes, or None when not on a terminal."""
    if not console.is_terminal:
        return None

    return Progress(
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )


def render_headline(report: RunReport, console: Console) -> None:
    """Render the key-value summary table for a run."""
    table = Table(box=box.SIMPLE, show_header=False, padding=(0, 2))
    table.add_column("Key", style="bold")
    table.add_column("Value")

    label, style = _OUTCOME_STYLES.get(report.outcome.value, ("? UNKNOWN", "bold red"))
    table.add_row("Outcome", f"[{style}]{label}[/{style}]")
    table.add_row("Run", report.run_id)
    table.add_row("Revision", report.run.revision)
    table.add_row("Passes", str(report.number_of_passes))

    if report.metrics:
        scores = ", ".join(
            f"{name}={metric.score:.2f}" for name, metric in report.metrics.items()
        )
        table.add_row("Scores", f"{scores} (median)")

    if report.run.error:
        kind = f"{report.run.error_type}: " if report.run.error_type else ""
        retry = " [dim](transient)[/dim]" if report.run.transient_error else ""
        table.add_row("Error", f"{kind}{report.run.error}{retry}")

    deploy = report.deploy
    if deploy.result is not None:
        where = deploy.result.url or deploy.result.deployment_id
        table.add_row("Deploy", f"{deploy.target_name}: {where}")
    elif deploy.error:
        table.add_row("Deploy", f"{deploy.status.value} ({deploy.error})")

    if report.run.started_at and report.run.finished_at:
        elapsed = (report.run.finished_at - report.run.started_at).total_seconds()
        table.add_row("Duration", f"{elapsed:.1f}s")

    console.print()
    console.print(table)


def _outcome_line(outcome: AssertionOutcome) -> str:
    if outcome.missing_metric:
        return f"  [magenta]? {outcome.describe()}[/magenta]"
    if outcome.satisfied:
        return f"  [green]✓ {outcome.describe()}[/green]"
    if outcome.severity == Severity.advisory:
        return f"  [yellow]~ {outcome.describe()} (advisory)[/yellow]"
    return f"  [red]✗ {outcome.describe()}[/red]"


def render_outcomes(report: RunReport, console: Console) -> None:
    """Render every assertion outcome, then per-pass samples."""
    if not report.outcomes:
        return

    console.print("[bold]Assertions[/bold]")
    for outcome in report.outcomes:
        console.print(_outcome_line(outcome))
    console.print()

    if report.metrics:
        console.print("[bold]Samples[/bold]")
        for name, metric in report.metrics.items():
            samples = ", ".join(f"{s:.2f}" for s in metric.samples)
            console.print(f"  {name}: [{samples}]")
        console.print()


def output_json(report: RunReport) -> None:
    """Write the report as pure JSON to stdout."""
    sys.stdout.write(report.model_dump_json(indent=2))
    sys.stdout.write("\n")
