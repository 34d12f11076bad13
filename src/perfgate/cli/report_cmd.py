"""perfgate report -- display stored run reports and run history.

Shows the latest run's detail by default, a specific run by id, or a
--history table of recent runs, optionally filtered by revision.
"""

from __future__ import annotations

from typing import Optional

import typer
import yaml
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.table import Table

from perfgate.cli.output import render_headline, render_outcomes
from perfgate.models.config import PipelineConfig, find_project_root, load_pipeline_config
from perfgate.models.result import PipelineOutcome, RunReport
from perfgate.storage.json_store import RunStore

_OUTCOME_STYLES: dict[PipelineOutcome, str] = {
    PipelineOutcome.deployed: "green",
    PipelineOutcome.deploy_skipped: "green",
    PipelineOutcome.gate_rejected: "red",
    PipelineOutcome.deploy_failed: "bright_red",
    PipelineOutcome.errored: "bright_red",
}


def _render_history(reports: list[RunReport], console: Console) -> None:
    """Render a table of runs, oldest first."""
    if not reports:
        console.print("[dim]No matching runs found.[/dim]")
        return

    categories: list[str] = []
    for rep in reports:
        for name in rep.metrics:
            if name not in categories:
                categories.append(name)

    console.print()
    table = Table(box=box.ROUNDED, title="Run History")
    table.add_column("Run ID")
    table.add_column("Revision")
    table.add_column("Outcome")
    for name in categories:
        table.add_column(name, justify="right")
    table.add_column("Started")

    for rep in reports:
        style = _OUTCOME_STYLES.get(rep.outcome, "white")
        scores = [
            f"{rep.metrics[name].score:.2f}" if name in rep.metrics else "-"
            for name in categories
        ]
        started = rep.run.started_at.strftime("%Y-%m-%d %H:%M") if rep.run.started_at else "-"
        table.add_row(
            rep.run_id[:8],
            rep.run.revision[:12],
            f"[{style}]{rep.outcome.value}[/{style}]",
            *scores,
            started,
        )

    console.print(table)
    deployed = sum(1 for r in reports if r.outcome == PipelineOutcome.deployed)
    console.print(f"\n{len(reports)} run(s) shown, {deployed} deployed.")


def report(
    run_id: Optional[str] = typer.Argument(None, help="Run ID to display (default: latest)"),
    history: bool = typer.Option(False, "--history", help="Show a table of recent runs"),
    limit: int = typer.Option(10, "--limit", "-l", min=1, help="Number of runs in history"),
    revision: Optional[str] = typer.Option(None, "--revision", "-r", help="Filter by revision"),
) -> None:
    """Display stored run reports and history."""
    console = Console()

    project_root = find_project_root()
    try:
        config = load_pipeline_config(project_root)
    except (ValidationError, yaml.YAMLError):
        config = PipelineConfig()
    if not (project_root / config.storage_dir).exists():
        console.print(
            f"[dim]No {config.storage_dir}/ directory found. Run 'perfgate run' first.[/dim]"
        )
        raise typer.Exit(code=0)

    store = RunStore(project_root, storage_dir=config.storage_dir)

    if history:
        run_ids = store.list_runs(revision=revision)[-limit:]
        if not run_ids:
            console.print("[dim]No runs found.[/dim]")
            raise typer.Exit(code=0)

        reports: list[RunReport] = []
        for rid in run_ids:
            try:
                reports.append(store.load_report(rid))
            except (FileNotFoundError, ValidationError):
                console.print(f"[dim]Warning: skipping run {rid} (could not load)[/dim]")
        _render_history(reports, console)
        return

    if run_id is not None:
        try:
            rep = store.load_report(run_id)
        except FileNotFoundError:
            console.print(f"Run '{run_id}' not found.")
            available = store.list_runs()
            if available:
                console.print(f"Available runs: {', '.join(available[-10:])}")
            raise typer.Exit(code=1)
    else:
        rep = store.load_latest_report()
        if rep is None:
            console.print("[dim]No runs found. Run 'perfgate run' first.[/dim]")
            raise typer.Exit(code=0)

    if revision and rep.run.revision != revision:
        console.print(f"[dim]No runs found for revision '{revision}'.[/dim]")
        raise typer.Exit(code=0)

    render_headline(rep, console)
    render_outcomes(rep, console)
    if rep.verdict is not None and not rep.verdict.passed:
        console.print("[bold]Reasons[/bold]")
        for reason in rep.verdict.reasons:
            console.print(f"  - {reason}")
