"""perfgate run -- build, audit, gate, and deploy one revision.

Loads perfgate.yaml, resolves the collaborators, drives a pipeline run
(with optional fresh-run retries), renders the verdict, persists the
report with a latest symlink, emits it to the configured report target,
and exits with the outcome code.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from perfgate.cli.output import (
    create_pass_progress,
    output_json,
    render_headline,
    render_outcomes,
)
from perfgate.collaborators.registry import get_builder, get_measurement_engine, get_publisher
from perfgate.errors import ConfigError
from perfgate.execution.pipeline import PipelineOrchestrator
from perfgate.execution.retry import run_with_fresh_retries
from perfgate.loader.validator import validate_config_file
from perfgate.models.config import CONFIG_FILENAME, PipelineConfig, find_project_root
from perfgate.models.result import PipelineOutcome, RunReport
from perfgate.reporting.sinks import StoreSink, get_sink
from perfgate.storage.json_store import RunStore

console = Console(stderr=True)

# Exit code mapping: outcome -> exit code
EXIT_CODES: dict[PipelineOutcome, int] = {
    PipelineOutcome.deployed: 0,
    PipelineOutcome.deploy_skipped: 0,
    PipelineOutcome.gate_rejected: 1,
    PipelineOutcome.deploy_failed: 2,
    PipelineOutcome.errored: 3,
}


def configure_logging(verbose: bool) -> None:
    """Route perfgate log records through Rich on stderr."""
    handler = RichHandler(console=console, show_path=False, markup=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    package_logger = logging.getLogger("perfgate")
    package_logger.handlers[:] = [handler]
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def run(
    revision: str = typer.Argument(..., help="Source revision to build and gate"),
    config_path: Optional[str] = typer.Option(
        None, "--config", "-c", help=f"Path to {CONFIG_FILENAME} (default: project root)"
    ),
    passes: Optional[int] = typer.Option(
        None, "-n", "--passes", min=1, help="Override numberOfPasses"
    ),
    parallel: Optional[int] = typer.Option(
        None, "--parallel", min=1, help="Max concurrent audit passes"
    ),
    format_json: bool = typer.Option(False, "--json", help="Output pure JSON to stdout"),
    no_deploy: bool = typer.Option(False, "--no-deploy", help="Stop after the gate"),
    retries: int = typer.Option(
        0, "--retries", min=0, help="Fresh runs to start after transient errors"
    ),
    verbose: bool = typer.Option(False, "-V", "--verbose", help="Debug logging"),
) -> None:
    """Run the build -> audit -> gate -> deploy pipeline for a revision."""
    configure_logging(verbose)

    project_root, config = _load_config(config_path)
    update: dict[str, int] = {}
    if passes is not None:
        update["number_of_passes"] = passes
    if parallel is not None:
        update["max_parallel_passes"] = parallel
    if update:
        config = config.model_copy(update=update)

    try:
        orchestrator = PipelineOrchestrator(
            config,
            builder=get_builder(config.build),
            engine=get_measurement_engine(config.measure),
            publisher=get_publisher(config.publish),
            deploy_enabled=not no_deploy,
        )
        store = RunStore(project_root, storage_dir=config.storage_dir)
        extra_sink = None
        if config.report_target != "store":
            extra_sink = get_sink(config.report_target, project_root, config.storage_dir)
    except ConfigError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    report, earlier = asyncio.run(
        _execute(orchestrator, revision, retries, show_progress=not format_json)
    )

    sink = StoreSink(store)
    for attempt in earlier:
        store.save_report(attempt)
    saved_path = sink.emit(report)
    if extra_sink is not None and not (format_json and config.report_target == "stdout"):
        extra_sink.emit(report)

    if format_json:
        output_json(report)
    else:
        # The stdout sink owns stdout; keep the tables off it.
        _render(report, earlier, saved_path, to_stderr=config.report_target == "stdout")

    exit_code = EXIT_CODES.get(report.outcome, 3)
    if exit_code != 0:
        raise typer.Exit(code=exit_code)


def _load_config(config_path: str | None) -> tuple[Path, PipelineConfig]:
    """Locate and validate perfgate.yaml; exit 1 on any problem."""
    if config_path is not None:
        filepath = Path(config_path)
        if not filepath.exists():
            console.print(f"[bold red]Error:[/bold red] Config not found: {config_path}")
            raise typer.Exit(code=1)
        project_root = filepath.resolve().parent
    else:
        project_root = find_project_root()
        filepath = project_root / CONFIG_FILENAME
        if not filepath.exists():
            console.print(f"[dim]No {CONFIG_FILENAME} found; using defaults.[/dim]")
            return project_root, PipelineConfig()

    config, errors = validate_config_file(filepath)
    if errors:
        console.print("[bold red]Config validation errors:[/bold red]")
        for err in errors:
            loc = f" (line {err.line})" if err.line else ""
            console.print(f"  {err.field}: {err.message}{loc}")
        raise typer.Exit(code=1)

    assert config is not None
    return project_root, config


async def _execute(
    orchestrator: PipelineOrchestrator,
    revision: str,
    retries: int,
    show_progress: bool,
) -> tuple[RunReport, list[RunReport]]:
    progress = create_pass_progress(console) if show_progress else None
    total = orchestrator.config.number_of_passes

    def start(rev: str):
        if progress is None:
            return orchestrator.execute(rev)
        task = progress.add_task(f"Auditing {rev[:12]}", total=total)

        def on_pass(pass_index: int, total_passes: int) -> None:
            progress.update(task, advance=1)

        return orchestrator.execute(rev, progress_callback=on_pass)

    if progress is None:
        return await run_with_fresh_retries(start, revision, max_retries=retries)
    with progress:
        return await run_with_fresh_retries(start, revision, max_retries=retries)


def _render(
    report: RunReport,
    earlier: list[RunReport],
    saved_path: str | None,
    to_stderr: bool = False,
) -> None:
    output_console = Console(stderr=to_stderr)
    render_headline(report, output_console)
    render_outcomes(report, output_console)
    for attempt in earlier:
        output_console.print(
            f"[dim yellow]Earlier attempt {attempt.run_id} errored: {attempt.run.error}[/dim yellow]"
        )
    if saved_path:
        output_console.print(f"[dim]Run saved: {report.run_id}[/dim]")
