"""perfgate validate -- check perfgate.yaml against the config schema.

Reports every problem at once, with rich or CI-friendly formatting.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from perfgate.loader.errors import ErrorFormatter
from perfgate.loader.validator import validate_config_file
from perfgate.models.config import CONFIG_FILENAME, find_project_root


def validate(
    config_path: Optional[str] = typer.Argument(
        None, help=f"Config file to validate (default: {CONFIG_FILENAME} in the project root)"
    ),
    ci: bool = typer.Option(False, "--ci", help="CI-friendly concise output"),
) -> None:
    """Validate a perfgate.yaml file.

    Exits with code 0 if the file is valid, 1 otherwise.
    """
    formatter = ErrorFormatter(ci_mode=True if ci else None)

    filepath = Path(config_path) if config_path else find_project_root() / CONFIG_FILENAME
    if not filepath.exists():
        typer.echo(f"Error: File not found: {filepath}", err=True)
        raise typer.Exit(code=1)

    config, errors = validate_config_file(filepath)
    if errors:
        source = filepath.read_text(encoding="utf-8")
        if formatter.ci_mode:
            typer.echo(formatter.format_all(errors, source, str(filepath)))
        else:
            formatter.print_errors(errors, source, str(filepath))
        typer.echo(f"\n{len(errors)} error(s) in {filepath}")
        raise typer.Exit(code=1)

    assert config is not None
    categories = ", ".join(config.measured_categories()) or "none"
    typer.echo(
        f"  {filepath} ... valid "
        f"({len(config.assertions)} assertion(s), {config.number_of_passes} passes, "
        f"categories: {categories})"
    )
