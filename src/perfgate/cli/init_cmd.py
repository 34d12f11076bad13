"""perfgate init CLI command for project scaffolding."""

from __future__ import annotations

from pathlib import Path

import typer

from perfgate.scaffold.init import ProjectExistsError, scaffold_project


def init(
    directory: str = typer.Argument(".", help="Directory to initialize"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing config"),
) -> None:
    """Create a starter perfgate.yaml and ignore .perfgate/ in git."""
    try:
        scaffold_project(Path(directory), force=force)
    except ProjectExistsError as e:
        typer.echo(f"Error: Files already exist: {', '.join(e.conflicting_files)}", err=True)
        typer.echo("Use --force to overwrite existing files.", err=True)
        raise typer.Exit(code=1)
