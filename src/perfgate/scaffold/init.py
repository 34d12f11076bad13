"""Project scaffolding for `perfgate init`.

Writes a starter perfgate.yaml and makes sure the run store directory
is ignored by git. Non-interactive with sensible defaults.
"""

from __future__ import annotations

from pathlib import Path

from rich.console import Console

from perfgate.models.config import CONFIG_FILENAME

console = Console()

CONFIG_TEMPLATE = """\
# perfgate pipeline configuration
# Keys may be written in camelCase or snake_case.

numberOfPasses: 3
maxParallelPasses: 1
targetName: production
reportTarget: store

# Blocking assertions reject the revision; advisory ones only warn.
assertions:
  - category: performance
    minScore: 0.9
  - category: accessibility
    minScore: 0.9
  - category: seo
    severity: advisory
    minScore: 0.8
  # Lighthouse CI style is accepted too:
  # - "categories:best-practices": [warn, {minScore: 0.9}]

build:
  use: command
  options:
    command: npm run build
    output_dir: dist

measure:
  use: lighthouse
  # The build output is served on a free local port for each run.
  # To audit a server you start yourself instead:
  # options:
  #   serve_command: null
  #   url: http://localhost:4173/

publish:
  use: command
  options:
    command: npx wrangler pages deploy {location} --project-name {target}
"""

STORE_IGNORE_ENTRY = ".perfgate/"


class ProjectExistsError(Exception):
    """Raised when scaffold_project would overwrite an existing config."""

    def __init__(self, conflicting_files: list[str]) -> None:
        self.conflicting_files = conflicting_files
        super().__init__(f"Files already exist: {', '.join(conflicting_files)}")


def _ensure_gitignored(directory: Path, entry: str) -> str | None:
    """Add ``entry`` to .gitignore; returns what changed, or None."""
    gitignore_path = directory / ".gitignore"
    if not gitignore_path.exists():
        gitignore_path.write_text(entry + "\n", encoding="utf-8")
        return ".gitignore"

    content = gitignore_path.read_text(encoding="utf-8")
    if entry in content.splitlines():
        return None
    if content and not content.endswith("\n"):
        content += "\n"
    gitignore_path.write_text(content + entry + "\n", encoding="utf-8")
    return ".gitignore (updated)"


def scaffold_project(directory: Path, force: bool = False) -> list[str]:
    """Write perfgate.yaml into ``directory`` and ignore the run store.

    Args:
        directory: Target project directory, created if missing.
        force: Overwrite an existing perfgate.yaml.

    Returns:
        Created or updated file paths, relative to directory.

    Raises:
        ProjectExistsError: If perfgate.yaml exists and force is False.
    """
    directory = directory.resolve()
    config_path = directory / CONFIG_FILENAME
    if config_path.exists() and not force:
        raise ProjectExistsError([CONFIG_FILENAME])

    directory.mkdir(parents=True, exist_ok=True)
    config_path.write_text(CONFIG_TEMPLATE, encoding="utf-8")
    created = [CONFIG_FILENAME]

    gitignore_change = _ensure_gitignored(directory, STORE_IGNORE_ENTRY)
    if gitignore_change:
        created.append(gitignore_change)

    console.print("[green][bold]Project initialized successfully![/bold][/green]")
    for path in created:
        console.print(f"  [green]✓[/green] {path}")

    return created
