"""perfgate CLI entry point."""

import typer

from perfgate import __version__
from perfgate.cli.init_cmd import init
from perfgate.cli.report_cmd import report as report_cmd
from perfgate.cli.run_cmd import run
from perfgate.cli.validate_cmd import validate

app = typer.Typer(
    name="perfgate",
    help="Performance-gated build and deploy pipeline",
    no_args_is_help=True,
)

app.command()(init)
app.command(name="report")(report_cmd)
app.command()(run)
app.command()(validate)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"perfgate {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Performance-gated build and deploy pipeline."""
