"""Pipeforge CLI: batch runner for multi-stage generation pipelines."""

import typer

from pipeforge import __version__

from .commands import analyze, init, run
from .logging import configure_logging
from .output import OutputContext, set_output_context


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"pipeforge {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="pipeforge",
    help="Run generate/validate/repair pipelines in batches and rank their failures",
    no_args_is_help=True,
)


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase verbosity (-v logs session events, -vv adds timestamps)",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Suppress non-error output",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in JSON format for automation",
    ),
    no_color: bool = typer.Option(
        False,
        "--no-color",
        help="Disable colored output",
    ),
) -> None:
    """Pipeforge CLI - batch runner for generation pipelines."""
    console = configure_logging(
        verbosity=verbose,
        quiet=quiet,
        no_color=no_color,
    )
    set_output_context(
        OutputContext(console=console, json_mode=json_output, verbosity=0 if quiet else verbose)
    )


app.command()(init)
app.command()(run)
app.command()(analyze)


if __name__ == "__main__":
    app()
