"""Init command: write a configuration template."""

from pathlib import Path

import typer

from ..config import write_config_template
from ..constants import CONFIG_FILENAME
from ..output import get_output_context


def init(
    path: Path = typer.Option(
        Path(CONFIG_FILENAME),
        "--path",
        "-p",
        help="Where to write the config file",
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing config"),
) -> None:
    """Write a pipeforge.toml with the default settings."""
    ctx = get_output_context()

    if path.exists() and not force:
        ctx.print(f"[yellow]Config already exists:[/yellow] {path}")
        ctx.print_json({"config": str(path), "created": False})
        return

    try:
        written = write_config_template(path)
    except OSError as e:
        ctx.error(f"Cannot write config: {e}")
        raise typer.Exit(1) from None

    ctx.print(f"[green]Created config template:[/green] {written}")
    ctx.print_json({"config": str(written), "created": True})
