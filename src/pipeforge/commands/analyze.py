"""Analyze command: rank error patterns from persisted error records."""

from pathlib import Path

import typer
from pydantic import ValidationError

from ..constants import DEFAULT_TOP_K
from ..core import ErrorPatternAnalyzer
from ..output import get_output_context, patterns_table
from ..reports import load_error_records


def analyze(
    errors_file: Path = typer.Argument(..., help="errors.jsonl written by 'pipeforge run'"),
    top: int = typer.Option(DEFAULT_TOP_K, "--top", "-k", min=1, help="Patterns to show"),
) -> None:
    """Show the most frequent (stage, error kind) patterns."""
    ctx = get_output_context()

    if not errors_file.exists():
        ctx.error(f"File not found: {errors_file}")
        raise typer.Exit(1)

    try:
        records = load_error_records(errors_file)
    except ValidationError as e:
        ctx.error(f"Invalid error record in {errors_file}: {e.error_count()} errors")
        raise typer.Exit(1) from None

    analyzer = ErrorPatternAnalyzer(records)
    patterns = analyzer.top_k(top)

    if not patterns:
        ctx.result({"records": 0, "patterns": []}, "[green]No errors recorded.[/green]")
        return

    ctx.result(
        {
            "records": len(records),
            "patterns": [pattern.model_dump() for pattern in patterns],
        },
        patterns_table(patterns),
    )
