"""Output formatting for the pipeforge CLI."""

import json
from dataclasses import dataclass
from typing import Any

from rich.console import Console, RenderableType
from rich.markup import escape
from rich.table import Table

from .models import BatchResult, ErrorPattern


@dataclass
class OutputContext:
    """Context for output formatting."""

    console: Console
    json_mode: bool = False
    verbosity: int = 0

    def print(self, message: RenderableType, style: str | None = None) -> None:
        """Print message respecting output mode."""
        if not self.json_mode:
            self.console.print(message, style=style)

    def print_json(self, data: dict[str, Any]) -> None:
        """Print JSON data."""
        if self.json_mode:
            print(json.dumps(data, indent=2, default=str))

    def result(self, data: dict[str, Any], message: RenderableType = "") -> None:
        """Print result in appropriate format."""
        if self.json_mode:
            self.print_json(data)
        elif message:
            self.console.print(message)

    def error(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Print error in appropriate format."""
        if self.json_mode:
            self.print_json({"error": message, **(data or {})})
        else:
            self.console.print(f"[red]Error: {escape(message)}[/red]")

    def success(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Print success message in appropriate format."""
        if self.json_mode:
            self.print_json({"success": message, **(data or {})})
        else:
            self.console.print(f"[green]{message}[/green]")


def batch_table(batch: BatchResult) -> Table:
    """Render one row per run."""
    table = Table(title="Batch results")
    table.add_column("Run")
    table.add_column("Verdict")
    table.add_column("First try", justify="center")
    table.add_column("Degraded")
    table.add_column("Duration", justify="right")
    table.add_column("Cost", justify="right")
    for run in batch.runs:
        if run.error:
            verdict = "[red]FAILED[/red]"
        elif run.passed:
            verdict = "[green]PASSED[/green]"
        else:
            verdict = "[yellow]DEGRADED[/yellow]"
        table.add_row(
            run.run_id,
            verdict,
            "✓" if run.first_try_clean else "",
            ", ".join(run.degraded_stages) or "-",
            f"{run.duration_ms} ms",
            f"{run.estimated_cost:.2f}",
        )
    return table


def patterns_table(patterns: list[ErrorPattern]) -> Table:
    """Render ranked error patterns."""
    table = Table(title="Top error patterns")
    table.add_column("#", justify="right")
    table.add_column("Stage")
    table.add_column("Kind")
    table.add_column("Count", justify="right")
    table.add_column("Example")
    for rank, pattern in enumerate(patterns, 1):
        table.add_row(
            str(rank),
            pattern.stage,
            pattern.error_kind,
            str(pattern.count),
            pattern.examples[0] if pattern.examples else "",
        )
    return table


# Global output context (set by cli.py main callback)
_ctx: OutputContext | None = None


def get_output_context() -> OutputContext:
    """Get the current output context.

    Returns a default OutputContext if not yet initialized by CLI.
    """
    if _ctx is None:
        return OutputContext(Console())
    return _ctx


def set_output_context(ctx: OutputContext) -> None:
    """Set the global output context. Called by CLI main callback."""
    global _ctx
    _ctx = ctx
