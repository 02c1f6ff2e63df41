"""Run command: execute a batch of pipeline runs."""

import asyncio
import signal
import tomllib
from pathlib import Path
from types import FrameType

import typer
from pydantic import ValidationError
from rich.markup import escape

from ..config import ForgeConfig, load_config
from ..constants import CONFIG_FILENAME, DEFAULT_TOP_K
from ..core import BatchRunner, ErrorPatternAnalyzer, PipelineOrchestrator, load_pipeline
from ..core.identifiers import generate_batch_id
from ..errors import PipelineError
from ..logging import session_event_sink
from ..models import BatchProgress, BatchResult, FeedbackReport, RunResult
from ..output import OutputContext, batch_table, get_output_context, patterns_table
from ..reports import write_batch


def run(
    pipeline: str = typer.Option(
        ...,
        "--pipeline",
        "-p",
        help="Pipeline factory as 'package.module:attribute'",
    ),
    count: int | None = typer.Option(None, "--count", "-n", min=0, help="Number of runs"),
    concurrency: int | None = typer.Option(
        None, "--concurrency", "-c", min=1, help="Runs executed in parallel"
    ),
    config_path: Path = typer.Option(
        Path(CONFIG_FILENAME), "--config", help="Path to pipeforge.toml"
    ),
    output_dir: Path | None = typer.Option(
        None, "--output", "-o", help="Directory for summaries and session logs"
    ),
    top: int = typer.Option(DEFAULT_TOP_K, "--top", "-k", min=1, help="Error patterns to show"),
    name: str | None = typer.Option(None, "--name", help="Slug appended to the batch ID"),
) -> None:
    """Run a pipeline N times and report verdicts and error patterns.

    Exits 0 if at least one run passed, 1 otherwise. Ctrl+C stops the batch
    after the runs already in flight.
    """
    ctx = get_output_context()

    try:
        config = load_config(config_path)
    except (tomllib.TOMLDecodeError, ValidationError) as e:
        ctx.error(f"Invalid config {config_path}: {e}")
        raise typer.Exit(2) from None
    config = _apply_overrides(config, count, concurrency, output_dir)

    try:
        definition = load_pipeline(pipeline)
    except PipelineError as e:
        ctx.error(str(e))
        raise typer.Exit(2) from None

    orchestrator = PipelineOrchestrator(
        definition,
        config=config,
        event_sink=session_event_sink() if ctx.verbosity > 0 else None,
    )
    runner = BatchRunner(orchestrator, on_run_complete=_progress_printer(ctx))
    batch_id = generate_batch_id(name)

    ctx.print(
        f"[bold]Batch {batch_id}:[/bold] {config.batch.target_runs} runs of "
        f"{', '.join(definition.stage_names)}"
    )

    def _handle_interrupt(signum: int, frame: FrameType | None) -> None:
        ctx.print("\n[yellow]Stopping after in-flight runs...[/yellow]")
        runner.stop()

    original_handler = signal.signal(signal.SIGINT, _handle_interrupt)
    try:
        batch, report = asyncio.run(_execute(runner, batch_id, top))
    finally:
        signal.signal(signal.SIGINT, original_handler)

    saved_to = None
    if config.output.persist_sessions:
        try:
            saved_to = write_batch(config.output.directory / batch_id, batch)
        except OSError as e:
            ctx.error(f"Cannot write batch results: {e}")

    _report(ctx, batch_id, batch, report, saved_to)
    if batch.passed_count == 0:
        raise typer.Exit(1)


async def _execute(
    runner: BatchRunner, batch_id: str, top: int
) -> tuple[BatchResult, FeedbackReport]:
    batch = await runner.run(batch_id=batch_id)
    report = await ErrorPatternAnalyzer.from_batch(batch).build_report(top_k=top)
    return batch, report


def _apply_overrides(
    config: ForgeConfig,
    count: int | None,
    concurrency: int | None,
    output_dir: Path | None,
) -> ForgeConfig:
    """Fold command-line options into the loaded config."""
    batch = config.batch
    if count is not None:
        batch = batch.model_copy(update={"target_runs": count})
    if concurrency is not None:
        batch = batch.model_copy(update={"concurrency_limit": concurrency})
    output = config.output
    if output_dir is not None:
        output = output.model_copy(update={"directory": output_dir, "persist_sessions": True})
    return config.model_copy(update={"batch": batch, "output": output})


def _progress_printer(ctx: OutputContext):
    def on_run_complete(result: RunResult, progress: BatchProgress) -> None:
        if result.error:
            status = f"[red]failed[/red] ({escape(result.error)})"
        elif result.passed:
            status = "[green]passed[/green]"
        else:
            status = f"[yellow]degraded[/yellow] ({', '.join(result.degraded_stages)})"
        ctx.print(f"[{progress.completed}/{progress.total}] {result.run_id}: {status}")

    return on_run_complete


def _report(
    ctx: OutputContext,
    batch_id: str,
    batch: BatchResult,
    report: FeedbackReport,
    saved_to: Path | None,
) -> None:
    if ctx.json_mode:
        ctx.print_json(
            {
                "batch_id": batch_id,
                **batch.summary(),
                "patterns": [pattern.model_dump() for pattern in report.patterns],
                "output": str(saved_to) if saved_to else None,
            }
        )
        return

    if batch.runs:
        ctx.print(batch_table(batch))
    if report.patterns:
        ctx.print(patterns_table(list(report.patterns)))

    style = "green" if batch.passed_count else "red"
    ctx.print(
        f"[bold {style}]{batch.passed_count}/{len(batch.runs)} runs passed[/bold {style}] "
        f"in {batch.total_duration_ms} ms, estimated cost {batch.total_cost:.2f}"
    )
    if batch.stopped:
        ctx.print("[yellow]Batch stopped early[/yellow]")
    if saved_to:
        ctx.print(f"Saved to {saved_to}")
