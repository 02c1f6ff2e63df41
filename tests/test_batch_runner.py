"""Tests for the batch runner."""

import asyncio
import threading

import pytest
from helpers import PASS, ScriptedStage, failing

from pipeforge.config import BatchConfig, ForgeConfig
from pipeforge.core import (
    BatchRunner,
    FinalCheck,
    PipelineDefinition,
    PipelineOrchestrator,
    Stage,
)
from pipeforge.models import (
    ArtifactSet,
    BatchProgress,
    ErrorKind,
    Patched,
    RunResult,
    RunState,
)


def _orchestrator(*stages: Stage) -> PipelineOrchestrator:
    return _orchestrator_for(PipelineDefinition.build(list(stages)))


def _orchestrator_for(pipeline: PipelineDefinition) -> PipelineOrchestrator:
    config = ForgeConfig(batch=BatchConfig(inter_run_delay=0), timeouts={"call_timeout": None})
    return PipelineOrchestrator(pipeline, config=config)


def _crashing_pipeline(operation: str, calls: list[str]) -> PipelineDefinition:
    """Single-stage pipeline whose validate, repair or final check crashes on its first call."""

    def crash_first(result: object) -> object:
        calls.append(operation)
        if len(calls) == 1:
            raise RuntimeError(f"{operation} bug")
        return result

    def generate(inputs: ArtifactSet, feedback: str | None) -> str:
        return "level"

    if operation == "validate":
        stage = Stage(name="level", generate=generate, validate=lambda a: crash_first(PASS))
        return PipelineDefinition.build([stage])
    if operation == "repair":
        stage = Stage(
            name="level",
            generate=generate,
            validate=lambda a: PASS if a == "level-fixed" else failing(),
            repair=lambda a, validation, inputs: crash_first(Patched(artifact="level-fixed")),
        )
        return PipelineDefinition.build([stage])
    stage = Stage(name="level", generate=generate, validate=lambda a: PASS)
    check = FinalCheck(name="playability", check=lambda artifacts: crash_first(PASS))
    return PipelineDefinition.build([stage], [check])


@pytest.mark.asyncio
@pytest.mark.unit
class TestBatchRunner:
    """Tests for BatchRunner.run."""

    async def test_runs_n_times(self) -> None:
        """run(n) returns n results in run order."""
        scripted = ScriptedStage("concept")
        result = await BatchRunner(_orchestrator(scripted.stage())).run(4, batch_id="b")

        assert [run.run_id for run in result.runs] == ["b-r001", "b-r002", "b-r003", "b-r004"]
        assert result.passed_count == 4
        assert result.failed_count == 0
        assert len(result.sessions) == 4
        assert all(session.ended for session in result.sessions)
        assert not result.stopped

    async def test_defaults_to_target_runs(self) -> None:
        """Without n the configured target_runs is used."""
        orchestrator = _orchestrator(ScriptedStage("concept").stage())
        config = BatchConfig(target_runs=3, inter_run_delay=0)
        result = await BatchRunner(orchestrator, config=config).run()
        assert len(result.runs) == 3

    async def test_zero_runs(self) -> None:
        """An empty batch is valid."""
        result = await BatchRunner(_orchestrator(ScriptedStage("a").stage())).run(0)
        assert result.runs == ()
        assert result.pass_rate == 0.0

    async def test_stop_from_callback_after_two_runs(self) -> None:
        """run(5) with stop() after the second run yields 2 runs."""
        runner: BatchRunner

        def on_complete(result: RunResult, progress: BatchProgress) -> None:
            if progress.completed == 2:
                runner.stop()

        runner = BatchRunner(
            _orchestrator(ScriptedStage("concept").stage()), on_run_complete=on_complete
        )
        result = await runner.run(5)

        assert len(result.runs) == 2
        assert result.stopped

    async def test_fatal_runs_become_failed_results(self) -> None:
        """A crashing run is reported, and the batch carries on."""
        crashing = ScriptedStage(
            "concept", generate_errors=[RuntimeError("boom"), None, None]
        )
        result = await BatchRunner(_orchestrator(crashing.stage())).run(3)

        assert len(result.runs) == 3
        assert result.failed_count == 1
        assert result.passed_count == 2
        failed = result.runs[0]
        assert failed.state == RunState.FAILED
        assert failed.error == "boom"
        assert result.sessions[0].errors[-1].error_kind == ErrorKind.FATAL.value

    @pytest.mark.parametrize("operation", ["validate", "repair", "check"])
    async def test_crashing_collaborator_fails_only_its_run(self, operation: str) -> None:
        """An exception from validate, repair or a final check fails that run alone."""
        calls: list[str] = []
        result = await BatchRunner(
            _orchestrator_for(_crashing_pipeline(operation, calls))
        ).run(3)

        assert len(result.runs) == 3
        assert result.failed_count == 1
        assert result.passed_count == 2
        failed = result.runs[0]
        assert failed.state == RunState.FAILED
        assert failed.error == f"{operation} bug"
        error = result.sessions[0].errors[-1]
        assert error.error_kind == ErrorKind.FATAL.value
        assert error.stage == ("final" if operation == "check" else "level")
        assert calls == [operation] * 3

    async def test_blocking_sync_stages_run_concurrently(self) -> None:
        """Plain blocking collaborators do not serialize concurrent runs."""
        barrier = threading.Barrier(3, timeout=5)

        def generate(inputs: ArtifactSet, feedback: str | None) -> str:
            barrier.wait()
            return "artifact"

        orchestrator = _orchestrator(
            Stage(name="blocking", generate=generate, validate=lambda a: PASS)
        )
        config = BatchConfig(concurrency_limit=3, inter_run_delay=0)
        result = await BatchRunner(orchestrator, config=config).run(3)

        assert result.passed_count == 3

    async def test_degraded_runs_count_as_failed(self) -> None:
        """Runs that complete without passing are failed in the counts, not errors."""
        scripted = ScriptedStage("concept", validations=[failing()])
        orchestrator = _orchestrator(scripted.stage(max_retries=0))
        result = await BatchRunner(orchestrator).run(2)

        assert result.failed_count == 2
        assert all(run.state == RunState.COMPLETED for run in result.runs)
        assert all(run.error is None for run in result.runs)

    async def test_callback_errors_are_ignored(self) -> None:
        """A failing progress callback does not break the batch."""

        def broken(result: RunResult, progress: BatchProgress) -> None:
            raise ValueError("callback bug")

        runner = BatchRunner(_orchestrator(ScriptedStage("a").stage()), on_run_complete=broken)
        result = await runner.run(2)
        assert len(result.runs) == 2

    async def test_progress_counts(self) -> None:
        """Progress snapshots count completed, passed and failed runs."""
        scripted = ScriptedStage("concept", validations=[PASS, failing()])
        seen: list[BatchProgress] = []
        runner = BatchRunner(
            _orchestrator(scripted.stage(max_retries=0)),
            on_run_complete=lambda result, progress: seen.append(progress),
        )
        await runner.run(2)

        assert [p.completed for p in seen] == [1, 2]
        assert seen[-1].passed == 1
        assert seen[-1].failed == 1
        assert seen[-1].total == 2

    async def test_concurrent_runs_overlap(self) -> None:
        """With concurrency_limit=3, runs execute in parallel."""
        active = 0
        peak = 0

        async def generate(inputs: ArtifactSet, feedback: str | None) -> str:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return "artifact"

        orchestrator = _orchestrator(Stage(name="slow", generate=generate, validate=lambda a: PASS))
        config = BatchConfig(concurrency_limit=3, inter_run_delay=0)
        result = await BatchRunner(orchestrator, config=config).run(6, batch_id="b")

        assert peak == 3
        assert [run.run_id for run in result.runs] == [f"b-r{i:03d}" for i in range(1, 7)]
        assert result.passed_count == 6

    async def test_inter_run_delay(self) -> None:
        """The configured delay is slept between runs, not before the first."""
        delays: list[float] = []

        async def fake_sleep(seconds: float) -> None:
            delays.append(seconds)

        runner = BatchRunner(
            _orchestrator(ScriptedStage("a").stage()),
            config=BatchConfig(inter_run_delay=1.5),
            sleep=fake_sleep,
        )
        await runner.run(3)
        assert delays == [1.5, 1.5]

    async def test_total_cost(self) -> None:
        """Batch cost sums the runs' estimates."""
        orchestrator = _orchestrator(ScriptedStage("a").stage(cost_per_call=0.25))
        result = await BatchRunner(orchestrator).run(4)
        assert result.total_cost == pytest.approx(1.0)

    async def test_runner_can_be_reused_after_stop(self) -> None:
        """A new run() clears an earlier stop request."""
        runner = BatchRunner(_orchestrator(ScriptedStage("a").stage()))
        runner.stop()
        result = await runner.run(2)
        assert len(result.runs) == 2
