"""Pipeline orchestrator: run the fixed stage list once and compute a verdict."""

import logging
import time

from ..config import ForgeConfig, VerdictMode
from ..constants import FINAL_STAGE
from ..errors import RunAbortedError, StageTimeoutError
from ..models import (
    ArtifactSet,
    AttemptRecord,
    ErrorKind,
    EventKind,
    RetryBudget,
    RunResult,
    RunState,
    StageTrace,
    ValidationResult,
)
from .identifiers import generate_run_id
from .invoke import call_collaborator
from .session_log import EventSink, SessionLog
from .stage import PipelineDefinition, Stage
from .stage_runner import StageRunner

logger = logging.getLogger(__name__)

PIPELINE_STAGE = "pipeline"


class PipelineOrchestrator:
    """Sequences stages for one run, threading artifacts forward.

    Stages run strictly in order: stage N is never generated before stage
    N-1 has a terminal artifact. Every produced artifact is kept by stage
    name so later stages can consume any earlier one. After the last stage
    the final checks run once over the complete artifact set as a
    pseudo-stage with no retry budget.

    Per-run state machine: IDLE -> RUNNING(i) -> RUNNING(i+1) | FAILED | COMPLETED.
    Validation failures alone never fail a run; only fatal errors do.
    """

    def __init__(
        self,
        pipeline: PipelineDefinition,
        config: ForgeConfig | None = None,
        event_sink: EventSink | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            pipeline: Stage list and final checks
            config: Engine configuration (defaults if omitted)
            event_sink: Callback attached to every session this orchestrator opens
        """
        self.pipeline = pipeline
        self.config = config or ForgeConfig()
        self.event_sink = event_sink
        self.stage_runner = StageRunner(
            call_timeout=self.config.timeouts.call_timeout,
            max_repairs=self.config.retries.max_repairs,
        )

    @property
    def stages(self) -> tuple[Stage, ...]:
        return self.pipeline.stages

    def budget_for(self, stage: Stage) -> RetryBudget:
        """Fresh retry budget for a stage."""
        return RetryBudget(max=self.config.retries.for_stage(stage.name, stage.max_retries))

    async def execute_run(
        self,
        run_id: str | None = None,
        session: SessionLog | None = None,
    ) -> RunResult:
        """Execute the pipeline once.

        Args:
            run_id: Run identifier (generated if omitted)
            session: Session log owned by this run (created if omitted)

        Returns:
            RunResult in COMPLETED state, possibly with passed=False

        Raises:
            RunAbortedError: On a fatal error; the error is recorded and the
                session ended before raising
        """
        run_id = run_id or generate_run_id()
        if session is None:
            session = SessionLog(run_id=run_id, sink=self.event_sink)
        if not session.started:
            session.start_session(run_id)

        started = time.perf_counter()
        artifacts = ArtifactSet()
        traces: list[StageTrace] = []
        current = PIPELINE_STAGE
        logger.debug(f"Run {run_id}: starting {len(self.stages)} stages")
        _transition(session, RunState.IDLE, f"{RunState.RUNNING.value}(0)")

        try:
            for index, stage in enumerate(self.stages):
                current = stage.name
                if index > 0:
                    _transition(
                        session, f"{RunState.RUNNING.value}({index - 1})",
                        f"{RunState.RUNNING.value}({index})",
                    )
                outcome = await self.stage_runner.run(
                    stage, artifacts, self.budget_for(stage), session
                )
                artifacts = artifacts.with_artifact(stage.name, outcome.artifact)
                traces.append(outcome.trace)

            current = FINAL_STAGE
            final_trace, check_results = await self._run_final_checks(artifacts, session)
        except Exception as e:
            kind = ErrorKind.TIMEOUT if isinstance(e, StageTimeoutError) else ErrorKind.FATAL
            logger.error(f"Run {run_id}: fatal error at {current}: {e}")
            session.record_error(current, kind, str(e), {"exception": type(e).__name__})
            _transition(session, RunState.RUNNING, RunState.FAILED)
            session.end_session(passed=False)
            raise RunAbortedError(
                run_id,
                current,
                e,
                stage_traces=tuple(traces),
                estimated_cost=self._estimate_cost(traces),
            ) from e

        all_traces = (*traces, final_trace)
        passed = self._verdict(traces, final_trace)
        first_try_clean = all(trace.first_try_clean for trace in all_traces)
        duration_ms = int((time.perf_counter() - started) * 1000)

        session.record(
            PIPELINE_STAGE,
            EventKind.DECISION,
            f"Verdict: {'passed' if passed else 'failed'}",
            {
                "passed": passed,
                "first_try_clean": first_try_clean,
                "degraded_stages": [t.stage for t in all_traces if t.degraded],
            },
        )
        _transition(session, RunState.RUNNING, RunState.COMPLETED)
        session.end_session(passed=passed)

        return RunResult(
            run_id=run_id,
            final_artifact=artifacts.latest,
            artifacts=artifacts.as_dict(),
            passed=passed,
            first_try_clean=first_try_clean,
            stage_traces=all_traces,
            final_checks=check_results,
            duration_ms=duration_ms,
            estimated_cost=self._estimate_cost(traces),
            state=RunState.COMPLETED,
            session_id=session.session_id,
        )

    async def _run_final_checks(
        self, artifacts: ArtifactSet, session: SessionLog
    ) -> tuple[StageTrace, dict[str, ValidationResult]]:
        """Run every final check once; checks only, no generation or retries."""
        results: dict[str, ValidationResult] = {}
        for final_check in self.pipeline.final_checks:
            result = await call_collaborator(
                final_check.check,
                artifacts,
                stage=final_check.name,
                operation="check",
                timeout=self.config.timeouts.call_timeout,
            )
            if not isinstance(result, ValidationResult):
                raise TypeError(
                    f"Final check {final_check.name} returned {type(result).__name__}, "
                    "expected ValidationResult"
                )
            results[final_check.name] = result
            session.record(
                final_check.name,
                EventKind.VALIDATION,
                "Final check passed" if result.passed else "Final check failed",
                {
                    "passed": result.passed,
                    "issues": [f"[{i.code}] {i.message}" for i in result.issues],
                },
            )
            if not result.passed:
                for issue in result.errors or result.issues:
                    session.record_error(final_check.name, issue.code, issue.message)

        merged = ValidationResult.merge(results.values())
        trace = StageTrace(
            stage=FINAL_STAGE,
            attempts=(
                AttemptRecord(
                    attempt_number=1,
                    validation=merged,
                    terminal=True,
                    unresolved=not merged.passed,
                ),
            ),
        )
        return trace, results

    def _verdict(self, traces: list[StageTrace], final_trace: StageTrace) -> bool:
        if self.config.verdict.mode == VerdictMode.TERMINAL:
            stages_ok = traces[-1].passed
        else:
            stages_ok = all(trace.passed for trace in traces)
        return stages_ok and final_trace.passed

    def _estimate_cost(self, traces: list[StageTrace]) -> float:
        cost_per_call = {stage.name: stage.cost_per_call for stage in self.stages}
        return sum(trace.generate_calls * cost_per_call.get(trace.stage, 0.0) for trace in traces)


def _transition(session: SessionLog, source: object, target: object) -> None:
    source_name = source.value if isinstance(source, RunState) else str(source)
    target_name = target.value if isinstance(target, RunState) else str(target)
    session.record(
        PIPELINE_STAGE,
        EventKind.TRANSITION,
        f"{source_name} -> {target_name}",
        {"from": source_name, "to": target_name},
    )
