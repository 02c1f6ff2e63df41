"""Run and batch result models."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .records import SessionRecord
from .trace import StageTrace
from .validation import ValidationResult


class RunState(str, Enum):
    """Lifecycle of a single pipeline run.

    IDLE -> RUNNING -> COMPLETED | FAILED. Validation failures never move a
    run to FAILED; only a fatal error does.
    """

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class RunResult(BaseModel):
    """Outcome of one full pipeline execution.

    Attributes:
        run_id: Identifier of the run.
        final_artifact: Artifact of the last stage (None if the run failed early).
        artifacts: Every stage artifact keyed by stage name.
        passed: Overall verdict (see VerdictMode).
        first_try_clean: Every stage and the final checks passed on the first validation.
        stage_traces: Per-stage attempt traces, ending with the final pseudo-stage.
        final_checks: Result of each terminal check keyed by check name.
        duration_ms: Wall time of the run.
        estimated_cost: Sum of generate calls times each stage's cost per call.
        state: COMPLETED, or FAILED on a fatal error.
        error: Fatal error message for FAILED runs.
        session_id: Session log that recorded this run.
    """

    model_config = ConfigDict(frozen=True)

    run_id: str
    final_artifact: Any = None
    artifacts: dict[str, Any] = Field(default_factory=dict)
    passed: bool
    first_try_clean: bool = False
    stage_traces: tuple[StageTrace, ...] = ()
    final_checks: dict[str, ValidationResult] = Field(default_factory=dict)
    duration_ms: int = 0
    estimated_cost: float = 0.0
    state: RunState = RunState.COMPLETED
    error: str | None = None
    session_id: str | None = None

    @classmethod
    def failed(
        cls,
        run_id: str,
        error: str,
        duration_ms: int = 0,
        stage_traces: tuple[StageTrace, ...] = (),
        estimated_cost: float = 0.0,
        session_id: str | None = None,
    ) -> "RunResult":
        """Build the result of a run aborted by a fatal error."""
        return cls(
            run_id=run_id,
            passed=False,
            stage_traces=stage_traces,
            duration_ms=duration_ms,
            estimated_cost=estimated_cost,
            state=RunState.FAILED,
            error=error,
            session_id=session_id,
        )

    @property
    def degraded_stages(self) -> list[str]:
        return [t.stage for t in self.stage_traces if t.degraded]

    def summary(self) -> dict[str, Any]:
        """JSON-friendly summary without the artifacts themselves."""
        return {
            "run_id": self.run_id,
            "passed": self.passed,
            "first_try_clean": self.first_try_clean,
            "state": self.state.value,
            "error": self.error,
            "duration_ms": self.duration_ms,
            "estimated_cost": self.estimated_cost,
            "degraded_stages": self.degraded_stages,
            "stages": {
                t.stage: {
                    "attempts": len(t.attempts),
                    "generate_calls": t.generate_calls,
                    "repair_calls": t.repair_calls,
                    "passed": t.passed,
                }
                for t in self.stage_traces
            },
        }


class BatchProgress(BaseModel):
    """Snapshot of batch progress passed to progress callbacks."""

    model_config = ConfigDict(frozen=True)

    total: int
    completed: int = 0
    passed: int = 0
    failed: int = 0
    in_progress: int = 0


class BatchResult(BaseModel):
    """Aggregate of a batch of independent runs.

    Counters are derived from the collected runs by the batch aggregator,
    never updated from concurrent run contexts.
    """

    model_config = ConfigDict(frozen=True)

    runs: tuple[RunResult, ...] = ()
    passed_count: int = 0
    failed_count: int = 0
    total_duration_ms: int = 0
    total_cost: float = 0.0
    sessions: tuple[SessionRecord, ...] = ()
    stopped: bool = Field(default=False, description="True if stop() ended the batch early")

    @property
    def pass_rate(self) -> float:
        return self.passed_count / len(self.runs) if self.runs else 0.0

    def summary(self) -> dict[str, Any]:
        return {
            "total": len(self.runs),
            "passed": self.passed_count,
            "failed": self.failed_count,
            "pass_rate": self.pass_rate,
            "total_duration_ms": self.total_duration_ms,
            "total_cost": self.total_cost,
            "stopped": self.stopped,
            "runs": [run.summary() for run in self.runs],
        }
