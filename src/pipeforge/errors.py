"""Pipeline errors."""


class PipelineError(Exception):
    """Base exception for pipeline orchestration errors."""


class TransientGenerationError(PipelineError):
    """Raised by a stage generator for failures worth retrying.

    Consumes one retry-budget unit, like a regeneration.
    """


class BudgetExhaustedError(PipelineError):
    """Raised when consuming a retry budget that has no units left."""


class StageFailedError(PipelineError):
    """Raised when a stage cannot produce any artifact at all."""

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(f"Stage '{stage}': {message}")
        self.stage = stage


class StageTimeoutError(PipelineError):
    """Raised when a collaborator call exceeds the per-call timeout."""

    def __init__(self, stage: str, operation: str, timeout: float | None) -> None:
        super().__init__(f"Stage '{stage}': {operation} timed out after {timeout} seconds")
        self.stage = stage
        self.operation = operation
        self.timeout = timeout


class RunAbortedError(PipelineError):
    """Raised by the orchestrator when a fatal error ends a run."""

    def __init__(
        self,
        run_id: str,
        stage: str | None,
        cause: BaseException,
        stage_traces: tuple = (),
        estimated_cost: float = 0.0,
    ) -> None:
        where = f" at stage '{stage}'" if stage else ""
        super().__init__(f"Run {run_id} aborted{where}: {cause}")
        self.run_id = run_id
        self.stage = stage
        self.cause = cause
        self.stage_traces = stage_traces
        self.estimated_cost = estimated_cost


class SessionStateError(PipelineError):
    """Raised when a session is used in the wrong lifecycle state."""


class InvalidPipelineError(PipelineError):
    """Raised when a pipeline definition is malformed."""


class PipelineLoadError(PipelineError):
    """Raised when a pipeline factory cannot be imported or built."""
