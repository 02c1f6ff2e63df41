"""Stage runner: drive one stage to a terminal artifact.

Each stage runs a bounded generate -> validate -> repair loop:
1. Generate an artifact (with feedback after the first attempt)
2. Validate it; stop on success
3. On failure, ask the stage to repair it:
   - Patched: re-validate the patched artifact (free)
   - RegenerationRequired: spend one budget unit and regenerate with feedback
   - Unresolved: stop and keep the best artifact
4. When the budget is exhausted, stop and keep the current artifact

Unresolved ends the stage at once: no budget unit is spent and the stage
records RepairUnresolved rather than BudgetExhausted. The terminal artifact
is the one a forced exhaustion would have kept.

The runner always returns an artifact unless generation never produced one;
a degraded stage never blocks the run. Exceptions other than transient
generation errors are fatal and propagate.
"""

import logging
from typing import Any

from ..constants import DEFAULT_MAX_REPAIRS
from ..errors import StageFailedError, TransientGenerationError
from ..models import (
    ArtifactSet,
    AttemptRecord,
    ErrorKind,
    EventKind,
    Patched,
    RegenerationRequired,
    RetryBudget,
    StageTrace,
    Unresolved,
    ValidationIssue,
    ValidationResult,
)
from .invoke import call_collaborator
from .session_log import SessionLog
from .stage import Stage

logger = logging.getLogger(__name__)

_NO_ARTIFACT = object()


class StageOutcome:
    """Terminal result of running one stage.

    Attributes:
        artifact: Final artifact, valid or best-effort (degraded).
        trace: Attempt trace including call counts and the final budget.

    Example:
        >>> outcome = await runner.run(stage, inputs, RetryBudget(max=3))
        >>> if not outcome.passed:
        ...     print(f"{outcome.trace.stage} degraded after {outcome.trace.generate_calls} calls")
    """

    def __init__(self, artifact: Any, trace: StageTrace) -> None:
        """Initialize stage outcome.

        Args:
            artifact: Final artifact.
            trace: Attempt trace of the stage.
        """
        self.artifact = artifact
        self.trace = trace

    @property
    def passed(self) -> bool:
        return self.trace.passed

    @property
    def budget(self) -> RetryBudget | None:
        return self.trace.budget


class StageRunner:
    """Runs a stage's generate/validate/repair contract under a retry budget."""

    def __init__(
        self,
        call_timeout: float | None = None,
        max_repairs: int = DEFAULT_MAX_REPAIRS,
    ) -> None:
        """Initialize the runner.

        Args:
            call_timeout: Per-call timeout in seconds for every collaborator call.
            max_repairs: Consecutive patches allowed on one generation before the
                stage falls back to regeneration.
        """
        self.call_timeout = call_timeout
        self.max_repairs = max_repairs

    async def run(
        self,
        stage: Stage,
        inputs: ArtifactSet,
        budget: RetryBudget,
        session: SessionLog | None = None,
    ) -> StageOutcome:
        """Drive a stage until it validates or its budget runs out.

        Args:
            stage: Stage to run
            inputs: Artifacts of every stage completed so far
            budget: Fresh retry budget for this stage in this run
            session: Session log to record events and errors in

        Returns:
            StageOutcome with the final artifact and its trace

        Raises:
            StageFailedError: If every generate call failed transiently
            StageTimeoutError: If a collaborator call timed out
            Exception: Anything else raised by generate/validate/repair (fatal)
        """
        log = session if session is not None else SessionLog()
        attempts: list[AttemptRecord] = []
        generate_calls = 0
        repair_calls = 0
        attempt_number = 0
        feedback: str | None = None
        best: Any = _NO_ARTIFACT

        def finish(artifact: Any) -> StageOutcome:
            trace = StageTrace(
                stage=stage.name,
                attempts=tuple(attempts),
                generate_calls=generate_calls,
                repair_calls=repair_calls,
                budget=budget,
            )
            if trace.degraded:
                logger.info(
                    f"Stage {stage.name}: proceeding with degraded artifact "
                    f"after {generate_calls} generate calls"
                )
            return StageOutcome(artifact, trace)

        while True:
            attempt_number += 1
            generate_calls += 1
            log.record(
                stage.name,
                EventKind.INPUT,
                f"Generating (attempt {attempt_number})",
                {"attempt": attempt_number, "inputs": list(inputs), "feedback": feedback},
            )
            try:
                artifact = await call_collaborator(
                    stage.generate,
                    inputs,
                    feedback,
                    stage=stage.name,
                    operation="generate",
                    timeout=self.call_timeout,
                )
            except TransientGenerationError as e:
                logger.warning(
                    f"Stage {stage.name}: transient error on attempt {attempt_number}: {e}"
                )
                log.record_error(
                    stage.name, ErrorKind.TRANSIENT, str(e), {"attempt": attempt_number}
                )
                if budget.exhausted:
                    attempts.append(
                        AttemptRecord(
                            attempt_number=attempt_number,
                            validation=_transient_failure(e),
                            terminal=True,
                            unresolved=True,
                        )
                    )
                    if best is _NO_ARTIFACT:
                        raise StageFailedError(
                            stage.name, f"no artifact after {generate_calls} generate calls: {e}"
                        ) from e
                    log.record_error(
                        stage.name,
                        ErrorKind.BUDGET_EXHAUSTED,
                        "Retry budget exhausted after transient errors",
                        {"used": budget.used, "max": budget.max},
                    )
                    return finish(best)
                attempts.append(
                    AttemptRecord(attempt_number=attempt_number, validation=_transient_failure(e))
                )
                budget = budget.consume()
                continue

            log.record(
                stage.name, EventKind.OUTPUT, "Artifact generated", {"attempt": attempt_number}
            )
            patches = 0

            while True:
                best = artifact
                validation = await call_collaborator(
                    stage.validate,
                    artifact,
                    stage=stage.name,
                    operation="validate",
                    timeout=self.call_timeout,
                )
                if not isinstance(validation, ValidationResult):
                    raise TypeError(
                        f"Stage {stage.name}: validate returned {type(validation).__name__}, "
                        "expected ValidationResult"
                    )
                _record_validation(log, stage.name, validation, attempt_number)

                if validation.passed:
                    attempts.append(
                        AttemptRecord(attempt_number=attempt_number, validation=validation)
                    )
                    return finish(artifact)

                outcome: Patched | RegenerationRequired | Unresolved | None = None
                if stage.repair is not None and patches < self.max_repairs:
                    repair_calls += 1
                    outcome = await call_collaborator(
                        stage.repair,
                        artifact,
                        validation,
                        inputs,
                        stage=stage.name,
                        operation="repair",
                        timeout=self.call_timeout,
                    )
                    if isinstance(outcome, Patched):
                        log.record(
                            stage.name,
                            EventKind.REPAIR,
                            f"Patched ({len(outcome.applied_actions)} actions)",
                            {"actions": list(outcome.applied_actions)},
                        )
                        attempts.append(
                            AttemptRecord(
                                attempt_number=attempt_number,
                                validation=validation,
                                repair=outcome,
                            )
                        )
                        artifact = outcome.artifact
                        patches += 1
                        continue
                    if isinstance(outcome, Unresolved):
                        attempts.append(
                            AttemptRecord(
                                attempt_number=attempt_number,
                                validation=validation,
                                repair=outcome,
                                terminal=True,
                                unresolved=True,
                            )
                        )
                        remaining = outcome.remaining_issues or tuple(validation.errors)
                        log.record_error(
                            stage.name,
                            ErrorKind.REPAIR_UNRESOLVED,
                            "; ".join(f"[{i.code}] {i.message}" for i in remaining)
                            or "Repair could not resolve issues",
                            {"attempt": attempt_number, "codes": [i.code for i in remaining]},
                        )
                        return finish(artifact)
                    if not isinstance(outcome, RegenerationRequired):
                        raise TypeError(
                            f"Stage {stage.name}: repair returned {type(outcome).__name__}, "
                            "expected a RepairOutcome"
                        )
                    log.record(
                        stage.name,
                        EventKind.REPAIR,
                        "Regeneration required",
                        {"feedback": outcome.feedback},
                    )
                    next_feedback = outcome.feedback
                else:
                    next_feedback = validation.format_feedback()

                if budget.exhausted:
                    attempts.append(
                        AttemptRecord(
                            attempt_number=attempt_number,
                            validation=validation,
                            repair=outcome,
                            terminal=True,
                            unresolved=True,
                        )
                    )
                    log.record_error(
                        stage.name,
                        ErrorKind.BUDGET_EXHAUSTED,
                        f"Retry budget exhausted with {len(validation.errors)} errors remaining",
                        {"used": budget.used, "max": budget.max},
                    )
                    return finish(artifact)

                attempts.append(
                    AttemptRecord(
                        attempt_number=attempt_number, validation=validation, repair=outcome
                    )
                )
                budget = budget.consume()
                feedback = next_feedback
                log.record(
                    stage.name,
                    EventKind.DECISION,
                    f"Regenerating ({budget.used}/{budget.max})",
                    {"used": budget.used, "max": budget.max},
                )
                logger.debug(f"Stage {stage.name}: regenerating ({budget.used}/{budget.max})")
                break


def _record_validation(
    log: SessionLog, stage: str, validation: ValidationResult, attempt_number: int
) -> None:
    """Log a validation event and one error record per failing issue."""
    log.record(
        stage,
        EventKind.VALIDATION,
        "Validation passed" if validation.passed else "Validation failed",
        {
            "attempt": attempt_number,
            "passed": validation.passed,
            "issues": [f"[{i.code}] {i.message}" for i in validation.issues],
        },
    )
    if validation.passed:
        return
    errors = validation.errors
    if not errors:
        log.record_error(
            stage, ErrorKind.VALIDATION_FAILED, "Validation failed", {"attempt": attempt_number}
        )
        return
    for issue in errors:
        log.record_error(stage, issue.code, issue.message, {"attempt": attempt_number})


def _transient_failure(error: Exception) -> ValidationResult:
    return ValidationResult.failed(
        ValidationIssue(code=ErrorKind.TRANSIENT.value, message=str(error))
    )
