"""Attempt traces for a single stage within a single run."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .budget import RetryBudget
from .repair import RepairOutcome
from .validation import ValidationResult


class AttemptRecord(BaseModel):
    """One validation of a stage artifact and the repair decision that followed.

    A generation that is patched and re-validated produces several records
    sharing the same attempt_number.
    """

    model_config = ConfigDict(frozen=True)

    attempt_number: int = Field(ge=1, description="Generation attempt (1-indexed)")
    validation: ValidationResult
    repair: RepairOutcome | None = None
    timestamp: datetime = Field(default_factory=datetime.now)
    terminal: bool = Field(default=False, description="Last record before the stage gave up")
    unresolved: bool = Field(default=False, description="Stage ended with issues remaining")


class StageTrace(BaseModel):
    """Ordered attempt history of one stage in one run.

    Attributes:
        stage: Stage name.
        attempts: Attempt records in the order they happened.
        generate_calls: Number of generate invocations (including failed ones).
        repair_calls: Number of repair invocations.
        budget: Retry budget as it stood when the stage finished.
    """

    model_config = ConfigDict(frozen=True)

    stage: str
    attempts: tuple[AttemptRecord, ...] = ()
    generate_calls: int = 0
    repair_calls: int = 0
    budget: RetryBudget | None = None

    @property
    def passed(self) -> bool:
        """True if the last validation of the stage passed."""
        return bool(self.attempts) and self.attempts[-1].validation.passed

    @property
    def first_try_clean(self) -> bool:
        """True if the very first validation passed with nothing else needed."""
        return len(self.attempts) == 1 and self.attempts[0].validation.passed

    @property
    def degraded(self) -> bool:
        return not self.passed
