"""Retry budget value type."""

from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..errors import BudgetExhaustedError


class RetryBudget(BaseModel):
    """Regenerations used vs. allowed for one stage within one run.

    Immutable: consume() returns a new budget. Only a full regeneration
    consumes a unit; local patches never do.

    Attributes:
        used: Regenerations already spent.
        max: Regenerations allowed. A stage makes at most max + 1 generate calls.
    """

    model_config = ConfigDict(frozen=True)

    used: int = Field(default=0, ge=0)
    max: int = Field(ge=0)

    @model_validator(mode="after")
    def validate_used_within_max(self) -> Self:
        """Enforce used <= max."""
        if self.used > self.max:
            raise ValueError(f"Retry budget overdrawn: used={self.used} > max={self.max}")
        return self

    @property
    def exhausted(self) -> bool:
        return self.used >= self.max

    @property
    def remaining(self) -> int:
        return self.max - self.used

    def consume(self) -> "RetryBudget":
        """Spend one unit.

        Raises:
            BudgetExhaustedError: If no units remain
        """
        if self.exhausted:
            raise BudgetExhaustedError(f"Retry budget exhausted ({self.used}/{self.max})")
        return RetryBudget(used=self.used + 1, max=self.max)
