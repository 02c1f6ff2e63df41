"""Feedback report models built from error patterns."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .records import ErrorPattern


class Suggestion(BaseModel):
    """Improvement proposed by an external suggestion provider."""

    target_stage: str
    current_issue: str
    suggested_change: str
    priority: Literal["high", "medium", "low"] = "medium"


class FeedbackReport(BaseModel):
    """Systemic failure summary of a batch.

    Attributes:
        total_runs: Runs whose sessions were analyzed.
        success_count: Runs that passed.
        failure_count: Runs that failed or degraded.
        patterns: Top-K error patterns, most frequent first.
        suggestions: Output of the suggestion provider, if any.
    """

    model_config = ConfigDict(frozen=True)

    total_runs: int = 0
    success_count: int = 0
    failure_count: int = 0
    patterns: tuple[ErrorPattern, ...] = ()
    suggestions: tuple[Suggestion, ...] = Field(default=())

    @property
    def success_rate(self) -> float:
        return self.success_count / self.total_runs if self.total_runs else 0.0
