"""Pydantic data models for pipeforge.

This package defines the value objects passed through the engine:
- Validation results and issues (ValidationIssue, ValidationResult)
- Tagged repair outcomes (Patched, RegenerationRequired, Unresolved)
- Retry budgets and per-stage attempt traces (RetryBudget, StageTrace)
- Session events and error records (SessionEvent, ErrorRecord, ErrorPattern)
- Run and batch results (RunResult, BatchResult)

All models except ArtifactSet are frozen Pydantic BaseModel subclasses.

Example:
    >>> from pipeforge.models import ValidationIssue, ValidationResult
    >>> result = ValidationResult.failed(ValidationIssue(code="E1", message="empty"))
    >>> result.passed
    False
"""

from .artifacts import ArtifactSet
from .budget import RetryBudget
from .feedback import FeedbackReport, Suggestion
from .records import (
    ErrorKind,
    ErrorPattern,
    ErrorRecord,
    EventKind,
    SessionEvent,
    SessionRecord,
)
from .repair import Patched, RegenerationRequired, RepairOutcome, Unresolved
from .results import BatchProgress, BatchResult, RunResult, RunState
from .trace import AttemptRecord, StageTrace
from .validation import Severity, ValidationIssue, ValidationResult

__all__ = [
    "ArtifactSet",
    "AttemptRecord",
    "BatchProgress",
    "BatchResult",
    "ErrorKind",
    "ErrorPattern",
    "ErrorRecord",
    "EventKind",
    "FeedbackReport",
    "Patched",
    "RegenerationRequired",
    "RepairOutcome",
    "RetryBudget",
    "RunResult",
    "RunState",
    "SessionEvent",
    "SessionRecord",
    "Severity",
    "StageTrace",
    "Suggestion",
    "Unresolved",
    "ValidationIssue",
    "ValidationResult",
]
