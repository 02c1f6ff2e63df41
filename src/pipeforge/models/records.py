"""Session event and error records."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EventKind(str, Enum):
    """Kinds of session log entries."""

    SESSION = "session"
    TRANSITION = "transition"
    INPUT = "input"
    OUTPUT = "output"
    VALIDATION = "validation"
    REPAIR = "repair"
    DECISION = "decision"
    ERROR = "error"


class ErrorKind(str, Enum):
    """Error kinds raised by the engine itself.

    Validation failures use the failing issue's code as their kind instead,
    so patterns group by what actually went wrong.
    """

    FATAL = "Fatal"
    TIMEOUT = "Timeout"
    TRANSIENT = "TransientGeneration"
    REPAIR_UNRESOLVED = "RepairUnresolved"
    BUDGET_EXHAUSTED = "BudgetExhausted"
    VALIDATION_FAILED = "ValidationFailed"


class SessionEvent(BaseModel):
    """Single entry in a session log."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=datetime.now)
    stage: str
    kind: EventKind
    message: str
    payload: dict[str, Any] = Field(default_factory=dict)


class ErrorRecord(BaseModel):
    """Immutable record of a validation failure, unresolved repair or exception."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=datetime.now)
    run_id: str
    stage: str
    error_kind: str
    message: str
    context: dict[str, Any] = Field(default_factory=dict)


class SessionRecord(BaseModel):
    """Read-only snapshot of one run's session log."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    run_id: str
    started_at: datetime
    ended_at: datetime | None = None
    passed: bool | None = None
    events: tuple[SessionEvent, ...] = ()
    errors: tuple[ErrorRecord, ...] = ()
    dropped: int = Field(default=0, description="Log writes that failed and were skipped")

    @property
    def ended(self) -> bool:
        return self.ended_at is not None


class ErrorPattern(BaseModel):
    """Errors sharing a (stage, error_kind) key, aggregated across runs."""

    model_config = ConfigDict(frozen=True)

    stage: str
    error_kind: str
    count: int = Field(ge=1)
    examples: tuple[str, ...] = Field(default=(), description="First-seen messages, at most 3")

    @property
    def key(self) -> tuple[str, str]:
        return (self.stage, self.error_kind)
