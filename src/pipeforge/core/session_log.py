"""Append-only session log for a single pipeline run.

The log is a pure observer: the engine writes to it after each decision
and never branches on what it contains. Write failures (including failures
of an attached event sink) are swallowed and counted in ``dropped`` so that
logging can never abort a run.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from enum import Enum
from typing import Any

from ..errors import SessionStateError
from ..models import ErrorKind, ErrorRecord, EventKind, SessionEvent, SessionRecord
from .identifiers import generate_session_id

logger = logging.getLogger(__name__)

EventSink = Callable[[SessionEvent], None]

SESSION_STAGE = "session"


class SessionLog:
    """Session-scoped record of stage transitions, decisions and errors.

    Each run owns exactly one SessionLog; nothing else writes to it while
    the run is executing. Readers such as the error pattern analyzer only
    consume sessions that have ended.

    Example:
        >>> log = SessionLog(run_id="r1")
        >>> session_id = log.start_session()
        >>> log.record("concept", EventKind.DECISION, "Regenerating")
        >>> log.end_session(passed=True)
        >>> log.snapshot().passed
        True
    """

    def __init__(self, run_id: str = "", sink: EventSink | None = None) -> None:
        """Initialize an unstarted session log.

        Args:
            run_id: Run this session belongs to (stamped on every ErrorRecord).
            sink: Optional callback receiving every event as it is recorded.
        """
        self.run_id = run_id
        self.dropped = 0
        self._sink = sink
        self._session_id: str | None = None
        self._started_at: datetime | None = None
        self._ended_at: datetime | None = None
        self._passed: bool | None = None
        self._events: list[SessionEvent] = []
        self._errors: list[ErrorRecord] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def started(self) -> bool:
        return self._session_id is not None

    @property
    def ended(self) -> bool:
        return self._ended_at is not None

    @property
    def active(self) -> bool:
        return self.started and not self.ended

    @property
    def passed(self) -> bool | None:
        return self._passed

    def start_session(self, run_id: str | None = None) -> str:
        """Open the session and return its ID.

        Raises:
            SessionStateError: If the session was already started
        """
        if self.started:
            raise SessionStateError(f"Session {self._session_id} already started")
        if run_id is not None:
            self.run_id = run_id
        self._session_id = generate_session_id()
        self._started_at = datetime.now()
        self.record(
            SESSION_STAGE, EventKind.SESSION, f"Session started: {self.run_id or 'unnamed'}"
        )
        return self._session_id

    def end_session(self, passed: bool) -> None:
        """Close the session with the run's verdict.

        Raises:
            SessionStateError: If the session is not active
        """
        if not self.active:
            raise SessionStateError("Cannot end a session that is not active")
        self.record(
            SESSION_STAGE, EventKind.SESSION, f"Session ended: {'SUCCESS' if passed else 'FAILED'}"
        )
        self._passed = passed
        self._ended_at = datetime.now()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def record(
        self,
        stage: str,
        kind: EventKind,
        message: str,
        payload: dict[str, Any] | None = None,
    ) -> None:
        """Append an event. Never raises."""
        try:
            if not self.active:
                raise SessionStateError("Session is not active")
            event = SessionEvent(stage=stage, kind=kind, message=message, payload=payload or {})
        except Exception as e:
            self.dropped += 1
            logger.debug(f"Dropped session event for {stage}: {e}")
            return
        self._events.append(event)
        self._emit(event)

    def record_error(
        self,
        stage: str,
        error_kind: ErrorKind | str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> ErrorRecord | None:
        """Append an ErrorRecord (and a matching error event). Never raises.

        Returns:
            The stored record, or None if it could not be recorded
        """
        kind = error_kind.value if isinstance(error_kind, Enum) else str(error_kind)
        try:
            if not self.active:
                raise SessionStateError("Session is not active")
            error = ErrorRecord(
                run_id=self.run_id,
                stage=stage,
                error_kind=kind,
                message=message,
                context=context or {},
            )
        except Exception as e:
            self.dropped += 1
            logger.debug(f"Dropped error record for {stage}: {e}")
            return None
        self._errors.append(error)
        self.record(stage, EventKind.ERROR, message, {"error_kind": kind, **error.context})
        return error

    def _emit(self, event: SessionEvent) -> None:
        if self._sink is None:
            return
        try:
            self._sink(event)
        except Exception:
            self.dropped += 1
            logger.debug("Session event sink failed", exc_info=True)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def events(self) -> tuple[SessionEvent, ...]:
        return tuple(self._events)

    @property
    def errors(self) -> tuple[ErrorRecord, ...]:
        return tuple(self._errors)

    def get_errors(self) -> list[ErrorRecord]:
        """Return a copy of the error records collected so far."""
        return list(self._errors)

    def events_for(self, stage: str) -> list[SessionEvent]:
        return [event for event in self._events if event.stage == stage]

    def snapshot(self) -> SessionRecord:
        """Freeze the session into a read-only SessionRecord.

        Raises:
            SessionStateError: If the session was never started
        """
        if self._session_id is None or self._started_at is None:
            raise SessionStateError("Session was never started")
        return SessionRecord(
            session_id=self._session_id,
            run_id=self.run_id,
            started_at=self._started_at,
            ended_at=self._ended_at,
            passed=self._passed,
            events=tuple(self._events),
            errors=tuple(self._errors),
            dropped=self.dropped,
        )

    def clear(self) -> None:
        """Discard collected events and errors of an ended session.

        Raises:
            SessionStateError: If the session is still being written
        """
        if self.active:
            raise SessionStateError("Cannot clear a session that is still active")
        self._events.clear()
        self._errors.clear()
