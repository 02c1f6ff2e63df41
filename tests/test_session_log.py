"""Tests for the per-run session log."""

import re

import pytest

from pipeforge.core import SessionLog
from pipeforge.errors import SessionStateError
from pipeforge.models import ErrorKind, EventKind, SessionEvent


@pytest.mark.unit
class TestSessionLifecycle:
    """Tests for start/end of a session."""

    def test_start_returns_session_id(self) -> None:
        """Session IDs use the gen_YYYYMMDD_HHMMSS_xxxx form."""
        log = SessionLog(run_id="r1")
        session_id = log.start_session()
        assert re.fullmatch(r"gen_\d{8}_\d{6}_[0-9a-f]{4}", session_id)
        assert log.active

    def test_start_twice_raises(self) -> None:
        """A session is started exactly once."""
        log = SessionLog()
        log.start_session()
        with pytest.raises(SessionStateError):
            log.start_session()

    def test_end_requires_active_session(self) -> None:
        """Ending an unstarted or already ended session is an error."""
        log = SessionLog()
        with pytest.raises(SessionStateError):
            log.end_session(passed=True)
        log.start_session()
        log.end_session(passed=True)
        with pytest.raises(SessionStateError):
            log.end_session(passed=True)

    def test_end_records_verdict(self, session: SessionLog) -> None:
        """The verdict is kept on the session."""
        session.end_session(passed=False)
        assert session.ended
        assert session.passed is False
        assert session.events[-1].message == "Session ended: FAILED"

    def test_run_id_from_start(self) -> None:
        """start_session can name the run."""
        log = SessionLog()
        log.start_session("batch-r001")
        assert log.run_id == "batch-r001"


@pytest.mark.unit
class TestSessionWrites:
    """Tests for recording events and errors."""

    def test_record_appends_event(self, session: SessionLog) -> None:
        """Events are kept in order with their payload."""
        session.record("concept", EventKind.DECISION, "Regenerating", {"used": 1})
        event = session.events_for("concept")[0]
        assert event.kind == EventKind.DECISION
        assert event.payload == {"used": 1}

    def test_record_error_stamps_run_id(self, session: SessionLog) -> None:
        """Error records carry the run ID and kind value."""
        record = session.record_error("concept", ErrorKind.REPAIR_UNRESOLVED, "stuck")
        assert record is not None
        assert record.run_id == "run-1"
        assert record.error_kind == "RepairUnresolved"
        assert session.get_errors() == [record]
        assert session.events[-1].kind == EventKind.ERROR

    def test_record_error_accepts_plain_codes(self, session: SessionLog) -> None:
        """Validator issue codes are used as error kinds unchanged."""
        record = session.record_error("concept", "E_TITLE", "missing title")
        assert record is not None
        assert record.error_kind == "E_TITLE"

    def test_writes_after_end_are_dropped(self, session: SessionLog) -> None:
        """Writing to an ended session never raises."""
        session.end_session(passed=True)
        session.record("concept", EventKind.DECISION, "late")
        assert session.record_error("concept", "E1", "late") is None
        assert session.dropped == 2

    def test_writes_before_start_are_dropped(self) -> None:
        """Writing to an unstarted session never raises."""
        log = SessionLog()
        log.record("concept", EventKind.DECISION, "early")
        assert log.dropped == 1
        assert log.events == ()

    def test_invalid_event_is_dropped(self, session: SessionLog) -> None:
        """Malformed events are counted, not raised."""
        session.record("concept", "not-a-kind", "bad")  # type: ignore[arg-type]
        assert session.dropped == 1

    def test_sink_receives_events(self) -> None:
        """An attached sink sees every recorded event."""
        seen: list[SessionEvent] = []
        log = SessionLog(sink=seen.append)
        log.start_session()
        log.record("concept", EventKind.OUTPUT, "generated")
        assert [e.message for e in seen][-1] == "generated"

    def test_failing_sink_never_raises(self) -> None:
        """Sink failures are swallowed and counted."""

        def broken(event: SessionEvent) -> None:
            raise OSError("disk full")

        log = SessionLog(sink=broken)
        log.start_session()
        log.record("concept", EventKind.OUTPUT, "generated")
        assert len(log.events) == 2
        assert log.dropped == 2


@pytest.mark.unit
class TestSessionReads:
    """Tests for snapshots and clearing."""

    def test_snapshot_is_frozen_copy(self, session: SessionLog) -> None:
        """Later writes do not change an earlier snapshot."""
        session.record_error("concept", "E1", "first")
        snapshot = session.snapshot()
        session.record_error("concept", "E2", "second")
        assert len(snapshot.errors) == 1
        assert not snapshot.ended

    def test_snapshot_requires_start(self) -> None:
        """An unstarted session has nothing to snapshot."""
        with pytest.raises(SessionStateError):
            SessionLog().snapshot()

    def test_clear_refuses_active_session(self, session: SessionLog) -> None:
        """Only ended sessions can be cleared."""
        with pytest.raises(SessionStateError):
            session.clear()
        session.end_session(passed=True)
        session.clear()
        assert session.events == ()
