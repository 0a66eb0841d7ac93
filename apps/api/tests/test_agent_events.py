"""
Tests for the best-effort agent event audit trail.
"""
from unittest.mock import MagicMock

import pytest

from models import AgentEvent
from services.agent_events import AgentEventRecorder


def _events(session_factory):
    """Events keyed by event_type."""
    session = session_factory()
    try:
        return {e.event_type: e for e in session.query(AgentEvent).all()}
    finally:
        session.close()


def test_record_writes_event_with_coach_and_session(session_factory):
    recorder = AgentEventRecorder(session_factory)
    recorder.record(
        "log_observation_request",
        agent_id="log-observation-api",
        status="started",
        coach_id="c1",
        session_id="s1",
        group_id="g1",
        player_id="p1",
        details={"text_length": 42},
    )

    event = _events(session_factory)["log_observation_request"]
    assert event.event_type == "log_observation_request"
    assert event.agent_id == "log-observation-api"
    assert event.status == "started"
    assert event.team_id == "g1"
    assert event.player_id == "p1"
    assert event.details == {"text_length": 42, "coach_id_logged": "c1", "session_id": "s1"}


def test_record_swallows_database_failures():
    broken_session = MagicMock()
    broken_session.commit.side_effect = RuntimeError("relation agent_events does not exist")
    recorder = AgentEventRecorder(lambda: broken_session)

    recorder.record("x_request", agent_id="x", status="started")

    broken_session.rollback.assert_called_once()
    broken_session.close.assert_called_once()


def test_track_records_request_and_success_with_shared_request_id(session_factory):
    recorder = AgentEventRecorder(session_factory)
    with recorder.track("generate_blocks", agent_id="generate-blocks-api", coach_id="c1") as run:
        run.complete({"blocks": 3})

    events = _events(session_factory)
    request, success = events["generate_blocks_request"], events["generate_blocks_success"]
    assert request.event_type == "generate_blocks_request"
    assert success.event_type == "generate_blocks_success"
    assert success.status == "completed"
    assert success.details["blocks"] == 3
    assert request.details["request_id"] == success.details["request_id"] == run.request_id


def test_track_records_partial_errors(session_factory):
    recorder = AgentEventRecorder(session_factory)
    with recorder.track("attendance_log", agent_id="attendance-log-api") as run:
        run.partial({"errors": [{"person_id": "zz", "error": "Person ID zz not found"}]})

    assert set(_events(session_factory)) == {"attendance_log_request", "attendance_log_partial_error"}


def test_track_records_error_rolls_back_and_reraises(session_factory):
    recorder = AgentEventRecorder(session_factory)
    db = MagicMock()
    with pytest.raises(ValueError):
        with recorder.track("log_reflection", agent_id="log-reflection-api", db=db):
            raise ValueError("model returned garbage")

    db.rollback.assert_called_once()
    events = _events(session_factory)
    assert set(events) == {"log_reflection_request", "log_reflection_error"}
    error = events["log_reflection_error"]
    assert error.event_type == "log_reflection_error"
    assert error.status == "error"
    assert error.details["error"] == "model returned garbage"
    assert error.details["error_type"] == "ValueError"
