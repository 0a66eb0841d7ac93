"""
Observation API Router

- POST /api/log-observation: analyze and store a coach observation
- POST /api/log-observation-simple: store a raw note for later processing
- POST /api/log-reflection: store, analyze and link a coach reflection
- POST /api/session-notes: attach an analyzed note to a practice session
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.database import DatabaseClientSelector, get_client_selector, get_db
from core.exceptions import require_fields
from schemas import LogObservationRequest, LogObservationSimpleRequest, LogReflectionRequest, SessionNotesRequest
from services.agent_events import AgentEventRecorder, get_event_recorder
from services.llm_client import LLMClient, get_llm_client
from services.observations import log_observation, log_observation_simple, log_reflection
from services.session_notes import add_session_note

router = APIRouter(prefix="/api", tags=["Observations"])


@router.post("/log-observation")
def log_coach_observation(
    body: LogObservationRequest,
    db: Session = Depends(get_db),
    selector: DatabaseClientSelector = Depends(get_client_selector),
    llm: LLMClient = Depends(get_llm_client),
    events: AgentEventRecorder = Depends(get_event_recorder),
):
    require_fields(body, "observation", "coach_id")

    with events.track(
        "log_observation",
        agent_id="log-observation-api",
        coach_id=body.coach_id,
        session_id=body.session_id,
        group_id=body.group_id,
        player_id=body.player_id,
        db=db,
        request_details={"text_length": len(body.observation), "observation_type": body.observation_type},
    ) as run:
        result = log_observation(db, llm, body)
        db.commit()
        run.complete({
            "observation_id": result["observation_id"],
            "matched_players": sum(1 for m in result["analysis"]["matched_players"] if m["matched_id"]),
        })

    return {
        "success": True,
        "message": "Observation logged successfully",
        **result,
        "using_service_role": selector.using_service_role,
    }


@router.post("/log-observation-simple")
def log_coach_observation_simple(
    body: LogObservationSimpleRequest,
    db: Session = Depends(get_db),
    selector: DatabaseClientSelector = Depends(get_client_selector),
    events: AgentEventRecorder = Depends(get_event_recorder),
):
    require_fields(body, "observation", "coach_id")

    with events.track(
        "log_observation_simple",
        agent_id="log-observation-simple-api",
        coach_id=body.coach_id,
        session_id=body.session_id,
        group_id=body.group_id,
        player_id=body.player_id,
        db=db,
        request_details={"text_length": len(body.observation)},
    ) as run:
        intake = log_observation_simple(
            db,
            observation=body.observation,
            coach_id=body.coach_id,
            session_id=body.session_id,
            player_id=body.player_id,
            group_id=body.group_id,
        )
        db.commit()
        run.complete({"observation_intake_id": intake.id})

    return {
        "success": True,
        "message": "Observation saved for processing",
        "observation_intake_id": intake.id,
        "using_service_role": selector.using_service_role,
    }


@router.post("/log-reflection")
def log_coach_reflection(
    body: LogReflectionRequest,
    db: Session = Depends(get_db),
    selector: DatabaseClientSelector = Depends(get_client_selector),
    llm: LLMClient = Depends(get_llm_client),
    events: AgentEventRecorder = Depends(get_event_recorder),
):
    require_fields(body, "reflection_text", "coach_id")

    with events.track(
        "log_reflection",
        agent_id="log-reflection-api",
        coach_id=body.coach_id,
        session_id=body.session_id,
        group_id=body.group_id,
        player_id=body.player_id,
        db=db,
        request_details={"text_length": len(body.reflection_text), "reflection_type": body.reflection_type},
    ) as run:
        # Keep the raw reflection even if analysis fails
        intake = log_observation_simple(
            db,
            observation=body.reflection_text,
            coach_id=body.coach_id,
            session_id=body.session_id,
            player_id=body.player_id,
            group_id=body.group_id,
        )
        db.commit()
        result = log_reflection(db, llm, body, intake)
        db.commit()
        run.complete({"observation_log_id": result["observation_log_id"], "intake_id": result["intake_id"]})

    return {
        "success": True,
        "message": "Reflection logged and analyzed successfully",
        **result,
        "using_service_role": selector.using_service_role,
    }


@router.post("/session-notes")
def session_notes(
    body: SessionNotesRequest,
    db: Session = Depends(get_db),
    selector: DatabaseClientSelector = Depends(get_client_selector),
    llm: LLMClient = Depends(get_llm_client),
    events: AgentEventRecorder = Depends(get_event_recorder),
):
    require_fields(body, "session_id", "coach_id", "note_text")

    with events.track(
        "session_note",
        agent_id="session-notes-api",
        coach_id=body.coach_id,
        session_id=body.session_id,
        group_id=body.group_id,
        db=db,
        request_details={"note_type": body.note_type, "text_length": len(body.note_text)},
    ) as run:
        result = add_session_note(db, llm, body)
        db.commit()
        run.complete({
            "observation_log_id": result["observation_log_id"],
            "analysis_summary": result["analysis"]["summary"],
        })

    return {
        "success": True,
        "message": "Session note logged and analyzed successfully",
        **result,
        "using_service_role": selector.using_service_role,
    }
