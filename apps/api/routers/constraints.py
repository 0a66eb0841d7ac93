"""
Constraint overlay API Router
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.database import DatabaseClientSelector, get_client_selector, get_db
from core.exceptions import require_fields
from schemas import OverlayConstraintsRequest
from services.agent_events import AgentEventRecorder, get_event_recorder
from services.constraint_overlay import overlay_constraints
from services.llm_client import LLMClient, get_llm_client

router = APIRouter(prefix="/api", tags=["Constraints"])


@router.post("/overlay-constraints")
def overlay_session_constraints(
    body: OverlayConstraintsRequest,
    db: Session = Depends(get_db),
    selector: DatabaseClientSelector = Depends(get_client_selector),
    llm: LLMClient = Depends(get_llm_client),
    events: AgentEventRecorder = Depends(get_event_recorder),
):
    require_fields(body, "session_id", "coach_id")

    with events.track(
        "overlay_constraints",
        agent_id="overlay-constraints-api",
        coach_id=body.coach_id,
        session_id=body.session_id,
        db=db,
        request_details={"session_id": body.session_id},
    ) as run:
        overlay = overlay_constraints(db, llm, session_id=body.session_id)
        db.commit()
        run.complete({"overlay_blocks_count": len(overlay["block_overlays"])})

    if overlay["block_overlays"]:
        message = "Constraint overlays with challenge points generated successfully"
    else:
        message = "No players found for this session to overlay constraints"
    return {
        "success": True,
        "message": message,
        "constraint_overlay": overlay,
        "using_service_role": selector.using_service_role,
    }
