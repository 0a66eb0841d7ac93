"""
Player Development Plan API Router
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.database import DatabaseClientSelector, get_client_selector, get_db
from core.exceptions import require_fields
from schemas import GeneratePDPRequest, PDPApproveRequest
from services.agent_events import AgentEventRecorder, get_event_recorder
from services.llm_client import LLMClient, get_llm_client
from services.pdp_generator import approve_pdp, generate_pdp

router = APIRouter(prefix="/api", tags=["PDP"])


@router.post("/generate-pdp")
def generate_player_pdp(
    body: GeneratePDPRequest,
    db: Session = Depends(get_db),
    selector: DatabaseClientSelector = Depends(get_client_selector),
    llm: LLMClient = Depends(get_llm_client),
    events: AgentEventRecorder = Depends(get_event_recorder),
):
    require_fields(body, "person_id", "coach_id")

    with events.track(
        "pdp_generation",
        agent_id="pdp-generation-api",
        coach_id=body.coach_id,
        group_id=body.group_id,
        player_id=body.person_id,
        db=db,
        request_details={"focus_text": body.focus_text, "observation_days": body.include_observations_days},
    ) as run:
        pdp = generate_pdp(
            db,
            llm,
            person_id=body.person_id,
            coach_id=body.coach_id,
            focus_text=body.focus_text,
            window_days=body.include_observations_days,
        )
        db.commit()
        run.complete({"pdp_id": pdp.id, "previous_version_id": pdp.previous_version_id})

    return {
        "success": True,
        "message": "PDP generated successfully",
        "pdp": pdp.as_dict(),
        "using_service_role": selector.using_service_role,
    }


@router.post("/pdp/{pdp_id}/approve")
def approve_player_pdp(
    pdp_id: str,
    body: PDPApproveRequest,
    db: Session = Depends(get_db),
    selector: DatabaseClientSelector = Depends(get_client_selector),
):
    require_fields(body, "coach_id")
    pdp = approve_pdp(db, pdp_id=pdp_id)
    db.commit()
    return {"success": True, "pdp": pdp.as_dict(), "using_service_role": selector.using_service_role}
