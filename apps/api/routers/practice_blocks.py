"""
Practice plan generation API Router

One endpoint, two prompt variants: PDP-driven (from the attending
players' current plans) and ARC-driven (responsibility_level +
collective_growth_level supplied).
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.database import DatabaseClientSelector, get_client_selector, get_db
from core.exceptions import require_fields
from schemas import GenerateBlocksRequest
from services.agent_events import AgentEventRecorder, get_event_recorder
from services.llm_client import LLMClient, get_llm_client
from services.practice_planner import generate_practice_plan

router = APIRouter(prefix="/api", tags=["Practice Plans"])


@router.post("/generate-blocks")
def generate_blocks(
    body: GenerateBlocksRequest,
    db: Session = Depends(get_db),
    selector: DatabaseClientSelector = Depends(get_client_selector),
    llm: LLMClient = Depends(get_llm_client),
    events: AgentEventRecorder = Depends(get_event_recorder),
):
    require_fields(body, "coach_id")
    if body.is_arc_driven:
        require_fields(body, "duration")

    with events.track(
        "generate_blocks",
        agent_id="generate-blocks-api",
        coach_id=body.coach_id,
        session_id=body.session_id,
        group_id=body.group_id,
        db=db,
        request_details={
            "arc_driven": body.is_arc_driven,
            "theme": body.theme,
            "duration": body.duration,
            "responsibility_level": body.responsibility_level,
            "collective_growth_level": body.collective_growth_level,
        },
    ) as run:
        generated = generate_practice_plan(db, llm, body)
        db.commit()
        run.complete({
            "session_id": generated.session.id,
            "blocks": len(generated.plan["session_plan"]),
            "db_operation": generated.db_operation,
        })

    return {
        "success": True,
        "message": "Practice plan generated successfully",
        "session_id": generated.session.id,
        "session_plan": generated.plan,
        "status": generated.session.status,
        "db_operation": generated.db_operation,
        "using_service_role": selector.using_service_role,
    }
