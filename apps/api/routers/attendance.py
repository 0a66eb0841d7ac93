"""
Attendance API Router

- POST /api/attendance-verification: which roster players did a reflection skip?
- POST /api/attendance-log: upsert present/absent rows for a session
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.database import DatabaseClientSelector, get_client_selector, get_db
from core.exceptions import MissingFieldsError, require_fields
from schemas import AttendanceLogRequest, AttendanceVerificationRequest
from services.agent_events import AgentEventRecorder, get_event_recorder
from services.attendance import log_attendance, verify_attendance
from services.llm_client import LLMClient, get_llm_client

router = APIRouter(prefix="/api", tags=["Attendance"])


@router.post("/attendance-verification")
def attendance_verification(
    body: AttendanceVerificationRequest,
    db: Session = Depends(get_db),
    selector: DatabaseClientSelector = Depends(get_client_selector),
    llm: LLMClient = Depends(get_llm_client),
    events: AgentEventRecorder = Depends(get_event_recorder),
):
    require_fields(body, "reflection_text", "group_id", "coach_id")

    with events.track(
        "attendance_verification",
        agent_id="attendance-verification-api",
        coach_id=body.coach_id,
        session_id=body.session_id,
        group_id=body.group_id,
        db=db,
        request_details={"text_length": len(body.reflection_text)},
    ) as run:
        result = verify_attendance(db, llm, reflection_text=body.reflection_text, group_id=body.group_id)
        run.complete({
            "roster_size": result["roster_size"],
            "mentioned_count": result["mentioned_count"],
            "prompts": len(result["missing_players_prompts"]),
        })

    return {
        "success": True,
        "verification_result": result,
        "using_service_role": selector.using_service_role,
    }


@router.post("/attendance-log")
def attendance_log(
    body: AttendanceLogRequest,
    db: Session = Depends(get_db),
    selector: DatabaseClientSelector = Depends(get_client_selector),
    events: AgentEventRecorder = Depends(get_event_recorder),
):
    require_fields(body, "session_id", "coach_id")
    if not body.attendance_data:
        raise MissingFieldsError(["attendance_data"])

    with events.track(
        "attendance_log",
        agent_id="attendance-log-api",
        coach_id=body.coach_id,
        session_id=body.session_id,
        group_id=body.group_id,
        db=db,
        request_details={"records": len(body.attendance_data)},
    ) as run:
        result = log_attendance(db, session_id=body.session_id, records=body.attendance_data)
        db.commit()
        summary = {k: result[k] for k in ("present_count", "absent_count", "successful_upserts", "total_attempted")}
        if result["errors"]:
            run.partial({**summary, "errors": result["errors"]})
        else:
            run.complete(summary)

    response = {"success": True, **result, "using_service_role": selector.using_service_role}
    if result["errors"]:
        response["message"] = (
            f"Attendance logged with {len(result['errors'])} error(s): "
            f"{result['successful_upserts']} of {result['total_attempted']} records saved"
        )
    else:
        response["message"] = f"Attendance logged for {result['successful_upserts']} player(s)"
    return response
