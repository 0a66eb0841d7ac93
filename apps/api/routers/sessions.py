"""
Session review API Router

Coach dashboard workflow for generated practice plans: list what is
waiting for approval, approve or reject it, or edit its blocks.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.database import DatabaseClientSelector, get_client_selector, get_db
from core.exceptions import MissingFieldsError, require_fields
from schemas import SessionDecisionRequest, SessionEditRequest
from services.session_review import approve_session, edit_session, list_pending_sessions, reject_session

router = APIRouter(prefix="/api/sessions", tags=["Sessions"])


@router.get("/pending")
def pending_sessions(
    coach_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    selector: DatabaseClientSelector = Depends(get_client_selector),
):
    sessions = list_pending_sessions(db, coach_id=coach_id)
    return {
        "success": True,
        "sessions": [s.as_dict() for s in sessions],
        "count": len(sessions),
        "using_service_role": selector.using_service_role,
    }


@router.post("/{session_id}/approve")
def approve(
    session_id: str,
    body: SessionDecisionRequest,
    db: Session = Depends(get_db),
    selector: DatabaseClientSelector = Depends(get_client_selector),
):
    require_fields(body, "coach_id")
    session = approve_session(db, session_id, body.coach_id)
    db.commit()
    return {"success": True, "session": session.as_dict(), "using_service_role": selector.using_service_role}


@router.post("/{session_id}/reject")
def reject(
    session_id: str,
    body: SessionDecisionRequest,
    db: Session = Depends(get_db),
    selector: DatabaseClientSelector = Depends(get_client_selector),
):
    require_fields(body, "coach_id")
    session = reject_session(db, session_id, body.coach_id, reason=body.reason)
    db.commit()
    return {"success": True, "session": session.as_dict(), "using_service_role": selector.using_service_role}


@router.put("/{session_id}")
def update_session(
    session_id: str,
    body: SessionEditRequest,
    db: Session = Depends(get_db),
    selector: DatabaseClientSelector = Depends(get_client_selector),
):
    require_fields(body, "coach_id")
    if not body.session_plan:
        raise MissingFieldsError(["session_plan"])
    session = edit_session(db, session_id, body)
    db.commit()
    return {
        "success": True,
        "message": "Session updated successfully",
        "session": session.as_dict(),
        "using_service_role": selector.using_service_role,
    }
