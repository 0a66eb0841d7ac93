"""
Coach review of generated practice plans: list, approve, reject, edit.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from core.exceptions import NotFoundError, ValidationError
from models import PracticeSession
from schemas import PracticeBlock, SessionEditRequest
from services.practice_planner import write_block_index

logger = logging.getLogger(__name__)

PENDING_STATUS = "pending_approval"


def get_session_or_404(db: Session, session_id: str) -> PracticeSession:
    session = db.get(PracticeSession, session_id)
    if session is None:
        raise NotFoundError("Session", session_id)
    return session


def list_pending_sessions(db: Session, coach_id: Optional[str] = None) -> List[PracticeSession]:
    query = db.query(PracticeSession).filter(PracticeSession.status == PENDING_STATUS)
    if coach_id:
        query = query.filter(PracticeSession.coach_id == coach_id)
    return query.order_by(PracticeSession.session_date.desc(), PracticeSession.created_at.desc()).all()


def approve_session(db: Session, session_id: str, coach_id: str) -> PracticeSession:
    session = get_session_or_404(db, session_id)
    now = datetime.now(timezone.utc)
    session.status = "approved"
    session.approved_at = now
    session.last_updated = now
    db.flush()
    logger.info(f"Session {session_id} approved by {coach_id}")
    return session


def reject_session(db: Session, session_id: str, coach_id: str, reason: Optional[str] = None) -> PracticeSession:
    session = get_session_or_404(db, session_id)
    now = datetime.now(timezone.utc)
    session.status = "rejected"
    session.approved_at = None
    session.last_updated = now
    if reason:
        reflection = dict(session.reflection_fields or {})
        reflection["rejection"] = {"coach_id": coach_id, "reason": reason, "timestamp": now.isoformat()}
        session.reflection_fields = reflection
    db.flush()
    logger.info(f"Session {session_id} rejected by {coach_id}")
    return session


def edit_session(db: Session, session_id: str, request: SessionEditRequest) -> PracticeSession:
    """
    Replace the session's blocks with the coach's edited list.

    Blocks are renumbered 1..n in the order given; every block needs a
    block_name.
    """
    session = get_session_or_404(db, session_id)
    now = datetime.now(timezone.utc)

    blocks = []
    for idx, raw in enumerate(request.session_plan or []):
        try:
            block = PracticeBlock.model_validate(raw)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid block at position {idx + 1}: {e.errors()[0]['msg']}", field="session_plan")
        data = block.model_dump()
        data["block_order"] = idx + 1
        blocks.append(data)

    plan = dict(session.session_plan) if isinstance(session.session_plan, dict) else {}
    plan["session_plan"] = blocks
    plan["last_updated"] = now.isoformat()
    if request.overall_theme_tags is not None:
        plan["overall_theme_tags"] = list(request.overall_theme_tags)
        session.overall_theme_tags = list(request.overall_theme_tags)
    if request.session_notes is not None:
        plan["session_notes"] = request.session_notes
        session.session_notes = request.session_notes
    if request.title:
        session.title = request.title

    session.session_plan = plan
    session.last_updated = now
    db.flush()
    write_block_index(db, session.id, blocks)

    logger.info(
        "Session plan edited",
        extra={"extra_fields": {"session_id": session.id, "coach_id": request.coach_id, "blocks": len(blocks)}},
    )
    return session
