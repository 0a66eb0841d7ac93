"""
Coach notes attached to a practice session.

A note is analyzed, appended to the session's running notes log
(reflection_fields.coach_session_notes_log), summarized into session_notes,
and recorded as an observation log entry typed "session_note:<note_type>".
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import NotFoundError
from models import ObservationLog, PracticeSession
from schemas import SessionNoteAnalysis, SessionNotesRequest
from services.json_extraction import parse_llm_json
from services.llm_client import LLMClient, LLMRequest, json_prompt

logger = logging.getLogger(__name__)

DEFAULT_NOTE_TYPE = "general_session_note"
POST_SESSION_SUMMARY = "post_session_summary"

SESSION_NOTE_SYSTEM_PROMPT = """You are an expert basketball coaching assistant. Analyze the provided coach's session note.
Summarize it, pull out its key points or themes, judge the sentiment, assess player energy
and engagement where the note supports it, and list concrete follow-up items for the coach."""

SESSION_NOTE_OUTPUT_SHAPE = """{
  "summary": "Concise summary of the note",
  "key_points": ["key point or theme"],
  "sentiment": "positive | negative | neutral",
  "energy_level_assessment": "high | medium | low | mixed",
  "player_engagement_assessment": "high | medium | low | mixed",
  "actionable_items": ["follow-up item"]
}"""


def _session_context(session: PracticeSession) -> Dict[str, Any]:
    notes = session.session_notes or ""
    return {
        "title": session.title or "N/A",
        "date": session.session_date.isoformat() if session.session_date else "N/A",
        "current_themes": session.overall_theme_tags or [],
        "existing_notes_summary": (notes[:150] + "...") if notes else "N/A",
    }


def analyze_session_note(llm: LLMClient, note_text: str, session: PracticeSession) -> SessionNoteAnalysis:
    raw = llm.complete(LLMRequest(
        system=SESSION_NOTE_SYSTEM_PROMPT,
        user=json_prompt(
            "Analyze the following coach's session note.",
            context={"Session context": _session_context(session), "Coach's note": note_text},
            output_shape=SESSION_NOTE_OUTPUT_SHAPE,
        ),
        model=settings.OPENAI_MODEL_FAST,
        temperature=0.3,
        purpose="session_notes",
    ))
    return parse_llm_json(raw, SessionNoteAnalysis, purpose="session_notes")


def _append_note_text(existing: Optional[str], note_type: str, timestamp: str, summary: str) -> str:
    if note_type == POST_SESSION_SUMMARY:
        entry = f"Post-Session Summary ({timestamp}):\n{summary}"
    else:
        entry = f"Note ({note_type} - {timestamp}):\n{summary}"
    return f"{existing or ''}\n\n{entry}".strip()


def add_session_note(db: Session, llm: LLMClient, request: SessionNotesRequest) -> Dict[str, Any]:
    session = db.get(PracticeSession, request.session_id)
    if session is None:
        raise NotFoundError("Session", request.session_id)

    note_type = request.note_type or DEFAULT_NOTE_TYPE
    analysis = analyze_session_note(llm, request.note_text, session)

    now = datetime.now(timezone.utc)
    timestamp = now.isoformat()

    # Copy so SQLAlchemy sees a new value for the JSON column
    reflection = dict(session.reflection_fields or {})
    notes_log = list(reflection.get("coach_session_notes_log") or [])
    notes_log.append({
        "timestamp": timestamp,
        "coach_id": request.coach_id,
        "note_type": note_type,
        "text": request.note_text,
        "summary": analysis.summary,
        "key_points": analysis.key_points,
        "sentiment": analysis.sentiment,
    })
    reflection["coach_session_notes_log"] = notes_log
    if note_type == POST_SESSION_SUMMARY:
        reflection["coach_post_session"] = request.note_text

    if note_type == POST_SESSION_SUMMARY or analysis.summary:
        session.session_notes = _append_note_text(session.session_notes, note_type, timestamp, analysis.summary)

    themes = list(session.overall_theme_tags or [])
    for point in analysis.key_points:
        if point not in themes:
            themes.append(point)

    session.reflection_fields = reflection
    session.overall_theme_tags = themes
    session.status = "updated_with_notes"
    session.last_updated = now

    log = ObservationLog(
        observation_id=session.id,
        entry_type=f"session_note:{note_type}",
        payload={
            "note_text": request.note_text,
            "analysis": analysis.model_dump(),
            "coach_id": request.coach_id,
        },
        person_id=request.coach_id,
        session_id=session.id,
        analysis=analysis.summary,
        recommendation="; ".join(analysis.actionable_items) or None,
        created_at=now,
    )
    db.add(log)
    db.flush()

    logger.info(
        "Session note recorded",
        extra={"extra_fields": {"session_id": session.id, "note_type": note_type, "observation_log_id": log.id}},
    )
    return {
        "observation_log_id": log.id,
        "session_id": session.id,
        "analysis": analysis.model_dump(),
    }
