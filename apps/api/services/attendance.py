"""
Attendance: reflection cross-check and per-session presence logging.

verify_attendance() asks the model which players a coach's reflection
mentions and builds follow-up prompts for roster players it didn't.
log_attendance() upserts one presence row per (session, person).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import LLMResponseError, NotFoundError
from models import Attendance, Person, PracticeSession
from schemas import AttendanceRecord, MentionedName
from services.entity_matcher import load_group_roster, match_mentions_to_roster
from services.json_extraction import extract_json
from services.llm_client import LLMClient, LLMRequest, json_prompt

logger = logging.getLogger(__name__)

VERIFICATION_SYSTEM_PROMPT = (
    "You are an assistant that extracts basketball player names from a coach's "
    "reflection text and provides JSON output."
)


def _roster_prompt_line(person: Person) -> str:
    names = [person.display_name, person.first_name, person.last_name, *(person.aliases or [])]
    unique: List[str] = []
    for n in names:
        if n and n not in unique:
            unique.append(n)
    return ", ".join(unique)


def parse_mentions(raw: str) -> List[MentionedName]:
    """
    Accepts a bare array, {"players": [...]}, or an object holding a single
    array under any key. Items may be objects or plain strings.
    """
    data = extract_json(raw, purpose="attendance_verification")
    items: Any
    if isinstance(data, list):
        items = data
    elif isinstance(data, dict):
        if isinstance(data.get("players"), list):
            items = data["players"]
        else:
            items = next((v for v in data.values() if isinstance(v, list)), [])
    else:
        raise LLMResponseError("Model returned neither a list nor an object of player mentions", raw_text=raw)

    mentions: List[MentionedName] = []
    for item in items:
        if isinstance(item, str):
            item = {"name_mentioned": item}
        try:
            mentions.append(MentionedName.model_validate(item))
        except PydanticValidationError as e:
            raise LLMResponseError(f"Malformed player mention from model: {item!r}", raw_text=raw) from e
    return mentions


def _missing_player_prompts(missing: Sequence[Person]) -> List[Dict[str, str]]:
    prompts = []
    for person in missing:
        name = person.best_name
        prompts.append({
            "player_id": person.id,
            "player_name": name,
            "prompt_type": "absent_check",
            "suggested_prompt": f"Was {name} absent today?",
        })
        prompts.append({
            "player_id": person.id,
            "player_name": name,
            "prompt_type": "add_confirmation",
            "suggested_prompt": f"Did you want to add a note about {name}?",
        })
    return prompts


def empty_verification_result() -> Dict[str, Any]:
    return {
        "all_players_mentioned": True,
        "missing_players_prompts": [],
        "mentioned_raw_names": [],
        "roster_size": 0,
        "mentioned_count": 0,
    }


def verify_attendance(db: Session, llm: LLMClient, *, reflection_text: str, group_id: str) -> Dict[str, Any]:
    """Compare the players named in a reflection against the group's roster."""
    roster = load_group_roster(db, group_id)
    if not roster:
        return empty_verification_result()

    user = json_prompt(
        "Given the following reflection text from a basketball coach, identify all player names mentioned.",
        context={
            "Team roster (one player per entry, known names separated by commas)":
                "; ".join(_roster_prompt_line(p) for p in roster),
            "Reflection text": reflection_text,
        },
        output_shape=(
            '{"players": [{"name_mentioned": "<name exactly as written>", "confidence": 0.0-1.0}]}\n'
            "If no player names are clearly identifiable, return {\"players\": []}."
        ),
    )
    raw = llm.complete(LLMRequest(
        system=VERIFICATION_SYSTEM_PROMPT,
        user=user,
        model=settings.OPENAI_MODEL_FAST,
        temperature=0.1,
        purpose="attendance_verification",
    ))
    mentions = parse_mentions(raw)
    mentioned_raw_names = [m.name_mentioned for m in mentions]

    mentioned_ids = match_mentions_to_roster(mentioned_raw_names, roster)
    missing = [p for p in roster if p.id not in mentioned_ids]
    prompts = _missing_player_prompts(missing)

    logger.info(
        "Attendance verification complete",
        extra={"extra_fields": {
            "group_id": group_id,
            "roster_size": len(roster),
            "mentioned_count": len(mentioned_ids),
        }},
    )
    return {
        "all_players_mentioned": not prompts,
        "missing_players_prompts": prompts,
        "mentioned_raw_names": mentioned_raw_names,
        "roster_size": len(roster),
        "mentioned_count": len(mentioned_ids),
    }


def log_attendance(db: Session, *, session_id: str, records: Sequence[AttendanceRecord]) -> Dict[str, Any]:
    """
    Upsert presence rows for a session.

    Records without a person_id, naming an unknown person, or superseded by
    a later record for the same person are skipped with a per-record error;
    the rest are written. Counts cover only rows actually written, so
    present_count + absent_count == successful_upserts.
    """
    session = db.get(PracticeSession, session_id)
    if session is None:
        raise NotFoundError("Session", session_id)

    requested_ids = sorted({r.person_id for r in records if r.person_id})
    known_ids = set()
    if requested_ids:
        known_ids = {pid for (pid,) in db.query(Person.id).filter(Person.id.in_(requested_ids)).all()}

    existing = {
        row.person_id: row
        for row in db.query(Attendance).filter(
            Attendance.session_id == session_id,
            Attendance.person_id.in_(requested_ids),
        ).all()
    }

    now = datetime.now(timezone.utc)
    errors: List[Dict[str, Optional[str]]] = []
    present_count = 0
    absent_count = 0
    present_ids: List[str] = []

    # Last entry per person wins; earlier duplicates are reported, not written
    last_index = {r.person_id: idx for idx, r in enumerate(records) if r.person_id}

    for idx, record in enumerate(records):
        if not record.person_id:
            errors.append({"person_id": None, "error": "Missing person_id"})
            continue
        if record.person_id not in known_ids:
            errors.append({"person_id": record.person_id, "error": f"Person ID {record.person_id} not found"})
            continue
        if last_index[record.person_id] != idx:
            errors.append({
                "person_id": record.person_id,
                "error": f"Duplicate entry for person ID {record.person_id}; the later entry was used",
            })
            continue

        status = "present" if record.present else "absent"
        row = existing.get(record.person_id)
        if row is None:
            row = Attendance(session_id=session_id, person_id=record.person_id, created_at=now)
            db.add(row)
            existing[record.person_id] = row
        row.present = record.present
        row.status = status
        row.note = record.note
        row.updated_at = now

        if record.present:
            present_count += 1
            present_ids.append(record.person_id)
        else:
            absent_count += 1

    db.flush()
    successful_upserts = present_count + absent_count

    # Keep the session's roster snapshot in step; the attendance rows are authoritative.
    try:
        with db.begin_nested():
            session.planned_attendance = list(present_ids)
            session.last_updated = now
    except SQLAlchemyError as e:
        logger.warning(f"Failed to update planned_attendance for session {session_id} (non-critical): {e}")

    return {
        "session_id": session_id,
        "present_count": present_count,
        "absent_count": absent_count,
        "successful_upserts": successful_upserts,
        "total_attempted": len(records),
        "errors": errors,
    }
