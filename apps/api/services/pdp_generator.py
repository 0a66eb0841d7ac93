"""
Player Development Plan (PDP) generation.

Builds a player context (profile, ARC metrics, current plan, recent
observations), asks the planning model for a new plan, resolves its tags
against the vocabulary, and stores it as the player's new current version.

Versioning:
- every PDP row for the player with is_current=True is archived
  (is_current=False, archived_at=now) in the same transaction
- the new row links back through previous_version_id
- new plans start as pending_approval until a coach approves them
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import NotFoundError
from models import ObservationLog, ObservationTag, PDP, Person
from schemas import PDPDraft
from services import arc_levels
from services.entity_matcher import EntityMatch, EntityMatcher
from services.json_extraction import parse_llm_json
from services.llm_client import LLMClient, LLMRequest, json_prompt

logger = logging.getLogger(__name__)

TAG_SOURCE = "pdp_generation"

PDP_SYSTEM_PROMPT = """You are an expert basketball Player Development Plan (PDP) architect.
Your goal is to create a comprehensive, actionable, and personalized PDP for a player.

Guidelines:
- Base the PDP on the player's context: current focus, ARC levels, observations, and coach's input.
- Goals should be specific, measurable and time-bound where possible.
- Skill, constraint and theme tags should be concise and standardized (e.g., "Catch and Shoot", "Decision Making Under Pressure").
- Differentiate clearly between coach-facing detail and player-facing motivation.
- If the coach provides a specific focus, prioritize it."""

PDP_OUTPUT_SHAPE = """{
  "pdp_text_coach": "Detailed plan for the coach: drills, cues, progress metrics",
  "pdp_text_player": "Short, motivating plan for the player: 2-3 key actions",
  "primary_focus": "Single most important development area",
  "secondary_focus": "Complementary development area",
  "skill_tags": ["Skill Name"],
  "constraint_tags": ["Constraint Name"],
  "theme_tags": ["Theme Name"],
  "actionable_goals": ["Specific goal"],
  "coaching_recommendations": ["Recommendation for the coach"],
  "skills_summary": "Brief summary of skills to develop",
  "constraints_summary": "Brief summary of constraints to address or leverage",
  "pdp_full_text": "Combined report text",
  "target_advancement_level": 1-9,
  "target_responsibility_tier": 1-6
}"""


def _observation_text(log: ObservationLog) -> str:
    payload = log.payload or {}
    for key in ("observation_text", "reflection_text", "note_text", "raw_note"):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return (log.analysis or "").strip()


def get_current_pdp(db: Session, person_id: str) -> Optional[PDP]:
    return (
        db.query(PDP)
        .filter(PDP.person_id == person_id, PDP.is_current.is_(True))
        .order_by(PDP.created_at.desc())
        .first()
    )


def build_player_context(db: Session, person: Person, *, window_days: int, limit: int) -> Dict[str, Any]:
    since = datetime.now(timezone.utc) - timedelta(days=window_days)
    # Notes about several players link each of them through observation_tags
    tagged = select(ObservationTag.observation_id).where(
        ObservationTag.entity_type == "player", ObservationTag.tag_id == person.id
    )
    observations = (
        db.query(ObservationLog)
        .filter(
            or_(ObservationLog.player_id == person.id, ObservationLog.id.in_(tagged)),
            ObservationLog.created_at >= since,
        )
        .order_by(ObservationLog.created_at.desc())
        .limit(limit)
        .all()
    )
    current = get_current_pdp(db, person.id)
    existing_summary = None
    if current is not None:
        existing_summary = (
            f"Primary focus: {current.primary_focus or 'n/a'}. "
            f"Secondary focus: {current.secondary_focus or 'n/a'}. "
            f"{current.skills_summary or ''}"
        ).strip()

    return {
        "person_id": person.id,
        "display_name": person.best_name,
        "current_primary_focus": person.primary_focus,
        "current_secondary_focus": person.secondary_focus,
        "advancement_level": arc_levels.describe(arc_levels.ADVANCEMENT_LEVELS, person.advancement_level),
        "responsibility_tier": arc_levels.describe(arc_levels.RESPONSIBILITY_TIERS, person.responsibility_tier),
        "collective_growth_phase": arc_levels.describe(
            arc_levels.COLLECTIVE_GROWTH_PHASES, person.collective_growth_phase
        ),
        "existing_pdp_summary": existing_summary,
        "recent_observations": [
            {"id": o.id, "date": o.created_at.date().isoformat() if o.created_at else None, "text": _observation_text(o)}
            for o in observations
        ],
        "_current_pdp": current,
    }


def _tag_values(matches: List[EntityMatch]) -> List[str]:
    values: List[str] = []
    for m in matches:
        value = m.matched_name if m.matched else m.extracted_name
        if value not in values:
            values.append(value)
    return values


def generate_pdp(
    db: Session,
    llm: LLMClient,
    *,
    person_id: str,
    coach_id: str,
    focus_text: Optional[str] = None,
    window_days: Optional[int] = None,
) -> PDP:
    person = db.get(Person, person_id)
    if person is None:
        raise NotFoundError("Player", person_id)

    context = build_player_context(
        db,
        person,
        window_days=window_days or settings.PDP_OBSERVATION_WINDOW_DAYS,
        limit=settings.PDP_OBSERVATION_LIMIT,
    )
    current: Optional[PDP] = context.pop("_current_pdp")

    user = json_prompt(
        f"Generate a PDP for player {context['display_name']} (ID: {person.id}).",
        context={
            "Player context": context,
            "Coach's specific focus for this PDP": focus_text or "Holistic development based on available data.",
        },
        output_shape=PDP_OUTPUT_SHAPE,
    )
    raw = llm.complete(LLMRequest(
        system=PDP_SYSTEM_PROMPT,
        user=user,
        model=settings.OPENAI_MODEL_SMART,
        temperature=0.5,
        purpose="generate_pdp",
    ))
    draft = parse_llm_json(raw, PDPDraft, purpose="generate_pdp")

    matcher = EntityMatcher(db)
    skill_tags = _tag_values(matcher.resolve_tag_names(draft.skill_tags, "skill", TAG_SOURCE))
    constraint_tags = _tag_values(matcher.resolve_tag_names(draft.constraint_tags, "constraint", TAG_SOURCE))
    theme_tags = _tag_values(matcher.resolve_tag_names(draft.theme_tags, "theme", TAG_SOURCE))

    now = datetime.now(timezone.utc)
    archived = (
        db.query(PDP)
        .filter(PDP.person_id == person.id, PDP.is_current.is_(True))
        .all()
    )
    for old in archived:
        old.is_current = False
        old.archived_at = now
        old.updated_at = now

    pdp = PDP(
        person_id=person.id,
        person_name=person.best_name,
        is_current=True,
        status="pending_approval",
        pdp_text_coach=draft.pdp_text_coach,
        pdp_text_player=draft.pdp_text_player,
        pdp_full_text=draft.pdp_full_text or f"{draft.pdp_text_coach}\n\n{draft.pdp_text_player}",
        primary_focus=draft.primary_focus,
        secondary_focus=draft.secondary_focus,
        skill_tags=skill_tags,
        constraint_tags=constraint_tags,
        theme_tags=theme_tags,
        actionable_goals=list(draft.actionable_goals),
        coaching_recommendations=list(draft.coaching_recommendations),
        skills_summary=draft.skills_summary or ", ".join(draft.skill_tags),
        constraints_summary=draft.constraints_summary or ", ".join(draft.constraint_tags),
        source_observation_ids=[o["id"] for o in context["recent_observations"]],
        advancement_level=person.advancement_level,
        responsibility_tier=person.responsibility_tier,
        collective_growth_phase=person.collective_growth_phase,
        target_advancement_level=draft.target_advancement_level,
        target_responsibility_tier=draft.target_responsibility_tier,
        previous_version_id=current.id if current is not None else None,
        created_by=coach_id,
        created_at=now,
        updated_at=now,
    )
    db.add(pdp)
    db.flush()

    logger.info(
        "Generated PDP",
        extra={"extra_fields": {
            "person_id": person.id,
            "pdp_id": pdp.id,
            "archived_versions": len(archived),
        }},
    )
    return pdp


def approve_pdp(db: Session, *, pdp_id: str) -> PDP:
    pdp = db.get(PDP, pdp_id)
    if pdp is None:
        raise NotFoundError("PDP", pdp_id)
    now = datetime.now(timezone.utc)
    pdp.status = "approved"
    pdp.approved_at = now
    pdp.updated_at = now
    db.flush()
    return pdp
