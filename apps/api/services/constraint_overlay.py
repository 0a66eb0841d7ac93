"""
Per-player constraint overlays for an existing practice plan.

For every block in the session and every player with a current PDP, the
planning model decides whether the block is relevant to that player and,
if so, suggests focus areas, cues, an intensity change and a Challenge
Point (1-10) matched to the player's Advancement level and the team's
Responsibility and Collective Growth levels.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import NotFoundError, ValidationError
from models import PDP, PracticeSession
from schemas import ConstraintOverlayDraft
from services import arc_levels
from services.entity_matcher import load_group_roster
from services.json_extraction import parse_llm_json
from services.llm_client import LLMClient, LLMRequest, json_prompt

logger = logging.getLogger(__name__)

DEFAULT_TEAM_R_LEVEL = 3
DEFAULT_TEAM_C_LEVEL = 3

OVERLAY_SYSTEM_PROMPT = """You are an expert basketball coaching assistant specializing in motor learning and the Challenge Point Framework (Guadagnoli & Lee, 2004).
Decide whether a practice block is relevant to a player's development plan (PDP) and, if so, suggest individualized
focus areas, coaching cues, an intensity modification and an optimal Challenge Point.
The Challenge Point (1-10) should match task difficulty to the player's Advancement level, adjusted for the team's
Responsibility level (higher R allows more complex tactical challenges) and Collective Growth level (lower C needs
simpler challenges or more scaffolding).
If the block is not relevant, set "is_relevant" to false and leave the other fields empty."""

OVERLAY_OUTPUT_SHAPE = """{
  "is_relevant": true,
  "focus_areas": ["Specific focus for this player in this block"],
  "coaching_cues": ["Cue for the coach to use with this player"],
  "intensity_modification": "increase | decrease | maintain",
  "challenge_point": 7,
  "challenge_type": "constraint_pressure | decision_complexity | technical_precision | time_pressure | competitive_intensity | skill_acquisition | strategic_understanding",
  "success_metrics": ["Measurable outcome at this challenge point"],
  "notes": "Brief rationale"
}"""


def parse_team_r_level(value: Any) -> int:
    """
    responsibility_tiers is stored loosely: a bare number, a list whose
    first item is a number, or an object with "level" / "current_R_level".
    """
    candidate: Any = None
    if isinstance(value, bool):
        candidate = None
    elif isinstance(value, (int, float)):
        candidate = value
    elif isinstance(value, list) and value and isinstance(value[0], (int, float)):
        candidate = value[0]
    elif isinstance(value, dict):
        for key in ("level", "current_R_level"):
            if isinstance(value.get(key), (int, float)):
                candidate = value[key]
                break
    if candidate is None:
        return DEFAULT_TEAM_R_LEVEL
    return arc_levels.clamp(arc_levels.RESPONSIBILITY_TIERS, int(candidate), DEFAULT_TEAM_R_LEVEL)


def session_blocks(session: PracticeSession) -> List[Dict[str, Any]]:
    blocks = session.blocks
    if not blocks:
        raise ValidationError(f"Session {session.id} has no practice blocks", field="session_plan")
    return blocks


def _player_ids(db: Session, session: PracticeSession) -> List[str]:
    if session.planned_attendance:
        return list(session.planned_attendance)
    if session.team_id:
        return [p.id for p in load_group_roster(db, session.team_id)]
    return []


def _current_pdps(db: Session, player_ids: List[str]) -> List[PDP]:
    rows = (
        db.query(PDP)
        .filter(PDP.person_id.in_(player_ids), PDP.is_current.is_(True))
        .order_by(PDP.created_at.desc())
        .all()
    )
    seen = set()
    pdps = []
    for pdp in rows:
        if pdp.person_id in seen:
            continue
        seen.add(pdp.person_id)
        pdps.append(pdp)
    return pdps


def _block_prompt(block: Dict[str, Any], pdp: PDP, team_r: int, team_c: int) -> str:
    return json_prompt(
        "Decide whether this practice block is relevant for the player and, if so, individualize it.",
        context={
            "Practice block": {
                "name": block.get("block_name"),
                "format": block.get("format") or "Not specified",
                "skills": block.get("skills") or [],
                "constraints": block.get("constraints") or [],
                "notes": block.get("notes") or "",
            },
            "Player": {
                "name": pdp.person_name,
                "advancement_level": arc_levels.describe(arc_levels.ADVANCEMENT_LEVELS, pdp.advancement_level),
                "primary_focus": pdp.primary_focus,
                "secondary_focus": pdp.secondary_focus,
                "skill_tags": pdp.skill_tags or [],
                "constraint_tags": pdp.constraint_tags or [],
                "pdp_summary": pdp.pdp_text_player,
            },
            "Team": {
                "responsibility_level": arc_levels.describe(arc_levels.RESPONSIBILITY_TIERS, team_r),
                "collective_growth_level": arc_levels.describe(arc_levels.COLLECTIVE_GROWTH_PHASES, team_c),
            },
        },
        output_shape=OVERLAY_OUTPUT_SHAPE,
    )


def overlay_constraints(db: Session, llm: LLMClient, *, session_id: str) -> Dict[str, Any]:
    session = db.get(PracticeSession, session_id)
    if session is None:
        raise NotFoundError("Session", session_id)
    blocks = session_blocks(session)

    team_r = parse_team_r_level(session.responsibility_tiers)
    team_c = arc_levels.clamp(
        arc_levels.COLLECTIVE_GROWTH_PHASES, session.collective_growth_phase, DEFAULT_TEAM_C_LEVEL
    )

    player_ids = _player_ids(db, session)
    if not player_ids:
        return {"session_id": session_id, "block_overlays": []}
    pdps = [p for p in _current_pdps(db, player_ids) if p.person_name]

    block_overlays = []
    for idx, block in enumerate(blocks):
        player_constraints: List[Dict[str, Any]] = []
        for pdp in pdps:
            raw = llm.complete(LLMRequest(
                system=OVERLAY_SYSTEM_PROMPT,
                user=_block_prompt(block, pdp, team_r, team_c),
                model=settings.OPENAI_MODEL_SMART,
                temperature=0.3,
                purpose="overlay_constraints",
            ))
            draft = parse_llm_json(raw, ConstraintOverlayDraft, purpose="overlay_constraints")
            if not draft.is_relevant:
                continue
            player_constraints.append({
                "player_id": pdp.person_id,
                "player_name": pdp.person_name,
                **draft.model_dump(exclude={"is_relevant"}),
            })
        block_overlays.append({
            "block_order": block.get("block_order") or idx + 1,
            "block_name": block.get("block_name"),
            "player_constraints": player_constraints,
        })

    logger.info(
        "Constraint overlay generated",
        extra={"extra_fields": {
            "session_id": session_id,
            "blocks": len(block_overlays),
            "players": len(pdps),
            "team_r_level": team_r,
            "team_c_level": team_c,
        }},
    )
    return {"session_id": session_id, "block_overlays": block_overlays}
