"""
Practice plan generation.

Two entry points share one pipeline:

- PDP-driven: the plan targets the current PDPs of the players attending.
  Attendance comes from the request, else the session's attendance rows,
  else the group roster.
- ARC-driven: the coach picks a team Responsibility tier and Collective
  growth phase on the dashboard; the plan targets those levels and draws on
  the drill bank.

Either way the model returns {"session_plan": [blocks...]}; blocks are
completed with defaults, the plan is stored on the session (inserted, or
updated when the session already exists) with status pending_approval, and
one index row per block is written best-effort.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import ValidationError
from models import Attendance, PDP, Person, PersonGroup, PracticeSession, PracticeSessionBlock
from schemas import GenerateBlocksRequest, PracticePlanDraft
from services import arc_levels
from services.drill_bank import drills_for_roster
from services.json_extraction import parse_llm_json
from services.llm_client import LLMClient, LLMRequest, json_prompt

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_MINUTES = 15

PLANNER_SYSTEM_PROMPT = (
    "You are a world-class basketball practice designer and player development architect. "
    "You design session plans that maximize skill growth, decision-making, and team cohesion, "
    "rooted in constraints-led, ARC-driven coaching."
)

PLAN_OUTPUT_SHAPE = """{
  "session_plan": [
    {
      "block_name": "Spacing to Advantage",
      "format": "3v3",
      "skills": ["Spacing", "Early Advantage"],
      "constraints": ["Fight For Your Feet"],
      "players": ["<person_id>"],
      "collective_growth_phase": 2,
      "coaching_cues": ["Land and pause", "Find spacing before action"],
      "duration_minutes": 15
    }
  ]
}"""


@dataclass
class GeneratedPlan:
    session: PracticeSession
    plan: Dict[str, Any]
    db_operation: str  # 'insert' | 'update'


def resolve_attendance(db: Session, request: GenerateBlocksRequest, group_id: Optional[str]) -> List[str]:
    """Ids of the players expected at the session."""
    if request.attendance_data:
        ids = [a.person_id for a in request.attendance_data if a.present and a.person_id]
        if ids:
            return list(dict.fromkeys(ids))

    if request.session_id:
        rows = (
            db.query(Attendance.person_id)
            .filter(Attendance.session_id == request.session_id, Attendance.present.is_(True))
            .all()
        )
        ids = [pid for (pid,) in rows]
        if ids:
            return ids

    if group_id:
        rows = (
            db.query(PersonGroup.person_id)
            .filter(PersonGroup.group_id == group_id, PersonGroup.role == "player")
            .all()
        )
        return [pid for (pid,) in rows]
    return []


def _pdp_is_blank(pdp: PDP) -> bool:
    return not (pdp.skill_tags or pdp.constraint_tags or (pdp.pdp_full_text or "").strip())


def build_player_context(db: Session, player_ids: List[str]) -> List[Dict[str, Any]]:
    """One entry per player: their current PDP, or ARC defaults when none is usable."""
    pdps = (
        db.query(PDP)
        .filter(PDP.person_id.in_(player_ids), PDP.is_current.is_(True))
        .order_by(PDP.created_at.desc())
        .all()
    )
    by_person: Dict[str, PDP] = {}
    for pdp in pdps:
        if pdp.person_id not in by_person and not _pdp_is_blank(pdp):
            by_person[pdp.person_id] = pdp

    if by_person:
        context = []
        for pid in player_ids:
            pdp = by_person.get(pid)
            if pdp is None:
                continue
            context.append({
                "person_id": pdp.person_id,
                "pdp_id": pdp.id,
                "skill_tags": pdp.skill_tags or [],
                "constraint_tags": pdp.constraint_tags or [],
                "theme_tags": pdp.theme_tags or [],
                "advancement_level": pdp.advancement_level,
                "responsibility_tier": pdp.responsibility_tier,
                "collective_growth_phase": pdp.collective_growth_phase,
                "primary_focus": pdp.primary_focus,
            })
        return context

    people = db.query(Person).filter(Person.id.in_(player_ids)).all()
    return [
        {
            "person_id": p.id,
            "pdp_id": None,
            "skill_tags": [],
            "constraint_tags": [],
            "theme_tags": [],
            "advancement_level": p.advancement_level or arc_levels.DEFAULT_ADVANCEMENT,
            "responsibility_tier": p.responsibility_tier or arc_levels.DEFAULT_RESPONSIBILITY,
            "collective_growth_phase": p.collective_growth_phase or arc_levels.DEFAULT_COLLECTIVE_GROWTH,
            "primary_focus": p.primary_focus,
        }
        for p in people
    ]


def _pdp_prompt(request: GenerateBlocksRequest, players: List[Dict[str, Any]]) -> str:
    phase = request.collective_growth_phase or arc_levels.DEFAULT_COLLECTIVE_GROWTH
    instruction = (
        "You are provided with the latest Player Development Profiles (PDPs) for today's session roster.\n"
        f"The current team collective growth phase is: "
        f"{arc_levels.describe(arc_levels.COLLECTIVE_GROWTH_PHASES, phase)}\n"
        + (f"Session theme: {request.theme}\n" if request.theme else "")
        + (f"Total practice time: {request.duration} minutes\n" if request.duration else "")
        + "\nDesign a session plan that addresses both individual and shared skills and constraints. "
        "Recommend 3-5 blocks (warm-up, small-sided games, team concept, individual work). For each block give "
        "its name, format (1v1, 3v3, 5v5, pod split...), targeted skills and constraints by tag name, the "
        "players who benefit most (by person_id), collective growth phase alignment and key coaching cues. "
        "Base decisions only on the supplied PDPs and team phase. Do not invent tags. Prefer blocks that "
        "serve several players' needs at once."
    )
    return json_prompt(instruction, context={"Player PDPs": players}, output_shape=PLAN_OUTPUT_SHAPE)


def _arc_prompt(request: GenerateBlocksRequest, players: List[Dict[str, Any]]) -> str:
    drills = [d.as_prompt_dict() for d in drills_for_roster(len(players))]
    instruction = (
        "Design a practice for this team targeting its ARC levels.\n"
        f"Team Responsibility tier: "
        f"{arc_levels.describe(arc_levels.RESPONSIBILITY_TIERS, request.responsibility_level)}\n"
        f"Team Collective growth phase: "
        f"{arc_levels.describe(arc_levels.COLLECTIVE_GROWTH_PHASES, request.collective_growth_level)}\n"
        f"Total practice time: {request.duration or 90} minutes; block durations must add up to it.\n"
        + (f"Session theme: {request.theme}\n" if request.theme else "")
        + "\nUse constraints-led games. Prefer drills from the drill bank, adapting their constraints up or "
        "down to fit the levels above, and name the drill in the block's notes. Assign players by person_id "
        "where a block targets specific needs."
    )
    return json_prompt(
        instruction,
        context={"Roster": players, "Drill bank": drills},
        output_shape=PLAN_OUTPUT_SHAPE,
    )


def _theme_for(request: GenerateBlocksRequest) -> Optional[str]:
    if request.theme:
        return request.theme
    if request.is_arc_driven:
        r = arc_levels.RESPONSIBILITY_TIERS[request.responsibility_level].name
        c = arc_levels.COLLECTIVE_GROWTH_PHASES[request.collective_growth_level].name
        return f"{r} / {c}"
    return None


def _complete_blocks(
    draft: PracticePlanDraft,
    *,
    session_id: str,
    group_id: Optional[str],
    session_date: date,
    request: GenerateBlocksRequest,
) -> List[Dict[str, Any]]:
    n = len(draft.session_plan)
    share = max(5, request.duration // n) if request.duration else None
    blocks = []
    for idx, block in enumerate(draft.session_plan):
        data = block.model_dump()
        data.update({
            "block_order": idx + 1,
            "session_id": session_id,
            "group_id": group_id,
            "pod_id": request.pod_id,
            "session_date": session_date.isoformat(),
            "duration_minutes": block.duration_minutes or share,
            "notes": block.notes or "",
            "advancement_levels": data.get("advancement_levels") or [],
            "responsibility_tiers": data.get("responsibility_tiers") or [],
            "feedback_fields": data.get("feedback_fields") or {
                "coach_reflection": "",
                "player_reflection": "",
                "observed_transfer_score": None,
                "attendance": [],
            },
        })
        blocks.append(data)
    return blocks


def write_block_index(db: Session, session_id: str, blocks: List[Dict[str, Any]]) -> None:
    try:
        with db.begin_nested():
            db.query(PracticeSessionBlock).filter(PracticeSessionBlock.session_id == session_id).delete(
                synchronize_session=False
            )
            for block in blocks:
                db.add(PracticeSessionBlock(
                    session_id=session_id,
                    block_id=str(uuid.uuid4()),
                    block_order=block["block_order"],
                    block_name=block["block_name"],
                    duration=block.get("duration_minutes") or DEFAULT_BLOCK_MINUTES,
                    notes=block.get("notes") or "",
                ))
    except SQLAlchemyError as e:
        logger.warning(f"Could not write practice block rows for session {session_id} (non-critical): {e}")


def generate_practice_plan(
    db: Session,
    llm: LLMClient,
    request: GenerateBlocksRequest,
) -> GeneratedPlan:
    group_id = request.group_id or settings.DEFAULT_TEAM_ID
    session_id = request.session_id or str(uuid.uuid4())
    session_date = request.session_date or date.today()

    player_ids = resolve_attendance(db, request, group_id)
    if not player_ids:
        raise ValidationError("No attendance data available and no players found in the group")

    players = build_player_context(db, player_ids)
    if request.is_arc_driven:
        user = _arc_prompt(request, players)
        purpose = "generate_blocks_arc"
    else:
        user = _pdp_prompt(request, players)
        purpose = "generate_blocks"

    raw = llm.complete(LLMRequest(
        system=PLANNER_SYSTEM_PROMPT,
        user=user,
        model=settings.OPENAI_MODEL_SMART,
        temperature=0.4,
        purpose=purpose,
    ))
    draft = parse_llm_json(raw, PracticePlanDraft, purpose=purpose)

    theme = _theme_for(request)
    now = datetime.now(timezone.utc)
    collective_phase = request.collective_growth_level or request.collective_growth_phase
    responsibility_tiers = [request.responsibility_level] if request.responsibility_level else []
    blocks = _complete_blocks(
        draft, session_id=session_id, group_id=group_id, session_date=session_date, request=request
    )
    plan: Dict[str, Any] = {
        "session_plan": blocks,
        "session_id": session_id,
        "group_id": group_id,
        "pod_id": request.pod_id,
        "session_date": session_date.isoformat(),
        "created_by": request.coach_id,
        "created_at": now.isoformat(),
        "last_updated": now.isoformat(),
        "overall_theme_tags": [theme] if theme else [],
        "collective_growth_phase": collective_phase,
        "advancement_levels": [],
        "responsibility_tiers": responsibility_tiers,
        "planned_attendance": player_ids,
        "session_notes": "",
        "reflection_fields": {
            "coach_post_session": "",
            "player_feedback": [],
            "observed_transfer_map": {},
        },
    }

    session = db.get(PracticeSession, session_id)
    if session is not None:
        db_operation = "update"
    else:
        db_operation = "insert"
        session = PracticeSession(
            id=session_id,
            title=draft.session_title or f"Practice {session_date.isoformat()}" + (f" - {theme}" if theme else ""),
            objective=draft.session_objective or theme or "Basketball practice session",
            session_date=session_date,
            created_by=request.coach_id,
            created_at=now,
        )
        db.add(session)

    session.session_plan = plan
    session.status = "pending_approval"
    session.team_id = group_id
    session.pod_id = request.pod_id
    session.coach_id = request.coach_id
    session.overall_theme_tags = list(plan["overall_theme_tags"])
    session.collective_growth_phase = collective_phase
    session.responsibility_tiers = responsibility_tiers
    session.planned_attendance = list(player_ids)
    session.duration_minutes = request.duration
    session.last_updated = now
    db.flush()

    write_block_index(db, session_id, blocks)

    logger.info(
        "Generated practice plan",
        extra={"extra_fields": {
            "session_id": session_id,
            "blocks": len(blocks),
            "players": len(player_ids),
            "arc_driven": request.is_arc_driven,
            "db_operation": db_operation,
        }},
    )
    return GeneratedPlan(session=session, plan=plan, db_operation=db_operation)
