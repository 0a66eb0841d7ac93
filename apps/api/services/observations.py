"""
Coach observation and reflection intake.

- log_observation: analyze a note, match players/skills/constraints,
  store an observation log plus tag links
- log_observation_simple: store the raw note for later processing
- log_reflection: analyze a stored raw note, store the observation log,
  then mark the intake processed
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import settings
from models import ObservationIntake, ObservationLog, ObservationTag, PracticeSession
from schemas import LogObservationRequest, LogReflectionRequest, ObservationAnalysis, ReflectionAnalysis
from services.entity_matcher import EntityMatch, EntityMatcher
from services.json_extraction import parse_llm_json
from services.llm_client import LLMClient, LLMRequest, json_prompt

logger = logging.getLogger(__name__)

TAG_SOURCE = "observation_logs"

OBSERVATION_SYSTEM_PROMPT = """You are a basketball coaching assistant that analyzes observations from coaches.
Extract from the coach's observation:
1. Player names mentioned
2. Basketball skills mentioned
3. Basketball constraints or limitations mentioned
4. A brief summary
5. A recommendation for improvement if applicable
6. Advancement level (1-9), responsibility tier (1-6) and collective growth phase (1-6), only if the note supports it
7. Sentiment (positive, negative, or neutral)
8. Whether this is a team observation or about individual players"""

OBSERVATION_OUTPUT_SHAPE = """{
  "players": [{"name": "player name", "confidence": 0.95}],
  "skills": [{"name": "skill name", "confidence": 0.9}],
  "constraints": [{"name": "constraint name", "confidence": 0.85}],
  "summary": "Brief summary of the observation",
  "recommendation": "Recommendation for improvement",
  "advancement_level": null,
  "responsibility_tier": null,
  "collective_growth_phase": null,
  "sentiment": "positive | negative | neutral",
  "is_team_observation": false
}"""

REFLECTION_SYSTEM_PROMPT = """You are an expert basketball coaching assistant.
Analyze the coach's reflection and extract the key themes, the players, skills and
constraints it mentions, the overall sentiment and mood, and actionable insights the
coach could apply at the next practice."""

REFLECTION_OUTPUT_SHAPE = """{
  "summary": "Two or three sentence summary",
  "key_themes": ["theme"],
  "mentioned_players": [{"name": "player name", "confidence": 0.9}],
  "mentioned_skills": [{"name": "skill name", "confidence": 0.8}],
  "mentioned_constraints": [{"name": "constraint name", "confidence": 0.8}],
  "sentiment": "positive | negative | neutral | mixed",
  "actionable_insights": ["insight"],
  "overall_mood": "short description"
}"""


@dataclass
class MatchedEntities:
    players: List[EntityMatch]
    skills: List[EntityMatch]
    constraints: List[EntityMatch]

    def as_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            "players": [m.to_dict() for m in self.players],
            "skills": [m.to_dict() for m in self.skills],
            "constraints": [m.to_dict() for m in self.constraints],
        }

    def single_player_id(self) -> Optional[str]:
        ids = {m.matched_id for m in self.players if m.matched}
        return ids.pop() if len(ids) == 1 else None


def _session_context(db: Session, session_id: Optional[str]) -> Optional[Dict[str, Any]]:
    if not session_id:
        return None
    session = db.get(PracticeSession, session_id)
    if session is None:
        return None
    return {
        "title": session.title or f"Practice on {session.session_date}",
        "date": session.session_date.isoformat() if session.session_date else None,
        "themes": session.overall_theme_tags or [],
    }


def link_entities(db: Session, observation_id: str, matched: MatchedEntities, reason: str) -> int:
    """Best-effort observation_tags rows for every matched entity. Returns rows written."""
    rows = []
    for entity_type, matches in (
        ("player", matched.players),
        ("skill", matched.skills),
        ("constraint", matched.constraints),
    ):
        for m in matches:
            if not m.matched:
                continue
            rows.append(ObservationTag(
                observation_id=observation_id,
                tag_id=m.matched_id,
                tag_name=m.matched_name or m.extracted_name,
                entity_type=entity_type,
                relevance_score=round(m.confidence * 100),
                reason=f"Mentioned in {reason}: {entity_type}",
            ))
    if not rows:
        return 0
    try:
        with db.begin_nested():
            db.add_all(rows)
    except SQLAlchemyError as e:
        logger.warning(f"Could not link tags to observation {observation_id} (non-critical): {e}")
        return 0
    return len(rows)


def log_observation(db: Session, llm: LLMClient, request: LogObservationRequest) -> Dict[str, Any]:
    session_context = _session_context(db, request.session_id)
    context: Dict[str, Any] = {"Coach observation": request.observation}
    if session_context:
        context["Session context"] = session_context
    if request.tags:
        context["Coach-supplied tags"] = request.tags

    raw = llm.complete(LLMRequest(
        system=OBSERVATION_SYSTEM_PROMPT,
        user=json_prompt("Please analyze the following coach observation.", context, OBSERVATION_OUTPUT_SHAPE),
        model=settings.OPENAI_MODEL_FAST,
        temperature=0.3,
        purpose="log_observation",
    ))
    analysis = parse_llm_json(raw, ObservationAnalysis, purpose="log_observation")

    matcher = EntityMatcher(db, source_text=request.observation, group_id=request.group_id)
    matched = MatchedEntities(
        players=matcher.match_players(analysis.players),
        skills=matcher.match_tags(analysis.skills, "skill", TAG_SOURCE),
        constraints=matcher.match_tags(analysis.constraints, "constraint", TAG_SOURCE),
    )

    log = ObservationLog(
        observation_id=request.player_id,
        entry_type=request.observation_type or "coach_observation",
        payload={
            "observation_text": request.observation,
            "matched_players": [m.to_dict() for m in matched.players],
            "matched_skills": [m.to_dict() for m in matched.skills],
            "matched_constraints": [m.to_dict() for m in matched.constraints],
            "sentiment": analysis.sentiment,
            "is_team_observation": analysis.is_team_observation,
            "coach_tags": request.tags or [],
        },
        person_id=request.coach_id,
        player_id=request.player_id or (None if analysis.is_team_observation else matched.single_player_id()),
        session_id=request.session_id,
        analysis=analysis.summary,
        recommendation=analysis.recommendation or None,
        advancement_level=analysis.advancement_level,
        responsibility_tier=analysis.responsibility_tier,
        collective_growth_phase=analysis.collective_growth_phase,
    )
    db.add(log)
    db.flush()
    link_entities(db, log.id, matched, log.entry_type)

    return {
        "observation_id": log.id,
        "analysis": {
            "summary": analysis.summary,
            "recommendation": analysis.recommendation,
            "matched_players": [m.to_dict() for m in matched.players],
            "matched_skills": [m.to_dict() for m in matched.skills],
            "matched_constraints": [m.to_dict() for m in matched.constraints],
            "is_team_observation": analysis.is_team_observation,
            "sentiment": analysis.sentiment,
        },
    }


def log_observation_simple(
    db: Session,
    *,
    observation: str,
    coach_id: str,
    session_id: Optional[str] = None,
    player_id: Optional[str] = None,
    group_id: Optional[str] = None,
) -> ObservationIntake:
    intake = ObservationIntake(
        raw_note=observation,
        coach_id=coach_id,
        session_id=session_id,
        player_id=player_id,
        group_id=group_id,
        processed=False,
    )
    db.add(intake)
    db.flush()
    return intake


def log_reflection(
    db: Session, llm: LLMClient, request: LogReflectionRequest, intake: ObservationIntake
) -> Dict[str, Any]:
    """
    Analyze a reflection whose raw text is already stored as ``intake``.

    The intake stays unprocessed if analysis fails, so the caller should
    commit it before calling this.
    """
    entry_type = request.reflection_type or "general_coach_reflection"

    context: Dict[str, Any] = {"Reflection type": entry_type, "Coach reflection": request.reflection_text}
    session_context = _session_context(db, request.session_id)
    if session_context:
        context["Session context"] = session_context

    raw = llm.complete(LLMRequest(
        system=REFLECTION_SYSTEM_PROMPT,
        user=json_prompt("Analyze the following basketball coach reflection.", context, REFLECTION_OUTPUT_SHAPE),
        model=settings.OPENAI_MODEL_FAST,
        temperature=0.3,
        purpose="log_reflection",
    ))
    analysis = parse_llm_json(raw, ReflectionAnalysis, purpose="log_reflection")

    matcher = EntityMatcher(db, source_text=request.reflection_text, group_id=request.group_id)
    matched = MatchedEntities(
        players=matcher.match_players(analysis.mentioned_players),
        skills=matcher.match_tags(analysis.mentioned_skills, "skill", TAG_SOURCE),
        constraints=matcher.match_tags(analysis.mentioned_constraints, "constraint", TAG_SOURCE),
    )

    log = ObservationLog(
        observation_id=request.session_id,
        entry_type=entry_type,
        payload={
            "reflection_text": request.reflection_text,
            "intake_id": intake.id,
            "extracted_players": [m.to_dict() for m in matched.players],
            "extracted_skills": [m.to_dict() for m in matched.skills],
            "extracted_constraints": [m.to_dict() for m in matched.constraints],
            "key_themes": analysis.key_themes,
            "sentiment": analysis.sentiment,
            "overall_mood": analysis.overall_mood,
        },
        person_id=request.coach_id,
        player_id=request.player_id or matched.single_player_id(),
        session_id=request.session_id,
        analysis=analysis.summary,
        recommendation="; ".join(analysis.actionable_insights) or None,
    )
    db.add(log)

    intake.processed = True
    intake.processed_at = datetime.now(timezone.utc)
    db.flush()

    link_entities(db, log.id, matched, entry_type)

    return {
        "observation_log_id": log.id,
        "intake_id": intake.id,
        "analysis": {
            **analysis.model_dump(),
            "matched_entities": matched.as_dict(),
        },
    }
