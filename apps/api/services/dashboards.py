"""
Read models for the coach, player and analytics dashboards.
"""

from __future__ import annotations

from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func, or_, select
from sqlalchemy.orm import Session

from core.exceptions import NotFoundError
from models import PDP, Attendance, ObservationLog, ObservationTag, Person, PracticeSession
from services.entity_matcher import load_group_roster

RECENT_LIMIT = 5


def _session_card(session: PracticeSession) -> Dict[str, Any]:
    return {
        "id": session.id,
        "title": session.title,
        "session_date": session.session_date.isoformat() if session.session_date else None,
        "status": session.status,
        "overall_theme_tags": session.overall_theme_tags or [],
        "block_count": len(session.blocks),
        "duration_minutes": session.duration_minutes,
    }


def _player_observations(db: Session, person_id: str, limit: int) -> List[ObservationLog]:
    tagged = select(ObservationTag.observation_id).where(
        ObservationTag.entity_type == "player", ObservationTag.tag_id == person_id
    )
    return (
        db.query(ObservationLog)
        .filter(or_(ObservationLog.player_id == person_id, ObservationLog.id.in_(tagged)))
        .order_by(ObservationLog.created_at.desc())
        .limit(limit)
        .all()
    )


def player_dashboard(db: Session, person_id: str) -> Dict[str, Any]:
    person = db.get(Person, person_id)
    if person is None:
        raise NotFoundError("Player", person_id)

    pdp = (
        db.query(PDP)
        .filter(PDP.person_id == person_id, PDP.is_current.is_(True))
        .order_by(PDP.created_at.desc())
        .first()
    )

    attended = (
        db.query(PracticeSession)
        .join(Attendance, Attendance.session_id == PracticeSession.id)
        .filter(Attendance.person_id == person_id, Attendance.present.is_(True))
        .order_by(PracticeSession.session_date.desc())
        .limit(RECENT_LIMIT)
        .all()
    )

    # planned_attendance is a JSON list, so membership is checked here rather than in SQL
    upcoming_candidates = (
        db.query(PracticeSession)
        .filter(PracticeSession.session_date >= date.today())
        .order_by(PracticeSession.session_date.asc())
        .all()
    )
    upcoming = [s for s in upcoming_candidates if person_id in (s.planned_attendance or [])][:RECENT_LIMIT]

    observations = _player_observations(db, person_id, RECENT_LIMIT)

    return {
        "player": {
            "id": person.id,
            "display_name": person.best_name,
            "first_name": person.first_name,
            "last_name": person.last_name,
            "roles": person.roles or [],
            "advancement_level": person.advancement_level,
            "responsibility_tier": person.responsibility_tier,
            "collective_growth_phase": person.collective_growth_phase,
        },
        "current_pdp": pdp.as_dict() if pdp is not None else None,
        "recent_sessions": [_session_card(s) for s in attended],
        "upcoming_sessions": [_session_card(s) for s in upcoming],
        "recent_observations": [
            {
                "id": o.id,
                "entry_type": o.entry_type,
                "analysis": o.analysis,
                "recommendation": o.recommendation,
                "created_at": o.created_at.isoformat() if o.created_at else None,
            }
            for o in observations
        ],
    }


def coach_summary(db: Session, group_id: str, coach_id: Optional[str] = None) -> Dict[str, Any]:
    sessions = db.query(PracticeSession).filter(PracticeSession.team_id == group_id)
    if coach_id:
        sessions = sessions.filter(PracticeSession.coach_id == coach_id)

    pending = (
        sessions.filter(PracticeSession.status == "pending_approval")
        .order_by(PracticeSession.session_date.desc())
        .all()
    )
    recent = (
        sessions.order_by(PracticeSession.session_date.desc(), PracticeSession.created_at.desc())
        .limit(RECENT_LIMIT)
        .all()
    )

    roster = load_group_roster(db, group_id)
    roster_ids = [p.id for p in roster]
    pdp_status = Counter()
    if roster_ids:
        rows = (
            db.query(PDP.status, func.count(PDP.id))
            .filter(PDP.person_id.in_(roster_ids), PDP.is_current.is_(True))
            .group_by(PDP.status)
            .all()
        )
        pdp_status.update(dict(rows))

    return {
        "group_id": group_id,
        "pending_approvals": [_session_card(s) for s in pending],
        "pending_approval_count": len(pending),
        "recent_sessions": [_session_card(s) for s in recent],
        "player_stats": {
            "total_players": len(roster),
            "players_with_current_pdp": sum(pdp_status.values()),
            "pdps_pending_approval": pdp_status.get("pending_approval", 0),
            "pdps_approved": pdp_status.get("approved", 0),
        },
    }


def _analytics_players(db: Session, group_id: Optional[str]) -> List[Person]:
    if group_id:
        return load_group_roster(db, group_id)
    people = db.query(Person).order_by(Person.display_name).all()
    return [p for p in people if "player" in (p.roles or [])]


def player_analytics(db: Session, group_id: Optional[str] = None, days: Optional[int] = None) -> Dict[str, Any]:
    """Attendance rate and PDP status per player, plus team totals over an optional window."""
    players = _analytics_players(db, group_id)
    player_ids = [p.id for p in players]
    since = datetime.now(timezone.utc) - timedelta(days=days) if days else None

    attendance: Dict[str, Any] = {}
    pdps: Dict[str, PDP] = {}
    if player_ids:
        q = db.query(
            Attendance.person_id,
            func.count(Attendance.id),
            func.sum(case((Attendance.present.is_(True), 1), else_=0)),
        ).filter(Attendance.person_id.in_(player_ids))
        if since is not None:
            q = q.filter(Attendance.created_at >= since)
        attendance = {pid: (total, present or 0) for pid, total, present in q.group_by(Attendance.person_id).all()}

        for pdp in (
            db.query(PDP)
            .filter(PDP.person_id.in_(player_ids), PDP.is_current.is_(True))
            .order_by(PDP.created_at.desc())
            .all()
        ):
            pdps.setdefault(pdp.person_id, pdp)

    rows = []
    for person in players:
        total, present = attendance.get(person.id, (0, 0))
        pdp = pdps.get(person.id)
        rows.append({
            "id": person.id,
            "display_name": person.best_name,
            "advancement_level": (pdp.advancement_level if pdp else None) or person.advancement_level,
            "attendance_rate": round(present / total * 100) if total else 0,
            "sessions_recorded": total,
            "skills_in_focus": (pdp.skill_tags or []) if pdp else [],
            "pdp_status": pdp.status if pdp else None,
            "pdp_updated_at": pdp.updated_at.isoformat() if pdp and pdp.updated_at else None,
        })

    sessions = db.query(PracticeSession)
    if group_id:
        sessions = sessions.filter(PracticeSession.team_id == group_id)
    if since is not None:
        sessions = sessions.filter(PracticeSession.created_at >= since)
    skill_counts = Counter()
    practice_count = 0
    for session in sessions.all():
        practice_count += 1
        for block in session.blocks:
            skill_counts.update(s for s in block.get("skills") or [] if isinstance(s, str))

    return {
        "players": rows,
        "team": {
            "total_players": len(players),
            "overall_attendance_rate": round(sum(r["attendance_rate"] for r in rows) / len(rows)) if rows else 0,
            "top_skills": [{"skill": s, "count": c} for s, c in skill_counts.most_common(5)],
            "practice_frequency": practice_count,
            "active_pdps": len(pdps),
        },
    }
