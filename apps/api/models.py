from sqlalchemy import Column, Integer, Boolean, CheckConstraint, Date, DateTime, ForeignKey, JSON, Text, Index, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from core.database import Base
import uuid
from datetime import date, datetime, timezone
from typing import Any, Dict

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SerializableMixin:
    """Column-only dict view of a row for JSON responses."""

    def as_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for column in self.__table__.columns:
            value = getattr(self, column.key)
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            out[column.key] = value
        return out


class Person(SerializableMixin, Base):
    """A player or coach. ARC metrics are only meaningful for players."""
    __tablename__ = "person"

    id = Column(Text, primary_key=True, default=_new_id)
    display_name = Column(Text, nullable=True)
    first_name = Column(Text, nullable=True)
    last_name = Column(Text, nullable=True)
    email = Column(Text, nullable=True)
    roles = Column(JSONType, nullable=False, default=list)  # e.g. ["player"], ["coach"]
    aliases = Column(JSONType, nullable=False, default=list)  # nicknames used in coach notes

    # ARC: Advancement (1-9), Responsibility (1-6), Collective growth (1-6)
    advancement_level = Column(Integer, nullable=True)
    responsibility_tier = Column(Integer, nullable=True)
    collective_growth_phase = Column(Integer, nullable=True)

    primary_focus = Column(Text, nullable=True)
    secondary_focus = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=True)

    __table_args__ = (
        CheckConstraint("advancement_level IS NULL OR advancement_level BETWEEN 1 AND 9", name="ck_person_advancement_level"),
        CheckConstraint("responsibility_tier IS NULL OR responsibility_tier BETWEEN 1 AND 6", name="ck_person_responsibility_tier"),
        CheckConstraint("collective_growth_phase IS NULL OR collective_growth_phase BETWEEN 1 AND 6", name="ck_person_collective_growth_phase"),
    )

    @property
    def best_name(self) -> str:
        if self.display_name:
            return self.display_name
        full = " ".join(p for p in (self.first_name, self.last_name) if p)
        return full or "Unknown"


class Group(SerializableMixin, Base):
    """A team or pod."""
    __tablename__ = "group"

    id = Column(Text, primary_key=True, default=_new_id)
    name = Column(Text, nullable=False)
    group_type = Column(Text, nullable=False, default="team")  # 'team' | 'pod'
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class PersonGroup(SerializableMixin, Base):
    """Roster membership."""
    __tablename__ = "person_group"

    id = Column(Text, primary_key=True, default=_new_id)
    person_id = Column(Text, ForeignKey("person.id"), nullable=False, index=True)
    group_id = Column(Text, ForeignKey("group.id"), nullable=False, index=True)
    role = Column(Text, nullable=False, default="player")  # 'player' | 'coach'
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("person_id", "group_id", "role", name="uq_person_group_role"),
    )


class PracticeSession(SerializableMixin, Base):
    """
    A practice session and its generated plan.

    session_plan holds the full plan document: the ordered block list under
    "session_plan" plus top-level metadata (theme tags, attendance, reflection
    fields). Status moves pending_approval -> approved | rejected, and
    updated_with_notes once a coach annotates it.
    """
    __tablename__ = "session"

    id = Column(Text, primary_key=True, default=_new_id)
    title = Column(Text, nullable=True)
    objective = Column(Text, nullable=True)
    team_id = Column(Text, ForeignKey("group.id"), nullable=True, index=True)
    pod_id = Column(Text, nullable=True)
    coach_id = Column(Text, nullable=True, index=True)
    status = Column(Text, nullable=False, default="pending_approval")
    session_date = Column(Date, nullable=True)
    duration_minutes = Column(Integer, nullable=True)

    session_plan = Column(JSONType, nullable=True)
    overall_theme_tags = Column(JSONType, nullable=False, default=list)
    collective_growth_phase = Column(Integer, nullable=True)
    responsibility_tiers = Column(JSONType, nullable=True)
    advancement_levels = Column(JSONType, nullable=True)
    planned_attendance = Column(JSONType, nullable=False, default=list)  # person ids
    session_notes = Column(Text, nullable=True)
    reflection_fields = Column(JSONType, nullable=False, default=dict)

    created_by = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    last_updated = Column(DateTime(timezone=True), default=_utcnow, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def blocks(self) -> list:
        plan = self.session_plan
        if isinstance(plan, dict):
            blocks = plan.get("session_plan")
        else:
            blocks = plan
        return list(blocks) if isinstance(blocks, list) else []


class PracticeSessionBlock(SerializableMixin, Base):
    """Index row per generated block, for block-level reporting."""
    __tablename__ = "mpbc_practice_session_blocks"

    id = Column(Text, primary_key=True, default=_new_id)
    session_id = Column(Text, ForeignKey("session.id"), nullable=False, index=True)
    block_id = Column(Text, nullable=True)
    block_order = Column(Integer, nullable=False)
    block_name = Column(Text, nullable=True)
    duration = Column(Integer, nullable=True)  # minutes
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class PDP(SerializableMixin, Base):
    """
    Player development plan.

    Versioned: exactly one row per player has is_current=True. Older
    versions are archived (is_current=False, archived_at set) and chained
    through previous_version_id; they are never deleted.
    """
    __tablename__ = "pdp"

    id = Column(Text, primary_key=True, default=_new_id)
    person_id = Column(Text, ForeignKey("person.id"), nullable=False, index=True)
    person_name = Column(Text, nullable=True)
    is_current = Column(Boolean, nullable=False, default=True)
    status = Column(Text, nullable=False, default="pending_approval")  # pending_approval | approved

    pdp_text_coach = Column(Text, nullable=True)
    pdp_text_player = Column(Text, nullable=True)
    pdp_full_text = Column(Text, nullable=True)
    primary_focus = Column(Text, nullable=True)
    secondary_focus = Column(Text, nullable=True)
    skills_summary = Column(Text, nullable=True)
    constraints_summary = Column(Text, nullable=True)

    skill_tags = Column(JSONType, nullable=False, default=list)
    constraint_tags = Column(JSONType, nullable=False, default=list)
    theme_tags = Column(JSONType, nullable=False, default=list)
    actionable_goals = Column(JSONType, nullable=False, default=list)
    coaching_recommendations = Column(JSONType, nullable=False, default=list)
    source_observation_ids = Column(JSONType, nullable=False, default=list)

    advancement_level = Column(Integer, nullable=True)
    responsibility_tier = Column(Integer, nullable=True)
    collective_growth_phase = Column(Integer, nullable=True)
    target_advancement_level = Column(Integer, nullable=True)
    target_responsibility_tier = Column(Integer, nullable=True)

    previous_version_id = Column(Text, ForeignKey("pdp.id"), nullable=True)
    created_by = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=True)
    archived_at = Column(DateTime(timezone=True), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_pdp_person_current", "person_id", "is_current"),
    )


class Tag(SerializableMixin, Base):
    """Controlled vocabulary of skills, constraints and themes."""
    __tablename__ = "tag"

    id = Column(Text, primary_key=True, default=_new_id)
    name = Column(Text, nullable=False)
    tag_name = Column(Text, nullable=True)  # display variant
    tag_type = Column(Text, nullable=False, index=True)  # 'skill' | 'constraint' | 'theme'
    category = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    synonyms = Column(JSONType, nullable=False, default=list)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class TagSuggestion(SerializableMixin, Base):
    """Extracted tag text with no vocabulary match, queued for review."""
    __tablename__ = "tag_suggestions"

    id = Column(Text, primary_key=True, default=_new_id)
    suggested_tag = Column(Text, nullable=False)
    proposed_type = Column(Text, nullable=True)
    source_table = Column(Text, nullable=True)
    reviewed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class FlaggedName(SerializableMixin, Base):
    """Extracted player name with no roster match, queued for review."""
    __tablename__ = "flagged_names"

    id = Column(Text, primary_key=True, default=_new_id)
    flagged_name = Column(Text, nullable=False)
    observation_text = Column(Text, nullable=True)
    attempted_match = Column(Text, nullable=True)
    resolution_status = Column(Text, nullable=False, default="unmatched")
    flagged_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class ObservationIntake(SerializableMixin, Base):
    """Raw coach note awaiting (or after) analysis."""
    __tablename__ = "observation_intake"

    id = Column(Text, primary_key=True, default=_new_id)
    raw_note = Column(Text, nullable=False)
    coach_id = Column(Text, nullable=True, index=True)
    session_id = Column(Text, nullable=True)
    player_id = Column(Text, nullable=True)
    group_id = Column(Text, nullable=True)
    processed = Column(Boolean, nullable=False, default=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class ObservationLog(SerializableMixin, Base):
    """Analyzed observation, reflection or session note."""
    __tablename__ = "observation_logs"

    id = Column(Text, primary_key=True, default=_new_id)
    observation_id = Column(Text, nullable=True)  # free link (session id, intake id)
    entry_type = Column(Text, nullable=False, default="coach_observation")
    payload = Column(JSONType, nullable=False, default=dict)
    person_id = Column(Text, nullable=True, index=True)  # authoring coach
    player_id = Column(Text, nullable=True, index=True)
    session_id = Column(Text, nullable=True, index=True)
    analysis = Column(Text, nullable=True)
    recommendation = Column(Text, nullable=True)
    advancement_level = Column(Integer, nullable=True)
    responsibility_tier = Column(Integer, nullable=True)
    collective_growth_phase = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)


class ObservationTag(SerializableMixin, Base):
    """Link from an observation log to a matched player or tag."""
    __tablename__ = "observation_tags"

    id = Column(Text, primary_key=True, default=_new_id)
    observation_id = Column(Text, ForeignKey("observation_logs.id"), nullable=False, index=True)
    tag_id = Column(Text, nullable=False)  # tag.id or person.id depending on entity_type
    tag_name = Column(Text, nullable=True)
    entity_type = Column(Text, nullable=False)  # 'player' | 'skill' | 'constraint'
    relevance_score = Column(Integer, nullable=True)  # 0-100
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class Attendance(SerializableMixin, Base):
    """Presence record; one row per (session, person), upserted."""
    __tablename__ = "attendance"

    id = Column(Text, primary_key=True, default=_new_id)
    session_id = Column(Text, ForeignKey("session.id"), nullable=False, index=True)
    person_id = Column(Text, ForeignKey("person.id"), nullable=False, index=True)
    present = Column(Boolean, nullable=False, default=True)
    status = Column(Text, nullable=False, default="present")  # 'present' | 'absent'
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=True)

    __table_args__ = (
        UniqueConstraint("session_id", "person_id", name="uq_attendance_session_person"),
    )


class AgentEvent(SerializableMixin, Base):
    """Audit trail of agent runs. Written best-effort."""
    __tablename__ = "agent_events"

    id = Column(Text, primary_key=True, default=_new_id)
    event_type = Column(Text, nullable=False, index=True)
    agent_id = Column(Text, nullable=True)
    player_id = Column(Text, nullable=True)
    team_id = Column(Text, nullable=True)
    details = Column(JSONType, nullable=False, default=dict)
    status = Column(Text, nullable=False, default="completed")  # started | completed | error
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
