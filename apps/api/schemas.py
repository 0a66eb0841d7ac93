from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from datetime import date
from typing import Annotated, Any, Dict, List, Optional, Union


def _as_list(value: Any) -> Any:
    """Accept a bare string where a list is expected; treat null as empty."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    return value


# ---------------------------------------------------------------------------
# Request bodies
#
# Required fields are Optional here and checked with require_fields() so a
# missing value produces the same 400 body as a blank one.
# ---------------------------------------------------------------------------


class AttendanceRecord(BaseModel):
    person_id: Optional[str] = None
    present: bool = False
    note: Optional[str] = None


class AttendanceVerificationRequest(BaseModel):
    reflection_text: Optional[str] = None
    group_id: Optional[str] = None
    coach_id: Optional[str] = None
    session_id: Optional[str] = None


class AttendanceLogRequest(BaseModel):
    session_id: Optional[str] = None
    coach_id: Optional[str] = None
    attendance_data: Optional[List[AttendanceRecord]] = None
    group_id: Optional[str] = None


class GeneratePDPRequest(BaseModel):
    person_id: Optional[str] = None
    coach_id: Optional[str] = None
    focus_text: Optional[str] = None
    include_observations_days: Optional[int] = Field(default=None, ge=1, le=365)
    group_id: Optional[str] = None


class GenerateBlocksRequest(BaseModel):
    coach_id: Optional[str] = None
    group_id: Optional[str] = None
    session_id: Optional[str] = None
    pod_id: Optional[str] = None
    session_date: Optional[date] = None
    theme: Optional[str] = None
    duration: Optional[int] = Field(default=None, ge=15, le=240)
    collective_growth_phase: Optional[int] = Field(default=None, ge=1, le=6)
    attendance_data: Optional[List[AttendanceRecord]] = None
    # ARC-driven variant (coach dashboard)
    responsibility_level: Optional[int] = Field(default=None, ge=1, le=6)
    collective_growth_level: Optional[int] = Field(default=None, ge=1, le=6)

    @property
    def is_arc_driven(self) -> bool:
        return self.responsibility_level is not None and self.collective_growth_level is not None


class LogObservationRequest(BaseModel):
    observation: Optional[str] = None
    coach_id: Optional[str] = None
    session_id: Optional[str] = None
    player_id: Optional[str] = None
    group_id: Optional[str] = None
    observation_type: Optional[str] = None
    tags: Optional[List[str]] = None


class LogObservationSimpleRequest(BaseModel):
    observation: Optional[str] = None
    coach_id: Optional[str] = None
    session_id: Optional[str] = None
    player_id: Optional[str] = None
    group_id: Optional[str] = None


class LogReflectionRequest(BaseModel):
    reflection_text: Optional[str] = None
    coach_id: Optional[str] = None
    session_id: Optional[str] = None
    player_id: Optional[str] = None
    reflection_type: Optional[str] = None
    group_id: Optional[str] = None


class SessionNotesRequest(BaseModel):
    session_id: Optional[str] = None
    coach_id: Optional[str] = None
    note_text: Optional[str] = None
    note_type: Optional[str] = None
    group_id: Optional[str] = None


class OverlayConstraintsRequest(BaseModel):
    session_id: Optional[str] = None
    coach_id: Optional[str] = None


class SessionDecisionRequest(BaseModel):
    coach_id: Optional[str] = None
    reason: Optional[str] = None


class SessionEditRequest(BaseModel):
    coach_id: Optional[str] = None
    session_plan: Optional[List[Dict[str, Any]]] = None
    overall_theme_tags: Optional[List[str]] = None
    session_notes: Optional[str] = None
    title: Optional[str] = None


class PDPApproveRequest(BaseModel):
    coach_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Model output shapes
# ---------------------------------------------------------------------------


def _unit_confidence(value: Any) -> Any:
    """Models sometimes answer 85 meaning 85%."""
    if isinstance(value, (int, float)) and 1 < value <= 100:
        return value / 100.0
    return value


def _coerce_entities(value: Any) -> Any:
    value = _as_list(value)
    if not isinstance(value, list):
        return value
    out = []
    for item in value:
        if isinstance(item, str):
            # Blank names can't be matched to anything
            if item.strip():
                out.append({"name": item})
        elif isinstance(item, dict) and "name" not in item:
            alt = item.get("name_mentioned") or item.get("player_name") or item.get("tag")
            if isinstance(alt, str) and alt.strip():
                out.append({**item, "name": alt})
        elif isinstance(item, dict) and isinstance(item["name"], str) and not item["name"].strip():
            continue
        else:
            out.append(item)
    return out


StrList = Annotated[List[str], BeforeValidator(_as_list)]
LooseList = Annotated[List[Union[str, Dict[str, Any]]], BeforeValidator(_as_list)]
Confidence = Annotated[float, BeforeValidator(_unit_confidence), Field(ge=0.0, le=1.0)]


class ExtractedEntity(BaseModel):
    """A player, skill or constraint named in a coach's note."""
    name: str = Field(min_length=1)
    confidence: Confidence = 1.0

    @field_validator("name", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v


EntityList = Annotated[List[ExtractedEntity], BeforeValidator(_coerce_entities)]


class MentionedName(BaseModel):
    name_mentioned: str = Field(min_length=1)
    confidence: Confidence = 1.0


class ObservationAnalysis(BaseModel):
    summary: str
    recommendation: str = ""
    players: EntityList = Field(default_factory=list)
    skills: EntityList = Field(default_factory=list)
    constraints: EntityList = Field(default_factory=list)
    advancement_level: Optional[int] = Field(default=None, ge=1, le=9)
    responsibility_tier: Optional[int] = Field(default=None, ge=1, le=6)
    collective_growth_phase: Optional[int] = Field(default=None, ge=1, le=6)
    sentiment: str = "neutral"
    is_team_observation: bool = False


class ReflectionAnalysis(BaseModel):
    summary: str
    key_themes: StrList = Field(default_factory=list)
    mentioned_players: EntityList = Field(default_factory=list)
    mentioned_skills: EntityList = Field(default_factory=list)
    mentioned_constraints: EntityList = Field(default_factory=list)
    sentiment: str = "neutral"
    actionable_insights: StrList = Field(default_factory=list)
    overall_mood: Optional[str] = None


class SessionNoteAnalysis(BaseModel):
    summary: str
    key_points: StrList = Field(default_factory=list)
    sentiment: str = "neutral"
    energy_level_assessment: Optional[str] = None
    player_engagement_assessment: Optional[str] = None
    actionable_items: StrList = Field(default_factory=list)


class PDPDraft(BaseModel):
    pdp_text_coach: str = Field(min_length=1)
    pdp_text_player: str = Field(min_length=1)
    primary_focus: str = Field(min_length=1)
    secondary_focus: Optional[str] = None
    skill_tags: StrList = Field(default_factory=list)
    constraint_tags: StrList = Field(default_factory=list)
    theme_tags: StrList = Field(default_factory=list)
    actionable_goals: LooseList = Field(default_factory=list)
    coaching_recommendations: LooseList = Field(default_factory=list)
    skills_summary: Optional[str] = None
    constraints_summary: Optional[str] = None
    pdp_full_text: Optional[str] = None
    target_advancement_level: Optional[int] = Field(default=None, ge=1, le=9)
    target_responsibility_tier: Optional[int] = Field(default=None, ge=1, le=6)


class PracticeBlock(BaseModel):
    """One block of a generated practice. Unknown keys are kept."""
    model_config = ConfigDict(extra="allow")

    block_name: str = Field(min_length=1)
    format: Optional[str] = None
    skills: StrList = Field(default_factory=list)
    constraints: StrList = Field(default_factory=list)
    players: StrList = Field(default_factory=list)
    collective_growth_phase: Optional[Union[int, str]] = None
    coaching_cues: StrList = Field(default_factory=list)
    duration_minutes: Optional[int] = Field(default=None, ge=1, le=240)
    notes: Optional[str] = None


class PracticePlanDraft(BaseModel):
    session_plan: List[PracticeBlock] = Field(min_length=1)
    session_title: Optional[str] = None
    session_objective: Optional[str] = None


class ConstraintOverlayDraft(BaseModel):
    is_relevant: bool = False
    focus_areas: StrList = Field(default_factory=list)
    coaching_cues: StrList = Field(default_factory=list)
    intensity_modification: Optional[str] = None
    challenge_point: Optional[int] = Field(default=None, ge=1, le=10)
    challenge_type: Optional[str] = None
    success_metrics: StrList = Field(default_factory=list)
    notes: Optional[str] = None
