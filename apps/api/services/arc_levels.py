"""
ARC vocabulary: Advancement (A), Responsibility (R), Collective growth (C).

A is a per-player skill progression (1-9), R a per-player role tier (1-6),
C a whole-team cohesion phase (1-6). Names and descriptions are shown to
coaches and embedded in prompts so the model reasons with the same scale.
"""
from typing import Dict, NamedTuple, Optional


class ArcLevel(NamedTuple):
    value: int
    name: str
    description: str


ADVANCEMENT_LEVELS: Dict[int, ArcLevel] = {
    1: ArcLevel(1, "Base & Balance", "Fundamental movement skills, body control, and athletic stance."),
    2: ArcLevel(2, "Ball Control", "Basic dribbling, passing, and receiving skills; comfort with the ball."),
    3: ArcLevel(3, "Finishing Foundation", "Developing layups (both hands), basic post moves, and close-range shots."),
    4: ArcLevel(4, "Reading Advantage", "Recognizing simple advantages (e.g., 2v1, open teammate) and making appropriate decisions."),
    5: ArcLevel(5, "Creating Advantage", "Using individual skills (dribble moves, screens) to create scoring opportunities for self or others."),
    6: ArcLevel(6, "Maintaining Advantage", "Sustaining offensive flow, making secondary reads, and exploiting continued defensive imbalance."),
    7: ArcLevel(7, "Layered Reads", "Processing multiple defensive actions and reactions to make complex decisions."),
    8: ArcLevel(8, "Complex Scenarios", "Executing in late-game situations, special plays, or against sophisticated defenses."),
    9: ArcLevel(9, "Endgame Creation", "Consistently making high-level plays under pressure; elite decision-making and execution."),
}

RESPONSIBILITY_TIERS: Dict[int, ArcLevel] = {
    1: ArcLevel(1, "Development Cadre", "Focus on individual skill acquisition and understanding basic team concepts."),
    2: ArcLevel(2, "Rotational Contributor", "Executes specific roles effectively within limited minutes or situations."),
    3: ArcLevel(3, "Trusted Role Player", "Reliably performs defined team roles and makes consistent positive contributions."),
    4: ArcLevel(4, "On-Court Co-Leader", "Communicates effectively and helps guide teammates within the team system."),
    5: ArcLevel(5, "Team Leader", "Primary on-court leader; sets tone and owns significant tactical execution."),
    6: ArcLevel(6, "Core Anchor", "System revolves around their strengths; embodies team identity and culture."),
}

COLLECTIVE_GROWTH_PHASES: Dict[int, ArcLevel] = {
    1: ArcLevel(1, "Foundation & Familiarity", "Team learning basic structure, roles, and communication; high coach dependency."),
    2: ArcLevel(2, "Collective Constraints & Roles", "Team operating within shared constraints and defined roles; significant coach scaffolding."),
    3: ArcLevel(3, "Shared Decision Rules", "Players use shared heuristics to solve common game problems; less direct cueing needed."),
    4: ArcLevel(4, "Autonomous Execution", "Team executes tactical plans with minimal coach intervention."),
    5: ArcLevel(5, "Collective Accountability", "Players hold each other to team standards; peer coaching emerges."),
    6: ArcLevel(6, "Self-Regulating Cohesion", "Team adapts fluidly and self-manages culture and performance; coach as facilitator."),
}

# Defaults for players with no recorded ARC metrics
DEFAULT_ADVANCEMENT = 3
DEFAULT_RESPONSIBILITY = 2
DEFAULT_COLLECTIVE_GROWTH = 3


def describe(scale: Dict[int, ArcLevel], value: Optional[int]) -> str:
    """Human-readable 'N - Name: description' for a level, or 'unknown'."""
    if value is None or value not in scale:
        return "unknown"
    level = scale[value]
    return f"{level.value} - {level.name}: {level.description}"


def clamp(scale: Dict[int, ArcLevel], value: Optional[int], default: int) -> int:
    """Coerce a possibly-missing or out-of-range level into the scale."""
    if value is None:
        return default
    low, high = min(scale), max(scale)
    return max(low, min(high, int(value)))
