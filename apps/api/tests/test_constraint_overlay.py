"""
Tests for per-player constraint overlays.
"""
import pytest

from models import PDP, AgentEvent, PracticeSession
from services.constraint_overlay import DEFAULT_TEAM_R_LEVEL, parse_team_r_level

RELEVANT = {
    "is_relevant": True,
    "focus_areas": ["Feet set before the catch"],
    "coaching_cues": ["Show your hands"],
    "intensity_modification": "increase",
    "challenge_point": 7,
    "challenge_type": "decision_complexity",
    "success_metrics": ["3 of 5 catch-and-shoot makes"],
}
IRRELEVANT = {"is_relevant": False}


@pytest.mark.parametrize("value,expected", [
    (4, 4),
    (4.0, 4),
    ([5, 2], 5),
    ({"level": 2}, 2),
    ({"current_R_level": 6}, 6),
    (9, 6),
    (0, 1),
    (None, DEFAULT_TEAM_R_LEVEL),
    ([], DEFAULT_TEAM_R_LEVEL),
    (["high"], DEFAULT_TEAM_R_LEVEL),
    ({"tier": 4}, DEFAULT_TEAM_R_LEVEL),
    ("4", DEFAULT_TEAM_R_LEVEL),
    (True, DEFAULT_TEAM_R_LEVEL),
])
def test_parse_team_r_level(value, expected):
    assert parse_team_r_level(value) == expected


@pytest.fixture
def with_pdps(seeded):
    seeded.add_all([
        PDP(id="pdp-1", person_id="p1", person_name="Jayden Smith", is_current=True,
            skill_tags=["Catch and Shoot"], advancement_level=4, pdp_text_player="Feet set, shoot with confidence."),
        PDP(id="pdp-2", person_id="p2", person_name="Marcus Lee", is_current=True,
            skill_tags=["Ball Handling"], advancement_level=5),
        PDP(id="pdp-old", person_id="p3", person_name="Tyrese Brown", is_current=False),
    ])
    seeded.commit()
    return seeded


def _overlay(client, session_id="s1"):
    return client.post("/api/overlay-constraints", json={"session_id": session_id, "coach_id": "c1"})


def test_one_call_per_block_and_player_irrelevant_pairs_skipped(client, with_pdps, fake_llm):
    # Blocks in order, then players in PDP order within each block
    fake_llm.queue(RELEVANT, IRRELEVANT, IRRELEVANT, RELEVANT)

    response = _overlay(client)

    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Constraint overlays with challenge points generated successfully"
    overlays = data["constraint_overlay"]["block_overlays"]
    assert [(o["block_order"], o["block_name"]) for o in overlays] == [(1, "Rondo Warmup"), (2, "Advantage Finishing")]
    assert len(fake_llm.requests) == 4
    assert all(len(o["player_constraints"]) == 1 for o in overlays)

    first = overlays[0]["player_constraints"][0]
    assert first["challenge_point"] == 7
    assert first["player_name"] in ("Jayden Smith", "Marcus Lee")
    assert "is_relevant" not in first


def test_prompt_carries_team_levels_from_session(client, with_pdps, fake_llm):
    fake_llm.default = IRRELEVANT

    _overlay(client)

    prompt = fake_llm.requests[0].user
    assert "4 - On-Court Co-Leader" in prompt
    assert "2 - Collective Constraints & Roles" in prompt
    assert "Rondo Warmup" in prompt


def test_players_come_from_group_roster_when_nothing_planned(client, with_pdps, fake_llm):
    session = with_pdps.get(PracticeSession, "s1")
    session.planned_attendance = []
    with_pdps.commit()
    fake_llm.default = RELEVANT

    overlays = _overlay(client).json()["constraint_overlay"]["block_overlays"]

    assert {pc["player_id"] for pc in overlays[0]["player_constraints"]} == {"p1", "p2"}


def test_malformed_overlay_returns_500(client, with_pdps, fake_llm):
    fake_llm.queue({"is_relevant": True, "challenge_point": 42})
    response = _overlay(client)
    assert response.status_code == 500
    assert response.json()["success"] is False


def test_one_bad_pair_fails_the_whole_overlay(client, with_pdps, fake_llm):
    fake_llm.queue(RELEVANT, IRRELEVANT, RELEVANT, "no json here")

    response = _overlay(client)

    assert response.status_code == 500
    data = response.json()
    assert data["success"] is False
    assert "constraint_overlay" not in data
    assert len(fake_llm.requests) == 4
    with_pdps.expire_all()
    assert "overlay_constraints_error" in {e.event_type for e in with_pdps.query(AgentEvent).all()}


def test_session_without_blocks_returns_400(client, seeded, fake_llm):
    seeded.add(PracticeSession(id="s-empty", team_id="g1", status="pending_approval", session_plan={"session_plan": []}))
    seeded.commit()

    response = _overlay(client, "s-empty")

    assert response.status_code == 400
    assert response.json()["error"] == "Session s-empty has no practice blocks"


def test_session_without_players_returns_empty_overlay(client, seeded, fake_llm):
    seeded.add(PracticeSession(id="s-solo", status="pending_approval", session_plan={"session_plan": [{"block_name": "Shooting"}]}))
    seeded.commit()

    response = _overlay(client, "s-solo")

    assert response.status_code == 200
    data = response.json()
    assert data["constraint_overlay"] == {"session_id": "s-solo", "block_overlays": []}
    assert data["message"] == "No players found for this session to overlay constraints"
    assert fake_llm.requests == []


def test_unknown_session_returns_404(client, seeded):
    assert _overlay(client, "nope").status_code == 404
