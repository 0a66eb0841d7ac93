"""
Tests for practice plan generation (PDP-driven and ARC-driven).
"""
from models import AgentEvent, PDP, PracticeSession, PracticeSessionBlock

PLAN = {
    "session_plan": [
        {"block_name": "Rondo Warmup", "format": "4v1", "skills": ["Passing"], "duration_minutes": 10},
        {"block_name": "Closeout Chaos", "format": "3v3", "skills": ["Catch and Shoot"],
         "constraints": ["Limited Dribbles"], "players": ["p1"], "coaching_cues": ["Feet set early"]},
        {"block_name": "Scrimmage", "format": "5v5"},
    ],
    "session_title": "Advantage Day",
}


def _block_rows(db_session, session_id):
    db_session.expire_all()
    return (
        db_session.query(PracticeSessionBlock)
        .filter_by(session_id=session_id)
        .order_by(PracticeSessionBlock.block_order)
        .all()
    )


def test_new_session_is_inserted_with_completed_blocks(client, seeded, fake_llm):
    fake_llm.queue(PLAN)

    response = client.post("/api/generate-blocks", json={
        "coach_id": "c1", "group_id": "g1", "theme": "Advantage", "duration": 60,
        "session_date": "2025-06-01",
    })

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["db_operation"] == "insert"
    assert data["status"] == "pending_approval"

    plan = data["session_plan"]
    blocks = plan["session_plan"]
    assert [b["block_order"] for b in blocks] == [1, 2, 3]
    assert blocks[0]["duration_minutes"] == 10
    # Blocks without a duration get an even share of the session
    assert blocks[1]["duration_minutes"] == 20
    assert blocks[1]["session_date"] == "2025-06-01"
    assert blocks[2]["feedback_fields"]["attendance"] == []
    assert plan["overall_theme_tags"] == ["Advantage"]
    assert sorted(plan["planned_attendance"]) == ["p1", "p2", "p3", "p4", "p5"]

    session = seeded.get(PracticeSession, data["session_id"])
    assert session.title == "Advantage Day"
    assert session.team_id == "g1"
    assert [(r.block_order, r.block_name) for r in _block_rows(seeded, data["session_id"])] == [
        (1, "Rondo Warmup"), (2, "Closeout Chaos"), (3, "Scrimmage"),
    ]


def test_existing_session_is_updated_in_place(client, seeded, fake_llm):
    fake_llm.queue(PLAN)

    response = client.post("/api/generate-blocks", json={"coach_id": "c1", "group_id": "g1", "session_id": "s1"})

    data = response.json()
    assert data["db_operation"] == "update"
    assert data["session_id"] == "s1"

    seeded.expire_all()
    assert seeded.query(PracticeSession).count() == 1
    session = seeded.get(PracticeSession, "s1")
    assert session.title == "Tuesday Practice"
    assert len(session.blocks) == 3
    assert len(_block_rows(seeded, "s1")) == 3


def test_regenerating_replaces_block_rows(client, seeded, fake_llm):
    fake_llm.queue(PLAN, {"session_plan": [{"block_name": "Shell Drill"}]})

    client.post("/api/generate-blocks", json={"coach_id": "c1", "group_id": "g1", "session_id": "s1"})
    client.post("/api/generate-blocks", json={"coach_id": "c1", "group_id": "g1", "session_id": "s1"})

    rows = _block_rows(seeded, "s1")
    assert [r.block_name for r in rows] == ["Shell Drill"]
    assert rows[0].duration == 15


def test_request_attendance_and_current_pdps_drive_the_prompt(client, seeded, fake_llm):
    seeded.add(PDP(
        id="pdp-1", person_id="p1", is_current=True, skill_tags=["Catch and Shoot"],
        constraint_tags=["Limited Dribbles"], primary_focus="Catch and Shoot",
    ))
    seeded.commit()
    fake_llm.queue(PLAN)

    response = client.post("/api/generate-blocks", json={
        "coach_id": "c1", "group_id": "g1",
        "attendance_data": [
            {"person_id": "p1", "present": True},
            {"person_id": "p2", "present": True},
            {"person_id": "p3", "present": False},
        ],
    })

    assert response.json()["session_plan"]["planned_attendance"] == ["p1", "p2"]
    [request] = fake_llm.requests
    assert request.purpose == "generate_blocks"
    assert '"pdp_id": "pdp-1"' in request.user
    # Only players with a usable PDP are described once any exist
    assert '"person_id": "p2"' not in request.user


def test_arc_driven_plan_uses_levels_and_drill_bank(client, seeded, fake_llm):
    fake_llm.queue(PLAN)

    response = client.post("/api/generate-blocks", json={
        "coach_id": "c1", "group_id": "g1", "duration": 90,
        "responsibility_level": 4, "collective_growth_level": 3,
    })

    assert response.status_code == 200
    plan = response.json()["session_plan"]
    assert plan["overall_theme_tags"] == ["On-Court Co-Leader / Shared Decision Rules"]
    assert plan["collective_growth_phase"] == 3
    assert plan["responsibility_tiers"] == [4]

    [request] = fake_llm.requests
    assert request.purpose == "generate_blocks_arc"
    assert "Drill bank" in request.user
    assert "90 minutes" in request.user


def test_arc_driven_requires_duration(client, seeded, fake_llm):
    response = client.post("/api/generate-blocks", json={
        "coach_id": "c1", "group_id": "g1", "responsibility_level": 4, "collective_growth_level": 3,
    })
    assert response.status_code == 400
    assert response.json()["error"] == "duration is required"
    assert fake_llm.requests == []


def test_no_players_returns_400(client, seeded, fake_llm):
    response = client.post("/api/generate-blocks", json={"coach_id": "c1", "group_id": "empty"})

    assert response.status_code == 400
    assert response.json()["error"] == "No attendance data available and no players found in the group"
    seeded.expire_all()
    assert seeded.query(AgentEvent).filter_by(event_type="generate_blocks_error").count() == 1


def test_plan_without_blocks_returns_500_and_writes_nothing(client, seeded, fake_llm):
    fake_llm.queue({"session_plan": []})

    response = client.post("/api/generate-blocks", json={"coach_id": "c1", "group_id": "g1"})

    assert response.status_code == 500
    seeded.expire_all()
    assert seeded.query(PracticeSession).count() == 1


def test_out_of_range_duration_returns_400(client, seeded):
    response = client.post("/api/generate-blocks", json={"coach_id": "c1", "duration": 5})
    assert response.status_code == 400
    assert response.json()["success"] is False
