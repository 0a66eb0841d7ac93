"""
Tests for attendance verification and attendance logging endpoints.
"""
import pytest

from core.exceptions import LLMUnavailableError
from models import AgentEvent, Attendance, PracticeSession


def _event_types(db_session):
    db_session.expire_all()
    return {e.event_type for e in db_session.query(AgentEvent).all()}


class TestAttendanceVerification:

    def test_three_of_five_mentioned_yields_four_prompts(self, client, seeded, fake_llm):
        fake_llm.queue({"players": [
            {"name_mentioned": "Jay", "confidence": 0.9},
            {"name_mentioned": "Marcus", "confidence": 0.95},
            {"name_mentioned": "Tyrese Brown", "confidence": 0.99},
        ]})

        response = client.post("/api/attendance-verification", json={
            "reflection_text": "Jay hit his shots, Marcus ran the offense and Tyrese Brown defended well.",
            "group_id": "g1",
            "coach_id": "c1",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["using_service_role"] is True
        result = data["verification_result"]
        assert result["all_players_mentioned"] is False
        assert result["roster_size"] == 5
        assert result["mentioned_count"] == 3
        assert result["mentioned_raw_names"] == ["Jay", "Marcus", "Tyrese Brown"]

        prompts = result["missing_players_prompts"]
        assert len(prompts) == 4
        assert {p["player_id"] for p in prompts} == {"p4", "p5"}
        assert [p["prompt_type"] for p in prompts if p["player_id"] == "p4"] == ["absent_check", "add_confirmation"]
        assert "Was Andre Davis absent today?" in [p["suggested_prompt"] for p in prompts]

        assert _event_types(seeded) == {"attendance_verification_request", "attendance_verification_success"}

    def test_accepts_bare_array_of_strings(self, client, seeded, fake_llm):
        fake_llm.queue('["Jayden", "Marcus", "Tyrese", "Andre", "Caleb"]')
        response = client.post("/api/attendance-verification", json={
            "reflection_text": "Everyone played hard.", "group_id": "g1", "coach_id": "c1",
        })
        result = response.json()["verification_result"]
        assert result["all_players_mentioned"] is True
        assert result["missing_players_prompts"] == []

    def test_empty_roster_skips_model(self, client, seeded, fake_llm):
        response = client.post("/api/attendance-verification", json={
            "reflection_text": "Quiet day.", "group_id": "no-such-group", "coach_id": "c1",
        })
        assert response.status_code == 200
        result = response.json()["verification_result"]
        assert result["roster_size"] == 0
        assert result["all_players_mentioned"] is True
        assert fake_llm.requests == []

    def test_missing_fields_return_400(self, client, seeded):
        response = client.post("/api/attendance-verification", json={"group_id": "g1"})
        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "reflection_text and coach_id are required"

    def test_malformed_model_output_returns_500(self, client, seeded, fake_llm):
        fake_llm.queue("Sorry, I can't help with that.")
        response = client.post("/api/attendance-verification", json={
            "reflection_text": "Jay was good.", "group_id": "g1", "coach_id": "c1",
        })
        assert response.status_code == 500
        data = response.json()
        assert data["success"] is False
        assert "malformed JSON" in data["error"]
        assert "attendance_verification_error" in _event_types(seeded)

    def test_llm_unavailable_returns_500(self, client, seeded, fake_llm):
        fake_llm.queue(LLMUnavailableError("OPENAI_API_KEY not configured"))
        response = client.post("/api/attendance-verification", json={
            "reflection_text": "Jay was good.", "group_id": "g1", "coach_id": "c1",
        })
        assert response.status_code == 500
        assert response.json()["error"] == "OPENAI_API_KEY not configured"


class TestAttendanceLog:

    def _post(self, client, records, session_id="s1"):
        return client.post("/api/attendance-log", json={
            "session_id": session_id,
            "coach_id": "c1",
            "attendance_data": records,
        })

    def test_counts_add_up_and_rows_are_written(self, client, seeded):
        response = self._post(client, [
            {"person_id": "p1", "present": True},
            {"person_id": "p2", "present": True, "note": "late"},
            {"person_id": "p3", "present": False},
        ])

        assert response.status_code == 200
        data = response.json()
        assert data["present_count"] == 2
        assert data["absent_count"] == 1
        assert data["successful_upserts"] == 3
        assert data["total_attempted"] == 3
        assert data["errors"] == []

        seeded.expire_all()
        rows = {r.person_id: r for r in seeded.query(Attendance).filter_by(session_id="s1")}
        assert rows["p2"].note == "late"
        assert rows["p3"].status == "absent"
        assert seeded.get(PracticeSession, "s1").planned_attendance == ["p1", "p2"]

    def test_rerun_updates_instead_of_duplicating(self, client, seeded):
        self._post(client, [{"person_id": "p1", "present": True}, {"person_id": "p2", "present": True}])
        response = self._post(client, [{"person_id": "p1", "present": False}])

        assert response.json()["absent_count"] == 1
        seeded.expire_all()
        rows = seeded.query(Attendance).filter_by(session_id="s1").all()
        assert len(rows) == 2
        assert {r.person_id: r.present for r in rows} == {"p1": False, "p2": True}

    @pytest.mark.parametrize("records", [
        [{"person_id": "p1", "present": True}, {"person_id": "ghost", "present": True}],
        [{"present": True}, {"person_id": "p2", "present": False}, {"person_id": "p3", "present": True}],
        [{"person_id": "p1", "present": True}, {"person_id": "p1", "present": False}],
    ])
    def test_partial_failures_keep_counts_consistent(self, client, seeded, records):
        response = self._post(client, records)

        assert response.status_code == 200
        data = response.json()
        assert data["present_count"] + data["absent_count"] == data["successful_upserts"]
        assert data["successful_upserts"] == data["total_attempted"] - len(data["errors"])
        assert len(data["errors"]) == 1
        assert "attendance_log_partial_error" in _event_types(seeded)

    def test_duplicate_person_last_entry_wins(self, client, seeded):
        response = self._post(client, [
            {"person_id": "p1", "present": True},
            {"person_id": "p2", "present": True},
            {"person_id": "p1", "present": False, "note": "left early"},
        ])

        data = response.json()
        assert data["present_count"] == 1
        assert data["absent_count"] == 1
        assert data["successful_upserts"] == 2
        assert data["errors"] == [{
            "person_id": "p1",
            "error": "Duplicate entry for person ID p1; the later entry was used",
        }]

        seeded.expire_all()
        rows = {r.person_id: r for r in seeded.query(Attendance).filter_by(session_id="s1")}
        assert len(rows) == 2
        assert rows["p1"].present is False
        assert rows["p1"].note == "left early"
        assert seeded.get(PracticeSession, "s1").planned_attendance == ["p2"]

    def test_unknown_person_error_message(self, client, seeded):
        data = self._post(client, [{"person_id": "ghost", "present": True}]).json()
        assert data["errors"] == [{"person_id": "ghost", "error": "Person ID ghost not found"}]

    def test_missing_session_returns_404(self, client, seeded):
        response = self._post(client, [{"person_id": "p1", "present": True}], session_id="nope")
        assert response.status_code == 404
        assert response.json()["error"] == "Session not found: nope"
        assert "attendance_log_error" in _event_types(seeded)

    def test_empty_attendance_data_returns_400(self, client, seeded):
        response = self._post(client, [])
        assert response.status_code == 400
        assert response.json()["error"] == "attendance_data is required"
