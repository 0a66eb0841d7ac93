"""
Tests for observation, reflection and session note endpoints.
"""
import pytest

from core.exceptions import LLMUnavailableError
from models import FlaggedName, ObservationIntake, ObservationLog, ObservationTag, PracticeSession

OBSERVATION_ANALYSIS = {
    "players": [{"name": "Jay", "confidence": 0.92}],
    "skills": [{"name": "catch-and-shoot", "confidence": 0.8}],
    "constraints": [{"name": "Limited Dribbles", "confidence": 0.75}],
    "summary": "Jay is hesitating on catch-and-shoot looks.",
    "recommendation": "Extra reps with a one-dribble limit.",
    "advancement_level": 4,
    "sentiment": "negative",
    "is_team_observation": False,
}


class TestLogObservation:

    def test_analysis_is_matched_stored_and_linked(self, client, seeded, fake_llm):
        fake_llm.queue(OBSERVATION_ANALYSIS)

        response = client.post("/api/log-observation", json={
            "observation": "Jay kept passing up open catch-and-shoot threes.",
            "coach_id": "c1",
            "session_id": "s1",
            "group_id": "g1",
        })

        assert response.status_code == 200
        data = response.json()
        analysis = data["analysis"]
        assert analysis["summary"] == "Jay is hesitating on catch-and-shoot looks."
        assert analysis["sentiment"] == "negative"
        assert analysis["matched_players"][0]["matched_id"] == "p1"
        assert analysis["matched_skills"][0]["matched_name"] == "Catch and Shoot"
        assert analysis["matched_constraints"][0]["matched_id"] == "t-ld"

        seeded.expire_all()
        log = seeded.get(ObservationLog, data["observation_id"])
        assert log.person_id == "c1"
        assert log.player_id == "p1"
        assert log.session_id == "s1"
        assert log.advancement_level == 4

        tags = {t.entity_type: t for t in seeded.query(ObservationTag).filter_by(observation_id=log.id)}
        assert set(tags) == {"player", "skill", "constraint"}
        assert tags["player"].relevance_score == 92
        assert tags["skill"].tag_id == "t-cs"

        # Session details go into the prompt
        assert "Tuesday Practice" in fake_llm.requests[0].user

    def test_team_observation_has_no_single_player(self, client, seeded, fake_llm):
        fake_llm.queue({**OBSERVATION_ANALYSIS, "is_team_observation": True})
        data = client.post("/api/log-observation", json={"observation": "Team was flat.", "coach_id": "c1"}).json()
        seeded.expire_all()
        assert seeded.get(ObservationLog, data["observation_id"]).player_id is None

    def test_unknown_player_is_flagged_for_review(self, client, seeded, fake_llm):
        fake_llm.queue({"summary": "Zion dominated the glass.", "players": ["Zion"]})

        response = client.post("/api/log-observation", json={
            "observation": "Zion dominated the glass.", "coach_id": "c1", "group_id": "g1",
        })

        assert response.status_code == 200
        assert response.json()["analysis"]["matched_players"][0]["match_type"] == "unmatched"
        seeded.expire_all()
        assert [f.flagged_name for f in seeded.query(FlaggedName).all()] == ["Zion"]

    def test_blank_player_names_are_ignored(self, client, seeded, fake_llm):
        fake_llm.queue({"summary": "Good hustle.", "players": [""]})

        response = client.post("/api/log-observation", json={"observation": "Good hustle.", "coach_id": "c1"})

        assert response.status_code == 200
        assert response.json()["analysis"]["matched_players"] == []
        seeded.expire_all()
        assert seeded.query(FlaggedName).count() == 0

    def test_missing_summary_returns_500_and_stores_nothing(self, client, seeded, fake_llm):
        fake_llm.queue({"players": ["Jay"]})

        response = client.post("/api/log-observation", json={"observation": "Jay was good.", "coach_id": "c1"})

        assert response.status_code == 500
        seeded.expire_all()
        assert seeded.query(ObservationLog).count() == 0

    def test_missing_observation_returns_400(self, client, seeded):
        response = client.post("/api/log-observation", json={"coach_id": "c1", "observation": "   "})
        assert response.status_code == 400
        assert response.json()["error"] == "observation is required"


def test_log_observation_simple_stores_unprocessed_intake(client, seeded, fake_llm):
    response = client.post("/api/log-observation-simple", json={
        "observation": "Ty's footwork on closeouts improved.", "coach_id": "c1", "player_id": "p3",
    })

    assert response.status_code == 200
    intake_id = response.json()["observation_intake_id"]
    seeded.expire_all()
    intake = seeded.get(ObservationIntake, intake_id)
    assert intake.raw_note == "Ty's footwork on closeouts improved."
    assert intake.processed is False
    assert fake_llm.requests == []


class TestLogReflection:

    def test_reflection_is_analyzed_and_intake_marked_processed(self, client, seeded, fake_llm):
        fake_llm.queue({
            "summary": "Good energy; Marcus led the press break.",
            "key_themes": ["Competitive Intensity"],
            "mentioned_players": [{"name": "Marcus", "confidence": 0.9}],
            "mentioned_skills": ["Dribbling"],
            "sentiment": "positive",
            "actionable_insights": ["Keep the press break in warmups", "Rotate ball handlers"],
        })

        response = client.post("/api/log-reflection", json={
            "reflection_text": "Great energy today. Marcus broke the press every time.",
            "coach_id": "c1",
            "session_id": "s1",
            "group_id": "g1",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["analysis"]["key_themes"] == ["Competitive Intensity"]
        assert data["analysis"]["matched_entities"]["players"][0]["matched_id"] == "p2"
        assert data["analysis"]["matched_entities"]["skills"][0]["matched_id"] == "t-bh"

        seeded.expire_all()
        intake = seeded.get(ObservationIntake, data["intake_id"])
        assert intake.processed is True
        assert intake.processed_at is not None

        log = seeded.get(ObservationLog, data["observation_log_id"])
        assert log.entry_type == "general_coach_reflection"
        assert log.player_id == "p2"
        assert log.recommendation == "Keep the press break in warmups; Rotate ball handlers"
        assert log.payload["intake_id"] == intake.id

    def test_reflection_type_becomes_entry_type(self, client, seeded, fake_llm):
        fake_llm.queue({"summary": "Rotation worked."})
        data = client.post("/api/log-reflection", json={
            "reflection_text": "Rotation worked.", "coach_id": "c1", "reflection_type": "post_game",
        }).json()
        seeded.expire_all()
        assert seeded.get(ObservationLog, data["observation_log_id"]).entry_type == "post_game"

    @pytest.mark.parametrize("failure", ["not json at all", LLMUnavailableError("OpenAI request failed: timeout")])
    def test_failed_analysis_keeps_unprocessed_intake(self, client, seeded, fake_llm, failure):
        fake_llm.queue(failure)

        response = client.post("/api/log-reflection", json={"reflection_text": "Hmm.", "coach_id": "c1"})

        assert response.status_code == 500
        seeded.expire_all()
        [intake] = seeded.query(ObservationIntake).all()
        assert intake.raw_note == "Hmm."
        assert intake.processed is False
        assert intake.processed_at is None
        assert seeded.query(ObservationLog).count() == 0


class TestSessionNotes:

    NOTE_ANALYSIS = {
        "summary": "Transition defense lagged in the second half.",
        "key_points": ["Transition Defense", "Spacing"],
        "sentiment": "neutral",
        "energy_level_assessment": "medium",
        "actionable_items": ["Add a 3v2 transition block"],
    }

    def test_note_updates_session_and_logs_observation(self, client, seeded, fake_llm):
        fake_llm.queue(self.NOTE_ANALYSIS)

        response = client.post("/api/session-notes", json={
            "session_id": "s1", "coach_id": "c1", "note_text": "We didn't get back in transition late.",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["session_id"] == "s1"
        assert data["analysis"]["summary"] == "Transition defense lagged in the second half."

        seeded.expire_all()
        session = seeded.get(PracticeSession, "s1")
        assert session.status == "updated_with_notes"
        assert session.overall_theme_tags == ["Spacing", "Transition Defense"]
        assert session.session_notes.startswith("Note (general_session_note - ")
        [entry] = session.reflection_fields["coach_session_notes_log"]
        assert entry["text"] == "We didn't get back in transition late."
        assert entry["coach_id"] == "c1"

        log = seeded.get(ObservationLog, data["observation_log_id"])
        assert log.entry_type == "session_note:general_session_note"
        assert log.recommendation == "Add a 3v2 transition block"

    def test_post_session_summary_appends_to_log(self, client, seeded, fake_llm):
        fake_llm.queue(self.NOTE_ANALYSIS, {"summary": "Strong finish overall."})

        client.post("/api/session-notes", json={"session_id": "s1", "coach_id": "c1", "note_text": "First note."})
        client.post("/api/session-notes", json={
            "session_id": "s1", "coach_id": "c1", "note_text": "Wrap-up.", "note_type": "post_session_summary",
        })

        seeded.expire_all()
        session = seeded.get(PracticeSession, "s1")
        notes_log = session.reflection_fields["coach_session_notes_log"]
        assert [n["note_type"] for n in notes_log] == ["general_session_note", "post_session_summary"]
        assert session.reflection_fields["coach_post_session"] == "Wrap-up."
        assert "Post-Session Summary (" in session.session_notes
        assert session.session_notes.index("Note (") < session.session_notes.index("Post-Session Summary (")

    def test_unknown_session_returns_404(self, client, seeded, fake_llm):
        response = client.post("/api/session-notes", json={"session_id": "nope", "coach_id": "c1", "note_text": "x"})
        assert response.status_code == 404
        assert fake_llm.requests == []

    def test_missing_note_text_returns_400(self, client, seeded):
        response = client.post("/api/session-notes", json={"session_id": "s1", "coach_id": "c1"})
        assert response.status_code == 400
        assert response.json()["error"] == "note_text is required"
