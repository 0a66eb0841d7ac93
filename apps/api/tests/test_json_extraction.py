"""
Tests for tolerant JSON extraction of model output and the output schemas
it is validated against.
"""
import pytest

from core.exceptions import LLMResponseError
from schemas import ObservationAnalysis, PDPDraft, PracticePlanDraft
from services.json_extraction import extract_json, parse_llm_json


class TestExtractJson:

    def test_strict_json(self):
        assert extract_json('{"summary": "ok"}') == {"summary": "ok"}

    def test_object_wrapped_in_prose(self):
        text = 'Sure! Here is the analysis:\n{"summary": "good spacing", "players": []}\nLet me know.'
        assert extract_json(text) == {"summary": "good spacing", "players": []}

    def test_code_fence_and_trailing_comma(self):
        text = '```json\n{"summary": "x", "skills": ["Passing",],}\n```'
        assert extract_json(text) == {"summary": "x", "skills": ["Passing"]}

    def test_escaped_quotes(self):
        text = 'result: {\\"summary\\": \\"escaped\\"}'
        assert extract_json(text) == {"summary": "escaped"}

    def test_garbage_raises_descriptive_error(self):
        with pytest.raises(LLMResponseError) as exc_info:
            extract_json("I could not analyze that note.", purpose="log_observation")
        assert "malformed JSON for log_observation" in str(exc_info.value)
        assert exc_info.value.raw_text == "I could not analyze that note."

    def test_empty_response_raises(self):
        with pytest.raises(LLMResponseError):
            extract_json("   ")


class TestParseLlmJson:

    def test_validates_against_model(self):
        result = parse_llm_json('{"summary": "Solid day", "sentiment": "positive"}', ObservationAnalysis)
        assert result.summary == "Solid day"
        assert result.players == []
        assert result.is_team_observation is False

    def test_missing_required_field_raises(self):
        with pytest.raises(LLMResponseError) as exc_info:
            parse_llm_json('{"recommendation": "more reps"}', ObservationAnalysis, purpose="log_observation")
        assert "summary" in str(exc_info.value)

    def test_array_instead_of_object_raises(self):
        with pytest.raises(LLMResponseError):
            parse_llm_json('[{"summary": "x"}]', ObservationAnalysis)

    def test_entities_accept_plain_strings_and_percent_confidence(self):
        result = parse_llm_json(
            '{"summary": "s", "players": ["Jay", {"name": "Marcus", "confidence": 85}],'
            ' "skills": [{"tag": "Passing"}], "constraints": "Limited Dribbles"}',
            ObservationAnalysis,
        )
        assert [p.name for p in result.players] == ["Jay", "Marcus"]
        assert result.players[0].confidence == 1.0
        assert result.players[1].confidence == pytest.approx(0.85)
        assert result.skills[0].name == "Passing"
        assert result.constraints[0].name == "Limited Dribbles"

    def test_blank_entity_names_are_dropped(self):
        result = parse_llm_json(
            '{"summary": "s", "players": ["", "Jay", "  ", {"name": " "}, {"name_mentioned": ""}],'
            ' "skills": [""]}',
            ObservationAnalysis,
        )
        assert [p.name for p in result.players] == ["Jay"]
        assert result.skills == []

    def test_pdp_draft_requires_texts(self):
        with pytest.raises(LLMResponseError):
            parse_llm_json('{"pdp_text_coach": "", "pdp_text_player": "p", "primary_focus": "f"}', PDPDraft)

    def test_practice_plan_needs_at_least_one_block(self):
        with pytest.raises(LLMResponseError):
            parse_llm_json('{"session_plan": []}', PracticePlanDraft)

    def test_practice_block_keeps_unknown_keys(self):
        plan = parse_llm_json(
            '{"session_plan": [{"block_name": "Rondo", "intensity": "high"}]}', PracticePlanDraft
        )
        assert plan.session_plan[0].model_dump()["intensity"] == "high"
