"""Unit tests for habit_workshop.validator."""

from habit_workshop.validator import fallback_result, validate
from tests.unit.conftest import _make_completion, _make_json_completion, _validation_json


FALLBACK_SCORES = {"actionable": 8, "specific": 8, "tiny": 8, "relevance": 8}


class TestValidate:
    def test_returns_parsed_result(self, gateway, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _make_json_completion(
            _validation_json()
        )
        result = validate(gateway, "Open a book and read one page", "Read more books", "en")
        assert result.is_behavior is True
        assert result.scores.tiny == 9
        assert result.rational_score.impact == 65

    def test_rational_score_optional(self, gateway, mock_openai_client):
        data = _validation_json()
        del data["rationalScore"]
        mock_openai_client.chat.completions.create.return_value = _make_json_completion(data)
        result = validate(gateway, "Drink water", "Be healthy", "en")
        assert result.rational_score is None

    def test_goal_like_behavior_is_not_a_failure(self, gateway, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _make_json_completion(
            _validation_json(isBehavior=False, suggestion="This is a goal. Try: put the book on your pillow.")
        )
        result = validate(gateway, "Become smarter", "Read more books", "en")
        assert result.is_behavior is False
        assert "pillow" in result.suggestion

    def test_prompt_carries_vision_and_language(self, gateway, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _make_json_completion(
            _validation_json()
        )
        validate(gateway, "Open a book", "Read more books", "en")
        messages = mock_openai_client.chat.completions.create.call_args.kwargs["messages"]
        assert "Read more books" in messages[0]["content"]
        assert "English" in messages[0]["content"]
        assert messages[1]["content"] == 'Please validate behavior: "Open a book"'

    def test_defaults_to_chinese(self, gateway, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _make_json_completion(
            _validation_json()
        )
        validate(gateway, "读一页书", "多读书")
        messages = mock_openai_client.chat.completions.create.call_args.kwargs["messages"]
        assert messages[1]["content"].startswith("请校验行为")


class TestFallback:
    def test_transport_failure_returns_fixed_fallback(self, gateway, mock_openai_client):
        mock_openai_client.chat.completions.create.side_effect = RuntimeError("API down")
        result = validate(gateway, "Open a book", "Read more books", "en")
        assert result.is_behavior is True
        assert result.scores.model_dump() == FALLBACK_SCORES
        assert result.suggestion == "AI validation temporarily unavailable, assuming it passed."
        assert result.rational_score is None

    def test_malformed_json_returns_fallback(self, gateway, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _make_completion("not json")
        result = validate(gateway, "Open a book", "Read more books", "zh")
        assert result.is_behavior is True
        assert result.suggestion == "AI 暂时无法校验，假定通过。"

    def test_schema_failure_returns_fallback(self, gateway, mock_openai_client):
        data = _validation_json()
        data["scores"]["tiny"] = 42  # out of the 0-10 range
        mock_openai_client.chat.completions.create.return_value = _make_json_completion(data)
        result = validate(gateway, "Open a book", "Read more books", "en")
        assert result.scores.model_dump() == FALLBACK_SCORES

    def test_empty_suggestion_returns_fallback(self, gateway, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _make_json_completion(
            _validation_json(suggestion="")
        )
        result = validate(gateway, "Open a book", "Read more books", "en")
        assert result.scores.model_dump() == FALLBACK_SCORES

    def test_fallback_result_language(self):
        assert fallback_result("en-US").suggestion.startswith("AI validation")
        assert fallback_result(None).suggestion.startswith("AI 暂时")
