"""Unit tests for habit_workshop.coach — question and final-evaluation calls."""

from habit_workshop.coach import final_evaluation, stream_next_question
from habit_workshop.schemas import ChatEntry
from tests.unit.conftest import _final_json, _make_completion, _make_json_completion, _make_stream


def _ask_question(*args, **kwargs):
    return "".join(stream_next_question(*args, **kwargs))


def _failing_stream(*pieces):
    for piece in pieces:
        yield piece
    raise ConnectionError("stream dropped")


class TestNextQuestion:
    def test_folds_stream_into_text(self, gateway, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _make_stream("How much ", "time?")
        question = _ask_question(gateway, "Read one page", "Read more", [], "en")
        assert question == "How much time?"

    def test_stream_yields_increments(self, gateway, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _make_stream("a", "b", "c")
        assert list(stream_next_question(gateway, "Read", "Books", [], "en")) == ["a", "b", "c"]

    def test_kickoff_added_when_history_ends_with_coach(self, gateway, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _make_stream("Q?")
        history = [ChatEntry(role="ai", content="Nice behavior.")]
        _ask_question(gateway, "Read one page", "Read more", history, "en")
        messages = mock_openai_client.chat.completions.create.call_args.kwargs["messages"]
        assert messages[1] == {"role": "assistant", "content": "Nice behavior."}
        assert messages[-1]["role"] == "user"
        assert "Read one page" in messages[-1]["content"]

    def test_no_kickoff_when_user_spoke_last(self, gateway, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _make_stream("Q?")
        history = [
            ChatEntry(role="ai", content="What stops you?"),
            ChatEntry(role="user", content="I'm tired at night"),
        ]
        _ask_question(gateway, "Read one page", "Read more", history, "en")
        messages = mock_openai_client.chat.completions.create.call_args.kwargs["messages"]
        assert messages[-1] == {"role": "user", "content": "I'm tired at night"}
        assert len(messages) == 3

    def test_critique_in_system_prompt(self, gateway, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _make_stream("Q?")
        _ask_question(gateway, "Read", "Books", [], "en", critique="Too vague, name the book")
        system = mock_openai_client.chat.completions.create.call_args.kwargs["messages"][0]["content"]
        assert "Too vague, name the book" in system

    def test_fallback_question_on_failure(self, gateway, mock_openai_client):
        mock_openai_client.chat.completions.create.side_effect = RuntimeError("API down")
        assert _ask_question(gateway, "Read", "Books", [], "zh") == "如果我们把这个行为变得更简单一点，你觉得会是什么样？"

    def test_fallback_question_english(self, gateway, mock_openai_client):
        mock_openai_client.chat.completions.create.side_effect = RuntimeError("API down")
        assert _ask_question(gateway, "Read", "Books", [], "en").startswith("If we made this behavior")

    def test_fallback_on_empty_stream(self, gateway, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _make_stream()
        assert _ask_question(gateway, "Read", "Books", [], "en").startswith("If we made")

    def test_partial_stream_kept(self, gateway, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _failing_stream("What ", "stops")
        assert _ask_question(gateway, "Read", "Books", [], "en") == "What stops"


class TestFinalEvaluation:
    def test_returns_summary_and_score(self, gateway, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _make_json_completion(
            _final_json(impact=70, ability=75)
        )
        result = final_evaluation(gateway, "Read one page", "Read more", [], "en")
        assert result.summary == "A solid tiny habit."
        assert (result.score.impact, result.score.ability) == (70, 75)

    def test_ends_with_report_request(self, gateway, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _make_json_completion(_final_json())
        history = [ChatEntry(role="ai", content="Q"), ChatEntry(role="user", content="A")]
        final_evaluation(gateway, "Read", "Books", history, "en")
        messages = mock_openai_client.chat.completions.create.call_args.kwargs["messages"]
        assert messages[1:3] == [
            {"role": "assistant", "content": "Q"},
            {"role": "user", "content": "A"},
        ]
        assert messages[-1] == {"role": "user", "content": "Please provide the final evaluation report."}

    def test_fallback_on_failure(self, gateway, mock_openai_client):
        mock_openai_client.chat.completions.create.side_effect = RuntimeError("API down")
        result = final_evaluation(gateway, "Read", "Books", [], "zh")
        assert result.score.model_dump() == {"impact": 60, "ability": 60}
        assert result.summary == "评估完成。根据对话，这是一个值得尝试的行为。"

    def test_fallback_on_missing_score(self, gateway, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _make_completion(
            '{"reasoning": "x", "summary": "y"}'
        )
        result = final_evaluation(gateway, "Read", "Books", [], "en")
        assert result.score.impact == 60
