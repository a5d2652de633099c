"""Unit-level conftest: fake OpenAI responses and a gateway wired to them."""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from habit_workshop.llm import CompletionGateway, GatewaySettings


# ---------------------------------------------------------------------------
# OpenAI mock helpers
# ---------------------------------------------------------------------------


def _make_completion(text=""):
    """Factory for chat.completions responses."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        usage=SimpleNamespace(prompt_tokens=100, completion_tokens=50),
    )


def _make_json_completion(data):
    return _make_completion(json.dumps(data, ensure_ascii=False))


def _make_stream(*pieces):
    """Factory for a streamed response: one chunk per text piece."""
    return iter([
        SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=p))])
        for p in pieces
    ])


def _validation_json(**overrides):
    data = {
        "isBehavior": True,
        "suggestion": "Clear and tiny. Anchor it to your morning coffee.",
        "scores": {"actionable": 9, "specific": 8, "tiny": 9, "relevance": 8},
        "rationalScore": {"impact": 65, "ability": 80},
    }
    data.update(overrides)
    return data


def _final_json(impact=70, ability=75, summary="A solid tiny habit."):
    return {
        "reasoning": "The user reads daily already.",
        "summary": summary,
        "score": {"impact": impact, "ability": ability},
    }


@pytest.fixture
def mock_openai_client():
    """Mock OpenAI client with configurable responses."""
    client = MagicMock()
    client.chat.completions.create.return_value = _make_completion("Default response")
    return client


@pytest.fixture
def gateway(mock_openai_client):
    """Real CompletionGateway talking to the mocked client."""
    settings = GatewaySettings(
        api_key="test-key",
        base_url="http://llm.test/v1",
        model="test-model",
        temperature=0.7,
    )
    return CompletionGateway(settings, client=mock_openai_client)


# ---------------------------------------------------------------------------
# Scripted coaching conversation
# ---------------------------------------------------------------------------


class ScriptedModel:
    """Routes each create() call by kind: validation, question (stream) or final.

    Records every call so tests can count how many of each kind were made.
    """

    def __init__(self, validation=None, final=None, fail=()):
        self.validation = validation or _validation_json()
        self.final = final or _final_json()
        self.fail = set(fail)
        self.calls = []
        self.question_number = 0

    def kind(self, kwargs):
        if kwargs.get("stream"):
            return "question"
        system = kwargs["messages"][0]["content"]
        if "validator" in system:
            return "validation"
        if "scoring system" in system:
            return "final"
        if "behavior designer" in system:
            return "designer"
        return "sop"

    def __call__(self, **kwargs):
        kind = self.kind(kwargs)
        self.calls.append((kind, kwargs))
        if kind in self.fail:
            raise RuntimeError(f"{kind} call failed")
        if kind == "question":
            self.question_number += 1
            return _make_stream("Question ", f"{self.question_number}?")
        if kind == "validation":
            return _make_json_completion(self.validation)
        if kind == "final":
            return _make_json_completion(self.final)
        raise AssertionError(f"Unexpected {kind} call")

    def count(self, kind):
        return sum(1 for k, _ in self.calls if k == kind)


@pytest.fixture
def scripted(mock_openai_client):
    """Install a ScriptedModel on the mocked client; returns the script."""
    script = ScriptedModel()
    mock_openai_client.chat.completions.create.side_effect = script
    return script


# ---------------------------------------------------------------------------
# Session state fixture with st patching for state.py
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_session_state_for_state(mock_session_state):
    """Empty MockSessionState patched into habit_workshop.state.st.session_state."""
    mock_session_state.clear()
    mock_st = MagicMock()
    mock_st.session_state = mock_session_state
    with patch("habit_workshop.state.st", mock_st):
        yield mock_session_state
