"""Root conftest: MockSessionState and shared fixtures."""

import pytest


class MockSessionState(dict):
    """Dict subclass with attribute access — mirrors Streamlit session_state.

    Supports both st.session_state["key"] and st.session_state.key.
    """

    def __getattr__(self, key):
        try:
            return self[key]
        except KeyError:
            raise AttributeError(key)

    def __setattr__(self, key, value):
        self[key] = value

    def __delattr__(self, key):
        try:
            del self[key]
        except KeyError:
            raise AttributeError(key)

    def __contains__(self, key):
        return dict.__contains__(self, key)


def _fresh_session_state(**overrides) -> MockSessionState:
    """Build a MockSessionState with the canonical shape from state.py."""
    state = MockSessionState(
        initialized=True,
        unlocked=False,
        language="zh",
        workshop_id=None,
        workshop=None,
        evaluating_id=None,
        sessions={},
        show_sop=False,
    )
    state.update(overrides)
    return state


@pytest.fixture
def mock_session_state():
    """Provide a fresh MockSessionState for each test."""
    return _fresh_session_state()
