import streamlit as st

from .config import DEFAULT_LANGUAGE


def init_session_state():
    """Call once at app startup. Sets up all state containers."""
    if "initialized" not in st.session_state:
        st.session_state.initialized = True
        st.session_state.unlocked = False  # Password gate passed
        st.session_state.language = DEFAULT_LANGUAGE  # "zh" | "en"
        st.session_state.workshop_id = None
        st.session_state.workshop = None  # Workshop aggregate currently open
        st.session_state.evaluating_id = None  # Behavior id with the evaluation panel open
        st.session_state.sessions = {}  # behavior_id -> EvaluationSession
        st.session_state.show_sop = False


def reset_workshop_state():
    """Forget the open workshop and any coaching sessions tied to it."""
    st.session_state.workshop_id = None
    st.session_state.workshop = None
    st.session_state.evaluating_id = None
    st.session_state.sessions = {}
    st.session_state.show_sop = False


def get_session(behavior_id: str):
    return st.session_state.sessions.get(behavior_id)


def put_session(session) -> None:
    st.session_state.sessions[session.behavior_id] = session


def drop_session(behavior_id: str) -> None:
    st.session_state.sessions.pop(behavior_id, None)


def forget_slider_state(behavior_id: str) -> None:
    """Drop a behavior's keyed slider values so the board redraws from its score."""
    st.session_state.pop(f"ability_{behavior_id}", None)
    st.session_state.pop(f"impact_{behavior_id}", None)
