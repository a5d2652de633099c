import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import logging
import streamlit as st

from habit_workshop import config
from habit_workshop.evaluation import (
    EvaluationSession,
    EvaluationStep,
    NoQualifyingBehaviorsError,
    SessionBusyError,
    apply_to_workshop,
    brainstorm,
    generate_sop,
    sync_progress,
)
from habit_workshop.llm import CompletionGateway, GatewaySettings
from habit_workshop.logging_config import setup_logging
from habit_workshop.persistence import (
    CredentialStore,
    NotFoundError,
    PasswordMismatch,
    SaveCoalescer,
    Unauthorized,
    WorkshopStore,
    check_new_password,
)
from habit_workshop.quadrant import Quadrant, classify
from habit_workshop.sop_writer import render_markdown
from habit_workshop.state import (
    drop_session,
    forget_slider_state,
    get_session,
    init_session_state,
    put_session,
    reset_workshop_state,
)

logger = setup_logging()
app_logger = logging.getLogger("workshop.app")


@st.cache_resource
def get_gateway() -> CompletionGateway:
    """Cached gateway singleton, one client for the whole app."""
    return CompletionGateway(GatewaySettings.from_config())


@st.cache_resource
def get_store() -> WorkshopStore:
    return WorkshopStore(config.WORKSPACE_DIR)


@st.cache_resource
def get_credentials() -> CredentialStore:
    return CredentialStore(config.WORKSPACE_DIR)


@st.cache_resource
def get_coalescer() -> SaveCoalescer:
    return SaveCoalescer(get_store(), delay=config.SAVE_DEBOUNCE_SECONDS)


QUADRANT_LABELS = {
    Quadrant.GOLDEN: "⭐ Golden",
    Quadrant.CHALLENGE: "🧗 Core challenge",
    Quadrant.QUICK_WIN: "⚡ Quick win",
    Quadrant.LOW_VALUE: "· Low value",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _workshop():
    return st.session_state.workshop


def _save() -> None:
    """Queue a debounced save of the open workshop."""
    if st.session_state.workshop_id and _workshop() is not None:
        get_coalescer().schedule(st.session_state.workshop_id, _workshop())


def _open_workshop(workshop_id: str) -> None:
    get_coalescer().flush()
    reset_workshop_state()
    try:
        st.session_state.workshop = get_store().get(workshop_id)
    except NotFoundError:
        st.error("Workshop not found.")
        return
    st.session_state.workshop_id = workshop_id


def _on_text_change(behavior_id: str) -> None:
    text = st.session_state[f"text_{behavior_id}"].strip()
    if text:
        _workshop().edit_text(behavior_id, text)
        drop_session(behavior_id)
        _save()


def _on_move(behavior_id: str) -> None:
    _workshop().move_behavior(
        behavior_id,
        ability=st.session_state[f"ability_{behavior_id}"],
        impact=st.session_state[f"impact_{behavior_id}"],
    )
    _save()


def _score_bars(label: str, score) -> None:
    st.caption(label)
    col1, col2 = st.columns(2)
    col1.progress(score.impact / 100, text=f"Impact {score.impact}")
    col2.progress(score.ability / 100, text=f"Ability {score.ability}")


# ---------------------------------------------------------------------------
# Password gate
# ---------------------------------------------------------------------------

def render_gate() -> None:
    credentials = get_credentials()
    st.title("Habit Workshop")
    if not credentials.status()["isSet"]:
        st.info("Set a password to protect your workshops.")
        with st.form("set_password"):
            password = st.text_input("New password", type="password")
            confirm = st.text_input("Confirm password", type="password")
            if st.form_submit_button("Set password"):
                try:
                    credentials.set(check_new_password(password, confirm))
                except PasswordMismatch as e:
                    st.error(str(e))
                else:
                    st.session_state.unlocked = True
                    st.rerun()
        return

    with st.form("verify_password"):
        password = st.text_input("Password", type="password")
        if st.form_submit_button("Unlock"):
            try:
                credentials.verify(password)
            except Unauthorized:
                st.error("Invalid password.")
            except NotFoundError:
                st.error("Password not set.")
            else:
                st.session_state.unlocked = True
                st.rerun()


def render_change_password() -> None:
    with st.expander("Change password"):
        with st.form("change_password", clear_on_submit=True):
            old_password = st.text_input("Current password", type="password")
            password = st.text_input("New password", type="password")
            confirm = st.text_input("Confirm new password", type="password")
            if st.form_submit_button("Change password"):
                try:
                    get_credentials().set(check_new_password(password, confirm), old_password)
                except PasswordMismatch as e:
                    st.error(str(e))
                except Unauthorized:
                    st.error("Current password is incorrect.")
                else:
                    st.success("Password changed.")


# ---------------------------------------------------------------------------
# Sidebar
# ---------------------------------------------------------------------------

def render_sidebar() -> None:
    store = get_store()
    with st.sidebar:
        st.title("Habit Workshop")

        st.session_state.language = st.radio(
            "Language", ["zh", "en"],
            index=0 if st.session_state.language == "zh" else 1,
            horizontal=True,
        )

        summaries = store.list()
        options = {s["id"]: (s["vision"] or "(untitled vision)") for s in summaries}
        current = st.session_state.workshop_id
        selected = st.selectbox(
            "Vision",
            [None] + list(options),
            index=([None] + list(options)).index(current) if current in options else 0,
            format_func=lambda wid: "Select a vision..." if wid is None else options[wid],
        )
        if selected and selected != current:
            _open_workshop(selected)
            st.rerun()

        new_vision = st.text_input("New vision", placeholder="Read more books...")
        if st.button("Create", use_container_width=True) and new_vision.strip():
            workshop = store.create(new_vision.strip())
            _open_workshop(workshop.id)
            st.rerun()

        workshop = _workshop()
        if workshop is None:
            return

        st.divider()
        vision = st.text_area("Vision", value=workshop.vision)
        if vision != workshop.vision:
            workshop.set_vision(vision)
            _save()

        new_text = st.text_input("Add a behavior", key="new_behavior")
        if st.button("Add", use_container_width=True) and new_text.strip():
            workshop.add_behavior(new_text.strip())
            _save()
            st.rerun()

        if st.button("✨ Suggest behaviors", use_container_width=True, disabled=not workshop.vision):
            with st.spinner("Brainstorming..."):
                added = brainstorm(get_gateway(), workshop, st.session_state.language)
            if added:
                _save()
                st.rerun()
            st.caption("No new behaviors were generated.")

        st.divider()
        if st.button("📋 Generate SOP", use_container_width=True):
            try:
                with st.spinner("Writing SOP..."):
                    sop = generate_sop(get_gateway(), workshop, st.session_state.language)
            except NoQualifyingBehaviorsError:
                st.warning("No golden or core-challenge behaviors yet, nothing to build an SOP from.")
            else:
                if sop is not None:
                    _save()
                    st.session_state.show_sop = True
                    st.rerun()

        if workshop.sop_data is not None:
            if st.button("View SOP", use_container_width=True):
                st.session_state.show_sop = True
            st.download_button(
                "Download SOP (Markdown)",
                data=render_markdown(workshop.sop_data, st.session_state.language),
                file_name="sop.md",
                mime="text/markdown",
                use_container_width=True,
            )

        st.divider()
        if st.button("Clear workshop", use_container_width=True):
            workshop.clear()
            st.session_state.sessions = {}
            _save()
            st.rerun()
        if st.button("Delete workshop", use_container_width=True):
            coalescer = get_coalescer()
            coalescer.cancel(st.session_state.workshop_id)
            store.delete(st.session_state.workshop_id)
            reset_workshop_state()
            st.rerun()


# ---------------------------------------------------------------------------
# Behavior board
# ---------------------------------------------------------------------------

def render_board() -> None:
    workshop = _workshop()
    st.header(workshop.vision or "Untitled vision")
    if not workshop.behaviors:
        st.caption("Add a behavior or ask for suggestions to get started.")
        return

    for behavior in list(workshop.behaviors):
        score = behavior.active_score
        quadrant = classify(score)
        title = f"{QUADRANT_LABELS[quadrant]} · {behavior.text}"
        if behavior.is_evaluated:
            title += "  ✅"
        with st.expander(title, expanded=False):
            st.text_input("Text", value=behavior.text, key=f"text_{behavior.id}",
                          on_change=_on_text_change, args=(behavior.id,))
            col1, col2 = st.columns(2)
            col1.slider("Ability", 0, 100, score.ability, key=f"ability_{behavior.id}",
                        on_change=_on_move, args=(behavior.id,))
            col2.slider("Impact", 0, 100, score.impact, key=f"impact_{behavior.id}",
                        on_change=_on_move, args=(behavior.id,))
            st.caption(f"Source: {behavior.source} · {'rational' if behavior.is_evaluated else 'intuitive'} score")

            col1, col2 = st.columns(2)
            if col1.button("🧠 Evaluate", key=f"evaluate_{behavior.id}", use_container_width=True):
                st.session_state.evaluating_id = behavior.id
                st.rerun()
            if col2.button("Delete", key=f"delete_{behavior.id}", use_container_width=True):
                workshop.delete_behavior(behavior.id)
                drop_session(behavior.id)
                if st.session_state.evaluating_id == behavior.id:
                    st.session_state.evaluating_id = None
                _save()
                st.rerun()


# ---------------------------------------------------------------------------
# Evaluation panel
# ---------------------------------------------------------------------------

def _session_for(behavior) -> EvaluationSession:
    session = get_session(behavior.id)
    if session is None or session.behavior_text != behavior.text:
        session = EvaluationSession(
            get_gateway(), behavior, _workshop().vision, st.session_state.language
        )
        put_session(session)
    return session


def _finish(session: EvaluationSession, result) -> None:
    apply_to_workshop(_workshop(), session, result)
    drop_session(session.behavior_id)
    forget_slider_state(session.behavior_id)
    st.session_state.evaluating_id = None
    _save()


def render_evaluation(behavior) -> None:
    session = _session_for(behavior)
    evaluation = session.evaluation

    st.subheader(f"🧠 {behavior.text}")
    if st.button("Close"):
        st.session_state.evaluating_id = None
        st.rerun()

    try:
        if session.step == EvaluationStep.EVALUATING:
            if not evaluation.suggestion:
                with st.spinner("Analyzing..."):
                    session.run_initial_check()
                sync_progress(_workshop(), session)
                _save()

            if evaluation.is_behavior:
                st.success(evaluation.suggestion)
            else:
                st.error(evaluation.suggestion)
                st.caption("This reads like a goal rather than an action. Edit the text to try again.")
            if evaluation.scores is not None:
                cols = st.columns(4)
                for col, (name, value) in zip(cols, evaluation.scores.model_dump().items()):
                    col.metric(name.title(), f"{value}/10")
            if evaluation.rational_score is not None:
                _score_bars("Preliminary estimate", evaluation.rational_score)

            if session.can_start_chat and st.button("Start coaching", type="primary"):
                with st.chat_message("assistant"):
                    st.write_stream(session.stream_start_chat())
                sync_progress(_workshop(), session)
                _save()
                st.rerun()
            if session.can_accept_preliminary and st.button("Use preliminary score"):
                _finish(session, session.accept_preliminary())
                st.rerun()
            return

        for entry in evaluation.chat_history:
            with st.chat_message("assistant" if entry.role == "ai" else "user"):
                st.markdown(entry.content)

        if session.step == EvaluationStep.CHATTING:
            st.caption(f"{session.question_count} / {session.max_questions} questions")
            if answer := st.chat_input("Your answer..."):
                with st.chat_message("user"):
                    st.markdown(answer)
                with st.chat_message("assistant"):
                    with st.spinner("Thinking..."):
                        st.write_stream(session.stream_reply(answer))
                sync_progress(_workshop(), session)
                _save()
                st.rerun()
            return

        st.markdown(evaluation.final_summary or "")
        _score_bars("Before coaching", session.baseline_score)
        if session.final_score is not None:
            _score_bars("After coaching", session.final_score)

        if session.step == EvaluationStep.SUMMARY:
            if st.button("Confirm score", type="primary"):
                _finish(session, session.confirm())
                st.rerun()
        if st.button("Regenerate"):
            session.regenerate()
            st.rerun()
    except SessionBusyError:
        st.warning("This behavior is already being evaluated elsewhere.")


def render_sop() -> None:
    sop = _workshop().sop_data
    if sop is None:
        return
    if st.button("Hide SOP"):
        st.session_state.show_sop = False
        st.rerun()
    st.markdown(render_markdown(sop, st.session_state.language))


# ---------------------------------------------------------------------------
# Page
# ---------------------------------------------------------------------------

st.set_page_config(page_title="Habit Workshop", layout="wide")
init_session_state()

if not st.session_state.unlocked:
    render_gate()
    st.stop()

# Open the most recently updated workshop, or start an empty one
if st.session_state.workshop_id is None:
    _open_workshop(get_store().latest_or_create().id)

render_sidebar()
with st.sidebar:
    render_change_password()

if _workshop() is None:
    st.title("Habit Workshop")
    st.caption("Pick a vision on the left, or create a new one.")
    st.stop()

if st.session_state.show_sop:
    render_sop()
elif st.session_state.evaluating_id:
    target = _workshop().find_behavior(st.session_state.evaluating_id)
    if target is None:
        st.session_state.evaluating_id = None
        st.rerun()
    render_evaluation(target)
else:
    render_board()
