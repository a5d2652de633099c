"""Evaluation orchestrator — drives one behavior from validation to a confirmed score.

Steps: evaluating -> chatting -> summary -> completed, with regenerate() from
any later step back to evaluating. The session works on its own copy of the
behavior's evaluation; callers apply results to the Workshop, which drops
results that arrive after the behavior was deleted or edited.
"""

import logging
import threading
import weakref
from contextlib import contextmanager
from enum import Enum
from typing import Iterator

from . import coach, designer, quadrant, sop_writer, validator
from .config import MAX_QUESTIONS
from .llm import CompletionGateway
from .prompts import COACH_AI_SOURCE_WELCOME, normalize_language
from .schemas import ChatEntry, Score, SOPData
from .workshop import AiEvaluation, Behavior, Workshop

logger = logging.getLogger("workshop.evaluation")


class EvaluationStep(str, Enum):
    EVALUATING = "evaluating"
    CHATTING = "chatting"
    SUMMARY = "summary"
    COMPLETED = "completed"


class EvaluationStateError(RuntimeError):
    """Operation not allowed in the session's current step."""


class SessionBusyError(RuntimeError):
    """Another operation is already running for this behavior."""


class NoQualifyingBehaviorsError(Exception):
    """No golden or challenge behavior exists, so no SOP can be written."""


# ---------------------------------------------------------------------------
# Per-behavior mutual exclusion
# ---------------------------------------------------------------------------

_locks_guard = threading.Lock()
# Entries vanish once no guard holds the lock
_behavior_locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()


def _lock_for(behavior_id: str) -> threading.Lock:
    with _locks_guard:
        return _behavior_locks.setdefault(behavior_id, threading.Lock())


@contextmanager
def behavior_guard(behavior_id: str):
    """Hold the behavior's lock for one operation; fail fast if it is taken."""
    lock = _lock_for(behavior_id)
    if not lock.acquire(blocking=False):
        raise SessionBusyError(f"Behavior {behavior_id} is already being evaluated")
    try:
        yield
    finally:
        lock.release()


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class EvaluationSession:
    """Coaching state for a single behavior."""

    def __init__(
        self,
        gateway: CompletionGateway,
        behavior: Behavior,
        vision: str,
        language: str = "zh",
        max_questions: int = MAX_QUESTIONS,
    ):
        self.gateway = gateway
        self.behavior_id = behavior.id
        self.behavior_text = behavior.text
        self.source = behavior.source
        self.vision = vision
        self.language = normalize_language(language)
        self.max_questions = max_questions

        if behavior.ai_evaluation is not None:
            self.evaluation = behavior.ai_evaluation.model_copy(deep=True)
        else:
            # AI-sourced behaviors were pre-screened by the Designer.
            self.evaluation = AiEvaluation(is_behavior=behavior.source == "ai")
        self.final_score: Score | None = behavior.rational_score
        # Score shown before the chat, for comparison in the summary view
        self.baseline_score: Score = behavior.active_score

        if self.evaluation.is_complete and self.evaluation.final_summary:
            self.step = EvaluationStep.COMPLETED
        else:
            self.step = EvaluationStep.EVALUATING

    # -- queries -------------------------------------------------------------

    @property
    def question_count(self) -> int:
        return self.evaluation.ai_turns

    @property
    def can_start_chat(self) -> bool:
        return self.step == EvaluationStep.EVALUATING and self.evaluation.is_behavior

    @property
    def can_accept_preliminary(self) -> bool:
        return (
            self.step == EvaluationStep.EVALUATING
            and self.evaluation.is_behavior
            and not self.evaluation.is_complete
            and self.evaluation.rational_score is not None
        )

    def _require(self, *steps: EvaluationStep) -> None:
        if self.step not in steps:
            allowed = ", ".join(s.value for s in steps)
            raise EvaluationStateError(
                f"Cannot do this in step '{self.step.value}' (allowed: {allowed})"
            )

    # -- evaluating ------------------------------------------------------------

    def run_initial_check(self) -> AiEvaluation:
        """Run the Validator once; a cached suggestion is reused."""
        self._require(EvaluationStep.EVALUATING)
        if self.evaluation.suggestion:
            return self.evaluation
        with behavior_guard(self.behavior_id):
            result = validator.validate(
                self.gateway, self.behavior_text, self.vision, self.language
            )
            self.evaluation.is_behavior = result.is_behavior
            self.evaluation.suggestion = result.suggestion
            self.evaluation.scores = result.scores
            self.evaluation.rational_score = result.rational_score
            if result.rational_score is not None and self.final_score is None:
                self.final_score = result.rational_score
        if not result.is_behavior:
            logger.info("Behavior %s is not a valid behavior; text must be edited", self.behavior_id)
        return self.evaluation

    def accept_preliminary(self) -> tuple[Score, AiEvaluation]:
        """Confirm the Validator's estimate without coaching.

        The evaluation stays incomplete (no final summary), so a
        later coaching session remains available.
        """
        with behavior_guard(self.behavior_id):
            if not self.can_accept_preliminary:
                raise EvaluationStateError("No preliminary score to accept")
            score = self.evaluation.rational_score
            self.final_score = score
            return score, self.evaluation.model_copy(deep=True)

    # -- chatting --------------------------------------------------------------

    def _opening_message(self) -> str:
        if self.source == "ai":
            return COACH_AI_SOURCE_WELCOME[self.language]
        return self.evaluation.suggestion or ""

    def _ask(self) -> Iterator[str]:
        evaluation = self.evaluation
        chunks = []
        for chunk in coach.stream_next_question(
            self.gateway,
            self.behavior_text,
            self.vision,
            evaluation.chat_history,
            self.language,
            evaluation.suggestion,
        ):
            chunks.append(chunk)
            yield chunk
        if self.evaluation is not evaluation:
            logger.info("Evaluation of %s was reset mid-question, dropping the reply", self.behavior_id)
            return
        evaluation.chat_history.append(ChatEntry(role="ai", content="".join(chunks)))

    def stream_start_chat(self) -> Iterator[str]:
        """Open the dialogue and stream the first diagnostic question.

        Any earlier partial conversation is discarded.
        """
        self._require(EvaluationStep.EVALUATING, EvaluationStep.CHATTING)
        if not self.evaluation.is_behavior:
            raise EvaluationStateError("Behavior failed validation; edit its text first")
        with behavior_guard(self.behavior_id):
            self.step = EvaluationStep.CHATTING
            self.evaluation.chat_history = [ChatEntry(role="ai", content=self._opening_message())]
            self.evaluation.final_summary = None
            self.evaluation.is_complete = False
            yield from self._ask()

    def start_chat(self) -> str:
        return "".join(self.stream_start_chat())

    def stream_reply(self, text: str) -> Iterator[str]:
        """Record the user's answer, then stream the next question.

        Once the coach has used up its questions, nothing is streamed: the
        final evaluation runs instead and the session moves to summary.
        """
        self._require(EvaluationStep.CHATTING)
        text = text.strip()
        if not text:
            return
        with behavior_guard(self.behavior_id):
            self.evaluation.chat_history.append(ChatEntry(role="user", content=text))
            if self.question_count < self.max_questions:
                yield from self._ask()
            else:
                self._finalize()

    def reply(self, text: str) -> EvaluationStep:
        for _ in self.stream_reply(text):
            pass
        return self.step

    def _finalize(self) -> None:
        self.step = EvaluationStep.SUMMARY
        result = coach.final_evaluation(
            self.gateway,
            self.behavior_text,
            self.vision,
            self.evaluation.chat_history,
            self.language,
        )
        self.evaluation.final_summary = result.summary
        self.evaluation.is_complete = True
        self.final_score = result.score

    # -- summary / completed ---------------------------------------------------

    def confirm(self) -> tuple[Score, AiEvaluation]:
        """Accept the coach's final score."""
        self._require(EvaluationStep.SUMMARY)
        with behavior_guard(self.behavior_id):
            self.step = EvaluationStep.COMPLETED
            self.evaluation.is_complete = True
            return self.final_score, self.evaluation.model_copy(deep=True)

    def regenerate(self) -> None:
        """Throw away the dialogue and start over from validation."""
        self._require(EvaluationStep.CHATTING, EvaluationStep.SUMMARY, EvaluationStep.COMPLETED)
        with behavior_guard(self.behavior_id):
            self.evaluation = AiEvaluation(is_behavior=False)
            self.final_score = None
            self.step = EvaluationStep.EVALUATING


# ---------------------------------------------------------------------------
# Workshop-level flows
# ---------------------------------------------------------------------------


def apply_to_workshop(
    workshop: Workshop, session: EvaluationSession, result: tuple[Score, AiEvaluation]
) -> Behavior | None:
    """Write a confirmed (score, evaluation) pair back to the workshop."""
    score, evaluation = result
    return workshop.complete_evaluation(
        session.behavior_id, score, evaluation, expected_text=session.behavior_text
    )


def sync_progress(workshop: Workshop, session: EvaluationSession) -> Behavior | None:
    """Persist in-progress evaluation state so closing the surface keeps it."""
    if not (session.evaluation.suggestion or session.evaluation.chat_history):
        return None
    return workshop.update_evaluation_progress(
        session.behavior_id, session.evaluation, expected_text=session.behavior_text
    )


def brainstorm(
    gateway: CompletionGateway, workshop: Workshop, language: str = "zh"
) -> list[Behavior]:
    """Generate suggestions for the workshop's vision and add the new ones."""
    suggestions = designer.generate_unique(
        gateway, workshop.vision, workshop.existing_texts(), language
    )
    return workshop.add_suggestions(suggestions)


def generate_sop(
    gateway: CompletionGateway, workshop: Workshop, language: str = "zh"
) -> SOPData | None:
    """Write the SOP from the workshop's golden and challenge behaviors.

    Raises NoQualifyingBehaviorsError without calling the writer when nothing
    qualifies. On writer failure returns None and keeps any previous SOP.
    """
    selected = quadrant.build_sop_input(workshop.behaviors)
    if not selected:
        raise NoQualifyingBehaviorsError("No golden or challenge behaviors to build an SOP from")
    sop = sop_writer.generate(gateway, workshop.vision, selected, language)
    if sop is not None:
        workshop.set_sop(sop)
    return sop
