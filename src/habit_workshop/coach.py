"""Coach agent — diagnostic questions and the final scored evaluation.

These are the stateless model calls. The dialogue state machine that sequences
them lives in evaluation.py.
"""

import logging
from typing import Iterator

from .llm import CompletionGateway, to_chat_messages
from .prompts import (
    COACH_FALLBACK_QUESTION,
    COACH_FALLBACK_SUMMARY,
    COACH_FINAL_SYSTEM_PROMPT,
    COACH_FINAL_USER_PROMPT,
    COACH_KICKOFF_PROMPT,
    COACH_QUESTION_SYSTEM_PROMPT,
    JSON_RULES,
    language_name,
    normalize_language,
)
from .schemas import FinalEvaluation, Score

logger = logging.getLogger("workshop.coach")

FALLBACK_SCORE = Score(impact=60, ability=60)


def fallback_evaluation(language: str = "zh") -> FinalEvaluation:
    return FinalEvaluation(
        reasoning="",
        summary=COACH_FALLBACK_SUMMARY[normalize_language(language)],
        score=FALLBACK_SCORE,
    )


def _question_conversation(behavior: str, vision: str, history: list, language: str) -> list[dict]:
    messages = to_chat_messages(history)
    # The model must answer a user turn; open with the kickoff request when the
    # history is empty or ends on the coach's own message.
    if not messages or messages[-1]["role"] != "user":
        messages.append({
            "role": "user",
            "content": COACH_KICKOFF_PROMPT[language].format(behavior=behavior, vision=vision),
        })
    return messages


def stream_next_question(
    gateway: CompletionGateway,
    behavior: str,
    vision: str,
    history: list,
    language: str = "zh",
    critique: str | None = None,
) -> Iterator[str]:
    """Yield the next diagnostic question as text increments.

    On failure before any text arrives, yields the fixed fallback question
    instead, so the session never hard-fails mid-flow.
    """
    language = normalize_language(language)
    system_prompt = COACH_QUESTION_SYSTEM_PROMPT.format(
        behavior=behavior,
        vision=vision,
        critique=critique or "",
        language_name=language_name(language),
    )
    conversation = _question_conversation(behavior, vision, history, language)

    produced = False
    try:
        for chunk in gateway.stream(system_prompt, conversation):
            produced = True
            yield chunk
    except Exception as e:
        if produced:
            logger.warning("Coach stream broke off mid-answer, keeping partial text: %s", e)
            return
        logger.warning("Coach question failed, using fallback: %s", e)
    if not produced:
        yield COACH_FALLBACK_QUESTION[language]


def final_evaluation(
    gateway: CompletionGateway,
    behavior: str,
    vision: str,
    history: list,
    language: str = "zh",
) -> FinalEvaluation:
    """Summarize the dialogue into a narrative plus a definitive Impact/Ability score."""
    language = normalize_language(language)
    system_prompt = COACH_FINAL_SYSTEM_PROMPT.format(
        behavior=behavior,
        vision=vision,
        json_rules=JSON_RULES.format(
            root_keys='"reasoning", "summary", "score"',
            language_name=language_name(language),
        ),
    )
    conversation = to_chat_messages(history) + [
        {"role": "user", "content": COACH_FINAL_USER_PROMPT[language]}
    ]
    try:
        result = gateway.complete_structured(system_prompt, conversation, FinalEvaluation)
    except Exception as e:
        logger.warning("Final evaluation failed, using neutral fallback: %s", e)
        return fallback_evaluation(language)

    logger.info("Final evaluation for %r: %s", behavior, result.score.model_dump())
    logger.debug("Final evaluation reasoning: %s", result.reasoning)
    return result
