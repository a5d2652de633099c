"""Validator agent — one-shot rubric check of a candidate behavior."""

import logging

from .llm import CompletionGateway
from .prompts import (
    JSON_RULES,
    VALIDATOR_FALLBACK_SUGGESTION,
    VALIDATOR_SYSTEM_PROMPT,
    VALIDATOR_USER_PROMPT,
    language_name,
    normalize_language,
)
from .schemas import RubricScores, ValidationResult

logger = logging.getLogger("workshop.validator")

ROOT_KEYS = '"isBehavior", "suggestion", "scores", "rationalScore"'


def fallback_result(language: str = "zh") -> ValidationResult:
    """Neutral pass used whenever the model call fails. Never blocks the user."""
    return ValidationResult(
        is_behavior=True,
        suggestion=VALIDATOR_FALLBACK_SUGGESTION[normalize_language(language)],
        scores=RubricScores(actionable=8, specific=8, tiny=8, relevance=8),
    )


def validate(
    gateway: CompletionGateway,
    behavior_text: str,
    vision: str,
    language: str = "zh",
) -> ValidationResult:
    """Score a behavior against the actionable/specific/tiny/relevance rubric.

    Returns the fixed fallback on any transport, parse or schema failure.
    """
    language = normalize_language(language)
    system_prompt = VALIDATOR_SYSTEM_PROMPT.format(
        vision=vision or "",
        json_rules=JSON_RULES.format(
            root_keys=ROOT_KEYS, language_name=language_name(language)
        ),
    )
    conversation = [
        {"role": "user", "content": VALIDATOR_USER_PROMPT[language].format(behavior=behavior_text)}
    ]
    try:
        result = gateway.complete_structured(system_prompt, conversation, ValidationResult)
    except Exception as e:
        logger.warning("Validation failed for %r, using fallback: %s", behavior_text, e)
        return fallback_result(language)

    logger.info(
        "Validated %r: isBehavior=%s scores=%s",
        behavior_text, result.is_behavior, result.scores.model_dump(),
    )
    return result
