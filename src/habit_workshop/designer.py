"""Designer agent — brainstorms a diversified batch of tiny behaviors for a vision."""

import logging

from .llm import CompletionGateway
from .prompts import (
    DESIGNER_EXCLUSIONS,
    DESIGNER_SYSTEM_PROMPT,
    DESIGNER_USER_PROMPT,
    JSON_RULES,
    language_name,
    normalize_language,
)
from .schemas import DesignerOutput, SuggestedBehavior

logger = logging.getLogger("workshop.designer")

# (impact range, ability range) the prompt asks the model to cover
TARGET_DISTRIBUTIONS = {
    "golden": ((70, 100), (70, 100)),
    "quick_win": ((20, 50), (80, 100)),
    "challenge": ((80, 100), (20, 50)),
}


def normalize_text(text: str) -> str:
    return text.strip().lower()


def filter_new_behaviors(
    generated: list[SuggestedBehavior],
    existing_texts: list[str],
) -> list[SuggestedBehavior]:
    """Drop suggestions whose text matches an existing behavior or an earlier suggestion.

    Comparison is trimmed and case-insensitive. The model's own exclusion
    compliance is best-effort, so callers always run this pass.
    """
    seen = {normalize_text(t) for t in existing_texts}
    unique = []
    for item in generated:
        key = normalize_text(item.text)
        if not key or key in seen:
            logger.debug("Dropping duplicate suggestion %r", item.text)
            continue
        seen.add(key)
        unique.append(item)
    return unique


def target_coverage(generated: list[SuggestedBehavior]) -> dict[str, int]:
    """Count suggestions falling inside each target sub-distribution."""
    coverage = {name: 0 for name in TARGET_DISTRIBUTIONS}
    for item in generated:
        for name, ((imp_lo, imp_hi), (abl_lo, abl_hi)) in TARGET_DISTRIBUTIONS.items():
            if imp_lo <= item.impact <= imp_hi and abl_lo <= item.ability <= abl_hi:
                coverage[name] += 1
    return coverage


def generate(
    gateway: CompletionGateway,
    vision: str,
    language: str = "zh",
    exclude_texts: list[str] | None = None,
) -> list[SuggestedBehavior]:
    """Ask the model for 5-8 candidate behaviors. Returns [] on any failure."""
    language = normalize_language(language)
    exclude_texts = exclude_texts or []

    exclusions = ""
    if exclude_texts:
        exclusions = DESIGNER_EXCLUSIONS.format(
            items="\n".join(f"- {t}" for t in exclude_texts)
        )
    system_prompt = DESIGNER_SYSTEM_PROMPT.format(
        exclusions=exclusions,
        json_rules=JSON_RULES.format(
            root_keys='"behaviors"', language_name=language_name(language)
        ),
    )
    conversation = [
        {"role": "user", "content": DESIGNER_USER_PROMPT[language].format(vision=vision)}
    ]

    try:
        output = gateway.complete_structured(system_prompt, conversation, DesignerOutput)
    except Exception as e:
        logger.warning("Behavior generation failed: %s", e)
        return []

    coverage = target_coverage(output.behaviors)
    missing = [name for name, count in coverage.items() if count == 0]
    if missing:
        logger.info("Generated batch does not cover: %s", ", ".join(missing))
    logger.info("Generated %d behaviors for vision %r", len(output.behaviors), vision)
    return output.behaviors


def generate_unique(
    gateway: CompletionGateway,
    vision: str,
    existing_texts: list[str],
    language: str = "zh",
) -> list[SuggestedBehavior]:
    """generate() followed by the caller-side de-duplication pass."""
    generated = generate(gateway, vision, language, exclude_texts=existing_texts)
    unique = filter_new_behaviors(generated, existing_texts)
    if generated and not unique:
        logger.warning("Model generated only duplicate behaviors, nothing added")
    return unique
