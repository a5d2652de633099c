"""SOP Writer agent and Markdown export of a generated SOP."""

import logging
import re

from .llm import CompletionGateway
from .prompts import (
    JSON_RULES,
    SOP_SYSTEM_PROMPT,
    SOP_TYPE_LABELS,
    SOP_USER_PROMPT,
    language_name,
    normalize_language,
)
from .schemas import SOPBehavior, SOPData

logger = logging.getLogger("workshop.sop_writer")

# "1. ", "2) ", "3、", "Step 4: ": the UI numbers steps itself
_MANUAL_NUMBERING = re.compile(r"^\s*(?:step\s*)?\d+\s*[.)、:：]\s*", re.IGNORECASE)


def strip_numbering(step: str) -> str:
    return _MANUAL_NUMBERING.sub("", step).strip()


def _conform(sop: SOPData, behaviors: list[SOPBehavior]) -> SOPData | None:
    """Enforce one section per input behavior, carrying the input's type."""
    if len(sop.sections) != len(behaviors):
        logger.warning(
            "SOP has %d sections for %d behaviors, discarding",
            len(sop.sections), len(behaviors),
        )
        return None
    for section, behavior in zip(sop.sections, behaviors):
        if section.behavior_type != behavior.type:
            logger.info(
                "Section %r tagged %s, expected %s",
                section.behavior_text, section.behavior_type, behavior.type,
            )
            section.behavior_type = behavior.type
        steps = [strip_numbering(s) for s in section.steps]
        section.steps = [s for s in steps if s]
        if not section.steps:
            logger.warning("Section %r has no usable steps, discarding SOP", section.behavior_text)
            return None
    return sop


def generate(
    gateway: CompletionGateway,
    vision: str,
    behaviors: list[SOPBehavior],
    language: str = "zh",
) -> SOPData | None:
    """Write an SOP for already classified behaviors. Returns None on any failure."""
    language = normalize_language(language)
    labels = SOP_TYPE_LABELS[language]
    items = "\n".join(f"- [{labels[b.type]}] {b.text}" for b in behaviors)

    system_prompt = SOP_SYSTEM_PROMPT.format(
        vision=vision or "",
        language_name=language_name(language),
        json_rules=JSON_RULES.format(
            root_keys='"title", "overview", "sections"',
            language_name=language_name(language),
        ),
    )
    conversation = [{"role": "user", "content": SOP_USER_PROMPT[language].format(items=items)}]

    try:
        sop = gateway.complete_structured(system_prompt, conversation, SOPData)
    except Exception as e:
        logger.warning("SOP generation failed: %s", e)
        return None

    sop = _conform(sop, behaviors)
    if sop is not None:
        logger.info("Generated SOP %r with %d sections", sop.title, len(sop.sections))
    return sop


MARKDOWN_HEADINGS = {
    "zh": {"steps": "执行步骤", "tips": "小贴士", "motivation": "动力维持"},
    "en": {"steps": "Steps", "tips": "Tips", "motivation": "Motivation"},
}


def render_markdown(sop: SOPData, language: str = "zh") -> str:
    """Render an SOP as a Markdown document with numbered steps."""
    language = normalize_language(language)
    headings = MARKDOWN_HEADINGS[language]
    labels = SOP_TYPE_LABELS[language]

    lines = [f"# {sop.title}", "", sop.overview, ""]
    for index, section in enumerate(sop.sections, start=1):
        lines.append(f"## {index}. {section.behavior_text}")
        lines.append(f"*{labels[section.behavior_type]}*")
        lines.append("")
        lines.append(f"### {headings['steps']}")
        lines.extend(f"{n}. {step}" for n, step in enumerate(section.steps, start=1))
        lines.append("")
        lines.append(f"### {headings['tips']}")
        lines.extend(f"- {tip}" for tip in section.tips)
        lines.append("")
        lines.append(f"### {headings['motivation']}")
        lines.append(section.motivation)
        lines.append("")
    return "\n".join(lines)
