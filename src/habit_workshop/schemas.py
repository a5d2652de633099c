"""Structured contracts for every agent call.

Each model mirrors the JSON root keys the prompts demand. Gateway replies are
validated against these before any field is trusted.
"""

from typing import Annotated, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _round_number(value):
    # Models occasionally answer 72.5 or "72"; scores are whole numbers.
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return round(value)
    if isinstance(value, str):
        try:
            return round(float(value))
        except ValueError:
            return value
    return value


Percent = Annotated[int, BeforeValidator(_round_number), Field(ge=0, le=100)]
RubricPoint = Annotated[int, BeforeValidator(_round_number), Field(ge=0, le=10)]
BehaviorType = Literal["golden", "challenge"]


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase JSON keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Score(CamelModel):
    impact: Percent
    ability: Percent


class RubricScores(CamelModel):
    actionable: RubricPoint
    specific: RubricPoint
    tiny: RubricPoint
    relevance: RubricPoint


class ValidationResult(CamelModel):
    is_behavior: bool
    suggestion: str = Field(min_length=1)
    scores: RubricScores
    rational_score: Optional[Score] = None


class SuggestedBehavior(CamelModel):
    text: str = Field(min_length=1)
    impact: Percent
    ability: Percent
    rationale: str = ""


class DesignerOutput(CamelModel):
    behaviors: list[SuggestedBehavior]


class FinalEvaluation(CamelModel):
    reasoning: str = ""
    summary: str = Field(min_length=1)
    score: Score


class ChatEntry(CamelModel):
    role: Literal["ai", "user"]
    content: str


class SOPBehavior(CamelModel):
    """One row of SOP Writer input."""

    text: str
    type: BehaviorType


class SOPSection(CamelModel):
    behavior_text: str
    behavior_type: BehaviorType
    steps: list[str] = Field(min_length=1)
    tips: list[str] = Field(min_length=1)
    motivation: str = Field(min_length=1)


class SOPData(CamelModel):
    title: str
    overview: str
    sections: list[SOPSection]
