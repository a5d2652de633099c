"""Workshop aggregate: the vision, its behaviors and the generated SOP.

Every score-affecting mutation goes through a Workshop method so the derived
``is_golden`` flag always follows the behavior's active score.
"""

import logging
import random
import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import Field, computed_field

from .quadrant import is_golden
from .schemas import (
    CamelModel,
    ChatEntry,
    Percent,
    RubricScores,
    Score,
    SOPData,
    SuggestedBehavior,
)

logger = logging.getLogger("workshop.model")

NOTE_COLORS = ["yellow", "blue", "green", "pink"]


class BehaviorNotFound(KeyError):
    pass


class Position(CamelModel):
    """Intuitive placement on the quadrant: ability is x, impact is y."""

    ability: Percent = 50
    impact: Percent = 50


class AiEvaluation(CamelModel):
    is_behavior: bool = False
    suggestion: Optional[str] = None
    scores: Optional[RubricScores] = None
    rational_score: Optional[Score] = None  # validator's preliminary estimate
    chat_history: list[ChatEntry] = Field(default_factory=list)
    final_summary: Optional[str] = None
    is_complete: bool = False

    @property
    def ai_turns(self) -> int:
        return sum(1 for entry in self.chat_history if entry.role == "ai")


class Behavior(CamelModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    text: str
    color: str = Field(default_factory=lambda: random.choice(NOTE_COLORS))
    rotation: float = Field(default_factory=lambda: round(random.uniform(-2, 2), 2))
    source: Literal["user", "ai"] = "user"
    intuitive_position: Position = Field(default_factory=Position)
    rational_score: Optional[Score] = None
    is_evaluated: bool = False
    ai_evaluation: Optional[AiEvaluation] = None

    @property
    def active_score(self) -> Score:
        if self.is_evaluated and self.rational_score is not None:
            return self.rational_score
        pos = self.intuitive_position
        return Score(impact=pos.impact, ability=pos.ability)

    @computed_field(alias="isGolden")
    @property
    def is_golden(self) -> bool:
        return is_golden(self.active_score)


def _clamp(value: float) -> int:
    return max(0, min(100, round(value)))


class Workshop(CamelModel):
    id: Optional[str] = None
    vision: str = ""
    behaviors: list[Behavior] = Field(default_factory=list)
    sop_data: Optional[SOPData] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def get_behavior(self, behavior_id: str) -> Behavior:
        for behavior in self.behaviors:
            if behavior.id == behavior_id:
                return behavior
        raise BehaviorNotFound(behavior_id)

    def find_behavior(self, behavior_id: str) -> Behavior | None:
        try:
            return self.get_behavior(behavior_id)
        except BehaviorNotFound:
            return None

    def existing_texts(self) -> list[str]:
        return [b.text for b in self.behaviors]

    def set_vision(self, vision: str) -> None:
        self.vision = vision

    def add_behavior(self, text: str) -> Behavior:
        """Manually entered behavior, placed at the center of the quadrant."""
        behavior = Behavior(text=text, source="user")
        self.behaviors.append(behavior)
        return behavior

    def add_suggestions(self, suggestions: list[SuggestedBehavior]) -> list[Behavior]:
        """Add Designer output, placed at each suggestion's own estimate."""
        added = []
        for suggestion in suggestions:
            behavior = Behavior(
                text=suggestion.text,
                source="ai",
                intuitive_position=Position(
                    ability=suggestion.ability, impact=suggestion.impact
                ),
            )
            self.behaviors.append(behavior)
            added.append(behavior)
        return added

    def move_behavior(self, behavior_id: str, ability: float, impact: float) -> Behavior:
        """Reposition a note.

        Evaluated behaviors keep their evaluation but take the dropped
        coordinates as their rational score.
        """
        behavior = self.get_behavior(behavior_id)
        if behavior.is_evaluated:
            behavior.rational_score = Score(impact=_clamp(impact), ability=_clamp(ability))
        else:
            behavior.intuitive_position = Position(ability=_clamp(ability), impact=_clamp(impact))
        return behavior

    def edit_text(self, behavior_id: str, text: str) -> Behavior:
        """Change the text. Prior judgments are discarded entirely."""
        behavior = self.get_behavior(behavior_id)
        behavior.text = text
        behavior.is_evaluated = False
        behavior.rational_score = None
        behavior.ai_evaluation = None
        return behavior

    def update_evaluation_progress(
        self, behavior_id: str, evaluation: AiEvaluation, expected_text: str | None = None
    ) -> Behavior | None:
        """Store an in-progress evaluation; ignored if the behavior is gone or was edited."""
        behavior = self._evaluation_target(behavior_id, expected_text)
        if behavior is not None:
            behavior.ai_evaluation = evaluation.model_copy(deep=True)
        return behavior

    def complete_evaluation(
        self,
        behavior_id: str,
        score: Score,
        evaluation: AiEvaluation,
        expected_text: str | None = None,
    ) -> Behavior | None:
        """Apply a confirmed score. Late results for a deleted or edited behavior are dropped."""
        behavior = self._evaluation_target(behavior_id, expected_text)
        if behavior is None:
            return None
        behavior.rational_score = score.model_copy()
        behavior.ai_evaluation = evaluation.model_copy(deep=True)
        behavior.is_evaluated = True
        logger.info(
            "Behavior %s evaluated: impact=%d ability=%d golden=%s",
            behavior_id, score.impact, score.ability, behavior.is_golden,
        )
        return behavior

    def _evaluation_target(self, behavior_id: str, expected_text: str | None) -> Behavior | None:
        behavior = self.find_behavior(behavior_id)
        if behavior is None:
            logger.info("Dropping evaluation result for missing behavior %s", behavior_id)
            return None
        if expected_text is not None and behavior.text != expected_text:
            logger.info("Dropping stale evaluation result for edited behavior %s", behavior_id)
            return None
        return behavior

    def delete_behavior(self, behavior_id: str) -> None:
        behavior = self.get_behavior(behavior_id)
        self.behaviors.remove(behavior)

    def set_sop(self, sop: SOPData) -> None:
        """Replace any previous SOP wholesale."""
        self.sop_data = sop

    def clear(self) -> None:
        self.vision = ""
        self.behaviors = []
        self.sop_data = None

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
