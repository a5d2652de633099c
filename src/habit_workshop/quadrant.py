"""Quadrant classification and SOP input selection. Pure functions, no I/O."""

from enum import Enum

from .config import GOLDEN_THRESHOLD
from .schemas import Score, SOPBehavior


class Quadrant(str, Enum):
    GOLDEN = "golden"          # high impact, high ability
    CHALLENGE = "challenge"    # high impact, low ability
    QUICK_WIN = "quick_win"    # low impact, high ability
    LOW_VALUE = "low_value"    # low impact, low ability


SOP_QUADRANTS = (Quadrant.GOLDEN, Quadrant.CHALLENGE)


def is_golden(score: Score) -> bool:
    return score.impact >= GOLDEN_THRESHOLD and score.ability >= GOLDEN_THRESHOLD


def classify(score: Score) -> Quadrant:
    high_impact = score.impact >= GOLDEN_THRESHOLD
    high_ability = score.ability >= GOLDEN_THRESHOLD
    if high_impact:
        return Quadrant.GOLDEN if high_ability else Quadrant.CHALLENGE
    return Quadrant.QUICK_WIN if high_ability else Quadrant.LOW_VALUE


def build_sop_input(behaviors) -> list[SOPBehavior]:
    """Select golden and challenge behaviors, highest impact first.

    ``behaviors`` are workshop Behavior objects; each contributes its active
    score. Ties keep their workshop order. An empty result means nothing
    qualifies and the SOP Writer must not be called.
    """
    selected = []
    for behavior in behaviors:
        score = behavior.active_score
        quadrant = classify(score)
        if quadrant in SOP_QUADRANTS:
            selected.append((score.impact, SOPBehavior(text=behavior.text, type=quadrant.value)))
    selected.sort(key=lambda pair: pair[0], reverse=True)
    return [item for _, item in selected]
