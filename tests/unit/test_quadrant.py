"""Unit tests for habit_workshop.quadrant — classification and SOP selection."""

from habit_workshop.quadrant import Quadrant, build_sop_input, classify, is_golden
from habit_workshop.schemas import Score
from habit_workshop.workshop import Behavior, Position


def _evaluated(text, impact, ability):
    return Behavior(
        text=text,
        is_evaluated=True,
        rational_score=Score(impact=impact, ability=ability),
    )


def _intuitive(text, impact, ability):
    return Behavior(text=text, intuitive_position=Position(impact=impact, ability=ability))


class TestClassify:
    def test_golden(self):
        assert classify(Score(impact=75, ability=80)) == Quadrant.GOLDEN

    def test_challenge(self):
        assert classify(Score(impact=85, ability=30)) == Quadrant.CHALLENGE

    def test_quick_win(self):
        assert classify(Score(impact=40, ability=90)) == Quadrant.QUICK_WIN

    def test_low_value(self):
        assert classify(Score(impact=10, ability=10)) == Quadrant.LOW_VALUE

    def test_threshold_is_inclusive(self):
        assert classify(Score(impact=60, ability=60)) == Quadrant.GOLDEN
        assert classify(Score(impact=60, ability=59)) == Quadrant.CHALLENGE
        assert is_golden(Score(impact=59, ability=100)) is False


class TestBuildSopInput:
    def test_filters_and_tags(self):
        behaviors = [
            _evaluated("golden", 75, 80),
            _evaluated("challenge", 85, 30),
            _evaluated("quick win", 40, 90),
        ]
        result = build_sop_input(behaviors)
        assert [(b.text, b.type) for b in result] == [
            ("challenge", "challenge"),
            ("golden", "golden"),
        ]

    def test_sorted_by_impact_descending(self):
        behaviors = [
            _intuitive("mid", 70, 70),
            _intuitive("top", 95, 20),
            _intuitive("low", 61, 90),
        ]
        assert [b.text for b in build_sop_input(behaviors)] == ["top", "mid", "low"]

    def test_ties_keep_workshop_order(self):
        behaviors = [_intuitive("first", 80, 80), _intuitive("second", 80, 20)]
        assert [b.text for b in build_sop_input(behaviors)] == ["first", "second"]

    def test_unevaluated_uses_intuitive_position(self):
        behavior = _intuitive("placed high", 90, 90)
        behavior.rational_score = Score(impact=10, ability=10)  # ignored until evaluated
        assert build_sop_input([behavior])[0].type == "golden"

    def test_evaluated_uses_rational_score(self):
        behavior = _evaluated("re-scored", 20, 90)
        behavior.intuitive_position = Position(impact=95, ability=95)
        assert build_sop_input([behavior]) == []

    def test_empty_when_nothing_qualifies(self):
        assert build_sop_input([_intuitive("meh", 40, 90), _intuitive("low", 10, 10)]) == []
