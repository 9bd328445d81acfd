"""
Unit tests for the mastery snapshot.

Tests:
- Hardest/weakest ordering
- Mastery level classification
- Empty state and read-only behaviour
"""

import pytest

from src.funnel.models import ConceptState
from src.funnel.snapshot import MasteryLevel, mastery_snapshot


@pytest.fixture
def tracked_state(funnel_state, now_ms):
    funnel_state.concepts["strong"] = ConceptState(
        display_name="Strong", alpha=9.0, beta=1.0, attempts=8, last_seen_at_ms=now_ms
    )
    funnel_state.concepts["weak"] = ConceptState(
        display_name="Weak", alpha=1.0, beta=5.0, attempts=4, last_seen_at_ms=now_ms
    )
    funnel_state.concepts["fresh"] = ConceptState(display_name="Fresh")
    return funnel_state


class TestMasterySnapshot:
    def test_hardest_by_priority(self, tracked_state, config, now_ms):
        snapshot = mastery_snapshot(tracked_state, now_ms, config=config)

        assert [row.key for row in snapshot.hardest] == ["weak", "fresh", "strong"]

    def test_weakest_by_expected_mastery(self, tracked_state, config, now_ms):
        snapshot = mastery_snapshot(tracked_state, now_ms, config=config)

        assert [row.key for row in snapshot.weakest] == ["weak", "fresh", "strong"]
        assert snapshot.weakest[0].expected == pytest.approx(1 / 6)

    def test_aggregates(self, tracked_state, config, now_ms):
        snapshot = mastery_snapshot(tracked_state, now_ms, config=config)

        assert snapshot.tracked == 3
        assert snapshot.avg_expected == pytest.approx((0.9 + 1 / 6 + 0.5) / 3)

    def test_levels(self, tracked_state, config, now_ms):
        snapshot = mastery_snapshot(tracked_state, now_ms, config=config)
        levels = {row.key: row.level for row in snapshot.hardest}

        assert levels == {
            "strong": MasteryLevel.MASTERED,
            "weak": MasteryLevel.NOVICE,
            "fresh": MasteryLevel.NOT_STARTED,
        }

    def test_limit(self, tracked_state, config, now_ms):
        snapshot = mastery_snapshot(tracked_state, now_ms, limit=1, config=config)

        assert len(snapshot.hardest) == 1
        assert len(snapshot.weakest) == 1
        assert snapshot.tracked == 3

    def test_empty_state(self, funnel_state, config, now_ms):
        snapshot = mastery_snapshot(funnel_state, now_ms, config=config)

        assert snapshot.hardest == []
        assert snapshot.weakest == []
        assert snapshot.tracked == 0
        assert snapshot.avg_expected == 0.0

    def test_does_not_mutate_state(self, tracked_state, config, now_ms):
        before = {key: concept.to_dict() for key, concept in tracked_state.concepts.items()}

        mastery_snapshot(tracked_state, now_ms, config=config)

        assert {key: concept.to_dict() for key, concept in tracked_state.concepts.items()} == before


class TestMasteryLevel:
    @pytest.mark.parametrize(
        "score,expected",
        [
            (0.0, MasteryLevel.NOVICE),
            (0.39, MasteryLevel.NOVICE),
            (0.4, MasteryLevel.DEVELOPING),
            (0.69, MasteryLevel.DEVELOPING),
            (0.7, MasteryLevel.PROFICIENT),
            (0.9, MasteryLevel.MASTERED),
            (1.0, MasteryLevel.MASTERED),
        ],
    )
    def test_from_score(self, score, expected):
        assert MasteryLevel.from_score(score) == expected

    def test_display_name(self):
        assert MasteryLevel.NOT_STARTED.display_name == "Not Started"
