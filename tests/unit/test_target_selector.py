"""
Unit tests for the target selector.

Tests:
- Explore/focus slot counts
- Explore picks least-practiced, focus picks highest priority
- Distinct focus targets before repeats
- Even interleaving of explore slots
- Deterministic tie-breaking
"""

import random

import pytest

from src.funnel.models import ConceptState
from src.funnel.selector import TargetSelector, _interleave, select_targets
from src.funnel.tuning import FunnelConfig

DAY_MS = 86_400_000


class TestExploreSlotCount:
    @pytest.fixture
    def selector(self, config):
        return TargetSelector(config=config)

    @pytest.mark.parametrize(
        "total,ratio,expected",
        [
            (10, 0.2, 2),
            (10, 0.5, 5),
            (20, 0.2, 4),
            (10, 0.0, 2),
            (1, 0.2, 1),
            (10, 5.0, 10),
            (0, 0.2, 0),
        ],
    )
    def test_counts(self, selector, total, ratio, expected):
        assert selector.explore_slot_count(total, ratio) == expected


class TestSelect:
    def test_eight_fresh_concepts_ten_slots(self, guide_concepts, funnel_state, config, now_ms):
        selection = select_targets(guide_concepts, funnel_state, 10, 0.2, now_ms=now_ms, config=config)

        assert selection.explore_count == 2
        assert selection.focus_count == 8
        assert len(selection.targets_per_question) == 10
        assert len(selection.focus_targets_distinct) == 8
        assert selection.explore_targets == ["alpha", "beta"]
        assert selection.targets_per_question == [
            "alpha", "alpha", "beta", "gamma", "delta",
            "beta", "epsilon", "zeta", "eta", "theta",
        ]

    def test_initializes_missing_concepts(self, guide_concepts, funnel_state, config, now_ms):
        select_targets(guide_concepts, funnel_state, 5, now_ms=now_ms, config=config)

        assert sorted(funnel_state.keys()) == sorted(guide_concepts)
        assert funnel_state.concepts["gamma"].display_name == "Gamma"
        assert all(c.attempts == 0 for c in funnel_state.concepts.values())

    def test_explore_picks_least_practiced(self, guide_concepts, funnel_state, config, now_ms):
        for key in ["alpha", "beta", "gamma", "delta", "epsilon", "zeta"]:
            funnel_state.concepts[key] = ConceptState(
                display_name=key.title(), alpha=1.0, beta=4.0, attempts=3, last_seen_at_ms=now_ms
            )

        selection = select_targets(guide_concepts, funnel_state, 10, 0.2, now_ms=now_ms, config=config)

        assert selection.explore_targets == ["eta", "theta"]

    def test_focus_starts_with_weakest(self, guide_concepts, funnel_state, config, now_ms):
        for key in guide_concepts:
            funnel_state.concepts[key] = ConceptState(
                display_name=key.title(), alpha=5.0, beta=1.0, attempts=4, last_seen_at_ms=now_ms
            )
        funnel_state.concepts["gamma"].beta = 9.0

        selection = select_targets(guide_concepts, funnel_state, 10, 0.2, now_ms=now_ms, config=config)

        assert selection.focus_targets_distinct[0] == "gamma"
        # position 0 is an explore slot, so the first focus slot is position 1
        assert selection.targets_per_question[1] == "gamma"

    def test_focus_cycles_when_few_concepts(self, funnel_state, config, now_ms):
        guide = {"anemia": "Anemia", "hemolysis": "Hemolysis"}

        selection = select_targets(guide, funnel_state, 10, 0.2, now_ms=now_ms, config=config)

        assert len(selection.targets_per_question) == 10
        assert selection.focus_targets_distinct == ["anemia", "hemolysis"]
        assert set(selection.targets_per_question) == {"anemia", "hemolysis"}

    def test_no_focus_repeats_before_all_used(self, guide_concepts, funnel_state, config, now_ms):
        selection = select_targets(guide_concepts, funnel_state, 20, 0.1, now_ms=now_ms, config=config)

        focus_keys = [
            key
            for index, key in enumerate(selection.targets_per_question)
            if index % (20 // selection.explore_count) != 0
        ]
        assert len(set(focus_keys[:8])) == 8

    def test_empty_guide(self, funnel_state, config, now_ms):
        selection = select_targets({}, funnel_state, 10, now_ms=now_ms, config=config)

        assert selection.targets_per_question == []
        assert selection.explore_count == 0
        assert selection.focus_count == 0
        assert len(funnel_state) == 0

    def test_zero_total(self, guide_concepts, funnel_state, config, now_ms):
        selection = select_targets(guide_concepts, funnel_state, 0, now_ms=now_ms, config=config)

        assert selection.total == 0
        assert selection.targets_per_question == []

    def test_single_slot_is_explore(self, guide_concepts, funnel_state, config, now_ms):
        selection = select_targets(guide_concepts, funnel_state, 1, now_ms=now_ms, config=config)

        assert selection.explore_count == 1
        assert selection.focus_count == 0
        assert selection.targets_per_question == ["alpha"]

    def test_default_ratio_from_config(self, guide_concepts, funnel_state, now_ms):
        config = FunnelConfig(default_explore_ratio=0.5)

        selection = select_targets(guide_concepts, funnel_state, 10, now_ms=now_ms, config=config)

        assert selection.explore_count == 5

    def test_staler_concept_wins_priority_tie(self, funnel_state, config, now_ms):
        guide = {"recent": "Recent", "older": "Older"}
        funnel_state.concepts["recent"] = ConceptState(
            display_name="Recent", attempts=2, last_seen_at_ms=now_ms - 2 * DAY_MS
        )
        funnel_state.concepts["older"] = ConceptState(
            display_name="Older", attempts=2, last_seen_at_ms=now_ms - 3 * DAY_MS
        )

        selection = select_targets(guide, funnel_state, 4, 0.0, now_ms=now_ms, config=config)

        assert selection.focus_targets_distinct == ["older", "recent"]
        assert selection.explore_targets == ["older", "recent"]


class TestDeterminism:
    def test_repeatable_without_rng(self, guide_concepts, config, now_ms):
        from src.funnel.store import default_funnel_state

        first = select_targets(guide_concepts, default_funnel_state(), 10, now_ms=now_ms, config=config)
        second = select_targets(guide_concepts, default_funnel_state(), 10, now_ms=now_ms, config=config)

        assert first.targets_per_question == second.targets_per_question

    def test_same_seed_same_result(self, guide_concepts, config, now_ms):
        from src.funnel.store import default_funnel_state

        first = select_targets(
            guide_concepts, default_funnel_state(), 10, now_ms=now_ms, rng=random.Random(7), config=config
        )
        second = select_targets(
            guide_concepts, default_funnel_state(), 10, now_ms=now_ms, rng=random.Random(7), config=config
        )

        assert first.to_dict() == second.to_dict()

    def test_rng_still_covers_every_concept(self, guide_concepts, funnel_state, rng, config, now_ms):
        selection = select_targets(guide_concepts, funnel_state, 10, 0.2, now_ms=now_ms, rng=rng, config=config)

        assert set(selection.focus_targets_distinct) == set(guide_concepts)


class TestInterleave:
    def test_explore_slots_evenly_spaced(self):
        focus = [f"f{i}" for i in range(8)]

        result = _interleave(["e0", "e1"], focus, 10)

        assert result[0] == "e0"
        assert result[5] == "e1"
        assert [key for key in result if key.startswith("f")] == focus

    def test_only_explore(self):
        assert _interleave(["e0", "e1", "e0"], [], 3) == ["e0", "e1", "e0"]

    def test_only_focus(self):
        assert _interleave([], ["f0", "f1"], 2) == ["f0", "f1"]
