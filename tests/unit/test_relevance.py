"""
Unit tests for the relevance scorer.

Tests:
- Exact, partial and free-text tiers
- Exact tag dominance over text mentions
- Ranking and best-pick selection with exclusions
"""

import pytest

from src.funnel.fingerprints import fingerprint_variants
from src.funnel.models import CandidateItem
from src.funnel.relevance import (
    pick_best_for_target,
    rank_candidates,
    score_question_for_concept,
    tokenize,
)


def make_item(item_id, stem="Unrelated stem text", tags=None, options=None, answer=""):
    return CandidateItem(
        id=item_id,
        stem=stem,
        options=options or [],
        correct_answer=answer,
        concept_tags=tags or [],
    )


class TestTokenize:
    def test_drops_short_tokens(self):
        assert tokenize("An IV drip of saline") == ["drip", "saline"]

    def test_normalizes_punctuation_and_case(self):
        assert tokenize("Platelet-Plug, FORMATION!") == ["platelet-plug", "formation"]


class TestScoreQuestionForConcept:
    def test_exact_tag_scores_all_tiers(self, sample_item):
        """Exact tag (10) + full token overlap (4) + one text hit (1)."""
        assert score_question_for_concept(sample_item, "Normal Hemostasis") == pytest.approx(15.0)

    def test_exact_match_ignores_case_and_spacing(self, sample_item):
        assert score_question_for_concept(sample_item, "  normal   HEMOSTASIS ") == pytest.approx(15.0)

    def test_text_mention_only(self):
        item = make_item("q2", stem="This stem mentions hemostasis once.")

        assert score_question_for_concept(item, "Normal Hemostasis") == pytest.approx(1.0)

    def test_partial_tag_overlap_is_proportional(self):
        item = make_item("q3", tags=["Hemostasis Disorders"])

        assert score_question_for_concept(item, "Normal Hemostasis") == pytest.approx(2.0)

    def test_text_hits_are_capped(self):
        item = make_item("q4", stem="alpha beta gamma delta epsilon")

        assert score_question_for_concept(item, "alpha beta gamma delta") == pytest.approx(3.0)

    def test_text_hits_include_options_and_answer(self):
        item = make_item("q5", options=["Thrombin burst"], answer="Fibrinogen")

        assert score_question_for_concept(item, "Thrombin Fibrinogen") == pytest.approx(2.0)

    def test_tagged_item_outranks_text_mentions(self):
        tagged = make_item("tagged", stem="Which factor is deficient?", tags=["Coagulation Cascade"])
        mentioned = make_item(
            "mentioned",
            stem="The coagulation cascade: coagulation cascade steps in the cascade",
        )

        assert score_question_for_concept(tagged, "Coagulation Cascade") > score_question_for_concept(
            mentioned, "Coagulation Cascade"
        )

    def test_no_match_scores_zero(self):
        assert score_question_for_concept(make_item("q6"), "Anemia") == 0.0

    def test_empty_concept_scores_zero(self, sample_item):
        assert score_question_for_concept(sample_item, "  ") == 0.0

    def test_short_concept_only_matches_exact_tag(self):
        tagged = make_item("q7", tags=["pH"])
        untagged = make_item("q8", stem="pH of blood")

        assert score_question_for_concept(tagged, "pH") == pytest.approx(10.0)
        assert score_question_for_concept(untagged, "pH") == 0.0


class TestRankCandidates:
    def test_best_first_and_stable(self):
        items = [
            make_item("low-1"),
            make_item("high", tags=["Anemia"]),
            make_item("low-2"),
        ]

        ranked = rank_candidates(items, "Anemia")

        assert [item.id for _, item in ranked] == ["high", "low-1", "low-2"]
        assert ranked[0][0] > ranked[1][0]


class TestPickBestForTarget:
    def test_picks_highest_score(self):
        items = [make_item("a", stem="anemia mention"), make_item("b", tags=["Anemia"])]

        assert pick_best_for_target(items, "Anemia").id == "b"

    def test_first_wins_on_tie(self):
        items = [make_item("a", tags=["Anemia"]), make_item("b", stem="Other", tags=["Anemia"])]

        assert pick_best_for_target(items, "Anemia").id == "a"

    def test_skips_excluded_fingerprints(self):
        best = make_item("a", tags=["Anemia"])
        other = make_item("b", stem="Anemia symptoms?")
        excluded = set(fingerprint_variants(best))

        assert pick_best_for_target([best, other], "Anemia", excluded).id == "b"

    def test_zero_score_item_still_fills_slot(self):
        assert pick_best_for_target([make_item("a")], "Anemia").id == "a"

    def test_min_score_filters(self):
        items = [make_item("a"), make_item("b", stem="anemia")]

        assert pick_best_for_target(items, "Anemia", min_score=5.0) is None

    def test_empty_pool(self):
        assert pick_best_for_target([], "Anemia") is None
