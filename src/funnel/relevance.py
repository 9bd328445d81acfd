"""
Relevance Scorer.

Rates how well a candidate item tests a named concept using three tiers:
- Exact tag match (large fixed bonus)
- Partial tag overlap (proportional to shared concept tokens)
- Free-text overlap with stem, options and answer (small, capped)

The exact-match bonus exceeds the free-text cap, so a tagged item always
outranks an item that merely mentions the concept.
"""
from __future__ import annotations

from typing import Iterable

from src.funnel.fingerprints import fingerprint_variants
from src.funnel.models import CandidateItem, normalize_concept_key

EXACT_TAG_BONUS = 10.0
PARTIAL_TAG_BONUS = 4.0
TEXT_TOKEN_BONUS = 1.0
TEXT_TOKEN_CAP = 3

MIN_TOKEN_LENGTH = 3


def tokenize(value: str) -> list[str]:
    """Word tokens of the normalized text, ignoring tokens shorter than 3 chars."""
    return [token for token in normalize_concept_key(value).split(" ") if len(token) >= MIN_TOKEN_LENGTH]


def _tag_keys(item: CandidateItem) -> set[str]:
    return {key for key in (normalize_concept_key(tag) for tag in item.concept_tags) if key}


def _text_tokens(item: CandidateItem) -> set[str]:
    tokens: set[str] = set()
    for text in [item.stem, item.correct_answer, *item.options]:
        tokens.update(tokenize(text))
    return tokens


def score_question_for_concept(item: CandidateItem, concept: str) -> float:
    """
    Score how well an item tests a concept (display name or key).

    Returns:
        Relevance score; 0.0 when nothing matches
    """
    needle = normalize_concept_key(concept)
    if not needle:
        return 0.0

    tag_keys = _tag_keys(item)
    score = EXACT_TAG_BONUS if needle in tag_keys else 0.0

    concept_tokens = set(tokenize(needle))
    if not concept_tokens:
        return score

    tag_tokens: set[str] = set()
    for key in tag_keys:
        tag_tokens.update(tokenize(key))
    shared = len(concept_tokens & tag_tokens)
    score += PARTIAL_TAG_BONUS * shared / len(concept_tokens)

    text_hits = len(concept_tokens & _text_tokens(item))
    score += TEXT_TOKEN_BONUS * min(TEXT_TOKEN_CAP, text_hits)

    return score


def rank_candidates(
    items: Iterable[CandidateItem],
    concept: str,
) -> list[tuple[float, CandidateItem]]:
    """Rank items for a concept, best first; equal scores keep input order."""
    scored = [(score_question_for_concept(item, concept), item) for item in items]
    return sorted(scored, key=lambda pair: pair[0], reverse=True)


def pick_best_for_target(
    items: Iterable[CandidateItem],
    concept: str,
    exclude_fingerprints: set[str] | None = None,
    min_score: float = 0.0,
) -> CandidateItem | None:
    """
    Pick the highest scoring item not already seen.

    Args:
        items: Candidate pool
        concept: Target concept (display name or key)
        exclude_fingerprints: Fingerprints of items already used or seen
        min_score: Items scoring below this are never picked

    Returns:
        Best candidate, or None when the pool has nothing usable
    """
    excluded = exclude_fingerprints or set()
    best: CandidateItem | None = None
    best_score = 0.0
    for item in items:
        if any(variant in excluded for variant in fingerprint_variants(item)):
            continue
        score = score_question_for_concept(item, concept)
        if score < min_score:
            continue
        if best is None or score > best_score:
            best = item
            best_score = score
    return best
