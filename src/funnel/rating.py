"""
Rating Integrator.

Folds one answered item into the mastery state of every concept it is
tagged with. The success weight w in [0, 1] combines:
- Correctness (primary)
- Anki-style recall rating (Again/Hard/Good/Easy)
- Response latency (slow correct answers count partially as failures)
- Hint/tutor usage before answering

alpha gains w, beta gains 1 - w. An incorrect answer always lands fully
on beta.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from src.funnel.models import AnkiRating, CandidateItem, FunnelState
from src.funnel.store import concept_key, ensure_concept_state
from src.funnel.tuning import FunnelConfig, get_funnel_config


@dataclass
class RatingOutcome:
    """Result of integrating one response."""

    updated_concept_keys: list[str] = field(default_factory=list)
    success_weight: float = 0.0


def compute_success_weight(
    is_correct: bool,
    anki_rating: AnkiRating | int | str,
    time_to_answer_ms: float | None,
    tutor_used_before_answer: bool,
    config: FunnelConfig | None = None,
) -> float:
    """
    Effective success weight of a response.

    Returns:
        Weight between 0 (pure failure evidence) and 1 (pure success evidence)
    """
    if not is_correct:
        return 0.0

    config = config or get_funnel_config()
    rating = AnkiRating.parse(anki_rating)

    weight = 1.0 + config.rating_adjustments.get(int(rating), 0.0)
    if time_to_answer_ms is not None and time_to_answer_ms > config.slow_threshold_ms:
        weight -= config.latency_penalty
    if tutor_used_before_answer:
        weight -= config.tutor_penalty

    return max(0.0, min(1.0, weight))


def _item_concepts(item: CandidateItem) -> dict[str, str]:
    """Distinct normalized key -> display name for the item's tags."""
    concepts: dict[str, str] = {}
    for tag in item.tags_or_general:
        display = str(tag or "").strip()
        concepts.setdefault(concept_key(display), display)
    return concepts


def apply_anki_rating(
    state: FunnelState,
    item: CandidateItem,
    is_correct: bool,
    anki_rating: AnkiRating | int | str,
    time_to_answer_ms: float | None,
    tutor_used_before_answer: bool,
    now_ms: int,
    config: FunnelConfig | None = None,
) -> RatingOutcome:
    """
    Update mastery for every concept tagged on an answered item.

    Must be called in the order the learner answered: attempts and the
    latency mean are order-dependent running aggregates.

    Args:
        state: Session mastery state (mutated in place)
        item: The answered item
        is_correct: Whether the answer was correct
        anki_rating: Learner's recall rating
        time_to_answer_ms: Response latency, or None if unknown
        tutor_used_before_answer: Whether a hint/tutor was consulted first
        now_ms: Answer time in epoch ms

    Returns:
        RatingOutcome with the updated concept keys and the weight applied
    """
    config = config or get_funnel_config()
    latency = None if time_to_answer_ms is None else max(0.0, float(time_to_answer_ms))
    weight = compute_success_weight(
        is_correct, anki_rating, latency, tutor_used_before_answer, config
    )

    updated: list[str] = []
    for key, display in _item_concepts(item).items():
        concept = ensure_concept_state(state, key, display)

        concept.attempts = max(0, int(concept.attempts or 0)) + 1
        concept.last_seen_at_ms = now_ms

        if latency is not None:
            previous = concept.avg_time_to_answer_ms
            if previous is None:
                concept.avg_time_to_answer_ms = latency
            else:
                concept.avg_time_to_answer_ms = previous + (latency - previous) / concept.attempts

        if tutor_used_before_answer:
            concept.tutor_touches = max(0, int(concept.tutor_touches or 0)) + 1

        concept.alpha = max(1.0, float(concept.alpha or 0.0)) + weight
        concept.beta = max(1.0, float(concept.beta or 0.0)) + (1.0 - weight)
        updated.append(key)

        logger.debug(
            f"Rated '{key}': correct={is_correct} w={weight:.2f} "
            f"alpha={concept.alpha:.2f} beta={concept.beta:.2f} attempts={concept.attempts}"
        )

    return RatingOutcome(updated_concept_keys=updated, success_weight=weight)


def record_tutor_touch(state: FunnelState, item: CandidateItem, now_ms: int) -> list[str]:
    """
    Count a tutor consultation on an item's concepts without grading it.

    Returns:
        Keys of the concepts touched
    """
    touched: list[str] = []
    for key, display in _item_concepts(item).items():
        concept = ensure_concept_state(state, key, display)
        concept.tutor_touches = max(0, int(concept.tutor_touches or 0)) + 1
        concept.last_seen_at_ms = now_ms
        touched.append(key)
    return touched
