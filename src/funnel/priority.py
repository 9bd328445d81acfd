"""
Priority Scorer.

Urgency of practice for a concept:

    priority = beta / (alpha + beta)                       # expected failure
             + k1 / sqrt(attempts + 1)                     # exploration
             + k2 * min(1, elapsed / stale_window)         # staleness (k2 if never seen)

k1 and k2 are small enough that expected failure dominates ordering; the
bonuses only keep rarely-seen or stale concepts from starving.
"""
from __future__ import annotations

import math
import time

from src.funnel.models import ConceptState
from src.funnel.tuning import FunnelConfig, get_funnel_config

_EPSILON = 1e-4


def current_time_ms() -> int:
    """Wall clock in epoch milliseconds."""
    return int(time.time() * 1000)


def _pseudo_counts(state: ConceptState) -> tuple[float, float]:
    alpha = max(_EPSILON, float(state.alpha or 0.0))
    beta = max(_EPSILON, float(state.beta or 0.0))
    return alpha, beta


def expected_mastery(state: ConceptState) -> float:
    """Expected success probability alpha / (alpha + beta)."""
    alpha, beta = _pseudo_counts(state)
    return alpha / (alpha + beta)


def expected_failure(state: ConceptState) -> float:
    """Expected failure probability beta / (alpha + beta)."""
    alpha, beta = _pseudo_counts(state)
    return beta / (alpha + beta)


def mastery_uncertainty(state: ConceptState) -> float:
    """Standard deviation of the Beta(alpha, beta) estimate."""
    alpha, beta = _pseudo_counts(state)
    total = alpha + beta
    return math.sqrt((alpha * beta) / (total * total * (total + 1)))


def compute_priority(
    state: ConceptState,
    now_ms: int | None = None,
    config: FunnelConfig | None = None,
) -> float:
    """
    Compute practice urgency; weaker or less certain mastery scores higher.

    Args:
        state: Concept mastery state
        now_ms: Current time in epoch ms (defaults to wall clock)
        config: Tuning constants (defaults to settings)

    Returns:
        Priority scalar (roughly 0 to 1 + k1 + k2)
    """
    config = config or get_funnel_config()

    attempts = max(0, int(state.attempts or 0))
    exploration = config.exploration_bonus / math.sqrt(attempts + 1)

    if state.last_seen_at_ms is None:
        staleness = config.staleness_bonus
    else:
        current = current_time_ms() if now_ms is None else now_ms
        elapsed = max(0, current - state.last_seen_at_ms)
        staleness = config.staleness_bonus * min(1.0, elapsed / config.stale_window_ms)

    return expected_failure(state) + exploration + staleness
