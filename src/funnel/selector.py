"""
Target Selector.

Assigns one concept per slot of an upcoming batch, balancing:
- Explore slots: least-practiced concepts, regardless of estimated mastery
- Focus slots: highest-priority (weakest) concepts, cycling through the
  ranked list so every distinct concept is used once before any repeats

Explore slots are spread evenly through the batch rather than blocked.

Ties on priority are broken by staleness (never seen first, then the
oldest last_seen), then by guide order. An injected random.Random replaces
the guide-order tie-break so repeated batches do not always favour the
same concept.
"""
from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Optional

from loguru import logger

from src.funnel.models import FunnelState, TargetSelection
from src.funnel.priority import compute_priority, current_time_ms
from src.funnel.store import concept_key, ensure_concept_state
from src.funnel.tuning import FunnelConfig, get_funnel_config

# Priorities are compared after rounding so float noise does not break ties
_PRIORITY_PRECISION = 12


@dataclass
class ConceptRank:
    """Ranking inputs for one concept."""

    key: str
    attempts: int
    priority: float
    last_seen_at_ms: int | None
    tiebreak: float

    @property
    def staleness_key(self) -> float:
        return -math.inf if self.last_seen_at_ms is None else float(self.last_seen_at_ms)


class TargetSelector:
    """
    Explore/exploit scheduler over the live mastery model.

    The algorithm:
    1. Lazily initialize every guide concept
    2. Reserve max(2, ceil(ratio * total)) explore slots for least-practiced concepts
    3. Fill the remaining focus slots round-robin over concepts by priority
    4. Interleave explore slots evenly through the batch
    """

    def __init__(
        self,
        config: Optional[FunnelConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize selector.

        Args:
            config: FunnelConfig or None for settings defaults
            rng: Random source for tie-breaking (None = deterministic guide order)
        """
        self.config = config or get_funnel_config()
        self.rng = rng

    def explore_slot_count(self, total: int, explore_ratio: float) -> int:
        """Number of explore slots for a batch of `total` items."""
        if total <= 0:
            return 0
        ratio = min(1.0, max(0.0, explore_ratio))
        return min(total, max(self.config.min_explore_slots, math.ceil(ratio * total)))

    def select(
        self,
        guide_concepts: dict[str, str],
        state: FunnelState,
        total: int,
        explore_ratio: float | None = None,
        now_ms: int | None = None,
    ) -> TargetSelection:
        """
        Produce `total` concept assignments.

        Args:
            guide_concepts: Concept key -> display name
            state: Session mastery state (missing concepts are initialized)
            total: Batch size
            explore_ratio: Share of explore slots (None = configured default)
            now_ms: Current time in epoch ms for staleness

        Returns:
            TargetSelection with len(targets_per_question) == total
        """
        total = max(0, int(total or 0))
        if not guide_concepts or total == 0:
            return TargetSelection()

        ratio = self.config.default_explore_ratio if explore_ratio is None else explore_ratio
        now = current_time_ms() if now_ms is None else now_ms

        ranks = self._rank_inputs(guide_concepts, state, now)

        explore_count = self.explore_slot_count(total, ratio)
        focus_count = total - explore_count

        by_attempts = sorted(
            ranks,
            key=lambda r: (r.attempts, -round(r.priority, _PRIORITY_PRECISION), r.staleness_key, r.tiebreak),
        )
        explore_targets = [r.key for r in by_attempts[:explore_count]]
        explore_slots = _cycle(explore_targets, explore_count)

        by_priority = sorted(
            ranks,
            key=lambda r: (-round(r.priority, _PRIORITY_PRECISION), r.staleness_key, r.tiebreak),
        )
        focus_slots = _cycle([r.key for r in by_priority], focus_count)
        focus_targets_distinct = list(dict.fromkeys(focus_slots))

        targets = _interleave(explore_slots, focus_slots, total)

        logger.info(
            f"Selected targets: {total} slots, {explore_count} explore "
            f"({len(explore_targets)} distinct), {focus_count} focus "
            f"({len(focus_targets_distinct)} distinct) over {len(ranks)} concepts"
        )

        return TargetSelection(
            explore_targets=explore_targets,
            focus_targets_distinct=focus_targets_distinct,
            focus_count=focus_count,
            explore_count=explore_count,
            targets_per_question=targets,
        )

    def _rank_inputs(
        self,
        guide_concepts: dict[str, str],
        state: FunnelState,
        now_ms: int,
    ) -> list[ConceptRank]:
        ranks: list[ConceptRank] = []
        seen: set[str] = set()
        for index, (key, display) in enumerate(guide_concepts.items()):
            concept = ensure_concept_state(state, key, display)
            normalized = concept_key(key)
            if normalized in seen:
                continue
            seen.add(normalized)
            ranks.append(
                ConceptRank(
                    key=normalized,
                    attempts=max(0, int(concept.attempts or 0)),
                    priority=compute_priority(concept, now_ms, self.config),
                    last_seen_at_ms=concept.last_seen_at_ms,
                    tiebreak=self.rng.random() if self.rng is not None else float(index),
                )
            )
        return ranks


def _cycle(keys: list[str], count: int) -> list[str]:
    """Repeat keys in order until `count` slots are filled."""
    if not keys:
        return []
    return [keys[i % len(keys)] for i in range(count)]


def _interleave(explore_slots: list[str], focus_slots: list[str], total: int) -> list[str]:
    """Spread explore slots evenly (every `stride` positions) among focus slots."""
    if not explore_slots:
        return list(focus_slots[:total])

    stride = max(1, total // len(explore_slots))
    result: list[str] = []
    i_explore = 0
    i_focus = 0
    for position in range(total):
        take_explore = i_explore < len(explore_slots) and (
            position % stride == 0 or i_focus >= len(focus_slots)
        )
        if take_explore:
            result.append(explore_slots[i_explore])
            i_explore += 1
        else:
            result.append(focus_slots[i_focus])
            i_focus += 1
    return result


def select_targets(
    guide_concepts: dict[str, str],
    state: FunnelState,
    total: int,
    explore_ratio: float | None = None,
    *,
    now_ms: int | None = None,
    rng: random.Random | None = None,
    config: FunnelConfig | None = None,
) -> TargetSelection:
    """Functional entry point; see TargetSelector.select."""
    return TargetSelector(config=config, rng=rng).select(
        guide_concepts,
        state,
        total,
        explore_ratio=explore_ratio,
        now_ms=now_ms,
    )
