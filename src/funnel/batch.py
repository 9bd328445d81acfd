"""
Batch Planner.

Turns a target selection into a concrete batch of practice items drawn
from host-supplied candidate pools. Pools are consulted in order (e.g.
reviewed items before pre-built ones); the first pool with an unseen
candidate wins the slot. Slots no pool can fill are reported as missing
targets so the host can ask its own generator for them, then hand the
generated items back through accept_generated().

No I/O happens here: pools and generated items are passed in.
"""
from __future__ import annotations

import random
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Iterable, Sequence

from loguru import logger

from src.funnel.fingerprints import filter_duplicates, fingerprint_variants
from src.funnel.models import CandidateItem, FunnelState, TargetSelection
from src.funnel.relevance import pick_best_for_target
from src.funnel.selector import select_targets
from src.funnel.tuning import FunnelConfig, get_funnel_config

GENERATED_SOURCE = "generated"
FALLBACK_TARGET = "general"


@dataclass
class FunnelBatchMeta:
    """Descriptive metadata for a planned batch."""

    guide_hash: str
    created_at: str
    total: int
    focus_count: int
    explore_count: int
    focus_targets: list[str]
    explore_targets: list[str]
    targets_per_question: list[str]
    target_by_item_id: dict[str, str]
    source_counts: dict[str, int]
    shortfall: int
    dropped_generated: int = 0
    guide_title: str | None = None
    display_by_key: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "guide_hash": self.guide_hash,
            "guide_title": self.guide_title,
            "created_at": self.created_at,
            "total": self.total,
            "focus_count": self.focus_count,
            "explore_count": self.explore_count,
            "focus_targets": list(self.focus_targets),
            "explore_targets": list(self.explore_targets),
            "targets_per_question": list(self.targets_per_question),
            "target_by_item_id": dict(self.target_by_item_id),
            "source_counts": dict(self.source_counts),
            "shortfall": self.shortfall,
            "dropped_generated": self.dropped_generated,
            "display_by_key": dict(self.display_by_key),
        }


@dataclass
class BatchPlan:
    """A batch in progress: chosen items plus the slots still unfilled."""

    total: int
    selection: TargetSelection
    items: list[CandidateItem] = field(default_factory=list)
    target_by_item_id: dict[str, str] = field(default_factory=dict)
    missing_targets: list[str] = field(default_factory=list)
    item_ids_per_slot: list[str | None] = field(default_factory=list)
    source_counts: dict[str, int] = field(default_factory=dict)
    fingerprints: set[str] = field(default_factory=set)
    display_by_key: dict[str, str] = field(default_factory=dict)
    dropped_generated: int = 0

    @property
    def shortfall(self) -> int:
        return max(0, self.total - len(self.items))

    @property
    def is_complete(self) -> bool:
        return self.shortfall == 0

    def assign(self, item: CandidateItem, target: str) -> None:
        self.items.append(item)
        self.target_by_item_id[item.id] = target
        self.source_counts[item.source] = self.source_counts.get(item.source, 0) + 1
        self.fingerprints.update(fingerprint_variants(item))

    def fill_slot(self, target: str, item_id: str) -> None:
        """Record an item in the first empty slot assigned to `target`."""
        for slot, (slot_target, slot_item) in enumerate(zip(self.selection.targets_per_question, self.item_ids_per_slot)):
            if slot_item is None and slot_target == target:
                self.item_ids_per_slot[slot] = item_id
                return

    def meta(
        self,
        guide_hash: str = "custom",
        guide_title: str | None = None,
        created_at: str | None = None,
    ) -> FunnelBatchMeta:
        """Summarize the plan for the host's session record."""
        return FunnelBatchMeta(
            guide_hash=guide_hash,
            guide_title=guide_title,
            created_at=created_at or datetime.now(timezone.utc).isoformat(),
            total=self.total,
            focus_count=self.selection.focus_count,
            explore_count=self.selection.explore_count,
            focus_targets=list(self.selection.focus_targets_distinct),
            explore_targets=list(self.selection.explore_targets),
            targets_per_question=list(self.selection.targets_per_question),
            target_by_item_id=dict(self.target_by_item_id),
            source_counts=dict(self.source_counts),
            shortfall=self.shortfall,
            dropped_generated=self.dropped_generated,
            display_by_key=dict(self.display_by_key),
        )


def plan_batch(
    guide_concepts: dict[str, str],
    state: FunnelState,
    pools: Sequence[Iterable[CandidateItem]],
    total: int,
    *,
    explore_ratio: float | None = None,
    seen_fingerprints: set[str] | None = None,
    now_ms: int | None = None,
    rng: random.Random | None = None,
    config: FunnelConfig | None = None,
) -> BatchPlan:
    """
    Select targets and fill each slot from the candidate pools.

    Args:
        guide_concepts: Concept key -> display name
        state: Session mastery state
        pools: Candidate pools in preference order
        total: Requested batch size (clamped to 1..max_batch_size)
        explore_ratio: Share of explore slots (None = configured default)
        seen_fingerprints: Fingerprints of items the learner already saw

    Returns:
        BatchPlan; unfilled slots are listed in missing_targets
    """
    config = config or get_funnel_config()
    if not guide_concepts:
        return BatchPlan(total=0, selection=TargetSelection())

    total = max(1, min(config.max_batch_size, int(total or 0)))
    selection = select_targets(
        guide_concepts,
        state,
        total,
        explore_ratio,
        now_ms=now_ms,
        rng=rng,
        config=config,
    )
    materialized = [list(pool) for pool in pools]

    plan = BatchPlan(
        total=total,
        selection=selection,
        fingerprints=set(seen_fingerprints or ()),
        display_by_key={key: state.concepts[key].display_name or key for key in selection.targets_per_question},
    )

    for target in selection.targets_per_question:
        chosen: CandidateItem | None = None
        for pool in materialized:
            chosen = pick_best_for_target(pool, target, plan.fingerprints, config.min_relevance)
            if chosen is not None:
                break
        if chosen is None:
            plan.missing_targets.append(target)
            plan.item_ids_per_slot.append(None)
            continue
        plan.assign(chosen, target)
        plan.item_ids_per_slot.append(chosen.id)

    logger.info(
        f"Planned batch: {len(plan.items)}/{total} items from pools "
        f"{plan.source_counts}, {len(plan.missing_targets)} targets missing"
    )
    return plan


def accept_generated(
    plan: BatchPlan,
    generated: Iterable[CandidateItem],
    targets: list[str] | None = None,
) -> int:
    """
    Add host-generated items to a plan, de-duplicated against it.

    Items are matched to `targets` (default: the plan's missing targets)
    in order; consumed targets are removed from missing_targets.

    Returns:
        Number of items accepted
    """
    wanted = list(plan.missing_targets if targets is None else targets)
    if not wanted:
        return 0

    items = list(generated)
    unique, _ = filter_duplicates(items, plan.fingerprints)
    plan.dropped_generated += len(items) - len(unique)

    accepted = unique[: min(len(wanted), plan.shortfall)]
    for item, target in zip(accepted, wanted):
        plan.assign(replace(item, source=GENERATED_SOURCE), target or FALLBACK_TARGET)
        plan.fill_slot(target, item.id)
        if target in plan.missing_targets:
            plan.missing_targets.remove(target)

    if len(unique) < len(items):
        logger.warning(f"Dropped {len(items) - len(unique)} duplicate generated items")
    return len(accepted)


def build_generation_instruction(targets: list[str], display_by_key: dict[str, str]) -> str:
    """
    Instruction text asking an external generator for one item per target.

    Returns:
        Instruction string, empty when there are no targets
    """
    ordered = [
        display
        for display in (str(display_by_key.get(key) or key).strip() for key in targets)
        if display
    ]
    if not ordered:
        return ""
    if len(ordered) == 1:
        return "\n".join([
            f"Target concept: {ordered[0]}.",
            "Generate exactly 1 question primarily about this concept.",
            f'The question MUST include "{ordered[0]}" in its concept tags.',
        ])
    numbered = " ".join(f"{index}) {concept}" for index, concept in enumerate(ordered, start=1))
    return "\n".join([
        f"Generate exactly {len(ordered)} questions in this order: {numbered}",
        "Each question MUST include its target concept in its concept tags and be primarily about it.",
        "Avoid repeating stems/phrasing from prior questions.",
    ])
