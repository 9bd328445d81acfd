"""
Mastery Snapshot.

Read-only summary of a FunnelState for progress views. Computed straight
from the live state, so it is current after every rating without any
extra bookkeeping.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from src.funnel.models import ConceptState, FunnelState
from src.funnel.priority import (
    compute_priority,
    current_time_ms,
    expected_mastery,
    mastery_uncertainty,
)
from src.funnel.tuning import FunnelConfig


class MasteryLevel(str, Enum):
    """Mastery level categorization of expected success."""

    NOT_STARTED = "not_started"  # no attempts yet
    NOVICE = "novice"  # < 40%
    DEVELOPING = "developing"  # 40-69%
    PROFICIENT = "proficient"  # 70-89%
    MASTERED = "mastered"  # 90-100%

    @classmethod
    def from_state(cls, state: ConceptState) -> MasteryLevel:
        if state.attempts <= 0:
            return cls.NOT_STARTED
        return cls.from_score(expected_mastery(state))

    @classmethod
    def from_score(cls, score: float) -> MasteryLevel:
        if score < 0.4:
            return cls.NOVICE
        elif score < 0.7:
            return cls.DEVELOPING
        elif score < 0.9:
            return cls.PROFICIENT
        else:
            return cls.MASTERED

    @property
    def display_name(self) -> str:
        """Human-readable name."""
        return self.value.replace("_", " ").title()


@dataclass
class ConceptProgress:
    """One concept's row in a snapshot."""

    key: str
    display_name: str
    attempts: int
    expected: float
    uncertainty: float
    priority: float
    level: MasteryLevel


@dataclass
class MasterySnapshot:
    hardest: list[ConceptProgress] = field(default_factory=list)
    weakest: list[ConceptProgress] = field(default_factory=list)
    tracked: int = 0
    avg_expected: float = 0.0


def mastery_snapshot(
    state: FunnelState,
    now_ms: int | None = None,
    limit: int = 6,
    config: FunnelConfig | None = None,
) -> MasterySnapshot:
    """
    Summarize the state: hardest by priority, weakest by expected mastery.

    Args:
        state: Session mastery state (not mutated)
        now_ms: Current time in epoch ms for the staleness term
        limit: Rows per list

    Returns:
        MasterySnapshot (empty for an empty state)
    """
    now = current_time_ms() if now_ms is None else now_ms
    rows = [
        ConceptProgress(
            key=key,
            display_name=concept.display_name or key,
            attempts=concept.attempts,
            expected=expected_mastery(concept),
            uncertainty=mastery_uncertainty(concept),
            priority=compute_priority(concept, now, config),
            level=MasteryLevel.from_state(concept),
        )
        for key, concept in state.concepts.items()
    ]
    if not rows:
        return MasterySnapshot()

    limit = max(0, limit)
    hardest = sorted(rows, key=lambda row: row.priority, reverse=True)[:limit]
    weakest = sorted(rows, key=lambda row: row.expected)[:limit]
    return MasterySnapshot(
        hardest=hardest,
        weakest=weakest,
        tracked=len(rows),
        avg_expected=sum(row.expected for row in rows) / len(rows),
    )
