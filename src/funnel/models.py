"""
Funnel Data Models.

Defines the value objects threaded through every engine call:
- ConceptState: Beta pseudo-counts plus activity aggregates for one concept
- FunnelState: Caller-owned mapping of concept key -> ConceptState
- CandidateItem: Read-only view of an authored practice item
- TargetSelection: Per-slot concept assignments for one batch
- AnkiRating: Four-level subjective recall grade
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from loguru import logger

GENERAL_CONCEPT = "General"

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^\w\s\-]")


def normalize_concept_key(value: Any) -> str:
    """
    Canonical concept key: lowercase, trimmed, single-spaced, no punctuation.

    Every read and write of FunnelState goes through this function.
    """
    if value is None:
        return ""
    text = str(value).lower().strip()
    text = _WHITESPACE.sub(" ", text)
    text = _DISALLOWED.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def concept_key(value: Any) -> str:
    """Normalized key, falling back to the ad-hoc General concept when empty."""
    return normalize_concept_key(value) or normalize_concept_key(GENERAL_CONCEPT)


class AnkiRating(IntEnum):
    """Subjective recall grade, numbered the way Anki numbers its buttons."""

    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4

    @classmethod
    def parse(cls, value: AnkiRating | int | str) -> AnkiRating:
        """
        Accept a rating as enum, grade number, or button name.

        Unknown values fall back to GOOD with a warning.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            name = value.strip().upper()
            if name in cls.__members__:
                return cls[name]
            if name.isdigit():
                value = int(name)
        if isinstance(value, int) and not isinstance(value, bool):
            clamped = max(cls.AGAIN.value, min(cls.EASY.value, value))
            return cls(clamped)
        logger.warning(f"Unrecognized rating {value!r} - treating as GOOD")
        return cls.GOOD


@dataclass
class ConceptState:
    """Mastery state for a single concept."""

    display_name: str = ""
    alpha: float = 1.0  # weighted successes (uniform prior)
    beta: float = 1.0  # weighted failures (uniform prior)
    attempts: int = 0
    last_seen_at_ms: int | None = None
    avg_time_to_answer_ms: float | None = None
    tutor_touches: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "display_name": self.display_name,
            "alpha": self.alpha,
            "beta": self.beta,
            "attempts": self.attempts,
            "last_seen_at_ms": self.last_seen_at_ms,
            "avg_time_to_answer_ms": self.avg_time_to_answer_ms,
            "tutor_touches": self.tutor_touches,
        }


@dataclass
class FunnelState:
    """
    Per-session mastery state.

    Owned by exactly one session; mutated only through the store and
    rating modules. Lookups normalize the key.
    """

    concepts: dict[str, ConceptState] = field(default_factory=dict)

    def get(self, key: str) -> ConceptState | None:
        return self.concepts.get(concept_key(key))

    def keys(self) -> list[str]:
        return list(self.concepts)

    def __contains__(self, key: object) -> bool:
        return concept_key(key) in self.concepts

    def __len__(self) -> int:
        return len(self.concepts)


@dataclass
class CandidateItem:
    """A practice item supplied by the host; the engine only reads it."""

    id: str
    stem: str
    options: list[str] = field(default_factory=list)
    correct_answer: str = ""
    concept_tags: list[str] = field(default_factory=list)
    explanation: str = ""
    source: str = "prefab"

    @classmethod
    def from_dict(cls, data: dict[str, Any], source: str | None = None) -> CandidateItem:
        """
        Build from a host payload.

        Accepts snake_case keys or the host's camelCase
        (questionText, correctAnswer, studyConcepts, sourceType).
        """
        tags = data.get("concept_tags", data.get("studyConcepts")) or []
        options = data.get("options") or []
        return cls(
            id=str(data.get("id", "")),
            stem=str(data.get("stem", data.get("questionText")) or ""),
            options=[str(option) for option in options],
            correct_answer=str(data.get("correct_answer", data.get("correctAnswer")) or ""),
            concept_tags=[str(tag) for tag in tags if str(tag).strip()],
            explanation=str(data.get("explanation") or ""),
            source=source or str(data.get("source", data.get("sourceType")) or "prefab"),
        )

    @property
    def tags_or_general(self) -> list[str]:
        """Concept tags, or the ad-hoc General concept for untagged items."""
        return self.concept_tags or [GENERAL_CONCEPT]


@dataclass
class TargetSelection:
    """Concept assignments for one batch."""

    explore_targets: list[str] = field(default_factory=list)
    focus_targets_distinct: list[str] = field(default_factory=list)
    focus_count: int = 0
    explore_count: int = 0
    targets_per_question: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.targets_per_question)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "explore_targets": list(self.explore_targets),
            "focus_targets_distinct": list(self.focus_targets_distinct),
            "focus_count": self.focus_count,
            "explore_count": self.explore_count,
            "targets_per_question": list(self.targets_per_question),
        }
