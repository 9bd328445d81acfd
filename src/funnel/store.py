"""
Concept Mastery Store.

Lazily initializes per-concept state inside a caller-owned FunnelState
and derives the guide concept map the selector ranks over.
"""
from __future__ import annotations

from typing import Iterable

from loguru import logger

from src.funnel.models import (
    ConceptState,
    FunnelState,
    concept_key,
    normalize_concept_key,
)

MIN_GUIDE_KEY_LENGTH = 3


def default_funnel_state() -> FunnelState:
    """Fresh, empty state for a new session or an explicit reset."""
    return FunnelState()


def ensure_concept_state(
    state: FunnelState,
    key: str,
    display_name: str | None = None,
) -> ConceptState:
    """
    Return the state for a concept, creating it with a uniform prior if missing.

    Idempotent: an existing entry is returned untouched apart from filling
    in a display name it never had.
    """
    normalized = concept_key(key)
    existing = state.concepts.get(normalized)
    if existing is not None:
        if not existing.display_name and display_name:
            existing.display_name = display_name.strip()
        return existing

    concept = ConceptState(display_name=(display_name or str(key or "")).strip() or normalized)
    state.concepts[normalized] = concept
    logger.debug(f"Initialized concept state '{normalized}'")
    return concept


def build_guide_concept_universe(
    outline_titles: Iterable[str] | None,
    state: FunnelState | None = None,
) -> dict[str, str]:
    """
    Build the key -> display name map for the active study material.

    Outline titles come first (first display name wins); concepts already
    tracked in the state are appended so ad-hoc concepts stay schedulable.
    """
    concepts: dict[str, str] = {}
    for title in outline_titles or []:
        display = str(title or "").strip()
        if not display:
            continue
        key = normalize_concept_key(display)
        if len(key) < MIN_GUIDE_KEY_LENGTH:
            continue
        concepts.setdefault(key, display)

    if state is not None:
        for key, concept in state.concepts.items():
            if len(key) < MIN_GUIDE_KEY_LENGTH:
                continue
            concepts.setdefault(key, concept.display_name or key)

    return concepts


def merge_extra_concepts(guide_concepts: dict[str, str], extras: Iterable[str] | None) -> dict[str, str]:
    """Add host-supplied concepts without overriding existing display names."""
    merged = dict(guide_concepts)
    for concept in extras or []:
        display = str(concept or "").strip()
        key = normalize_concept_key(display)
        if key and key not in merged:
            merged[key] = display
    return merged
