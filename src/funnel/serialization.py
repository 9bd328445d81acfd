"""
FunnelState serialization for the storage boundary.

The engine never stores anything itself; these helpers turn state into
plain JSON-compatible values and back. Loading is tolerant: it accepts
both snake_case and camelCase field names, merges entries whose keys
normalize to the same concept, and clamps out-of-range values.
"""
from __future__ import annotations

import math
from typing import Any

from loguru import logger

from src.funnel.models import ConceptState, FunnelState, normalize_concept_key

_FIELD_ALIASES = {
    "display_name": ("display_name", "displayName", "display"),
    "alpha": ("alpha",),
    "beta": ("beta",),
    "attempts": ("attempts",),
    "last_seen_at_ms": ("last_seen_at_ms", "lastSeenAtMs"),
    "avg_time_to_answer_ms": ("avg_time_to_answer_ms", "avgTimeToAnswerMs"),
    "tutor_touches": ("tutor_touches", "tutorTouches"),
}


def dump_funnel_state(state: FunnelState) -> dict[str, Any]:
    """Serialize state to a JSON-compatible dict."""
    return {"concepts": {key: concept.to_dict() for key, concept in state.concepts.items()}}


def _field(raw: dict[str, Any], name: str) -> Any:
    for alias in _FIELD_ALIASES[name]:
        if alias in raw:
            return raw[alias]
    return None


def _as_float(value: Any, default: float | None) -> float | None:
    if value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _as_int(value: Any, default: int | None) -> int | None:
    number = _as_float(value, None)
    return default if number is None else int(number)


def _load_concept(key: str, raw: dict[str, Any]) -> ConceptState:
    avg_time = _as_float(_field(raw, "avg_time_to_answer_ms"), None)
    return ConceptState(
        display_name=str(_field(raw, "display_name") or key),
        alpha=max(1.0, _as_float(_field(raw, "alpha"), 1.0)),
        beta=max(1.0, _as_float(_field(raw, "beta"), 1.0)),
        attempts=max(0, _as_int(_field(raw, "attempts"), 0)),
        last_seen_at_ms=_as_int(_field(raw, "last_seen_at_ms"), None),
        avg_time_to_answer_ms=None if avg_time is None else max(0.0, avg_time),
        tutor_touches=max(0, _as_int(_field(raw, "tutor_touches"), 0)),
    )


def _merge(existing: ConceptState, incoming: ConceptState) -> ConceptState:
    """Combine two entries for the same concept by pooling their evidence."""
    attempts = existing.attempts + incoming.attempts
    if existing.avg_time_to_answer_ms is None or incoming.avg_time_to_answer_ms is None:
        avg_time = existing.avg_time_to_answer_ms if incoming.avg_time_to_answer_ms is None else incoming.avg_time_to_answer_ms
    elif attempts > 0:
        avg_time = (
            existing.avg_time_to_answer_ms * existing.attempts
            + incoming.avg_time_to_answer_ms * incoming.attempts
        ) / attempts
    else:
        avg_time = existing.avg_time_to_answer_ms
    seen = [value for value in (existing.last_seen_at_ms, incoming.last_seen_at_ms) if value is not None]
    return ConceptState(
        display_name=existing.display_name or incoming.display_name,
        # Both entries carry the uniform prior; count it once
        alpha=max(1.0, existing.alpha + incoming.alpha - 1.0),
        beta=max(1.0, existing.beta + incoming.beta - 1.0),
        attempts=attempts,
        last_seen_at_ms=max(seen) if seen else None,
        avg_time_to_answer_ms=avg_time,
        tutor_touches=existing.tutor_touches + incoming.tutor_touches,
    )


def load_funnel_state(data: dict[str, Any] | None) -> FunnelState:
    """
    Deserialize state produced by dump_funnel_state (or the camelCase shape).

    Malformed entries are skipped with a warning; None or junk input yields
    an empty state.
    """
    state = FunnelState()
    if not isinstance(data, dict):
        return state
    concepts = data.get("concepts", data)
    if not isinstance(concepts, dict):
        logger.warning("Funnel state has no concept mapping - starting empty")
        return state

    for raw_key, raw in concepts.items():
        key = normalize_concept_key(raw_key)
        if not key or not isinstance(raw, dict):
            logger.warning(f"Skipping malformed concept entry {raw_key!r}")
            continue
        concept = _load_concept(str(raw_key).strip(), raw)
        existing = state.concepts.get(key)
        state.concepts[key] = concept if existing is None else _merge(existing, concept)

    return state


def to_mastery_rows(
    state: FunnelState,
    user_id: str,
    guide_hash: str,
    updated_at: str,
) -> list[dict[str, Any]]:
    """
    Flatten state into rows keyed by (user_id, guide_hash, concept).

    Suitable for an upsert into a per-user concept mastery table.
    """
    return [
        {
            "user_id": user_id,
            "guide_hash": guide_hash,
            "concept": key,
            "alpha": concept.alpha,
            "beta": concept.beta,
            "attempts": concept.attempts,
            "avg_time_to_answer_ms": concept.avg_time_to_answer_ms,
            "tutor_touches": concept.tutor_touches,
            "updated_at": updated_at,
        }
        for key, concept in state.concepts.items()
    ]
