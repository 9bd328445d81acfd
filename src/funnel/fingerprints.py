"""Item fingerprints for de-duplicating practice items across a session."""
from __future__ import annotations

import re
from typing import Iterable

from src.funnel.models import CandidateItem

_WHITESPACE = re.compile(r"\s+")
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_OPTION_LABEL = re.compile(r"^[A-E][).:\-\s]+", re.IGNORECASE)


def strip_option_label(value: str) -> str:
    """Remove a leading 'A) ', 'b. ' style label."""
    return _OPTION_LABEL.sub("", str(value or "")).strip()


def _normalize_loose(value: str) -> str:
    return _WHITESPACE.sub(" ", str(value or "").strip())


def _normalize_aggressive(value: str) -> str:
    text = _NON_ALNUM.sub(" ", str(value or "").lower())
    return _WHITESPACE.sub(" ", text).strip()


def legacy_fingerprint(item: CandidateItem) -> str:
    stem = _normalize_loose(item.stem)
    options = "|".join(_normalize_loose(option) for option in item.options)
    return f"{stem}||{options}"


def aggressive_fingerprint(item: CandidateItem) -> str:
    # Case, punctuation, option labels and option order are ignored
    stem = _normalize_aggressive(item.stem)
    options = sorted(
        normalized
        for normalized in (_normalize_aggressive(strip_option_label(option)) for option in item.options)
        if normalized
    )
    return f"{stem}||{'|'.join(options)}"


def fingerprint_variants(item: CandidateItem) -> list[str]:
    """All fingerprints of an item; two items are duplicates if any variant matches."""
    variants: list[str] = []
    for variant in (legacy_fingerprint(item), aggressive_fingerprint(item)):
        variant = variant.strip()
        if variant and variant not in variants:
            variants.append(variant)
    return variants


def build_fingerprint_set(items: Iterable[CandidateItem]) -> set[str]:
    fingerprints: set[str] = set()
    for item in items:
        fingerprints.update(fingerprint_variants(item))
    return fingerprints


def filter_duplicates(
    items: Iterable[CandidateItem],
    existing: set[str] | None = None,
) -> tuple[list[CandidateItem], set[str]]:
    """
    Drop items whose fingerprint is already known or repeats within the batch.

    Returns:
        (unique items, updated fingerprint set); the input set is not mutated
    """
    fingerprints = set(existing or ())
    unique: list[CandidateItem] = []
    for item in items:
        variants = fingerprint_variants(item)
        if any(variant in fingerprints for variant in variants):
            continue
        fingerprints.update(variants)
        unique.append(item)
    return unique, fingerprints
