"""
Tunable constants for the funnel engine.

Defaults mirror the Settings defaults in config.py. Engine calls that
receive config=None use get_funnel_config(), which reads the environment
once and caches the result.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Mapping

from config import Settings, get_settings


def _default_rating_adjustments() -> dict[int, float]:
    return {1: -0.5, 2: -0.2, 3: 0.0, 4: 0.15}


@dataclass(frozen=True)
class FunnelConfig:
    """Configuration for priority, selection and rating updates."""

    # Priority
    exploration_bonus: float = 0.15
    staleness_bonus: float = 0.10
    stale_window_ms: int = 86_400_000

    # Selection
    default_explore_ratio: float = 0.2
    min_explore_slots: int = 2
    max_batch_size: int = 20
    min_relevance: float = 0.0

    # Rating
    slow_threshold_ms: int = 120_000
    latency_penalty: float = 0.1
    tutor_penalty: float = 0.15
    rating_adjustments: Mapping[int, float] = field(default_factory=_default_rating_adjustments)

    def __post_init__(self):
        # Read-only; get_funnel_config() hands one instance to every caller
        object.__setattr__(self, "rating_adjustments", MappingProxyType(dict(self.rating_adjustments)))

    @classmethod
    def from_settings(cls, settings: Settings) -> FunnelConfig:
        return cls(
            exploration_bonus=settings.funnel_exploration_bonus,
            staleness_bonus=settings.funnel_staleness_bonus,
            stale_window_ms=settings.funnel_stale_window_ms,
            default_explore_ratio=settings.funnel_default_explore_ratio,
            max_batch_size=settings.funnel_max_batch_size,
            min_relevance=settings.funnel_min_relevance,
            slow_threshold_ms=settings.funnel_slow_threshold_ms,
            latency_penalty=settings.funnel_latency_penalty,
            tutor_penalty=settings.funnel_tutor_penalty,
            rating_adjustments=settings.get_rating_adjustments(),
        )


@lru_cache(maxsize=1)
def get_funnel_config() -> FunnelConfig:
    """Get cached engine configuration built from settings."""
    return FunnelConfig.from_settings(get_settings())
