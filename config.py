"""
Configuration settings for the concept funnel engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Priority Scoring
    # ========================================
    funnel_exploration_bonus: float = Field(
        default=0.15,
        ge=0.0,
        le=1.0,
        description="k1: bonus scaled by 1/sqrt(attempts + 1) for rarely practiced concepts",
    )
    funnel_staleness_bonus: float = Field(
        default=0.10,
        ge=0.0,
        le=1.0,
        description="k2: bonus for concepts not seen within the stale window",
    )
    funnel_stale_window_ms: int = Field(
        default=86_400_000,
        gt=0,
        description="Elapsed time after which the staleness bonus is at its maximum",
    )

    # ========================================
    # Target Selection
    # ========================================
    funnel_default_explore_ratio: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Share of batch slots reserved for least-practiced concepts",
    )
    funnel_max_batch_size: int = Field(
        default=20,
        ge=1,
        le=200,
        description="Upper bound on items planned per batch",
    )
    funnel_min_relevance: float = Field(
        default=0.0,
        ge=0.0,
        description="Minimum relevance score for a stored item to fill a slot",
    )

    # ========================================
    # Rating Integration
    # ========================================
    funnel_slow_threshold_ms: int = Field(
        default=120_000,
        gt=0,
        description="Correct answers slower than this count as partially failed",
    )
    funnel_rating_adjust_again: float = Field(default=-0.5, ge=-1.0, le=1.0)
    funnel_rating_adjust_hard: float = Field(default=-0.2, ge=-1.0, le=1.0)
    funnel_rating_adjust_good: float = Field(default=0.0, ge=-1.0, le=1.0)
    funnel_rating_adjust_easy: float = Field(default=0.15, ge=-1.0, le=1.0)
    funnel_latency_penalty: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Success weight removed from slow correct answers",
    )
    funnel_tutor_penalty: float = Field(
        default=0.15,
        ge=0.0,
        le=1.0,
        description="Success weight removed when a hint/tutor was consulted first",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional log file path",
    )

    def get_rating_adjustments(self) -> dict[int, float]:
        """Rating adjustments keyed by Anki grade (1=Again .. 4=Easy)."""
        return {
            1: self.funnel_rating_adjust_again,
            2: self.funnel_rating_adjust_hard,
            3: self.funnel_rating_adjust_good,
            4: self.funnel_rating_adjust_easy,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
