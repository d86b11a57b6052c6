"""
Configuration settings for the practice scheduler.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
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
    # Storage
    # ========================================
    storage_backend: Literal["json", "sqlite", "memory"] = Field(
        default="json",
        description="Persistence backend for run documents",
    )
    data_dir: Path = Field(
        default=Path.home() / ".practice_scheduler",
        description="Directory holding run documents and the SQLite store",
    )
    catalog_path: str | None = Field(
        default=None,
        description="Curriculum JSON file (None uses the packaged catalog)",
    )

    # ========================================
    # Scheduler Tuning
    # ========================================
    scheduler_focus_module: str = Field(
        default="string-manipulation",
        description="Module the initial mini-curriculum is drawn from",
    )
    scheduler_streak_to_promote: int = Field(
        default=3,
        ge=1,
        description="Correct answers in a row needed to promote difficulty",
    )
    scheduler_aggressive_streak_to_promote: int = Field(
        default=2,
        ge=1,
        description="Same, when aggressive progression is enabled",
    )
    scheduler_extra_remediation_count: int = Field(
        default=2,
        ge=1,
        description="Queue entries injected on sustained failure",
    )
    scheduler_mini_curriculum_size: int = Field(
        default=12,
        ge=1,
        description="Initial mini-curriculum size",
    )
    scheduler_decay_hours: float = Field(
        default=24.0,
        gt=0,
        description="Idle hours before the streak is halved",
    )
    scheduler_prefetch_buffer_size: int = Field(
        default=2,
        ge=0,
        description="Questions the caller should prefetch ahead",
    )
    scheduler_queue_window: int = Field(
        default=50,
        ge=1,
        description="Maximum entries in a regenerated weakness queue",
    )
    scheduler_remediation_lookahead: int = Field(
        default=5,
        ge=1,
        description="Upcoming entries checked before injecting remediation",
    )

    # ========================================
    # Content Diversity
    # ========================================
    diversity_similarity_threshold: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Similarity at or above which a candidate is regenerated",
    )
    diversity_threshold_step: float = Field(
        default=0.05,
        ge=0.0,
        description="Threshold relaxation per regeneration attempt",
    )
    diversity_max_threshold: float = Field(
        default=0.95,
        ge=0.0,
        le=1.0,
        description="Upper bound for the relaxed threshold",
    )
    diversity_max_regeneration_attempts: int = Field(
        default=3,
        ge=0,
        description="Regenerations before a candidate is accepted regardless",
    )
    diversity_history_size: int = Field(
        default=50,
        ge=1,
        description="Fingerprints kept in the rolling history",
    )
    diversity_comparison_window: int = Field(
        default=20,
        ge=1,
        description="Most recent fingerprints compared against a candidate",
    )
    diversity_exposure_capacity: int = Field(
        default=200,
        ge=1,
        description="Archetypes tracked by the exposure counters",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    def get_tuning_config(self) -> dict[str, int | float]:
        """Get default run tuning as a camelCase dictionary."""
        return {
            "streakToPromote": self.scheduler_streak_to_promote,
            "aggressiveStreakToPromote": self.scheduler_aggressive_streak_to_promote,
            "extraRemediationCount": self.scheduler_extra_remediation_count,
            "miniCurriculumSize": self.scheduler_mini_curriculum_size,
            "decayHours": self.scheduler_decay_hours,
            "prefetchBufferSize": self.scheduler_prefetch_buffer_size,
        }

    def get_diversity_config(self) -> dict[str, int | float]:
        """Get diversity engine configuration as a dictionary."""
        return {
            "similarity_threshold": self.diversity_similarity_threshold,
            "threshold_step": self.diversity_threshold_step,
            "max_threshold": self.diversity_max_threshold,
            "max_regeneration_attempts": self.diversity_max_regeneration_attempts,
            "history_size": self.diversity_history_size,
            "comparison_window": self.diversity_comparison_window,
            "exposure_capacity": self.diversity_exposure_capacity,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
