"""
Data models for practice runs.

The run document is persisted as camelCase JSON; the models use snake_case
attributes with camelCase aliases so ``RunState.model_validate(doc)`` and
``state.to_document()`` round-trip the stored shape.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from src.curriculum import CurriculumNode

CURRENT_SCHEMA_VERSION = 3
RECENT_ARCHETYPE_LIMIT = 5


class CamelModel(BaseModel):
    """Base model reading and writing camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Enums
# =============================================================================


class DifficultyLevel(str, Enum):
    """Per-subtopic difficulty; transitions move one level at a time."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

    def harder(self) -> DifficultyLevel:
        """Next level up (ADVANCED stays ADVANCED)."""
        order = list(DifficultyLevel)
        return order[min(order.index(self) + 1, len(order) - 1)]

    def easier(self) -> DifficultyLevel:
        """Next level down (BEGINNER stays BEGINNER)."""
        order = list(DifficultyLevel)
        return order[max(order.index(self) - 1, 0)]


class RunStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class AttemptResult(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    PARTIAL = "partial"


# =============================================================================
# Value Types
# =============================================================================


class QueueEntry(CamelModel):
    """A curriculum node placed in the run's queue."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    module_id: str = Field(..., min_length=1)
    subtopic_id: str = Field(..., min_length=1)
    module_name: str = ""
    subtopic_name: str = ""

    @classmethod
    def from_node(cls, node: CurriculumNode) -> QueueEntry:
        return cls(
            module_id=node.module_id,
            subtopic_id=node.subtopic_id,
            module_name=node.module_name,
            subtopic_name=node.subtopic_name,
        )


class SubtopicStats(CamelModel):
    """Per-subtopic counters. Only an explicit user action resets them."""

    attempts: int = Field(0, ge=0)
    solved: int = Field(0, ge=0)
    last_attempt_at: int = 0
    consecutive_failures: int = Field(0, ge=0)

    @property
    def mastery_percent(self) -> int:
        """round(solved / attempts * 100), 0 with no attempts."""
        if self.attempts <= 0:
            return 0
        return round(self.solved / self.attempts * 100)


class TuningConfig(CamelModel):
    """Effective tuning knobs for a run."""

    streak_to_promote: int = Field(3, ge=1)
    aggressive_streak_to_promote: int = Field(2, ge=1)
    extra_remediation_count: int = Field(2, ge=1)
    mini_curriculum_size: int = Field(12, ge=1)
    decay_hours: float = Field(24.0, gt=0)
    prefetch_buffer_size: int = Field(2, ge=0)

    @classmethod
    def from_settings(cls, settings) -> TuningConfig:
        return cls.model_validate(settings.get_tuning_config())

    def merged(self, overrides: TuningOverrides | dict[str, Any] | None) -> TuningConfig:
        """Apply a run's partial overrides on top of these defaults."""
        if overrides is None:
            return self
        if isinstance(overrides, dict):
            overrides = TuningOverrides.model_validate(overrides)
        return self.model_copy(update=overrides.model_dump(exclude_none=True))


class TuningOverrides(CamelModel):
    """Partial per-run tuning; unset fields fall back to the defaults."""

    streak_to_promote: int | None = Field(None, ge=1)
    aggressive_streak_to_promote: int | None = Field(None, ge=1)
    extra_remediation_count: int | None = Field(None, ge=1)
    mini_curriculum_size: int | None = Field(None, ge=1)
    decay_hours: float | None = Field(None, gt=0)
    prefetch_buffer_size: int | None = Field(None, ge=0)


# =============================================================================
# Run Aggregate
# =============================================================================


class RunState(CamelModel):
    """
    One practice run: queue, pointers, adaptive state and counters.

    Invariants checked on construction:
    - the queue is never empty
    - 0 <= currentIndex < len(queue)
    - streak >= 0
    - recentArchetypes keeps at most the last 5 ids
    """

    id: str = Field(..., min_length=1)
    schema_version: int = Field(CURRENT_SCHEMA_VERSION, le=CURRENT_SCHEMA_VERSION)
    name: str = ""
    created_at: int
    last_updated_at: int
    status: RunStatus = RunStatus.ACTIVE

    # Curriculum
    queue: list[QueueEntry] = Field(..., min_length=1)
    current_index: int = Field(0, ge=0)
    mini_curriculum_complete: bool = False

    # Adaptive state
    streak: int = Field(0, ge=0)
    difficulty_pointer: dict[str, DifficultyLevel] = Field(default_factory=dict)

    # Run statistics
    completed_questions: int = Field(0, ge=0)
    per_subtopic_stats: dict[str, SubtopicStats] = Field(default_factory=dict)
    recent_archetypes: list[str] = Field(default_factory=list)

    # User settings
    aggressive_progression: bool = False
    remediation_mode: bool = True
    config: TuningOverrides | None = None

    @model_validator(mode="after")
    def _check_invariants(self) -> RunState:
        if self.current_index >= len(self.queue):
            raise ValueError(
                f"currentIndex {self.current_index} out of range for queue of {len(self.queue)}"
            )
        if len(self.recent_archetypes) > RECENT_ARCHETYPE_LIMIT:
            self.recent_archetypes = self.recent_archetypes[-RECENT_ARCHETYPE_LIMIT:]
        return self

    def tuning(self, defaults: TuningConfig) -> TuningConfig:
        """Effective tuning: defaults with this run's overrides applied."""
        return defaults.merged(self.config)

    def stats_for(self, subtopic_id: str) -> SubtopicStats:
        """Get (creating if needed) the stats record for a subtopic."""
        stats = self.per_subtopic_stats.get(subtopic_id)
        if stats is None:
            stats = SubtopicStats()
            self.per_subtopic_stats[subtopic_id] = stats
        return stats

    def remember_archetype(self, archetype_id: str) -> None:
        self.recent_archetypes = [*self.recent_archetypes, archetype_id][-RECENT_ARCHETYPE_LIMIT:]

    def to_document(self) -> dict[str, Any]:
        """The persisted camelCase JSON shape."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)
