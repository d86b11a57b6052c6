"""
Difficulty Controller.

Per-subtopic state machine beginner <-> intermediate <-> advanced, driven by
the run-wide correct streak and per-subtopic consecutive failures.

Rules:
- Promotion: streak reaches the threshold (3, or 2 with aggressive
  progression) -> promote the current subtopic. Nothing is reset; the
  streak keeps counting across subtopics.
- Demotion: two consecutive incorrect attempts on the same subtopic ->
  demote one level and reset that subtopic's failure counter.
- Decay: idle longer than decayHours with streak > 0 -> halve the streak.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from src.core.clock import MS_PER_HOUR, now_ms

from .analytics import AnalyticsRecorder
from .models import AttemptResult, DifficultyLevel, RunState, TuningConfig

FAILURES_TO_DEMOTE = 2


@dataclass
class AttemptOutcome:
    """What an attempt changed."""

    result: AttemptResult
    promoted: bool = False
    demoted: bool = False
    # Two consecutive failures, whether or not the level actually moved
    qualifying_demotion: bool = False


class DifficultyController:
    """Applies attempt outcomes to a run's streak, stats and difficulty pointer."""

    def __init__(
        self,
        tuning: TuningConfig | None = None,
        analytics: AnalyticsRecorder | None = None,
    ):
        self.tuning = tuning or TuningConfig()
        self.analytics = analytics or AnalyticsRecorder()

    # =========================================================================
    # Levels
    # =========================================================================

    @staticmethod
    def difficulty_for(state: RunState, subtopic_id: str) -> DifficultyLevel:
        return state.difficulty_pointer.get(subtopic_id, DifficultyLevel.BEGINNER)

    def promote(self, state: RunState, subtopic_id: str) -> bool:
        """Move one level up. Returns False at advanced."""
        current = self.difficulty_for(state, subtopic_id)
        new_level = current.harder()
        if new_level == current:
            return False

        state.difficulty_pointer[subtopic_id] = new_level
        self.analytics.increment("promotions")
        logger.info(f"Promoted {subtopic_id}: {current.value} -> {new_level.value}")
        return True

    def demote(self, state: RunState, subtopic_id: str) -> bool:
        """Move one level down. Returns False at beginner."""
        current = self.difficulty_for(state, subtopic_id)
        new_level = current.easier()
        if new_level == current:
            return False

        state.difficulty_pointer[subtopic_id] = new_level
        self.analytics.increment("demotions")
        logger.info(f"Demoted {subtopic_id}: {current.value} -> {new_level.value}")
        return True

    def streak_threshold(self, state: RunState) -> int:
        tuning = state.tuning(self.tuning)
        if state.aggressive_progression:
            return tuning.aggressive_streak_to_promote
        return tuning.streak_to_promote

    # =========================================================================
    # Attempts
    # =========================================================================

    def register(self, state: RunState, subtopic_id: str, result: AttemptResult | str) -> AttemptOutcome:
        """Apply one attempt result; unknown result strings raise ValueError."""
        result = AttemptResult(result)

        stats = state.stats_for(subtopic_id)
        stats.attempts += 1
        stats.last_attempt_at = now_ms()

        if result == AttemptResult.CORRECT:
            return self.register_correct(state, subtopic_id)
        if result == AttemptResult.INCORRECT:
            return self.register_incorrect(state, subtopic_id)
        return self.register_partial(state, subtopic_id)

    def register_correct(self, state: RunState, subtopic_id: str) -> AttemptOutcome:
        stats = state.stats_for(subtopic_id)
        state.streak += 1
        stats.solved += 1
        stats.consecutive_failures = 0
        state.completed_questions += 1

        outcome = AttemptOutcome(AttemptResult.CORRECT)
        if state.streak >= self.streak_threshold(state):
            outcome.promoted = self.promote(state, subtopic_id)
        return outcome

    def register_incorrect(self, state: RunState, subtopic_id: str) -> AttemptOutcome:
        stats = state.stats_for(subtopic_id)
        if state.streak > 0:
            logger.debug(f"Streak reset from {state.streak}")
        state.streak = 0
        self.analytics.increment("streak_resets")

        stats.consecutive_failures += 1

        outcome = AttemptOutcome(AttemptResult.INCORRECT)
        if stats.consecutive_failures >= FAILURES_TO_DEMOTE:
            outcome.demoted = self.demote(state, subtopic_id)
            outcome.qualifying_demotion = True
            stats.consecutive_failures = 0
        return outcome

    def register_partial(self, state: RunState, subtopic_id: str) -> AttemptOutcome:
        state.completed_questions += 1
        return AttemptOutcome(AttemptResult.PARTIAL)

    # =========================================================================
    # Decay
    # =========================================================================

    def apply_decay(self, state: RunState, now: int | None = None) -> bool:
        """
        Halve the streak (floor) if the run has been idle too long.

        Returns:
            True if the run changed and should be persisted
        """
        now = now_ms() if now is None else now
        threshold_ms = state.tuning(self.tuning).decay_hours * MS_PER_HOUR

        if now - state.last_updated_at <= threshold_ms or state.streak <= 0:
            return False

        new_streak = state.streak // 2
        logger.info(f"Applying decay to {state.id}: streak {state.streak} -> {new_streak}")
        state.streak = new_streak
        state.last_updated_at = now
        self.analytics.increment("decays_applied")
        return True
