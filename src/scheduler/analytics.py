"""
Adaptive analytics counters.

Counts scheduler transitions (promotions, demotions, remediation, streak
resets, decay, skips) across all runs. Stored under its own backend key,
never inside a run document. Recording must never break scheduling, so
``increment`` logs failures instead of raising.
"""

from __future__ import annotations

import json

from loguru import logger
from pydantic import Field, ValidationError

from src.persistence import PersistenceBackend

from .models import CamelModel

ANALYTICS_KEY = "analytics"


class AdaptiveAnalytics(CamelModel):
    promotions: int = Field(0, ge=0)
    demotions: int = Field(0, ge=0)
    remediations_triggered: int = Field(0, ge=0)
    streak_resets: int = Field(0, ge=0)
    decays_applied: int = Field(0, ge=0)
    skips: int = Field(0, ge=0)


COUNTERS = tuple(AdaptiveAnalytics.model_fields)


class AnalyticsRecorder:
    """Read-increment-write counters against a persistence backend."""

    def __init__(self, backend: PersistenceBackend | None = None):
        self.backend = backend
        self._local = AdaptiveAnalytics()

    def snapshot(self) -> AdaptiveAnalytics:
        """Current counters; corrupted storage reads as all zeros."""
        if self.backend is None:
            return self._local.model_copy()

        raw = self.backend.get(ANALYTICS_KEY)
        if not raw:
            return AdaptiveAnalytics()
        try:
            return AdaptiveAnalytics.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError, TypeError) as e:
            logger.warning(f"Resetting corrupted analytics counters: {e}")
            return AdaptiveAnalytics()

    def increment(self, counter: str, amount: int = 1) -> None:
        """Bump one counter by ``amount``. Never raises."""
        try:
            if counter not in COUNTERS:
                raise ValueError(f"Unknown analytics counter: {counter}")

            analytics = self.snapshot()
            setattr(analytics, counter, getattr(analytics, counter) + amount)

            if self.backend is None:
                self._local = analytics
            else:
                self.backend.set(ANALYTICS_KEY, analytics.model_dump_json(by_alias=True))
        except Exception as e:
            logger.error(f"Failed to record analytics event {counter}: {e}")

    def reset(self) -> None:
        self._local = AdaptiveAnalytics()
        if self.backend is not None:
            self.backend.delete(ANALYTICS_KEY)
