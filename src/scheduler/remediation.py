"""
Remediation Injector.

Splices extra entries for a failing subtopic right after the current
position, unless that subtopic is already coming up soon.
"""

from __future__ import annotations

from loguru import logger

from .analytics import AnalyticsRecorder
from .models import QueueEntry, RunState

DEFAULT_LOOKAHEAD = 5


class RemediationInjector:
    def __init__(
        self,
        analytics: AnalyticsRecorder | None = None,
        lookahead: int = DEFAULT_LOOKAHEAD,
    ):
        self.analytics = analytics or AnalyticsRecorder()
        self.lookahead = lookahead

    def already_queued(self, state: RunState, subtopic_id: str) -> bool:
        """Whether the subtopic is among the next ``lookahead`` entries after the current one."""
        start = state.current_index + 1
        window = state.queue[start : start + self.lookahead]
        return any(entry.subtopic_id == subtopic_id for entry in window)

    def inject(self, state: RunState, entry: QueueEntry, count: int) -> int:
        """
        Insert ``count`` copies of ``entry`` immediately after the current index.

        Returns:
            Number of entries inserted (0 when skipped)
        """
        if count < 1:
            raise ValueError(f"Remediation count must be positive, got {count}")

        if self.already_queued(state, entry.subtopic_id):
            logger.debug(f"Remediation skipped: {entry.subtopic_id} already in the next {self.lookahead} entries")
            return 0

        insert_at = state.current_index + 1
        state.queue[insert_at:insert_at] = [entry] * count
        self.analytics.increment("remediations_triggered")

        logger.info(f"Injected {count} remediation entr{'y' if count == 1 else 'ies'} for {entry.subtopic_id}")
        return count
