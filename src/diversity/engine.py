"""
Diversity Engine.

Keeps a bounded memory of recently served questions and decides whether a
freshly generated candidate is too close to it.

Flow for one question:
1. ``avoid_list()`` -> hints for the external generator
2. ``screen(produce, to_fingerprint)`` -> bounded regenerate loop
3. accepted fingerprint is recorded (history + exposure counters)

The threshold relaxes a little on each retry and gives up after
``max_regeneration_attempts`` so a question is always served.
"""

from __future__ import annotations

import json
from collections import OrderedDict, deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from loguru import logger

from src.core.clock import now_ms
from src.curriculum import CurriculumCatalog
from src.persistence import PersistenceBackend

from .archetypes import OperationTag, infer_operation_tags
from .fingerprint import (
    AvoidList,
    QuestionFingerprint,
    ServedQuestion,
    calculate_similarity,
    derive_archetype_id,
    enum_value,
    find_most_similar,
    is_similar_to_any,
    matches_filter,
)

FINGERPRINTS_KEY = "fingerprints"

AVOID_ARCHETYPE_LIMIT = 5
AVOID_TAG_LIMIT = 4

T = TypeVar("T")


@dataclass
class DiversityConfig:
    """Tuning for similarity screening."""

    similarity_threshold: float = 0.8
    threshold_step: float = 0.05
    max_threshold: float = 0.95
    max_regeneration_attempts: int = 3
    history_size: int = 50
    comparison_window: int = 20
    exposure_capacity: int = 200

    @classmethod
    def from_settings(cls, settings) -> DiversityConfig:
        return cls(**settings.get_diversity_config())


@dataclass
class ScreenResult(Generic[T]):
    """Outcome of the regenerate loop."""

    candidate: T
    fingerprint: QuestionFingerprint
    attempts: int
    degraded: bool = False


class DiversityEngine:
    """
    Owns the rolling fingerprint history and archetype exposure counts.

    One instance per learner session; nothing here is module-global.
    """

    def __init__(
        self,
        config: DiversityConfig | None = None,
        catalog: CurriculumCatalog | None = None,
        backend: PersistenceBackend | None = None,
    ):
        self.config = config or DiversityConfig()
        self.catalog = catalog
        self.backend = backend

        self._history: deque[QuestionFingerprint] = deque(maxlen=self.config.history_size)
        self._exposure: OrderedDict[str, int] = OrderedDict()

    # =========================================================================
    # Fingerprints
    # =========================================================================

    def create_fingerprint(
        self,
        question: ServedQuestion,
        archetype_id: str | None = None,
    ) -> QuestionFingerprint:
        """
        Derive a fingerprint from a served question.

        Args:
            question: Object exposing module_id, subtopic_id, title, difficulty
            archetype_id: Problem type id when known; derived from the title otherwise
        """
        archetype = archetype_id or derive_archetype_id(question.subtopic_id, question.title)

        context_text = ""
        if archetype_id and self.catalog is not None:
            context = self.catalog.problem_type_context(archetype_id)
            if context is not None:
                context_text = f"{context.problem_type.name} {context.problem_type.description}"

        tags = infer_operation_tags(archetype, context_text, question.subtopic_id)
        return QuestionFingerprint(
            module=question.module_id,
            subtopic=question.subtopic_id,
            archetype_id=archetype,
            operation_tags=frozenset(tags),
            difficulty=enum_value(question.difficulty),
            timestamp=now_ms(),
        )

    @staticmethod
    def calculate_similarity(a: QuestionFingerprint, b: QuestionFingerprint) -> float:
        return calculate_similarity(a, b)

    @property
    def history(self) -> list[QuestionFingerprint]:
        """All remembered fingerprints, oldest first."""
        return list(self._history)

    def recent(self) -> list[QuestionFingerprint]:
        """The comparison window: the most recent fingerprints, oldest first."""
        window = self.config.comparison_window
        return list(self._history)[-window:]

    # =========================================================================
    # Regeneration Decisions
    # =========================================================================

    def threshold_for(self, attempt_number: int) -> float:
        """Similarity threshold for a given retry (0 = first try)."""
        relaxed = self.config.similarity_threshold + self.config.threshold_step * max(0, attempt_number)
        return min(relaxed, self.config.max_threshold)

    def _too_similar(self, candidate: QuestionFingerprint, attempt_number: int) -> bool:
        return is_similar_to_any(candidate, self.recent(), self.threshold_for(attempt_number))

    def should_regenerate(self, candidate: QuestionFingerprint, attempt_number: int = 0) -> bool:
        """
        Check whether a candidate should be thrown away and regenerated.

        Always False once ``attempt_number`` reaches the attempt limit.
        """
        if attempt_number >= self.config.max_regeneration_attempts:
            return False
        return self._too_similar(candidate, attempt_number)

    def screen(
        self,
        produce: Callable[[int], T],
        to_fingerprint: Callable[[T], QuestionFingerprint],
    ) -> ScreenResult[T]:
        """
        Run the bounded regenerate loop around a caller-supplied producer.

        ``produce(attempt)`` is called at most ``max_regeneration_attempts + 1``
        times. The first candidate under the (relaxing) threshold is accepted.
        If none qualifies, the most diverse candidate seen is accepted and the
        result is marked degraded.
        """
        max_attempts = self.config.max_regeneration_attempts
        seen: list[tuple[float, T, QuestionFingerprint]] = []

        for attempt in range(max_attempts + 1):
            candidate = produce(attempt)
            fingerprint = to_fingerprint(candidate)

            if not self._too_similar(fingerprint, attempt):
                self.record(fingerprint)
                if attempt:
                    logger.debug(f"Accepted {fingerprint.archetype_id} after {attempt} regeneration(s)")
                return ScreenResult(candidate, fingerprint, attempts=attempt + 1)

            logger.debug(
                f"Candidate {fingerprint} too similar "
                f"(attempt {attempt}, threshold {self.threshold_for(attempt):.2f})"
            )
            seen.append((self.score_diversity(fingerprint), candidate, fingerprint))

        # max() keeps the earliest candidate on ties
        _, candidate, fingerprint = max(seen, key=lambda item: item[0])
        logger.warning(
            f"Diversity exhausted after {len(seen)} attempts, "
            f"accepting most diverse candidate {fingerprint.archetype_id}"
        )
        self.record(fingerprint)
        return ScreenResult(candidate, fingerprint, attempts=len(seen), degraded=True)

    # =========================================================================
    # Recording
    # =========================================================================

    def record(self, fingerprint: QuestionFingerprint) -> None:
        """Remember a served question and bump its archetype exposure."""
        self._history.append(fingerprint)
        self._bump_exposure(fingerprint.archetype_id)

        logger.debug(
            f"Recorded {fingerprint.archetype_id} "
            f"(exposure: {self._exposure[fingerprint.archetype_id]})"
        )

        if self.backend is not None:
            self.snapshot()

    def _bump_exposure(self, archetype_id: str) -> None:
        self._exposure[archetype_id] = self._exposure.get(archetype_id, 0) + 1
        self._exposure.move_to_end(archetype_id)
        while len(self._exposure) > self.config.exposure_capacity:
            self._exposure.popitem(last=False)

    def exposure(self, archetype_id: str) -> int:
        return self._exposure.get(archetype_id, 0)

    def is_consecutive_repeat(self, archetype_id: str) -> bool:
        """True if the last served question used this archetype."""
        return bool(self._history) and self._history[-1].archetype_id == archetype_id

    # =========================================================================
    # Avoid Lists & Exposure
    # =========================================================================

    def avoid_list(self, module: str | None = None, subtopic: str | None = None) -> AvoidList:
        """
        Archetypes and tags the next question should not repeat.

        Drawn from the comparison window, optionally filtered, keeping the
        most recently seen entries. An empty list imposes no constraint.
        """
        archetypes: dict[str, None] = {}
        tags: dict[OperationTag, None] = {}

        for fp in self.recent():
            if not matches_filter(fp, module=module, subtopic=subtopic):
                continue
            # Re-insert so dict order tracks last occurrence
            archetypes.pop(fp.archetype_id, None)
            archetypes[fp.archetype_id] = None
            for tag in sorted(fp.operation_tags, key=lambda t: t.value):
                tags.pop(tag, None)
                tags[tag] = None

        recent_archetypes = tuple(archetypes)[-AVOID_ARCHETYPE_LIMIT:]
        recent_tags = tuple(tags)[-AVOID_TAG_LIMIT:]
        return AvoidList(
            archetypes=frozenset(recent_archetypes),
            operation_tags=frozenset(recent_tags),
            ordered_archetypes=recent_archetypes,
            ordered_tags=recent_tags,
        )

    @staticmethod
    def format_for_prompt(avoid: AvoidList) -> str:
        """Compact avoid-list for prompt inclusion, e.g. ``types:[a,b] ops:[SORT]``."""
        parts = []
        if avoid.ordered_archetypes:
            parts.append(f"types:[{','.join(avoid.ordered_archetypes)}]")
        if avoid.ordered_tags:
            parts.append(f"ops:[{','.join(t.value for t in avoid.ordered_tags)}]")
        return " ".join(parts)

    def least_used_archetypes(self, available: list[str], count: int) -> list[str]:
        """
        Pick the archetypes seen least often.

        The sort is stable, so ties keep the order of ``available``
        (catalog order when taken from the catalog).
        """
        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")
        return sorted(available, key=self.exposure)[:count]

    def score_diversity(self, fingerprint: QuestionFingerprint) -> float:
        """1.0 for a fresh history, otherwise 1 - max similarity to the window."""
        best = find_most_similar(fingerprint, self.recent())
        if best is None:
            return 1.0
        return 1.0 - best[1]

    def find_most_similar(
        self, fingerprint: QuestionFingerprint
    ) -> tuple[QuestionFingerprint, float] | None:
        return find_most_similar(fingerprint, self.recent())

    # =========================================================================
    # Persistence
    # =========================================================================

    def snapshot(self, backend: PersistenceBackend | None = None) -> None:
        """Write the history in compact form under the fingerprints key."""
        target = backend or self.backend
        if target is None:
            raise ValueError("No backend configured for diversity snapshot")
        payload = [fp.to_compact() for fp in self._history]
        target.set(FINGERPRINTS_KEY, json.dumps(payload))

    def restore(self, backend: PersistenceBackend | None = None) -> int:
        """
        Reload history from a backend and rebuild exposure counts.

        Corrupted data is logged and leaves the engine empty.

        Returns:
            Number of fingerprints loaded
        """
        source = backend or self.backend
        if source is None:
            raise ValueError("No backend configured for diversity restore")

        self._history.clear()
        self._exposure.clear()

        raw = source.get(FINGERPRINTS_KEY)
        if not raw:
            return 0

        try:
            fingerprints = [QuestionFingerprint.from_compact(item) for item in json.loads(raw)]
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding corrupted fingerprint history: {e}")
            return 0

        for fp in fingerprints:
            self._history.append(fp)
            self._bump_exposure(fp.archetype_id)

        logger.info(f"Diversity engine restored with {len(self._history)} fingerprints")
        return len(self._history)

    def clear(self, persisted: bool = False) -> None:
        """Forget everything; optionally remove the stored history too."""
        self._history.clear()
        self._exposure.clear()
        if persisted and self.backend is not None:
            self.backend.delete(FINGERPRINTS_KEY)

    def stats(self) -> dict:
        """Session statistics for debugging and the CLI."""
        top = sorted(self._exposure.items(), key=lambda item: item[1], reverse=True)[:5]
        return {
            "history_size": len(self._history),
            "window_size": len(self.recent()),
            "unique_archetypes": len(self._exposure),
            "top_archetypes": [{"id": a, "count": c} for a, c in top],
        }
