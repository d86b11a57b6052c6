"""
Question fingerprints.

A fingerprint captures what a served question exercises without storing
its text. Fingerprints are cheap to compare and safe to discard; they only
feed the diversity checks.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from .archetypes import OperationTag, format_operation_tags, parse_operation_tags, tag_overlap

# Weights sum to 1.0, archetype identity dominates
SIMILARITY_WEIGHTS = {
    "module": 0.15,
    "subtopic": 0.20,
    "archetype": 0.35,
    "operation_tags": 0.20,
    "difficulty": 0.10,
}

_BRACKETED = re.compile(r"\[.*?\]")


def enum_value(value) -> str:
    return value.value if isinstance(value, Enum) else str(value)


@dataclass
class ServedQuestion:
    """The parts of a generated question the diversity engine looks at."""

    module_id: str
    subtopic_id: str
    title: str
    difficulty: str


@dataclass(frozen=True)
class QuestionFingerprint:
    """Compact signature of a served question."""

    module: str
    subtopic: str
    archetype_id: str
    operation_tags: frozenset[OperationTag]
    difficulty: str
    timestamp: int = 0

    def to_compact(self) -> dict:
        """Short-key form used for persisted history."""
        return {
            "m": self.module,
            "s": self.subtopic,
            "a": self.archetype_id,
            "o": format_operation_tags(self.operation_tags),
            "d": self.difficulty,
            "t": self.timestamp,
        }

    @classmethod
    def from_compact(cls, data: dict) -> QuestionFingerprint:
        return cls(
            module=str(data["m"]),
            subtopic=str(data["s"]),
            archetype_id=str(data["a"]),
            operation_tags=parse_operation_tags(str(data.get("o", ""))),
            difficulty=str(data["d"]),
            timestamp=int(data.get("t", 0)),
        )

    def __str__(self) -> str:
        tags = format_operation_tags(self.operation_tags)
        return f"{self.module}/{self.subtopic}/{self.archetype_id}[{tags}]@{self.difficulty}"


@dataclass
class AvoidList:
    """Archetypes and operation tags a new question should not repeat."""

    archetypes: frozenset[str] = field(default_factory=frozenset)
    operation_tags: frozenset[OperationTag] = field(default_factory=frozenset)
    # Most recent last, used for prompt formatting
    ordered_archetypes: tuple[str, ...] = ()
    ordered_tags: tuple[OperationTag, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.archetypes and not self.operation_tags


def derive_archetype_id(subtopic_id: str, title: str) -> str:
    """
    Approximate an archetype when the problem type is unknown.

    Uses the subtopic plus the first title word longer than three
    characters, ignoring bracketed tags like ``[Beginner]``.
    """
    words = [w for w in _BRACKETED.sub("", title.lower()).split() if len(w) > 3]
    if words:
        return f"{subtopic_id}-{words[0]}".lower()
    return subtopic_id.lower()


def calculate_similarity(a: QuestionFingerprint, b: QuestionFingerprint) -> float:
    """
    Weighted similarity between two fingerprints.

    Returns:
        0.0 when nothing matches, exactly 1.0 for identical fingerprints
    """
    parts = [
        SIMILARITY_WEIGHTS["module"] if a.module == b.module else 0.0,
        SIMILARITY_WEIGHTS["subtopic"] if a.subtopic == b.subtopic else 0.0,
        SIMILARITY_WEIGHTS["archetype"] if a.archetype_id == b.archetype_id else 0.0,
        SIMILARITY_WEIGHTS["operation_tags"] * tag_overlap(a.operation_tags, b.operation_tags),
        SIMILARITY_WEIGHTS["difficulty"] if a.difficulty == b.difficulty else 0.0,
    ]
    return min(1.0, math.fsum(parts))


def is_similar_to_any(
    candidate: QuestionFingerprint,
    history: Iterable[QuestionFingerprint],
    threshold: float,
) -> bool:
    return any(calculate_similarity(candidate, fp) >= threshold for fp in history)


def find_most_similar(
    candidate: QuestionFingerprint,
    history: Iterable[QuestionFingerprint],
) -> tuple[QuestionFingerprint, float] | None:
    """Most similar fingerprint in history with its score; first one wins ties."""
    best: tuple[QuestionFingerprint, float] | None = None
    for fp in history:
        similarity = calculate_similarity(candidate, fp)
        if best is None or similarity > best[1]:
            best = (fp, similarity)
    return best


def matches_filter(
    fp: QuestionFingerprint,
    module: str | None = None,
    subtopic: str | None = None,
    archetype_id: str | None = None,
    difficulty=None,
) -> bool:
    """Check a fingerprint against optional attribute filters."""
    if module and fp.module != module:
        return False
    if subtopic and fp.subtopic != subtopic:
        return False
    if archetype_id and fp.archetype_id != archetype_id:
        return False
    if difficulty and fp.difficulty != enum_value(difficulty):
        return False
    return True
