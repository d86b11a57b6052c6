"""
Content diversity: fingerprints, similarity and avoid-lists.

Usage:
    engine = DiversityEngine(catalog=catalog)
    avoid = engine.avoid_list(module="string-manipulation")
    result = engine.screen(produce, to_fingerprint)
"""

from .archetypes import OperationTag, infer_operation_tags, tag_overlap
from .engine import DiversityConfig, DiversityEngine, ScreenResult
from .fingerprint import (
    AvoidList,
    QuestionFingerprint,
    ServedQuestion,
    calculate_similarity,
    derive_archetype_id,
)

__all__ = [
    "AvoidList",
    "DiversityConfig",
    "DiversityEngine",
    "OperationTag",
    "QuestionFingerprint",
    "ScreenResult",
    "ServedQuestion",
    "calculate_similarity",
    "derive_archetype_id",
    "infer_operation_tags",
    "tag_overlap",
]
