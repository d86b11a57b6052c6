"""
Archetype and operation-tag vocabulary.

Every practice problem is identified by an archetype (its problem type id)
and described by up to three operation tags from a fixed vocabulary.
Tags are inferred by keyword matching, which keeps the inference a pure
function of its inputs:

1. Keywords in the context text (problem type name and description)
2. Subtopic pattern defaults
3. Keywords in the archetype id itself
4. ITERATE
"""

from __future__ import annotations

from enum import Enum

MAX_OPERATION_TAGS = 3


class OperationTag(str, Enum):
    """Dominant operation a problem exercises."""

    ITERATE = "ITERATE"
    COUNT = "COUNT"
    TRANSFORM = "TRANSFORM"
    VALIDATE = "VALIDATE"
    SEARCH = "SEARCH"
    SORT = "SORT"
    PARTITION = "PARTITION"
    AGGREGATE = "AGGREGATE"
    COMPARE = "COMPARE"
    GENERATE = "GENERATE"


DEFAULT_OPERATION_TAG = OperationTag.ITERATE


# Matched as substrings, in insertion order
KEYWORD_TO_OPERATION: dict[str, OperationTag] = {
    # Iteration
    "traverse": OperationTag.ITERATE,
    "traversal": OperationTag.ITERATE,
    "iteration": OperationTag.ITERATE,
    "loop": OperationTag.ITERATE,
    "scan": OperationTag.ITERATE,
    "walk": OperationTag.ITERATE,
    # Counting
    "count": OperationTag.COUNT,
    "frequency": OperationTag.COUNT,
    "occurrences": OperationTag.COUNT,
    "tally": OperationTag.COUNT,
    "histogram": OperationTag.COUNT,
    # Transformation
    "transform": OperationTag.TRANSFORM,
    "convert": OperationTag.TRANSFORM,
    "encode": OperationTag.TRANSFORM,
    "decode": OperationTag.TRANSFORM,
    "compress": OperationTag.TRANSFORM,
    "decompress": OperationTag.TRANSFORM,
    "reverse": OperationTag.TRANSFORM,
    "rotate": OperationTag.TRANSFORM,
    "map": OperationTag.TRANSFORM,
    # Validation
    "validate": OperationTag.VALIDATE,
    "valid": OperationTag.VALIDATE,
    "check": OperationTag.VALIDATE,
    "palindrome": OperationTag.VALIDATE,
    "balanced": OperationTag.VALIDATE,
    "match": OperationTag.VALIDATE,
    "verify": OperationTag.VALIDATE,
    # Searching
    "search": OperationTag.SEARCH,
    "find": OperationTag.SEARCH,
    "lookup": OperationTag.SEARCH,
    "binary": OperationTag.SEARCH,
    "locate": OperationTag.SEARCH,
    "index": OperationTag.SEARCH,
    # Sorting
    "sort": OperationTag.SORT,
    "order": OperationTag.SORT,
    "arrange": OperationTag.SORT,
    "merge": OperationTag.SORT,
    "quick": OperationTag.SORT,
    # Partitioning
    "partition": OperationTag.PARTITION,
    "split": OperationTag.PARTITION,
    "divide": OperationTag.PARTITION,
    "segregate": OperationTag.PARTITION,
    "group": OperationTag.PARTITION,
    # Aggregation
    "sum": OperationTag.AGGREGATE,
    "max": OperationTag.AGGREGATE,
    "min": OperationTag.AGGREGATE,
    "average": OperationTag.AGGREGATE,
    "total": OperationTag.AGGREGATE,
    "product": OperationTag.AGGREGATE,
    "prefix": OperationTag.AGGREGATE,
    "cumulative": OperationTag.AGGREGATE,
    # Comparison
    "compare": OperationTag.COMPARE,
    "anagram": OperationTag.COMPARE,
    "subsequence": OperationTag.COMPARE,
    "substring": OperationTag.COMPARE,
    "lcs": OperationTag.COMPARE,
    "diff": OperationTag.COMPARE,
    # Generation
    "generate": OperationTag.GENERATE,
    "permutation": OperationTag.GENERATE,
    "combination": OperationTag.GENERATE,
    "backtrack": OperationTag.GENERATE,
    "enumerate": OperationTag.GENERATE,
    "create": OperationTag.GENERATE,
}

# First matching pattern wins
SUBTOPIC_DEFAULT_TAGS: dict[str, tuple[OperationTag, ...]] = {
    "two-pointer": (OperationTag.ITERATE, OperationTag.COMPARE),
    "sliding-window": (OperationTag.ITERATE, OperationTag.AGGREGATE),
    "binary-search": (OperationTag.SEARCH,),
    "sorting": (OperationTag.SORT,),
    "prefix-sum": (OperationTag.AGGREGATE,),
    "recursion": (OperationTag.GENERATE,),
    "backtracking": (OperationTag.GENERATE,),
    "dynamic-programming": (OperationTag.AGGREGATE, OperationTag.COMPARE),
    "tree": (OperationTag.ITERATE, OperationTag.SEARCH),
    "graph": (OperationTag.ITERATE, OperationTag.SEARCH),
    "hash": (OperationTag.SEARCH, OperationTag.COUNT),
    "dictionary": (OperationTag.SEARCH, OperationTag.COUNT),
    "string": (OperationTag.TRANSFORM, OperationTag.COMPARE),
    "array": (OperationTag.ITERATE, OperationTag.TRANSFORM),
    "matrix": (OperationTag.ITERATE, OperationTag.TRANSFORM),
    "interval": (OperationTag.SORT, OperationTag.PARTITION),
}


def _match_keywords(text: str) -> list[OperationTag]:
    tags: list[OperationTag] = []
    for keyword, tag in KEYWORD_TO_OPERATION.items():
        if keyword in text and tag not in tags:
            tags.append(tag)
    return tags


def infer_operation_tags(
    archetype_id: str,
    context_text: str = "",
    subtopic_id: str | None = None,
) -> tuple[OperationTag, ...]:
    """
    Infer operation tags for an archetype.

    Args:
        archetype_id: Problem type id, e.g. "valid-palindrome"
        context_text: Extra text to scan, usually the problem type's
            name and description from the catalog
        subtopic_id: Subtopic used for pattern defaults

    Returns:
        Between one and three tags, in match order
    """
    tags = _match_keywords(context_text.lower()) if context_text else []

    if not tags and subtopic_id:
        subtopic_key = subtopic_id.lower()
        for pattern, defaults in SUBTOPIC_DEFAULT_TAGS.items():
            if pattern in subtopic_key:
                tags = list(defaults)
                break

    if not tags:
        tags = _match_keywords(archetype_id.lower())

    if not tags:
        tags = [DEFAULT_OPERATION_TAG]

    return tuple(tags[:MAX_OPERATION_TAGS])


def tag_overlap(a: frozenset[OperationTag], b: frozenset[OperationTag]) -> float:
    """Jaccard coefficient of two tag sets. Two empty sets are identical."""
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def format_operation_tags(tags) -> str:
    """Comma-separated tag values in vocabulary order, e.g. ``"COUNT,SEARCH"``."""
    present = {OperationTag(t) for t in tags}
    return ",".join(t.value for t in OperationTag if t in present)


def parse_operation_tags(raw: str) -> frozenset[OperationTag]:
    """Inverse of :func:`format_operation_tags`; unknown names are dropped."""
    tags = set()
    for name in raw.split(","):
        name = name.strip().upper()
        if name in OperationTag.__members__:
            tags.add(OperationTag[name])
    return frozenset(tags)
