"""Curriculum catalog: modules, subtopics and problem archetypes."""

from .catalog import CurriculumCatalog
from .models import (
    CurriculumNode,
    Module,
    ProblemType,
    ProblemTypeContext,
    Subtopic,
    to_kebab_case,
)

__all__ = [
    "CurriculumCatalog",
    "CurriculumNode",
    "Module",
    "ProblemType",
    "ProblemTypeContext",
    "Subtopic",
    "to_kebab_case",
]
