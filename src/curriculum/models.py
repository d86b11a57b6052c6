"""Data models for the curriculum catalog."""

from __future__ import annotations

import re
from dataclasses import dataclass, field


def to_kebab_case(name: str) -> str:
    """Convert a display name to a kebab-case id ("Two-Pointer Techniques" -> "two-pointer-techniques")."""
    slug = name.lower().replace("&", "and")
    slug = re.sub(r"[()]", "", slug)
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    return slug.strip("-")


@dataclass(frozen=True)
class ProblemType:
    """A canonical problem pattern (archetype) within a subtopic."""

    id: str  # kebab-case, e.g. "two-sum-variations"
    name: str
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> ProblemType:
        name = str(data.get("name") or data["id"])
        return cls(
            id=str(data.get("id") or to_kebab_case(name)),
            name=name,
            description=str(data.get("description") or ""),
        )


@dataclass(frozen=True)
class Subtopic:
    """A grouped section within a module."""

    id: str
    name: str
    problem_types: tuple[ProblemType, ...] = ()
    section_number: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> Subtopic:
        name = str(data["name"])
        return cls(
            id=str(data.get("id") or to_kebab_case(name)),
            name=name,
            problem_types=tuple(
                ProblemType.from_dict(pt) for pt in data.get("problemTypes", [])
            ),
            section_number=data.get("sectionNumber"),
        )


@dataclass(frozen=True)
class Module:
    """Top-level topic module."""

    id: str
    name: str
    order: int
    subtopics: tuple[Subtopic, ...] = ()
    problem_archetypes: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: dict) -> Module:
        name = str(data["name"])
        return cls(
            id=str(data.get("id") or to_kebab_case(name)),
            name=name,
            order=int(data.get("order", 0)),
            subtopics=tuple(Subtopic.from_dict(st) for st in data.get("subtopics", [])),
            problem_archetypes=tuple(data.get("problemArchetypes", [])),
        )


@dataclass(frozen=True)
class CurriculumNode:
    """Reference to one subtopic together with its parent module."""

    module_id: str
    module_name: str
    subtopic_id: str
    subtopic_name: str

    @classmethod
    def of(cls, module: Module, subtopic: Subtopic) -> CurriculumNode:
        return cls(
            module_id=module.id,
            module_name=module.name,
            subtopic_id=subtopic.id,
            subtopic_name=subtopic.name,
        )


@dataclass(frozen=True)
class ProblemTypeContext:
    """A problem type located in the catalog tree."""

    problem_type: ProblemType
    subtopic: Subtopic
    module: Module
