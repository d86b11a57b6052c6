"""
Curriculum Catalog.

Read-only lookup over the module -> subtopic -> problem type tree.
The catalog is loaded once from JSON and never mutated by the scheduler.

Expected document shape:
    {"version": "...", "modules": [{"id", "name", "order", "subtopics": [
        {"id", "name", "problemTypes": [{"id", "name", "description"}]}
    ]}]}
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from importlib import resources
from pathlib import Path

from loguru import logger

from src.core.errors import CatalogError

from .models import CurriculumNode, Module, ProblemTypeContext, Subtopic


class CurriculumCatalog:
    """
    In-memory curriculum tree with id lookups.

    Modules are kept sorted by their ``order`` field; subtopics keep
    the order they have in the source document.
    """

    def __init__(self, modules: list[Module] | tuple[Module, ...] = ()):
        self._modules: tuple[Module, ...] = tuple(sorted(modules, key=lambda m: m.order))
        self._modules_by_id = {m.id: m for m in self._modules}
        self._nodes_by_subtopic: dict[str, CurriculumNode] = {}
        self._problem_types: dict[str, ProblemTypeContext] = {}

        for module in self._modules:
            for subtopic in module.subtopics:
                self._nodes_by_subtopic.setdefault(
                    subtopic.id, CurriculumNode.of(module, subtopic)
                )
                for problem_type in subtopic.problem_types:
                    self._problem_types.setdefault(
                        problem_type.id,
                        ProblemTypeContext(problem_type, subtopic, module),
                    )

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def from_dict(cls, data: dict) -> CurriculumCatalog:
        """Build a catalog from an already-parsed topics document."""
        try:
            modules = [Module.from_dict(m) for m in data.get("modules", [])]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise CatalogError(f"Malformed curriculum document: {e}") from e
        return cls(modules)

    @classmethod
    def from_json(cls, path: Path | str) -> CurriculumCatalog:
        """Load a catalog from a JSON file."""
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise CatalogError(f"Cannot read curriculum file {path}: {e}") from e

        catalog = cls.from_dict(data)
        logger.info(
            f"Loaded curriculum from {path.name}: "
            f"{len(catalog.modules)} modules, {catalog.subtopic_count} subtopics"
        )
        return catalog

    @classmethod
    def default(cls) -> CurriculumCatalog:
        """Load the curriculum packaged with the scheduler."""
        source = resources.files("src.curriculum").joinpath("data").joinpath("topics.json")
        return cls.from_dict(json.loads(source.read_text(encoding="utf-8")))

    # =========================================================================
    # Lookups
    # =========================================================================

    @property
    def modules(self) -> tuple[Module, ...]:
        return self._modules

    @property
    def subtopic_count(self) -> int:
        return len(self._nodes_by_subtopic)

    def is_empty(self) -> bool:
        return not self._nodes_by_subtopic

    def get_module(self, module_id: str) -> Module | None:
        return self._modules_by_id.get(module_id)

    def get_node(self, subtopic_id: str) -> CurriculumNode | None:
        """Find a subtopic (with its module) by subtopic id."""
        return self._nodes_by_subtopic.get(subtopic_id)

    def get_subtopic(self, subtopic_id: str) -> Subtopic | None:
        node = self.get_node(subtopic_id)
        if node is None:
            return None
        module = self._modules_by_id[node.module_id]
        return next((st for st in module.subtopics if st.id == subtopic_id), None)

    def problem_type_context(self, problem_type_id: str) -> ProblemTypeContext | None:
        """Find a problem type with its parent subtopic and module."""
        return self._problem_types.get(problem_type_id)

    def iter_nodes(self) -> Iterator[CurriculumNode]:
        """Yield every subtopic in catalog order (module order, then document order)."""
        for module in self._modules:
            for subtopic in module.subtopics:
                yield CurriculumNode.of(module, subtopic)

    def archetypes_for(self, subtopic_id: str) -> list[str]:
        """Problem type ids available in a subtopic, in catalog order."""
        subtopic = self.get_subtopic(subtopic_id)
        if subtopic is None:
            return []
        return [pt.id for pt in subtopic.problem_types]
