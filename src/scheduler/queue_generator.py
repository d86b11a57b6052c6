"""
Queue Generator.

Produces the ordered sequence of (module, subtopic) practice targets:

1. Mini-curriculum: one entry per subtopic of the focus module, with
   "basic / operation / index / slice" subtopics first.
2. Weakness queue: every catalog subtopic sorted by mastery (least
   mastered first), each equal-mastery tier shuffled independently,
   capped to a fixed window.

The queue is never empty; with an empty catalog a single hard-coded
entry is used.
"""

from __future__ import annotations

import itertools
import random
from collections.abc import Mapping
from dataclasses import dataclass, field

from loguru import logger

from src.curriculum import CurriculumCatalog

from .models import QueueEntry, RunState, SubtopicStats

BASIC_KEYWORDS = ("basic", "operation", "index", "slice")

DEFAULT_FOCUS_MODULE = "string-manipulation"
DEFAULT_QUEUE_WINDOW = 50

DEFAULT_ENTRY = QueueEntry(
    module_id="string-manipulation",
    subtopic_id="basic-string-operations",
    module_name="String Manipulation",
    subtopic_name="Basic String Operations",
)


@dataclass
class NavigationItem:
    """One queue slot shown in module navigation."""

    entry: QueueEntry
    index: int
    status: str  # 'completed', 'current', 'upcoming'

    @property
    def is_current(self) -> bool:
        return self.status == "current"


@dataclass
class ModuleNavigation:
    """Queue slots of the current module and the next distinct module."""

    current_module: list[NavigationItem] = field(default_factory=list)
    next_module: list[NavigationItem] = field(default_factory=list)


def _is_basic(name: str) -> bool:
    lowered = name.lower()
    return any(keyword in lowered for keyword in BASIC_KEYWORDS)


class QueueGenerator:
    """Builds and advances run queues over a curriculum catalog."""

    def __init__(
        self,
        catalog: CurriculumCatalog,
        focus_module: str = DEFAULT_FOCUS_MODULE,
        window: int = DEFAULT_QUEUE_WINDOW,
        rng: random.Random | None = None,
    ):
        self.catalog = catalog
        self.focus_module = focus_module
        self.window = window
        self.rng = rng or random.Random()

    # =========================================================================
    # Generation
    # =========================================================================

    def generate_initial_queue(self, size: int) -> list[QueueEntry]:
        """
        Build the mini-curriculum from the focus module.

        Falls back to the weakness queue when the focus module is missing.
        """
        if size < 1:
            raise ValueError(f"Queue size must be positive, got {size}")

        if self.catalog.is_empty():
            logger.warning("Curriculum catalog is empty, using default queue")
            return [DEFAULT_ENTRY]

        module = self.catalog.get_module(self.focus_module)
        if module is None or not module.subtopics:
            logger.warning(f"Focus module '{self.focus_module}' not found, falling back to weakness queue")
            return self.generate_weakness_queue({})

        # sorted() is stable: ties keep catalog order
        ordered = sorted(module.subtopics, key=lambda st: 0 if _is_basic(st.name) else 1)

        return [
            QueueEntry(
                module_id=module.id,
                subtopic_id=subtopic.id,
                module_name=module.name,
                subtopic_name=subtopic.name,
            )
            for subtopic in ordered[:size]
        ]

    def generate_weakness_queue(
        self,
        stats: Mapping[str, SubtopicStats] | None = None,
    ) -> list[QueueEntry]:
        """
        Order every catalog subtopic by mastery, least mastered first.

        Args:
            stats: Per-subtopic stats keyed by subtopic id (missing = 0%)
        """
        stats = stats or {}
        scored: list[tuple[int, QueueEntry]] = []
        for node in self.catalog.iter_nodes():
            subtopic_stats = stats.get(node.subtopic_id)
            mastery = subtopic_stats.mastery_percent if subtopic_stats else 0
            scored.append((mastery, QueueEntry.from_node(node)))

        if not scored:
            logger.warning("Curriculum catalog is empty, using default queue")
            return [DEFAULT_ENTRY]

        scored.sort(key=lambda item: item[0])

        queue: list[QueueEntry] = []
        for _, tier in itertools.groupby(scored, key=lambda item: item[0]):
            entries = [entry for _, entry in tier]
            self.rng.shuffle(entries)
            queue.extend(entries)

        return queue[: self.window]

    # =========================================================================
    # Navigation
    # =========================================================================

    @staticmethod
    def current_entry(state: RunState) -> QueueEntry:
        """Entry at the pointer; an out-of-range pointer reads entry 0."""
        if 0 <= state.current_index < len(state.queue):
            return state.queue[state.current_index]
        return state.queue[0]

    def advance(self, state: RunState) -> RunState:
        """
        Move to the next entry, regenerating when the queue runs out.

        The first exhaustion marks the mini-curriculum complete. If the new
        current entry repeats the subtopic just served, it is swapped with
        the nearest later entry for a different subtopic.
        """
        served = self.current_entry(state).subtopic_id
        state.current_index += 1

        if state.current_index >= len(state.queue):
            if not state.mini_curriculum_complete:
                state.mini_curriculum_complete = True
                logger.info(f"Run {state.id} finished its mini-curriculum")
            state.queue = self.generate_weakness_queue(state.per_subtopic_stats)
            state.current_index = 0
            logger.debug(f"Regenerated weakness queue ({len(state.queue)} entries)")

        self._avoid_repeat(state, served)
        return state

    @staticmethod
    def _avoid_repeat(state: RunState, served_subtopic: str) -> None:
        index = state.current_index
        if state.queue[index].subtopic_id != served_subtopic:
            return
        for i in range(index + 1, len(state.queue)):
            if state.queue[i].subtopic_id != served_subtopic:
                state.queue[index], state.queue[i] = state.queue[i], state.queue[index]
                return

    def upcoming(self, state: RunState, count: int = 3) -> list[QueueEntry]:
        """Preview of the entries after the current one."""
        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")
        start = state.current_index + 1
        return list(state.queue[start : start + count])

    def skip_to_next_module(self, state: RunState) -> RunState:
        """
        Neutral skip to the next entry from a different module.

        Streak and difficulty are untouched. Regenerates if no entry from
        another module remains.
        """
        current = self.current_entry(state)

        next_index = state.current_index + 1
        while next_index < len(state.queue) and state.queue[next_index].module_id == current.module_id:
            next_index += 1

        if next_index >= len(state.queue):
            logger.info(f"No module after '{current.module_name}' in queue, regenerating")
            state.queue = self.generate_weakness_queue(state.per_subtopic_stats)
            state.current_index = 0
        else:
            state.current_index = next_index
            logger.info(f"Skipped to module '{state.queue[next_index].module_name}'")

        return state

    def jump_to(self, state: RunState, index: int) -> bool:
        """
        Move the pointer to ``index``; nothing else changes.

        Returns:
            False (run untouched) for an out-of-range index
        """
        if index < 0 or index >= len(state.queue):
            logger.warning(f"Invalid jump target index: {index}")
            return False

        state.current_index = index
        target = state.queue[index]
        logger.info(f"Jumped to '{target.subtopic_name}' in module '{target.module_name}'")
        return True

    def module_navigation(self, state: RunState) -> ModuleNavigation:
        """Group queue slots for the current module and the next distinct one."""
        current = self.current_entry(state)

        next_module_id = None
        for entry in state.queue[state.current_index + 1 :]:
            if entry.module_id != current.module_id:
                next_module_id = entry.module_id
                break

        navigation = ModuleNavigation()
        for i, entry in enumerate(state.queue):
            if i < state.current_index:
                status = "completed"
            elif i == state.current_index:
                status = "current"
            else:
                status = "upcoming"

            item = NavigationItem(entry=entry, index=i, status=status)
            if entry.module_id == current.module_id:
                navigation.current_module.append(item)
            elif next_module_id and entry.module_id == next_module_id:
                navigation.next_module.append(item)

        return navigation
