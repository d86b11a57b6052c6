"""
Practice Scheduler service.

Facade wiring the catalog, queue generator, difficulty controller,
remediation injector, diversity engine and run store together. Every
mutating call is load -> mutate -> save against the run store.

Usage:
    scheduler = PracticeScheduler.from_settings()
    run = scheduler.create_run("Evening practice")
    target = scheduler.next_target(run.id)
    avoid = scheduler.avoid_list_for(run.id)
    scheduler.record_attempt(run.id, "correct", elapsed_ms=42_000)
    scheduler.advance(run.id)
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loguru import logger

from src.curriculum import CurriculumCatalog
from src.diversity import AvoidList, DiversityConfig, DiversityEngine, QuestionFingerprint, ServedQuestion
from src.persistence import PersistenceBackend, create_backend

from .analytics import AdaptiveAnalytics, AnalyticsRecorder
from .difficulty import AttemptOutcome, DifficultyController
from .models import AttemptResult, DifficultyLevel, QueueEntry, RunState, RunStatus, TuningConfig
from .queue_generator import DEFAULT_ENTRY, ModuleNavigation, QueueGenerator
from .remediation import RemediationInjector
from .run_store import RunStateStore, RunValidationError


@dataclass
class Target:
    """What to practice next."""

    module_id: str
    module_name: str
    subtopic_id: str
    subtopic_name: str
    difficulty: DifficultyLevel
    queue_index: int
    # True when the queued subtopic no longer exists in the catalog
    is_default: bool = False

    def entry(self) -> QueueEntry:
        return QueueEntry(
            module_id=self.module_id,
            subtopic_id=self.subtopic_id,
            module_name=self.module_name,
            subtopic_name=self.subtopic_name,
        )


class PracticeScheduler:
    def __init__(
        self,
        store: RunStateStore,
        remediation: RemediationInjector,
        diversity: DiversityEngine,
        analytics: AnalyticsRecorder,
    ):
        self.store = store
        self.queue_generator = store.queue_generator
        self.difficulty = store.difficulty
        self.remediation = remediation
        self.diversity = diversity
        self.analytics = analytics

    @classmethod
    def build(
        cls,
        backend: PersistenceBackend,
        catalog: CurriculumCatalog,
        tuning: TuningConfig | None = None,
        diversity_config: DiversityConfig | None = None,
        focus_module: str = "string-manipulation",
        queue_window: int = 50,
        remediation_lookahead: int = 5,
        rng: random.Random | None = None,
    ) -> PracticeScheduler:
        """Wire all components over one backend and catalog."""
        analytics = AnalyticsRecorder(backend)
        generator = QueueGenerator(catalog, focus_module=focus_module, window=queue_window, rng=rng)
        difficulty = DifficultyController(tuning, analytics)
        store = RunStateStore(backend, generator, difficulty)
        remediation = RemediationInjector(analytics, lookahead=remediation_lookahead)
        diversity = DiversityEngine(diversity_config, catalog=catalog, backend=backend)
        diversity.restore()
        return cls(store, remediation, diversity, analytics)

    @classmethod
    def from_settings(
        cls,
        settings=None,
        backend: PersistenceBackend | None = None,
        catalog: CurriculumCatalog | None = None,
    ) -> PracticeScheduler:
        """Build from application settings (config.Settings)."""
        if settings is None:
            from config import get_settings

            settings = get_settings()

        if catalog is None:
            if settings.catalog_path:
                catalog = CurriculumCatalog.from_json(Path(settings.catalog_path))
            else:
                catalog = CurriculumCatalog.default()

        if backend is None:
            backend = create_backend(settings.storage_backend, settings.data_dir)

        return cls.build(
            backend,
            catalog,
            tuning=TuningConfig.from_settings(settings),
            diversity_config=DiversityConfig.from_settings(settings),
            focus_module=settings.scheduler_focus_module,
            queue_window=settings.scheduler_queue_window,
            remediation_lookahead=settings.scheduler_remediation_lookahead,
        )

    @property
    def catalog(self) -> CurriculumCatalog:
        return self.queue_generator.catalog

    # =========================================================================
    # Runs
    # =========================================================================

    def create_run(
        self,
        name: str | None = None,
        aggressive_progression: bool = False,
        remediation_mode: bool = True,
        config: dict | None = None,
    ) -> RunState:
        return self.store.create(name, aggressive_progression, remediation_mode, config)

    def get_run(self, run_id: str) -> RunState | None:
        return self.store.load(run_id)

    def list_runs(self) -> list[RunState]:
        return self.store.list_runs()

    def rename_run(self, run_id: str, name: str) -> RunState | None:
        return self.store.rename(run_id, name)

    def delete_run(self, run_id: str) -> bool:
        return self.store.delete(run_id)

    def set_status(self, run_id: str, status: RunStatus | str) -> RunState | None:
        return self.store.set_status(run_id, status)

    # =========================================================================
    # Scheduling
    # =========================================================================

    def _target_for(self, state: RunState) -> Target:
        entry = self.queue_generator.current_entry(state)
        node = self.catalog.get_node(entry.subtopic_id)

        if node is None:
            logger.warning(f"Subtopic '{entry.subtopic_id}' not in catalog, serving default target")
            fallback = self.catalog.get_node(DEFAULT_ENTRY.subtopic_id) or DEFAULT_ENTRY
            return Target(
                module_id=fallback.module_id,
                module_name=fallback.module_name,
                subtopic_id=fallback.subtopic_id,
                subtopic_name=fallback.subtopic_name,
                difficulty=self.difficulty.difficulty_for(state, fallback.subtopic_id),
                queue_index=state.current_index,
                is_default=True,
            )

        return Target(
            module_id=node.module_id,
            module_name=node.module_name,
            subtopic_id=node.subtopic_id,
            subtopic_name=node.subtopic_name,
            difficulty=self.difficulty.difficulty_for(state, node.subtopic_id),
            queue_index=state.current_index,
        )

    def next_target(self, run_id: str) -> Target | None:
        """Current (subtopic, difficulty) for a run, or None if the run is missing."""
        state = self.store.load(run_id)
        if state is None:
            return None
        return self._target_for(state)

    def record_attempt(
        self,
        run_id: str,
        result: AttemptResult | str,
        elapsed_ms: int,
        archetype_id: str | None = None,
    ) -> RunState | None:
        """
        Feed one attempt outcome into the run.

        Updates stats, streak and difficulty; injects remediation on a
        qualifying demotion when the run has remediation enabled.
        """
        result = AttemptResult(result)
        if elapsed_ms < 0:
            raise ValueError(f"elapsed_ms must be non-negative, got {elapsed_ms}")

        state = self.store.load(run_id)
        if state is None:
            return None

        # Credit whatever was actually served, which may be the default target
        target = self._target_for(state)
        outcome: AttemptOutcome = self.difficulty.register(state, target.subtopic_id, result)

        if outcome.qualifying_demotion and state.remediation_mode:
            count = state.tuning(self.difficulty.tuning).extra_remediation_count
            self.remediation.inject(state, target.entry(), count)

        state.remember_archetype(archetype_id or target.subtopic_id)

        logger.debug(
            f"Run {run_id}: {result.value} on {target.subtopic_id} in {elapsed_ms}ms "
            f"(streak {state.streak})"
        )
        return self.store.save(state)

    def advance(self, run_id: str) -> RunState | None:
        state = self.store.load(run_id)
        if state is None:
            return None
        self.queue_generator.advance(state)
        return self.store.save(state)

    def jump_to(self, run_id: str, index: int) -> RunState | None:
        """Move the queue pointer; an invalid index returns the run unchanged."""
        state = self.store.load(run_id)
        if state is None:
            return None
        if not self.queue_generator.jump_to(state, index):
            return state
        return self.store.save(state)

    def skip_to_next_module(self, run_id: str) -> RunState | None:
        state = self.store.load(run_id)
        if state is None:
            return None
        self.queue_generator.skip_to_next_module(state)
        self.analytics.increment("skips")
        return self.store.save(state)

    def slow_down(self, run_id: str) -> RunState | None:
        """Reset the streak, drop aggressive mode and queue extra practice on the current subtopic."""
        state = self.store.load(run_id)
        if state is None:
            return None

        target = self._target_for(state)
        state.streak = 0
        state.aggressive_progression = False
        count = state.tuning(self.difficulty.tuning).extra_remediation_count + 1
        self.remediation.inject(state, target.entry(), count)
        return self.store.save(state)

    def upcoming(self, run_id: str, count: int = 3) -> list[QueueEntry] | None:
        state = self.store.load(run_id)
        if state is None:
            return None
        return self.queue_generator.upcoming(state, count)

    def module_navigation(self, run_id: str) -> ModuleNavigation | None:
        state = self.store.load(run_id)
        if state is None:
            return None
        return self.queue_generator.module_navigation(state)

    # =========================================================================
    # Diversity
    # =========================================================================

    def avoid_list_for(self, run_id: str) -> AvoidList | None:
        """Avoid-list for the run's current module and subtopic."""
        target = self.next_target(run_id)
        if target is None:
            return None
        return self.diversity.avoid_list(module=target.module_id, subtopic=target.subtopic_id)

    def mark_served(
        self,
        run_id: str,
        title: str,
        archetype_id: str | None = None,
    ) -> QuestionFingerprint | None:
        """Fingerprint a question served for the run's current target and remember it."""
        target = self.next_target(run_id)
        if target is None:
            return None
        question = ServedQuestion(
            module_id=target.module_id,
            subtopic_id=target.subtopic_id,
            title=title,
            difficulty=target.difficulty.value,
        )
        fingerprint = self.diversity.create_fingerprint(question, archetype_id)
        self.diversity.record(fingerprint)
        return fingerprint

    # =========================================================================
    # Export / Import / Analytics
    # =========================================================================

    def export(self, run_id: str) -> dict[str, Any] | None:
        state = self.store.load(run_id)
        if state is None:
            return None
        return self.store.export(state)

    def import_document(self, document: dict | str | bytes) -> RunState | RunValidationError:
        return self.store.import_document(document)

    def analytics_snapshot(self) -> AdaptiveAnalytics:
        return self.analytics.snapshot()
