"""
Unit tests for the PracticeScheduler facade.

Each call loads, mutates and saves, so assertions re-read runs from
storage rather than trusting returned objects.
"""

import pytest

from src.diversity import OperationTag
from src.scheduler import AttemptResult, DifficultyLevel, PracticeScheduler, RunStatus
from src.scheduler.run_store import RUNS_KEY


def subtopics(state):
    return [entry.subtopic_id for entry in state.queue]


class TestRuns:
    def test_create_and_target(self, scheduler):
        run = scheduler.create_run("First")
        target = scheduler.next_target(run.id)

        assert target.subtopic_id == "basic-string-operations"
        assert target.module_id == "string-manipulation"
        assert target.difficulty == DifficultyLevel.BEGINNER
        assert target.queue_index == 0
        assert target.is_default is False

    def test_unknown_run_returns_none(self, scheduler):
        assert scheduler.next_target("run-missing") is None
        assert scheduler.record_attempt("run-missing", "correct", 10) is None
        assert scheduler.advance("run-missing") is None
        assert scheduler.slow_down("run-missing") is None
        assert scheduler.avoid_list_for("run-missing") is None

    def test_rename_delete_status(self, scheduler):
        run = scheduler.create_run("Old")
        scheduler.rename_run(run.id, "New")
        scheduler.set_status(run.id, RunStatus.PAUSED)

        stored = scheduler.get_run(run.id)
        assert stored.name == "New"
        assert stored.status == RunStatus.PAUSED
        assert scheduler.delete_run(run.id) is True
        assert scheduler.list_runs() == []

    def test_default_target_for_subtopic_missing_from_catalog(self, scheduler, backend, make_run):
        from src.scheduler import QueueEntry

        state = make_run(["palindromes"])
        state.queue[0] = QueueEntry(module_id="graphs", subtopic_id="dijkstra")
        scheduler.store.save(state)

        target = scheduler.next_target(state.id)

        assert target.is_default is True
        assert target.subtopic_id == "basic-string-operations"
        assert target.difficulty == DifficultyLevel.BEGINNER

    def test_attempt_on_missing_subtopic_credits_default_target(self, scheduler, make_run):
        from src.scheduler import QueueEntry

        state = make_run(["palindromes", "anagrams"])
        state.queue[0] = QueueEntry(module_id="graphs", subtopic_id="ghost")
        scheduler.store.save(state)

        scheduler.record_attempt(state.id, "correct", 1_000)
        scheduler.record_attempt(state.id, "incorrect", 1_000)
        stored = scheduler.record_attempt(state.id, "incorrect", 1_000)

        assert set(stored.per_subtopic_stats) == {"basic-string-operations"}
        assert stored.per_subtopic_stats["basic-string-operations"].attempts == 3
        assert "ghost" not in stored.recent_archetypes
        assert subtopics(stored) == [
            "ghost",
            "basic-string-operations",
            "basic-string-operations",
            "anagrams",
        ]
        assert stored.queue[1].subtopic_name == "Basic String Operations"


class TestRecordAttempt:
    def test_streak_promotes_current_subtopic(self, scheduler):
        run = scheduler.create_run()
        for _ in range(3):
            scheduler.record_attempt(run.id, AttemptResult.CORRECT, 30_000)

        state = scheduler.get_run(run.id)
        assert state.streak == 3
        assert state.difficulty_pointer["basic-string-operations"] == DifficultyLevel.INTERMEDIATE
        assert scheduler.analytics_snapshot().promotions == 1

    def test_two_misses_inject_remediation(self, scheduler):
        run = scheduler.create_run()
        scheduler.advance(run.id)  # string-slices, followed by palindromes, anagrams

        scheduler.record_attempt(run.id, "incorrect", 1_000)
        state = scheduler.record_attempt(run.id, "incorrect", 1_000)

        assert subtopics(state) == [
            "basic-string-operations",
            "string-slices",
            "string-slices",
            "string-slices",
            "palindromes",
            "anagrams",
        ]
        assert state.current_index == 1
        assert scheduler.analytics_snapshot().remediations_triggered == 1
        assert scheduler.get_run(run.id).queue == state.queue

    def test_remediation_mode_off(self, scheduler):
        run = scheduler.create_run(remediation_mode=False)
        scheduler.record_attempt(run.id, "incorrect", 1_000)
        state = scheduler.record_attempt(run.id, "incorrect", 1_000)

        assert len(state.queue) == 4
        assert scheduler.analytics_snapshot().remediations_triggered == 0

    def test_run_override_for_remediation_count(self, scheduler):
        run = scheduler.create_run(config={"extraRemediationCount": 1})
        scheduler.record_attempt(run.id, "incorrect", 1_000)
        state = scheduler.record_attempt(run.id, "incorrect", 1_000)

        assert subtopics(state)[:2] == ["basic-string-operations", "basic-string-operations"]
        assert len(state.queue) == 5

    def test_remembers_archetype(self, scheduler):
        run = scheduler.create_run()
        scheduler.record_attempt(run.id, "correct", 10, archetype_id="reverse-string")
        scheduler.record_attempt(run.id, "partial", 10)

        assert scheduler.get_run(run.id).recent_archetypes == ["reverse-string", "basic-string-operations"]

    def test_negative_elapsed_rejected(self, scheduler):
        run = scheduler.create_run()
        with pytest.raises(ValueError):
            scheduler.record_attempt(run.id, "correct", -1)

    def test_unknown_result_rejected(self, scheduler):
        run = scheduler.create_run()
        with pytest.raises(ValueError):
            scheduler.record_attempt(run.id, "great", 10)


class TestNavigation:
    def test_advance_and_upcoming(self, scheduler):
        run = scheduler.create_run()
        scheduler.advance(run.id)

        assert scheduler.next_target(run.id).subtopic_id == "string-slices"
        assert [e.subtopic_id for e in scheduler.upcoming(run.id, 5)] == ["palindromes", "anagrams"]

    def test_jump_invalid_is_noop(self, scheduler, backend):
        run = scheduler.create_run()
        before = backend.get(RUNS_KEY)

        state = scheduler.jump_to(run.id, 42)

        assert state.current_index == 0
        assert backend.get(RUNS_KEY) == before

    def test_jump_keeps_streak(self, scheduler):
        run = scheduler.create_run()
        scheduler.record_attempt(run.id, "correct", 10)
        state = scheduler.jump_to(run.id, 3)

        assert state.current_index == 3
        assert state.streak == 1

    def test_skip_counts_in_analytics(self, scheduler):
        run = scheduler.create_run()
        scheduler.skip_to_next_module(run.id)

        assert scheduler.analytics_snapshot().skips == 1
        assert scheduler.get_run(run.id).current_index == 0

    def test_slow_down(self, scheduler):
        run = scheduler.create_run(aggressive_progression=True)
        scheduler.record_attempt(run.id, "correct", 10)

        state = scheduler.slow_down(run.id)

        assert state.streak == 0
        assert state.aggressive_progression is False
        assert subtopics(state)[:4] == ["basic-string-operations"] * 4
        assert len(state.queue) == 7

    def test_module_navigation(self, scheduler):
        run = scheduler.create_run()
        navigation = scheduler.module_navigation(run.id)
        assert len(navigation.current_module) == 4
        assert navigation.next_module == []


class TestDiversity:
    def test_mark_served_feeds_avoid_list(self, scheduler):
        run = scheduler.create_run()
        fingerprint = scheduler.mark_served(run.id, "Reverse the words", "reverse-string")

        assert fingerprint.archetype_id == "reverse-string"
        assert OperationTag.TRANSFORM in fingerprint.operation_tags

        avoid = scheduler.avoid_list_for(run.id)
        assert avoid.archetypes == {"reverse-string"}

    def test_avoid_list_scoped_to_current_subtopic(self, scheduler):
        run = scheduler.create_run()
        scheduler.mark_served(run.id, "Reverse the words", "reverse-string")
        scheduler.advance(run.id)

        assert scheduler.avoid_list_for(run.id).is_empty

    def test_history_restored_by_new_scheduler(self, scheduler, backend, catalog):
        run = scheduler.create_run()
        scheduler.mark_served(run.id, "Reverse the words", "reverse-string")

        fresh = PracticeScheduler.build(backend, catalog)
        assert fresh.diversity.exposure("reverse-string") == 1


class TestExportImport:
    def test_round_trip_between_schedulers(self, scheduler, catalog):
        from src.persistence import InMemoryBackend

        run = scheduler.create_run("Portable")
        scheduler.record_attempt(run.id, "correct", 10)
        document = scheduler.export(run.id)

        other = PracticeScheduler.build(InMemoryBackend(), catalog)
        imported = other.import_document(document)

        assert imported.id == run.id
        assert imported.streak == 1
        assert imported.status == RunStatus.PAUSED

    def test_export_missing(self, scheduler):
        assert scheduler.export("run-missing") is None
