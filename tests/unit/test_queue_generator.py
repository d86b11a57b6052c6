"""
Unit tests for the QueueGenerator.

Mini-curriculum ordering, weakness queues, advancing, skipping,
jumping and module navigation.
"""

import random

import pytest

from src.curriculum import CurriculumCatalog
from src.scheduler import DEFAULT_ENTRY, QueueGenerator, SubtopicStats


def subtopics(queue):
    return [entry.subtopic_id for entry in queue]


class TestInitialQueue:
    def test_packaged_catalog_mini_curriculum(self):
        generator = QueueGenerator(CurriculumCatalog.default(), rng=random.Random(0))
        queue = generator.generate_initial_queue(12)

        assert len(queue) == 12
        assert {entry.module_id for entry in queue} == {"string-manipulation"}
        assert subtopics(queue)[:4] == [
            "basic-string-operations",
            "string-indexing",
            "string-slices",
            "set-operations-on-strings",
        ]
        assert subtopics(queue)[4:7] == ["string-traversal", "pattern-matching", "palindromes"]
        assert len(set(subtopics(queue))) == 12

    def test_basics_first_then_catalog_order(self, generator):
        queue = generator.generate_initial_queue(12)
        assert subtopics(queue) == ["basic-string-operations", "string-slices", "palindromes", "anagrams"]

    def test_size_caps_queue(self, generator):
        assert subtopics(generator.generate_initial_queue(2)) == ["basic-string-operations", "string-slices"]

    def test_entries_carry_names(self, generator):
        entry = generator.generate_initial_queue(1)[0]
        assert entry.module_name == "String Manipulation"
        assert entry.subtopic_name == "Basic String Operations"

    def test_invalid_size(self, generator):
        with pytest.raises(ValueError):
            generator.generate_initial_queue(0)

    def test_missing_focus_module_uses_weakness_queue(self, catalog, rng):
        generator = QueueGenerator(catalog, focus_module="graphs", rng=rng)
        queue = generator.generate_initial_queue(12)
        assert sorted(subtopics(queue)) == sorted(node.subtopic_id for node in catalog.iter_nodes())

    def test_empty_catalog_uses_default_entry(self):
        generator = QueueGenerator(CurriculumCatalog())
        assert generator.generate_initial_queue(12) == [DEFAULT_ENTRY]
        assert generator.generate_weakness_queue({}) == [DEFAULT_ENTRY]


class TestWeaknessQueue:
    def test_least_mastered_first(self, generator):
        stats = {
            "palindromes": SubtopicStats(attempts=4, solved=4),
            "anagrams": SubtopicStats(attempts=4, solved=2),
            "sliding-window": SubtopicStats(attempts=10, solved=1),
        }
        queue = subtopics(generator.generate_weakness_queue(stats))

        # Untouched subtopics (0%) first, then 10%, 50%, 100%
        assert set(queue[:3]) == {"basic-string-operations", "string-slices", "two-pointer-techniques"}
        assert queue[3:] == ["sliding-window", "anagrams", "palindromes"]

    def test_covers_whole_catalog(self, generator, catalog):
        queue = generator.generate_weakness_queue()
        assert sorted(subtopics(queue)) == sorted(n.subtopic_id for n in catalog.iter_nodes())
        assert len({e.module_id for e in queue}) == 2

    def test_window_caps_length(self, catalog, rng):
        generator = QueueGenerator(catalog, window=3, rng=rng)
        assert len(generator.generate_weakness_queue()) == 3

    def test_ties_are_shuffled_with_rng(self, catalog):
        orders = {
            tuple(subtopics(QueueGenerator(catalog, rng=random.Random(seed)).generate_weakness_queue()))
            for seed in range(20)
        }
        assert len(orders) > 1


class TestAdvance:
    def test_moves_pointer(self, generator, make_run):
        state = make_run(["palindromes", "anagrams", "string-slices"])
        generator.advance(state)
        assert state.current_index == 1
        assert state.mini_curriculum_complete is False

    def test_exhaustion_regenerates_and_marks_complete(self, generator, make_run, catalog):
        state = make_run(["palindromes", "anagrams"], current_index=1)
        generator.advance(state)

        assert state.current_index == 0
        assert state.mini_curriculum_complete is True
        assert len(state.queue) == len(list(catalog.iter_nodes()))

    def test_never_repeats_served_subtopic(self, generator, make_run):
        state = make_run(["palindromes", "palindromes", "anagrams", "string-slices"])
        generator.advance(state)

        assert state.current_index == 1
        assert state.queue[1].subtopic_id == "anagrams"
        assert state.queue[2].subtopic_id == "palindromes"

    def test_repeat_kept_when_no_alternative(self, generator, make_run):
        state = make_run(["palindromes", "palindromes", "palindromes"])
        generator.advance(state)
        assert state.queue[1].subtopic_id == "palindromes"

    def test_regenerated_queue_does_not_open_with_last_served(self, catalog, make_run):
        for seed in range(10):
            generator = QueueGenerator(catalog, rng=random.Random(seed))
            state = make_run(["anagrams"])
            generator.advance(state)
            assert state.queue[0].subtopic_id != "anagrams"

    def test_upcoming(self, generator, make_run):
        state = make_run(["palindromes", "anagrams", "string-slices", "sliding-window"])
        assert subtopics(generator.upcoming(state, 2)) == ["anagrams", "string-slices"]
        assert generator.upcoming(state, 0) == []
        with pytest.raises(ValueError):
            generator.upcoming(state, -1)


class TestSkipAndJump:
    def test_skip_to_next_module(self, generator, make_run):
        state = make_run(["palindromes", "anagrams", "sliding-window", "string-slices"], streak=2)
        generator.skip_to_next_module(state)

        assert state.current_index == 2
        assert state.streak == 2

    def test_skip_regenerates_without_other_module(self, generator, make_run):
        state = make_run(["palindromes", "anagrams"])
        generator.skip_to_next_module(state)

        assert state.current_index == 0
        assert len(state.queue) == 6

    def test_jump_valid(self, generator, make_run):
        state = make_run(["palindromes", "anagrams", "string-slices"], streak=3)
        assert generator.jump_to(state, 2) is True
        assert state.current_index == 2
        assert state.streak == 3

    @pytest.mark.parametrize("index", [-1, 3, 99])
    def test_jump_invalid_leaves_state(self, generator, make_run, index):
        state = make_run(["palindromes", "anagrams", "string-slices"], current_index=1)
        before = state.model_copy(deep=True)

        assert generator.jump_to(state, index) is False
        assert state == before


class TestModuleNavigation:
    def test_groups_current_and_next_module(self, generator, make_run):
        state = make_run(
            ["palindromes", "anagrams", "sliding-window", "string-slices", "two-pointer-techniques"],
            current_index=1,
        )
        navigation = generator.module_navigation(state)

        assert [item.index for item in navigation.current_module] == [0, 1, 3]
        assert [item.status for item in navigation.current_module] == ["completed", "current", "upcoming"]
        assert [item.index for item in navigation.next_module] == [2, 4]
        assert navigation.current_module[1].is_current

    def test_no_next_module(self, generator, make_run):
        navigation = generator.module_navigation(make_run(["palindromes", "anagrams"]))
        assert navigation.next_module == []
        assert len(navigation.current_module) == 2
