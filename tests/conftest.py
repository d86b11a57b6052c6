"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import random
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.curriculum import CurriculumCatalog  # noqa: E402
from src.persistence import InMemoryBackend  # noqa: E402
from src.scheduler import (  # noqa: E402
    AnalyticsRecorder,
    DifficultyController,
    PracticeScheduler,
    QueueGenerator,
    RemediationInjector,
    RunStateStore,
    TuningConfig,
)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


SMALL_CATALOG = {
    "version": "test",
    "modules": [
        {
            "id": "string-manipulation",
            "name": "String Manipulation",
            "order": 1,
            "subtopics": [
                {"id": "palindromes", "name": "Palindromes", "problemTypes": [
                    {"id": "valid-palindrome", "name": "Valid Palindrome", "description": "Check if text reads the same both ways"},
                ]},
                {"id": "basic-string-operations", "name": "Basic String Operations", "problemTypes": [
                    {"id": "reverse-string", "name": "Reverse String", "description": "Reverse the characters"},
                ]},
                {"id": "anagrams", "name": "Anagrams", "problemTypes": [
                    {"id": "group-anagrams", "name": "Group Anagrams", "description": "Group words by letters"},
                ]},
                {"id": "string-slices", "name": "String Slices", "problemTypes": [
                    {"id": "rotate-string", "name": "Rotate String", "description": "Rotate by k positions"},
                ]},
            ],
        },
        {
            "id": "arrays-and-lists",
            "name": "Arrays and Lists",
            "order": 2,
            "subtopics": [
                {"id": "two-pointer-techniques", "name": "Two-Pointer Techniques", "problemTypes": [
                    {"id": "two-sum-sorted", "name": "Two Sum Sorted", "description": "Pair with target total"},
                ]},
                {"id": "sliding-window", "name": "Sliding Window", "problemTypes": [
                    {"id": "max-window-sum", "name": "Max Window Sum", "description": ""},
                ]},
            ],
        },
    ],
}


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def catalog():
    """Six-subtopic catalog across two modules."""
    return CurriculumCatalog.from_dict(SMALL_CATALOG)


@pytest.fixture
def backend():
    return InMemoryBackend()


@pytest.fixture
def rng():
    """Seeded RNG so shuffles are reproducible."""
    return random.Random(1234)


@pytest.fixture
def analytics(backend):
    return AnalyticsRecorder(backend)


@pytest.fixture
def generator(catalog, rng):
    return QueueGenerator(catalog, rng=rng)


@pytest.fixture
def difficulty(analytics):
    return DifficultyController(TuningConfig(), analytics)


@pytest.fixture
def remediation(analytics):
    return RemediationInjector(analytics)


@pytest.fixture
def store(backend, generator, difficulty):
    return RunStateStore(backend, generator, difficulty)


@pytest.fixture
def scheduler(backend, catalog, rng):
    return PracticeScheduler.build(backend, catalog, rng=rng)


@pytest.fixture
def make_run(catalog):
    """Factory building a RunState whose queue follows the given subtopic ids."""
    from src.core.clock import now_ms
    from src.scheduler import QueueEntry, RunState

    def _make(subtopic_ids=None, **fields):
        if subtopic_ids is None:
            subtopic_ids = [node.subtopic_id for node in catalog.iter_nodes()]
        queue = [QueueEntry.from_node(catalog.get_node(sid)) for sid in subtopic_ids]
        now = now_ms()
        defaults = {
            "id": "run-test",
            "name": "Test Run",
            "created_at": now,
            "last_updated_at": now,
            "queue": queue,
        }
        defaults.update(fields)
        return RunState(**defaults)

    return _make
