"""
Adaptive practice scheduler.

Components:
- models: RunState aggregate and value types
- queue_generator: mini-curriculum and weakness-based queues
- difficulty: streak/failure driven difficulty state machine
- remediation: extra queue entries after sustained failure
- analytics: transition counters
- run_store: persistence, migration, import/export
- service: PracticeScheduler facade
"""

from .analytics import AdaptiveAnalytics, AnalyticsRecorder
from .difficulty import AttemptOutcome, DifficultyController
from .models import (
    CURRENT_SCHEMA_VERSION,
    AttemptResult,
    DifficultyLevel,
    QueueEntry,
    RunState,
    RunStatus,
    SubtopicStats,
    TuningConfig,
    TuningOverrides,
)
from .queue_generator import DEFAULT_ENTRY, ModuleNavigation, NavigationItem, QueueGenerator
from .remediation import RemediationInjector
from .run_store import RunStateStore, RunValidationError, ValidationReason
from .service import PracticeScheduler, Target

__all__ = [
    "CURRENT_SCHEMA_VERSION",
    "DEFAULT_ENTRY",
    "AdaptiveAnalytics",
    "AnalyticsRecorder",
    "AttemptOutcome",
    "AttemptResult",
    "DifficultyController",
    "DifficultyLevel",
    "ModuleNavigation",
    "NavigationItem",
    "PracticeScheduler",
    "QueueEntry",
    "QueueGenerator",
    "RemediationInjector",
    "RunState",
    "RunStateStore",
    "RunStatus",
    "RunValidationError",
    "SubtopicStats",
    "Target",
    "TuningConfig",
    "TuningOverrides",
    "ValidationReason",
]
