"""
Run State Store.

Persists every practice run as one JSON array under a single backend key.

Responsibilities:
- create / load / save / list / rename / delete runs
- migrate legacy shapes into the current schema on read
- export and import single runs as versioned documents

Corrupted data never raises out of this module: a run that cannot be
parsed reads as "not found" and is skipped in listings.
"""

from __future__ import annotations

import json
import secrets
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any

from loguru import logger
from pydantic import ValidationError

from src.core.clock import now_ms
from src.persistence import PersistenceBackend

from .difficulty import DifficultyController
from .models import (
    CURRENT_SCHEMA_VERSION,
    QueueEntry,
    RunState,
    RunStatus,
    TuningOverrides,
)
from .queue_generator import QueueGenerator

RUNS_KEY = "runs"
LEGACY_RUNS_KEY = "pytrix_auto_runs_v2"
LEGACY_RUN_PREFIX = "pytrix_auto_run_v2_"

EXPORT_FORMAT = "practice-run"
IMPORTED_SUFFIX = " (Imported)"

_CORRUPT_DATA_ERRORS = (json.JSONDecodeError, ValidationError, TypeError, KeyError, ValueError)


class ValidationReason(str, Enum):
    BAD_FORMAT = "bad_format"
    BAD_VERSION = "bad_version"
    MISSING_QUEUE = "missing_queue"
    MALFORMED_ENTRY = "malformed_entry"
    MALFORMED_DOCUMENT = "malformed_document"
    MALFORMED_JSON = "malformed_json"


@dataclass(frozen=True)
class RunValidationError:
    """Why an import document was rejected. Returned, never raised."""

    reason: ValidationReason
    detail: str

    def __str__(self) -> str:
        return f"{self.reason.value}: {self.detail}"


def generate_run_id() -> str:
    return f"run-{now_ms()}-{secrets.token_hex(3)}"


class RunStateStore:
    """
    CRUD, migration and import/export for RunState documents.

    All runs live in one collection; every write rewrites that collection.
    """

    def __init__(
        self,
        backend: PersistenceBackend,
        queue_generator: QueueGenerator,
        difficulty: DifficultyController,
    ):
        self.backend = backend
        self.queue_generator = queue_generator
        self.difficulty = difficulty

    @property
    def catalog(self):
        return self.queue_generator.catalog

    # =========================================================================
    # Collection I/O
    # =========================================================================

    def _read_raw(self) -> list[dict]:
        """Raw (migrated) documents, folding in any legacy storage first."""
        documents = self._read_list(RUNS_KEY)
        folded = self._fold_legacy(documents)

        migrated: list[dict] = []
        changed = folded
        for doc in documents:
            try:
                new_doc = self.migrate(doc)
            except _CORRUPT_DATA_ERRORS as e:
                logger.warning(f"Skipping unmigratable run document: {e}")
                migrated.append(doc)
                continue
            changed = changed or new_doc != doc
            migrated.append(new_doc)

        if changed:
            self._write_raw(migrated)
        return migrated

    def _read_list(self, key: str) -> list:
        raw = self.backend.get(key)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Corrupted run collection under '{key}', ignoring it: {e}")
            return []
        if not isinstance(data, list):
            logger.warning(f"Run collection under '{key}' is not a list, ignoring it")
            return []
        return data

    def _write_raw(self, documents: list[dict]) -> None:
        self.backend.set(RUNS_KEY, json.dumps(documents))

    def _fold_legacy(self, documents: list) -> bool:
        """
        Merge legacy storage into ``documents`` in place.

        Sources: the old collection key and one-key-per-run entries
        (``pytrix_auto_run_v2_<id>``). Existing ids win. Legacy keys are
        removed once merged.

        Returns:
            True if anything was folded in
        """
        known_ids = {doc.get("id") for doc in documents if isinstance(doc, dict)}
        legacy_keys: list[str] = []
        incoming: list[dict] = []

        if self.backend.get(LEGACY_RUNS_KEY) is not None:
            incoming.extend(d for d in self._read_list(LEGACY_RUNS_KEY) if isinstance(d, dict))
            legacy_keys.append(LEGACY_RUNS_KEY)

        for key in self.backend.keys():
            if not key.startswith(LEGACY_RUN_PREFIX):
                continue
            raw = self.backend.get(key)
            try:
                doc = json.loads(raw) if raw else None
            except json.JSONDecodeError as e:
                logger.error(f"Failed to migrate legacy run {key}: {e}")
                continue
            if isinstance(doc, dict):
                incoming.append(doc)
            legacy_keys.append(key)

        if not legacy_keys:
            return False

        merged = 0
        for doc in incoming:
            if doc.get("id") not in known_ids:
                documents.append(doc)
                known_ids.add(doc.get("id"))
                merged += 1

        self._write_raw(documents)
        for key in legacy_keys:
            self.backend.delete(key)

        logger.info(f"Migrated {merged} legacy run(s) into the run collection")
        return True

    def _parse(self, doc: Any) -> RunState | None:
        try:
            return RunState.model_validate(doc)
        except _CORRUPT_DATA_ERRORS as e:
            run_id = doc.get("id") if isinstance(doc, dict) else None
            logger.warning(f"Skipping corrupted run {run_id}: {e}")
            return None

    # =========================================================================
    # Migration
    # =========================================================================

    def migrate(self, raw: dict) -> dict:
        """
        Rewrite a stored run document into the current schema.

        Handles the v2 shape (``version``, ``topicQueue``,
        ``recentProblemTypes``, ``prefetchSize``), bare-string queues,
        and missing ``status`` / ``consecutiveFailures``. Idempotent.
        Documents from a newer schema raise ValueError and are kept as-is.
        """
        if not isinstance(raw, dict):
            raise TypeError(f"Run document must be an object, got {type(raw).__name__}")

        stored_version = raw.get("schemaVersion")
        if isinstance(stored_version, int) and stored_version > CURRENT_SCHEMA_VERSION:
            raise ValueError(
                f"Run {raw.get('id')} has schemaVersion {stored_version}, "
                f"newer than supported {CURRENT_SCHEMA_VERSION}; leaving it untouched"
            )

        doc = dict(raw)
        doc.pop("version", None)

        if "topicQueue" in doc:
            legacy_queue = doc.pop("topicQueue")
            doc.setdefault("queue", legacy_queue)

        if "recentProblemTypes" in doc:
            legacy_recent = doc.pop("recentProblemTypes")
            doc.setdefault("recentArchetypes", legacy_recent)

        if "prefetchSize" in doc:
            prefetch = doc.pop("prefetchSize")
            defaults = self.difficulty.tuning
            if isinstance(prefetch, int) and prefetch != defaults.prefetch_buffer_size:
                config = dict(doc.get("config") or {})
                config.setdefault("prefetchBufferSize", prefetch)
                doc["config"] = config

        doc["queue"] = self._migrate_queue(doc.get("queue"), doc.get("config"))

        index = doc.get("currentIndex", 0)
        if not isinstance(index, int) or not 0 <= index < len(doc["queue"]):
            logger.warning(f"Run {doc.get('id')}: resetting out-of-range currentIndex {index}")
            doc["currentIndex"] = 0

        doc.setdefault("status", RunStatus.ACTIVE.value)

        stats = doc.get("perSubtopicStats")
        if isinstance(stats, dict):
            doc["perSubtopicStats"] = {
                subtopic_id: (
                    {"consecutiveFailures": 0, **entry} if isinstance(entry, dict) else entry
                )
                for subtopic_id, entry in stats.items()
            }

        doc["schemaVersion"] = CURRENT_SCHEMA_VERSION
        return doc

    def _migrate_queue(self, queue: Any, config: Any) -> list:
        if not isinstance(queue, list):
            raise ValueError("Run document has no queue")

        if all(isinstance(item, dict) for item in queue) and queue:
            return queue

        entries: list = []
        for item in queue:
            if isinstance(item, str):
                node = self.catalog.get_node(item)
                if node is None:
                    logger.warning(f"Dropping unknown subtopic '{item}' from legacy queue")
                    continue
                entries.append(QueueEntry.from_node(node).model_dump(by_alias=True))
            else:
                entries.append(item)

        if not entries:
            overrides = TuningOverrides.model_validate(config) if isinstance(config, dict) else None
            size = self.difficulty.tuning.merged(overrides).mini_curriculum_size
            logger.warning("Legacy queue resolved to nothing, generating a fresh mini-curriculum")
            entries = [e.model_dump(by_alias=True) for e in self.queue_generator.generate_initial_queue(size)]
        return entries

    # =========================================================================
    # CRUD
    # =========================================================================

    def create(
        self,
        name: str | None = None,
        aggressive_progression: bool = False,
        remediation_mode: bool = True,
        config: TuningOverrides | dict | None = None,
    ) -> RunState:
        """Build a fresh run with the initial mini-curriculum and save it."""
        if isinstance(config, dict):
            config = TuningOverrides.model_validate(config)

        tuning = self.difficulty.tuning.merged(config)
        now = now_ms()
        state = RunState(
            id=generate_run_id(),
            name=(name or "").strip() or f"Run {date.today().isoformat()}",
            created_at=now,
            last_updated_at=now,
            queue=self.queue_generator.generate_initial_queue(tuning.mini_curriculum_size),
            aggressive_progression=aggressive_progression,
            remediation_mode=remediation_mode,
            config=config,
        )
        self.save(state)
        logger.info(f"Created run {state.id} ({len(state.queue)} queued subtopics)")
        return state

    def load(self, run_id: str) -> RunState | None:
        """Load a run, applying (and persisting) streak decay. None if missing or corrupt."""
        try:
            documents = self._read_raw()
        except _CORRUPT_DATA_ERRORS as e:
            logger.warning(f"Cannot read run collection: {e}")
            return None

        doc = next((d for d in documents if isinstance(d, dict) and d.get("id") == run_id), None)
        if doc is None:
            return None

        state = self._parse(doc)
        if state is None:
            return None

        if self.difficulty.apply_decay(state):
            self._upsert(state)
        return state

    def save(self, state: RunState) -> RunState:
        """Upsert by id, stamping lastUpdatedAt."""
        state.last_updated_at = now_ms()
        self._upsert(state)
        return state

    def _upsert(self, state: RunState) -> None:
        documents = self._read_raw()
        doc = state.to_document()
        for i, existing in enumerate(documents):
            if isinstance(existing, dict) and existing.get("id") == state.id:
                documents[i] = doc
                break
        else:
            documents.append(doc)
        self._write_raw(documents)

    def list_runs(self) -> list[RunState]:
        """All readable runs, newest first."""
        runs = [state for state in map(self._parse, self._read_raw()) if state is not None]
        return sorted(runs, key=lambda s: s.last_updated_at, reverse=True)

    def delete(self, run_id: str) -> bool:
        documents = self._read_raw()
        remaining = [d for d in documents if not (isinstance(d, dict) and d.get("id") == run_id)]
        if len(remaining) == len(documents):
            return False
        self._write_raw(remaining)
        logger.info(f"Deleted run {run_id}")
        return True

    def rename(self, run_id: str, name: str) -> RunState | None:
        name = name.strip()
        if not name:
            raise ValueError("Run name cannot be empty")
        state = self.load(run_id)
        if state is None:
            return None
        state.name = name
        return self.save(state)

    def set_status(self, run_id: str, status: RunStatus | str) -> RunState | None:
        status = RunStatus(status)
        state = self.load(run_id)
        if state is None:
            return None
        state.status = status
        return self.save(state)

    # =========================================================================
    # Export / Import
    # =========================================================================

    @staticmethod
    def export(state: RunState) -> dict[str, Any]:
        """Self-describing, versioned document for one run."""
        return {
            "format": EXPORT_FORMAT,
            "schemaVersion": CURRENT_SCHEMA_VERSION,
            "exportedAt": now_ms(),
            "run": state.to_document(),
        }

    def export_json(self, state: RunState) -> str:
        return json.dumps(self.export(state), indent=2)

    @staticmethod
    def validate_document(document: dict | str | bytes) -> RunState | RunValidationError:
        """Check an export document without touching storage."""
        if isinstance(document, (str, bytes)):
            try:
                document = json.loads(document)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                return RunValidationError(ValidationReason.MALFORMED_JSON, str(e))

        if not isinstance(document, dict):
            return RunValidationError(ValidationReason.MALFORMED_DOCUMENT, "Document must be a JSON object")

        if document.get("format") != EXPORT_FORMAT:
            return RunValidationError(
                ValidationReason.BAD_FORMAT,
                f"Expected format '{EXPORT_FORMAT}', got {document.get('format')!r}",
            )

        version = document.get("schemaVersion")
        if version != CURRENT_SCHEMA_VERSION:
            return RunValidationError(
                ValidationReason.BAD_VERSION,
                f"Expected schemaVersion {CURRENT_SCHEMA_VERSION}, got {version!r}",
            )

        run = document.get("run")
        if not isinstance(run, dict):
            return RunValidationError(ValidationReason.MALFORMED_DOCUMENT, "Missing 'run' object")

        run_version = run.get("schemaVersion", CURRENT_SCHEMA_VERSION)
        if run_version != CURRENT_SCHEMA_VERSION:
            return RunValidationError(
                ValidationReason.BAD_VERSION,
                f"Run schemaVersion {run_version!r} does not match {CURRENT_SCHEMA_VERSION}",
            )

        queue = run.get("queue")
        if not isinstance(queue, list) or not queue:
            return RunValidationError(ValidationReason.MISSING_QUEUE, "Run has no queue entries")

        for i, entry in enumerate(queue):
            if not isinstance(entry, dict):
                return RunValidationError(ValidationReason.MALFORMED_ENTRY, f"Queue entry {i} is not an object")
            for key in ("moduleId", "subtopicId"):
                value = entry.get(key)
                if not isinstance(value, str) or not value:
                    return RunValidationError(
                        ValidationReason.MALFORMED_ENTRY, f"Queue entry {i} has no valid '{key}'"
                    )

        try:
            return RunState.model_validate(run)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            return RunValidationError(ValidationReason.MALFORMED_DOCUMENT, problems)

    def import_document(self, document: dict | str | bytes) -> RunState | RunValidationError:
        """
        Validate and store an exported run.

        Id collisions: newer lastUpdatedAt replaces the stored run, older
        returns the stored run untouched, equal timestamps store a copy
        under a fresh id. Imported runs are paused. Nothing is written
        unless the whole document is valid.
        """
        result = self.validate_document(document)
        if isinstance(result, RunValidationError):
            logger.warning(f"Rejected run import: {result}")
            return result

        incoming = result
        incoming.status = RunStatus.PAUSED

        existing = next((s for s in self.list_runs() if s.id == incoming.id), None)
        if existing is not None:
            if incoming.last_updated_at < existing.last_updated_at:
                logger.info(f"Import of {incoming.id} skipped: stored run is newer")
                return existing
            if incoming.last_updated_at == existing.last_updated_at:
                original_id = incoming.id
                incoming.id = generate_run_id()
                incoming.name = f"{incoming.name}{IMPORTED_SUFFIX}"
                logger.info(f"Import of {original_id} stored as copy {incoming.id}")

        self._upsert(incoming)
        logger.info(f"Imported run {incoming.id}")
        return incoming
