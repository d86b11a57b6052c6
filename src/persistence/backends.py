"""
Persistence backends.

The scheduler stores opaque JSON strings by key. Three implementations:
- InMemoryBackend: dict-backed, for tests and throwaway sessions
- JsonFileBackend: one ``{key}.json`` file per key (~/.practice_scheduler/store)
- SqliteBackend: key/value table (~/.practice_scheduler/state.db)
"""

from __future__ import annotations

import re
import sqlite3
from pathlib import Path
from typing import Protocol, runtime_checkable

from loguru import logger

DEFAULT_DATA_DIR = Path.home() / ".practice_scheduler"

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


@runtime_checkable
class PersistenceBackend(Protocol):
    """Get/set-by-key storage over opaque documents."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> bool: ...

    def keys(self) -> list[str]: ...


# =============================================================================
# In-Memory
# =============================================================================


class InMemoryBackend:
    """Dict-backed backend; nothing survives the process."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self) -> list[str]:
        return list(self._data)


# =============================================================================
# JSON Files
# =============================================================================


class JsonFileBackend:
    """
    One JSON file per key.

    Keys are restricted to ``[A-Za-z0-9_.-]``; anything else raises
    ValueError rather than escaping the directory.
    """

    DEFAULT_DIR = DEFAULT_DATA_DIR / "store"

    def __init__(self, directory: Path | None = None):
        self.directory = Path(directory) if directory else self.DEFAULT_DIR
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not key or _UNSAFE_KEY_CHARS.search(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> str | None:
        filepath = self._path(key)
        if not filepath.exists():
            return None
        try:
            return filepath.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning(f"Cannot read {filepath}: {e}")
            return None

    def set(self, key: str, value: str) -> None:
        filepath = self._path(key)
        tmp = filepath.with_suffix(".json.tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(value)
        tmp.replace(filepath)

    def delete(self, key: str) -> bool:
        filepath = self._path(key)
        if filepath.exists():
            filepath.unlink()
            return True
        return False

    def keys(self) -> list[str]:
        return sorted(p.stem for p in self.directory.glob("*.json"))


# =============================================================================
# SQLite
# =============================================================================


class SqliteBackend:
    """Key/value table in a local SQLite database."""

    DEFAULT_DB_PATH = DEFAULT_DATA_DIR / "state.db"

    def __init__(self, db_path: Path | None = None):
        self.db_path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn: sqlite3.Connection | None = None
        self._init_schema()

        logger.info(f"SqliteBackend initialized at {self.db_path}")

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_schema(self) -> None:
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        self.conn.commit()

    def get(self, key: str) -> str | None:
        row = self.conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        self.conn.execute(
            """
            INSERT INTO kv_store (key, value, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (key, value),
        )
        self.conn.commit()

    def delete(self, key: str) -> bool:
        cursor = self.conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        self.conn.commit()
        return cursor.rowcount > 0

    def keys(self) -> list[str]:
        rows = self.conn.execute("SELECT key FROM kv_store ORDER BY key").fetchall()
        return [row["key"] for row in rows]

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None


def create_backend(kind: str, data_dir: Path | None = None) -> PersistenceBackend:
    """Build the backend named in settings (``json``, ``sqlite`` or ``memory``)."""
    base = Path(data_dir) if data_dir else DEFAULT_DATA_DIR
    if kind == "json":
        return JsonFileBackend(base / "store")
    if kind == "sqlite":
        return SqliteBackend(base / "state.db")
    if kind == "memory":
        return InMemoryBackend()
    raise ValueError(f"Unknown storage backend: {kind}")
