"""Key/value persistence backends for run documents and diversity history."""

from .backends import (
    InMemoryBackend,
    JsonFileBackend,
    PersistenceBackend,
    SqliteBackend,
    create_backend,
)

__all__ = [
    "InMemoryBackend",
    "JsonFileBackend",
    "PersistenceBackend",
    "SqliteBackend",
    "create_backend",
]
