"""Unit tests for the key/value persistence backends."""

import pytest

from src.persistence import (
    InMemoryBackend,
    JsonFileBackend,
    PersistenceBackend,
    SqliteBackend,
    create_backend,
)


@pytest.fixture(params=["memory", "json", "sqlite"])
def any_backend(request, tmp_path):
    backend = create_backend(request.param, tmp_path)
    yield backend
    if isinstance(backend, SqliteBackend):
        backend.close()


class TestContract:
    def test_protocol(self, any_backend):
        assert isinstance(any_backend, PersistenceBackend)

    def test_get_missing(self, any_backend):
        assert any_backend.get("runs") is None

    def test_set_get_overwrite(self, any_backend):
        any_backend.set("runs", "[]")
        any_backend.set("runs", '[{"id": "a"}]')
        assert any_backend.get("runs") == '[{"id": "a"}]'

    def test_delete(self, any_backend):
        any_backend.set("analytics", "{}")
        assert any_backend.delete("analytics") is True
        assert any_backend.delete("analytics") is False
        assert any_backend.get("analytics") is None

    def test_keys(self, any_backend):
        any_backend.set("runs", "[]")
        any_backend.set("fingerprints", "[]")
        assert sorted(any_backend.keys()) == ["fingerprints", "runs"]


class TestJsonFileBackend:
    def test_one_file_per_key(self, tmp_path):
        backend = JsonFileBackend(tmp_path)
        backend.set("runs", "[]")

        assert (tmp_path / "runs.json").read_text(encoding="utf-8") == "[]"
        assert not list(tmp_path.glob("*.tmp"))

    def test_survives_reopen(self, tmp_path):
        JsonFileBackend(tmp_path).set("runs", "[1]")
        assert JsonFileBackend(tmp_path).get("runs") == "[1]"

    @pytest.mark.parametrize("key", ["", "../escape", "a/b", "with space"])
    def test_unsafe_keys_rejected(self, tmp_path, key):
        with pytest.raises(ValueError):
            JsonFileBackend(tmp_path).set(key, "x")


class TestSqliteBackend:
    def test_survives_reopen(self, tmp_path):
        db_path = tmp_path / "state.db"
        first = SqliteBackend(db_path)
        first.set("runs", "[1]")
        first.close()

        second = SqliteBackend(db_path)
        assert second.get("runs") == "[1]"
        second.close()


class TestCreateBackend:
    def test_memory_is_isolated(self):
        assert isinstance(create_backend("memory"), InMemoryBackend)

    def test_unknown_kind(self, tmp_path):
        with pytest.raises(ValueError):
            create_backend("redis", tmp_path)
