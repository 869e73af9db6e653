"""Tests for the lazily initialized database engine."""

import pytest

from src.task_orchestrator.db import database


@pytest.fixture
def fresh_factory(monkeypatch):
    """Reset the cached engine so settings are read again."""
    monkeypatch.setattr(database, "_engine", None)
    monkeypatch.setattr(database, "_SessionLocal", None)
    yield
    if database._engine is not None:
        database._engine.dispose()


class TestDatabase:
    def test_sqlite_engine_uses_configured_file(self, monkeypatch, tmp_path, fresh_factory):
        db_file = tmp_path / "orchestrator.sqlite3"
        monkeypatch.setenv("USE_SQLITE", "true")
        monkeypatch.setenv("SQLITE_FILE_PATH", str(db_file))

        engine = database.get_engine()

        assert engine.url.get_backend_name() == "sqlite"
        assert engine.url.database == str(db_file)

    def test_engine_is_created_once(self, monkeypatch, tmp_path, fresh_factory):
        monkeypatch.setenv("USE_SQLITE", "true")
        monkeypatch.setenv("SQLITE_FILE_PATH", str(tmp_path / "db.sqlite3"))

        assert database.get_engine() is database.get_engine()

    def test_get_db_closes_session(self, monkeypatch, tmp_path, fresh_factory):
        monkeypatch.setenv("USE_SQLITE", "true")
        monkeypatch.setenv("SQLITE_FILE_PATH", str(tmp_path / "db.sqlite3"))

        generator = database.get_db()
        session = next(generator)
        assert session.bind is database.get_engine()
        generator.close()
