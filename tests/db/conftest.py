"""Database test specific fixtures."""

import pytest


@pytest.fixture(autouse=True)
def set_db_test_env(monkeypatch):
    """Setup environment variables for database tests."""
    monkeypatch.setenv("USE_SQLITE", "true")
    monkeypatch.setenv("USE_MOCK_CLASSIFIER", "true")
