"""Shared test fixtures for all test categories."""

from typing import Generator, List, Optional, Tuple

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.task_orchestrator.config import TaskOrchestratorSettings
from src.task_orchestrator.db import models  # noqa: F401
from src.task_orchestrator.db.database import Base
from src.task_orchestrator.services.dispatcher import TaskProcessDispatcher


@pytest.fixture(scope="session")
def default_settings() -> TaskOrchestratorSettings:
    """Provide a default Settings instance for tests."""

    return TaskOrchestratorSettings()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def db_engine():
    """
    In-memory SQLite engine with every table created.

    StaticPool keeps a single connection so all sessions see the same data.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Generator[Session, None, None]:
    """
    Provides a session for each test function.

    The code under test commits, so isolation comes from a fresh in-memory
    database per test rather than from a rollback.
    """
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# =============================================================================
# Dispatch Fixtures
# =============================================================================


class RecordingEnqueue:
    """Stands in for the Celery queue; records what would have been enqueued."""

    def __init__(self):
        self.calls: List[Tuple[int, Optional[str]]] = []

    def __call__(self, task_process_id: int, queue_name: Optional[str]) -> None:
        self.calls.append((task_process_id, queue_name))

    @property
    def process_ids(self) -> List[int]:
        return [task_process_id for task_process_id, _ in self.calls]

    def pop_all(self) -> List[int]:
        ids = self.process_ids
        self.calls.clear()
        return ids


class RecordingRetry:
    """Stands in for the delayed re-dispatch; records the task runs it was asked for."""

    def __init__(self):
        self.task_run_ids: List[int] = []

    def __call__(self, task_run_id: int) -> None:
        self.task_run_ids.append(task_run_id)


@pytest.fixture
def enqueue() -> RecordingEnqueue:
    return RecordingEnqueue()


@pytest.fixture
def schedule_retry() -> RecordingRetry:
    return RecordingRetry()


@pytest.fixture
def dispatcher(db_session, enqueue, schedule_retry) -> TaskProcessDispatcher:
    return TaskProcessDispatcher(
        db_session, enqueue=enqueue, schedule_retry=schedule_retry
    )
