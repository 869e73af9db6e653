"""Database tests for the task orchestration models."""

from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from src.task_orchestrator.db.models import TaskProcess
from src.task_orchestrator.enums import FileOrganizationOperation, TaskStatus
from tests.fixtures.db.task_states import create_process, create_task_run


class TestStatusColumn:
    """The stored status follows the lifecycle timestamps on every flush."""

    def test_new_process_is_pending(self, db_session):
        task_run = create_task_run(db_session)
        task_process = create_process(db_session, task_run)

        assert task_process.status == TaskStatus.PENDING
        assert task_run.status == TaskStatus.PENDING

    def test_status_refreshed_on_flush(self, db_session):
        task_run = create_task_run(db_session)
        task_process = create_process(db_session, task_run)

        task_process.started_at = datetime.now(timezone.utc)
        db_session.flush()

        assert task_process.status == TaskStatus.RUNNING

    def test_saving_twice_is_stable(self, db_session):
        task_run = create_task_run(db_session)
        task_process = create_process(db_session, task_run, state="completed")

        task_process.name = "Renamed"
        db_session.commit()
        first = task_process.status
        task_process.name = "Renamed again"
        db_session.commit()

        assert first == task_process.status == TaskStatus.COMPLETED

    def test_status_matches_compute_status(self, db_session):
        task_run = create_task_run(db_session)
        for state in ("pending", "running", "completed", "failed", "stopped", "timeout"):
            task_process = create_process(db_session, task_run, state=state)
            assert task_process.status == task_process.compute_status()


class TestSingletonOperations:
    """At most one merge and one of each resolution stage per task run."""

    def test_second_merge_is_rejected(self, db_session):
        task_run = create_task_run(db_session)
        create_process(
            db_session, task_run, operation=FileOrganizationOperation.MERGE.value
        )

        db_session.add(
            TaskProcess(
                task_run_id=task_run.id,
                operation=FileOrganizationOperation.MERGE.value,
            )
        )
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_merge_per_run_is_independent(self, db_session):
        first = create_task_run(db_session)
        second = create_task_run(db_session)

        create_process(db_session, first, operation=FileOrganizationOperation.MERGE.value)
        create_process(db_session, second, operation=FileOrganizationOperation.MERGE.value)

        assert db_session.query(TaskProcess).count() == 2

    def test_many_windows_are_allowed(self, db_session):
        task_run = create_task_run(db_session)
        for _ in range(3):
            create_process(
                db_session,
                task_run,
                operation=FileOrganizationOperation.COMPARISON_WINDOW.value,
            )

        db_session.refresh(task_run)
        windows = task_run.processes_for(FileOrganizationOperation.COMPARISON_WINDOW)
        assert len(windows) == 3
