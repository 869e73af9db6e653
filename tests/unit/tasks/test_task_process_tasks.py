"""Unit tests for the task process Celery tasks."""

from unittest.mock import ANY, MagicMock, patch

import pytest

from src.task_orchestrator.celery.tasks import (
    check_timeouts_task,
    dispatch_task_run_task,
    run_task_process_task,
    start_task_run_task,
)
from src.task_orchestrator.exceptions import TaskRunNotFoundError
from tests.fixtures.db.task_states import create_process, create_task_run


@pytest.fixture
def celery_eager_mode():
    """Configure Celery to run tasks synchronously in eager mode."""
    from src.task_orchestrator.celery.app import celery_app

    celery_app.conf.update(task_always_eager=True, task_eager_propagates=True)
    yield celery_app
    celery_app.conf.update(task_always_eager=False, task_eager_propagates=False)


class TestRunTaskProcessTask:
    """Tests for run_task_process_task."""

    @patch("src.task_orchestrator.celery.tasks.TaskProcessRunner")
    @patch("src.task_orchestrator.celery.tasks.get_db")
    def test_executes_process_with_celery_task_id(
        self, mock_get_db, mock_runner, celery_eager_mode
    ):
        db = MagicMock()
        mock_get_db.return_value = iter([db])

        run_task_process_task.delay(42)

        mock_runner.assert_called_once_with(db)
        mock_runner.return_value.execute.assert_called_once_with(42, celery_task_id=ANY)
        db.close.assert_called_once()

    @patch("src.task_orchestrator.celery.tasks.TaskProcessRunner")
    @patch("src.task_orchestrator.celery.tasks.get_db")
    def test_failure_propagates_and_closes_session(
        self, mock_get_db, mock_runner, celery_eager_mode
    ):
        db = MagicMock()
        mock_get_db.return_value = iter([db])
        mock_runner.return_value.execute.side_effect = RuntimeError("classifier down")

        with pytest.raises(RuntimeError, match="classifier down"):
            run_task_process_task.delay(42)

        db.close.assert_called_once()


class TestStartTaskRunTask:
    @patch("src.task_orchestrator.celery.tasks.TaskProcessRunner")
    @patch("src.task_orchestrator.celery.tasks.get_db")
    def test_starts_run(self, mock_get_db, mock_runner, celery_eager_mode):
        db = MagicMock()
        mock_get_db.return_value = iter([db])

        start_task_run_task.delay(7)

        mock_runner.return_value.start_task_run.assert_called_once_with(7)
        db.close.assert_called_once()


class TestDispatchTaskRunTask:
    @patch("src.task_orchestrator.celery.tasks.TaskProcessDispatcher")
    @patch("src.task_orchestrator.celery.tasks.get_db")
    def test_dispatches_the_task_run(self, mock_get_db, mock_dispatcher, db_session):
        task_run_id = create_task_run(db_session).id
        mock_get_db.return_value = iter([db_session])

        dispatch_task_run_task(task_run_id)

        mock_dispatcher.assert_called_once_with(db_session)
        dispatched = mock_dispatcher.return_value.dispatch.call_args.args[0]
        assert dispatched.id == task_run_id

    @patch("src.task_orchestrator.celery.tasks.get_db")
    def test_unknown_task_run(self, mock_get_db, db_session):
        mock_get_db.return_value = iter([db_session])

        with pytest.raises(TaskRunNotFoundError):
            dispatch_task_run_task(999)


class TestCheckTimeoutsTask:
    @patch("src.task_orchestrator.celery.tasks.TaskProcessDispatcher")
    @patch("src.task_orchestrator.celery.tasks.get_db")
    def test_dispatches_only_running_runs(self, mock_get_db, mock_dispatcher, db_session):
        running_run = create_task_run(db_session)
        create_process(db_session, running_run, state="running")
        running_run.started_at = running_run.task_processes[0].started_at
        db_session.commit()
        create_task_run(db_session)
        mock_get_db.return_value = iter([db_session])

        check_timeouts_task()

        dispatched = [c.args[0].id for c in mock_dispatcher.return_value.dispatch.call_args_list]
        assert dispatched == [running_run.id]

    def test_sweep_is_on_the_beat_schedule(self):
        from src.task_orchestrator.celery.app import celery_app

        entry = celery_app.conf.beat_schedule["check-timeouts"]

        assert entry["task"] == "check_timeouts_task"
        assert entry["schedule"] == 60.0
