"""Unit tests for TaskRunService lifecycle transitions and roll-up."""

from datetime import datetime, timedelta, timezone

from src.task_orchestrator.db.models import WorkflowRun
from src.task_orchestrator.enums import TaskStatus
from src.task_orchestrator.services.task_run_service import TaskRunService
from tests.fixtures.db.task_states import (
    create_process,
    create_task_definition,
    create_task_run,
)


class TestProcessTransitions:
    """Tests for the process-level transitions."""

    def test_start_then_complete(self, db_session):
        task_run = create_task_run(db_session)
        task_process = create_process(db_session, task_run)
        service = TaskRunService(db_session)

        service.start_process(task_process, celery_task_id="abc")
        db_session.commit()
        assert task_process.status == TaskStatus.RUNNING
        assert task_process.celery_task_id == "abc"

        service.complete_process(task_process)
        db_session.commit()
        assert task_process.status == TaskStatus.COMPLETED

    def test_fail_records_error(self, db_session):
        task_run = create_task_run(db_session)
        task_process = create_process(db_session, task_run, state="running")

        TaskRunService(db_session).fail_process(task_process, "boom")
        db_session.commit()

        assert task_process.status == TaskStatus.FAILED
        assert task_process.error == "boom"

    def test_fail_before_start_still_terminal(self, db_session):
        task_run = create_task_run(db_session)
        task_process = create_process(db_session, task_run)

        TaskRunService(db_session).fail_process(task_process, "never ran")
        db_session.commit()

        assert task_process.status == TaskStatus.FAILED

    def test_stop(self, db_session):
        task_run = create_task_run(db_session)
        task_process = create_process(db_session, task_run, state="running")

        TaskRunService(db_session).stop_process(task_process)
        db_session.commit()

        assert task_process.status == TaskStatus.STOPPED

    def test_restart_resets_lifecycle(self, db_session):
        task_run = create_task_run(db_session)
        task_process = create_process(db_session, task_run, state="timeout")

        TaskRunService(db_session).restart_process(task_process)
        db_session.commit()

        assert task_process.status == TaskStatus.PENDING
        assert task_process.restart_count == 1
        assert task_process.started_at is None


class TestTimeoutPolicy:
    """Tests for timeout detection and retries."""

    def test_overdue_running_process_times_out(self, db_session):
        definition = create_task_definition(db_session, timeout_after_seconds=60)
        task_run = create_task_run(db_session, task_definition=definition)
        overdue = create_process(
            db_session,
            task_run,
            state="running",
            started_at=datetime.now(timezone.utc) - timedelta(minutes=5),
        )
        fresh = create_process(db_session, task_run, state="running")

        timed_out = TaskRunService(db_session).check_for_timed_out_processes(task_run)
        db_session.commit()

        assert [p.id for p in timed_out] == [overdue.id]
        assert overdue.status == TaskStatus.TIMEOUT
        assert fresh.status == TaskStatus.RUNNING

    def test_timed_out_process_is_retried_while_retries_remain(self, db_session):
        definition = create_task_definition(db_session, max_process_retries=1)
        task_run = create_task_run(db_session, task_definition=definition)
        task_process = create_process(db_session, task_run, state="timeout")
        service = TaskRunService(db_session)

        assert service.is_finished(task_process) is False
        assert [p.id for p in service.ready_to_run(task_run)] == [task_process.id]
        assert task_process.restart_count == 1

    def test_exhausted_timeout_is_finished(self, db_session):
        definition = create_task_definition(db_session, max_process_retries=1)
        task_run = create_task_run(db_session, task_definition=definition)
        task_process = create_process(db_session, task_run, state="timeout", restart_count=1)
        service = TaskRunService(db_session)

        assert service.is_finished(task_process) is True
        assert service.ready_to_run(task_run) == []

    def test_ready_to_run_skips_running_and_terminal(self, db_session):
        task_run = create_task_run(db_session)
        pending = create_process(db_session, task_run)
        create_process(db_session, task_run, state="running")
        create_process(db_session, task_run, state="completed")
        create_process(db_session, task_run, state="failed")

        ready = TaskRunService(db_session).ready_to_run(task_run)

        assert [p.id for p in ready] == [pending.id]


class TestRollUp:
    """Tests for check_processes and check_task_runs."""

    def test_all_completed_completes_run(self, db_session):
        task_run = create_task_run(db_session)
        create_process(db_session, task_run, state="completed")
        create_process(db_session, task_run, state="completed")
        db_session.refresh(task_run)

        status = TaskRunService(db_session).check_processes(task_run)
        db_session.commit()

        assert status == TaskStatus.COMPLETED
        assert task_run.status == TaskStatus.COMPLETED
        assert task_run.process_count == 2

    def test_unfinished_process_keeps_run_running(self, db_session):
        task_run = create_task_run(db_session)
        create_process(db_session, task_run, state="completed")
        create_process(db_session, task_run)
        db_session.refresh(task_run)

        assert TaskRunService(db_session).check_processes(task_run) == TaskStatus.RUNNING

    def test_failed_process_fails_run(self, db_session):
        task_run = create_task_run(db_session)
        create_process(db_session, task_run, state="completed")
        create_process(db_session, task_run, state="failed")
        db_session.refresh(task_run)

        assert TaskRunService(db_session).check_processes(task_run) == TaskStatus.FAILED

    def test_stopped_process_stops_run(self, db_session):
        task_run = create_task_run(db_session)
        create_process(db_session, task_run, state="completed")
        create_process(db_session, task_run, state="stopped")
        db_session.refresh(task_run)

        assert TaskRunService(db_session).check_processes(task_run) == TaskStatus.STOPPED

    def test_new_process_reopens_completed_run(self, db_session):
        task_run = create_task_run(db_session)
        create_process(db_session, task_run, state="completed")
        db_session.refresh(task_run)
        service = TaskRunService(db_session)
        service.check_processes(task_run)
        db_session.commit()

        create_process(db_session, task_run)
        db_session.refresh(task_run)

        assert service.check_processes(task_run) == TaskStatus.RUNNING
        assert task_run.completed_at is None

    def test_run_rolls_up_into_workflow_run(self, db_session):
        workflow_run = WorkflowRun(name="Nightly")
        db_session.add(workflow_run)
        db_session.commit()
        task_run = create_task_run(db_session, workflow_run_id=workflow_run.id)
        create_process(db_session, task_run, state="completed")
        db_session.refresh(task_run)

        TaskRunService(db_session).check_processes(task_run)
        db_session.commit()

        assert workflow_run.status == TaskStatus.COMPLETED
