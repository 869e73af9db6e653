"""Lifecycle transitions of task processes and roll-up into runs."""

import logging
from datetime import timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from src.task_orchestrator.config import task_orchestrator_settings
from src.task_orchestrator.db.models import TaskProcess, TaskRun, WorkflowRun
from src.task_orchestrator.db.models.mixins import as_utc, utcnow
from src.task_orchestrator.enums import TaskStatus

logger = logging.getLogger(__name__)


class TaskRunService:
    """Moves processes through their lifecycle and keeps parent runs consistent."""

    def __init__(self, db: Session, settings=None):
        self.db = db
        self.settings = settings or task_orchestrator_settings

    # --- Process transitions ---

    def start_process(
        self, task_process: TaskProcess, celery_task_id: Optional[str] = None
    ) -> None:
        task_process.started_at = utcnow()
        task_process.celery_task_id = celery_task_id
        logger.info(f"Started {task_process!r}")

    def complete_process(self, task_process: TaskProcess) -> None:
        task_process.completed_at = utcnow()
        logger.info(f"Completed {task_process!r}")

    def fail_process(self, task_process: TaskProcess, error: str) -> None:
        if task_process.started_at is None:
            task_process.started_at = utcnow()
        task_process.failed_at = utcnow()
        task_process.error = error
        logger.error(f"Failed {task_process!r}: {error}")

    def stop_process(self, task_process: TaskProcess) -> None:
        if task_process.started_at is None:
            task_process.started_at = utcnow()
        task_process.stopped_at = utcnow()
        logger.info(f"Stopped {task_process!r}")

    def restart_process(self, task_process: TaskProcess) -> None:
        """Put a timed-out process back in the queue."""
        task_process.restart_count = (task_process.restart_count or 0) + 1
        task_process.reset_lifecycle()
        logger.info(
            f"Restarting {task_process!r} (attempt {task_process.restart_count})"
        )

    # --- Retry / timeout policy ---

    def _max_retries(self, task_process: TaskProcess) -> int:
        definition = task_process.task_run.task_definition
        if definition is not None and definition.max_process_retries is not None:
            return definition.max_process_retries
        return self.settings.default_max_process_retries

    def _timeout_seconds(self, task_process: TaskProcess) -> int:
        definition = task_process.task_run.task_definition
        if definition is not None and definition.timeout_after_seconds:
            return definition.timeout_after_seconds
        return self.settings.default_timeout_after_seconds

    def can_retry(self, task_process: TaskProcess) -> bool:
        return (task_process.restart_count or 0) < self._max_retries(task_process)

    def is_finished(self, task_process: TaskProcess) -> bool:
        """Terminal and not waiting for another attempt."""
        status = task_process.compute_status()
        if status == TaskStatus.TIMEOUT:
            return not self.can_retry(task_process)
        return status.is_terminal

    def check_for_timed_out_processes(self, task_run: TaskRun) -> List[TaskProcess]:
        """Stamp timeout_at on running processes that exceeded their budget."""
        now = utcnow()
        timed_out = []
        for task_process in task_run.task_processes:
            if task_process.compute_status() != TaskStatus.RUNNING:
                continue
            deadline = as_utc(task_process.started_at) + timedelta(
                seconds=self._timeout_seconds(task_process)
            )
            if deadline < now:
                task_process.timeout_at = now
                timed_out.append(task_process)
                logger.warning(f"{task_process!r} timed out")
        return timed_out

    def ready_to_run(self, task_run: TaskRun) -> List[TaskProcess]:
        """Pending processes plus timed-out ones that still have retries left."""
        ready = []
        for task_process in task_run.task_processes:
            status = task_process.compute_status()
            if status == TaskStatus.PENDING:
                ready.append(task_process)
            elif status == TaskStatus.TIMEOUT and self.can_retry(task_process):
                self.restart_process(task_process)
                ready.append(task_process)
        return ready

    # --- Roll-up ---

    def check_processes(self, task_run: TaskRun) -> TaskStatus:
        """Derive the run's timestamps from the state of its processes."""
        processes = list(task_run.task_processes)
        task_run.process_count = len(processes)
        self.refresh_usage(task_run)

        if not processes:
            return task_run.refresh_status()

        now = utcnow()
        if task_run.started_at is None:
            task_run.started_at = now

        if not all(self.is_finished(p) for p in processes):
            task_run.failed_at = None
            task_run.stopped_at = None
            task_run.completed_at = None
        elif any(
            p.compute_status() in (TaskStatus.FAILED, TaskStatus.TIMEOUT)
            for p in processes
        ):
            task_run.failed_at = task_run.failed_at or now
            task_run.completed_at = None
        elif any(p.compute_status() == TaskStatus.STOPPED for p in processes):
            task_run.stopped_at = task_run.stopped_at or now
        else:
            task_run.completed_at = task_run.completed_at or now
            task_run.failed_at = None
            task_run.stopped_at = None

        status = task_run.refresh_status()
        if task_run.workflow_run is not None:
            self.check_task_runs(task_run.workflow_run)
        return status

    def refresh_usage(self, task_run: TaskRun) -> None:
        task_run.input_tokens = sum(p.input_tokens or 0 for p in task_run.task_processes)
        task_run.output_tokens = sum(
            p.output_tokens or 0 for p in task_run.task_processes
        )

    def check_task_runs(self, workflow_run: WorkflowRun) -> TaskStatus:
        """Roll task run states up into their workflow run."""
        task_runs = list(workflow_run.task_runs)
        if not task_runs:
            return workflow_run.refresh_status()

        now = utcnow()
        statuses = [task_run.compute_status() for task_run in task_runs]
        if any(status != TaskStatus.PENDING for status in statuses):
            workflow_run.started_at = workflow_run.started_at or now

        if not all(status.is_terminal for status in statuses):
            workflow_run.failed_at = None
            workflow_run.stopped_at = None
            workflow_run.completed_at = None
        elif TaskStatus.FAILED in statuses:
            workflow_run.failed_at = workflow_run.failed_at or now
            workflow_run.completed_at = None
        elif TaskStatus.STOPPED in statuses:
            workflow_run.stopped_at = workflow_run.stopped_at or now
        else:
            workflow_run.completed_at = workflow_run.completed_at or now
            workflow_run.failed_at = None
        return workflow_run.refresh_status()
