"""Executes a single task process inside a worker."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from src.task_orchestrator.db.models import TaskProcess, TaskRun
from src.task_orchestrator.exceptions import TaskProcessNotFoundError, TaskRunNotFoundError
from src.task_orchestrator.services.dispatcher import TaskProcessDispatcher
from src.task_orchestrator.services.task_run_service import TaskRunService

logger = logging.getLogger(__name__)


class TaskProcessRunner:
    """
    Runs one process through its lifecycle.

    The process is marked started and committed before any work happens. On
    success it is completed and the runner's ``after_process`` hook may start
    the next stage; on failure the partial work is rolled back, the process is
    marked failed and the exception propagates to the caller. Either way the
    run is dispatched again so the freed slot is reused.
    """

    def __init__(self, db: Session, container=None, dispatcher: Optional[TaskProcessDispatcher] = None):
        if container is None:
            from src.task_orchestrator.container import get_container

            container = get_container()
        self.db = db
        self.container = container
        self.dispatcher = dispatcher or TaskProcessDispatcher(db)
        self.task_run_service = TaskRunService(db)

    def _runner_for(self, task_run: TaskRun):
        return self.container.get_task_runner(task_run.task_definition.task_runner_name)

    def start_task_run(self, task_run_id: int) -> TaskRun:
        """Let the task run's runner create its first processes and dispatch them."""
        task_run = self.db.get(TaskRun, task_run_id)
        if task_run is None:
            raise TaskRunNotFoundError(f"TaskRun {task_run_id} not found")
        runner = self._runner_for(task_run)
        runner.prepare_run(self.db, task_run)
        self.db.commit()
        return task_run

    def execute(self, task_process_id: int, celery_task_id: Optional[str] = None) -> TaskProcess:
        task_process = self.db.get(TaskProcess, task_process_id)
        if task_process is None:
            raise TaskProcessNotFoundError(f"TaskProcess {task_process_id} not found")
        if task_process.is_terminal:
            logger.info(f"Skipping {task_process!r}; already finished")
            return task_process

        task_run = task_process.task_run
        runner = self._runner_for(task_run)

        self.task_run_service.start_process(task_process, celery_task_id)
        self.task_run_service.check_processes(task_run)
        self.db.commit()

        try:
            runner.run_process(self.db, task_process)
            self.task_run_service.complete_process(task_process)
            self.task_run_service.check_processes(task_run)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            task_process = self.db.get(TaskProcess, task_process_id)
            self.task_run_service.fail_process(task_process, str(e))
            self.task_run_service.check_processes(task_process.task_run)
            self.db.commit()
            self._after_failure(runner, task_process)
            raise

        runner.after_process(self.db, task_process)
        # A slot was freed; let waiting processes of the run go
        self.dispatcher.dispatch(task_process.task_run)
        return task_process

    def _after_failure(self, runner, task_process: TaskProcess) -> None:
        """Let the runner react to the failure and hand the freed slot on."""
        try:
            runner.after_process(self.db, task_process)
            self.dispatcher.dispatch(task_process.task_run)
        except Exception:
            # The caller re-raises the process failure
            self.db.rollback()
            logger.exception(f"Follow-up after failed {task_process!r} did not complete")
