"""Celery tasks executing and dispatching task processes."""

import logging

from sqlalchemy.orm import Session

from src.task_orchestrator.celery.app import celery_app
from src.task_orchestrator.db.database import get_db
from src.task_orchestrator.db.models import TaskRun
from src.task_orchestrator.enums import TaskStatus
from src.task_orchestrator.exceptions import TaskRunNotFoundError
from src.task_orchestrator.services.dispatcher import TaskProcessDispatcher
from src.task_orchestrator.services.task_process_runner import TaskProcessRunner

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="run_task_process_task")
def run_task_process_task(self, task_process_id: int) -> None:
    """
    Execute one task process.

    The process is marked started, its runner does the work, and on success
    the next pipeline stage may be created and dispatched. Failures are
    recorded on the process and re-raised for Celery to handle.

    Args:
        task_process_id: Database ID of the process to execute
    """
    db: Session = next(get_db())
    try:
        logger.info(f"Running task process {task_process_id}")
        TaskProcessRunner(db).execute(task_process_id, celery_task_id=self.request.id)
    finally:
        db.close()


@celery_app.task(bind=True, name="start_task_run_task")
def start_task_run_task(self, task_run_id: int) -> None:
    """Create the first processes of a task run and dispatch them."""
    db: Session = next(get_db())
    try:
        TaskProcessRunner(db).start_task_run(task_run_id)
    finally:
        db.close()


@celery_app.task(bind=True, name="dispatch_task_run_task")
def dispatch_task_run_task(self, task_run_id: int) -> None:
    """
    Dispatch the ready processes of a task run.

    Processes that could not get a worker slot are retried by the dispatcher
    after ``SLOT_RETRY_COUNTDOWN_SECONDS``.
    """
    db: Session = next(get_db())
    try:
        task_run = db.get(TaskRun, task_run_id)
        if task_run is None:
            raise TaskRunNotFoundError(f"TaskRun {task_run_id} not found")

        TaskProcessDispatcher(db).dispatch(task_run)
    finally:
        db.close()


@celery_app.task(name="check_timeouts_task")
def check_timeouts_task() -> None:
    """
    Periodic task re-dispatching running task runs.

    Timed-out processes are detected and retried, and processes still waiting
    for a worker slot get another chance. Scheduled by Celery beat every
    ``TIMEOUT_CHECK_INTERVAL_SECONDS``.
    """
    db: Session = next(get_db())
    try:
        running_runs = db.query(TaskRun).filter(TaskRun.status == TaskStatus.RUNNING).all()
        for task_run in running_runs:
            TaskProcessDispatcher(db).dispatch(task_run)
        logger.info(f"Checked {len(running_runs)} running task runs for timeouts")
    finally:
        db.close()
