"""Dispatches ready task processes to the job queue."""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from src.task_orchestrator.config import task_orchestrator_settings
from src.task_orchestrator.db.models import TaskRun
from src.task_orchestrator.exceptions import SlotUnavailableError
from src.task_orchestrator.services.task_run_service import TaskRunService
from src.task_orchestrator.services.worker_slots import WorkerSlotManager

logger = logging.getLogger(__name__)

EnqueueFn = Callable[[int, Optional[str]], None]
RetryFn = Callable[[int], None]


def celery_enqueue(task_process_id: int, queue_name: Optional[str]) -> None:
    """Queue the process on Celery, routed to its queue type's queue when set."""
    from src.task_orchestrator.celery.tasks import run_task_process_task

    options = {"queue": queue_name} if queue_name else {}
    run_task_process_task.apply_async(args=[task_process_id], **options)


def celery_schedule_retry(task_run_id: int) -> None:
    """Dispatch the run again after ``SLOT_RETRY_COUNTDOWN_SECONDS``."""
    from src.task_orchestrator.celery.tasks import dispatch_task_run_task

    dispatch_task_run_task.apply_async(
        args=[task_run_id],
        countdown=task_orchestrator_settings.slot_retry_countdown_seconds,
    )


@dataclass
class DispatchResult:
    dispatched: List[int] = field(default_factory=list)
    deferred: List[int] = field(default_factory=list)

    @property
    def has_deferred(self) -> bool:
        return bool(self.deferred)


class TaskProcessDispatcher:
    """
    Reserves worker slots for ready processes and enqueues them.

    Reservation and commit happen first; jobs are only queued after the
    commit so a worker never sees a process whose dispatch is not visible yet.
    Processes deferred for lack of a slot stay Pending and the run is
    dispatched again later, whoever called ``dispatch``.
    """

    def __init__(
        self,
        db: Session,
        enqueue: Optional[EnqueueFn] = None,
        schedule_retry: Optional[RetryFn] = None,
    ):
        self.db = db
        self.enqueue = enqueue or celery_enqueue
        self.schedule_retry = schedule_retry or celery_schedule_retry
        self.task_run_service = TaskRunService(db)
        self.slots = WorkerSlotManager(db)

    def dispatch(self, task_run: TaskRun) -> DispatchResult:
        result = DispatchResult()
        queued: List[Tuple[int, Optional[str]]] = []

        self.task_run_service.check_for_timed_out_processes(task_run)
        for task_process in self.task_run_service.ready_to_run(task_run):
            try:
                queue_type = self.slots.reserve_slot(task_process)
            except SlotUnavailableError as e:
                logger.info(f"Deferring {task_process!r}: {e}")
                result.deferred.append(task_process.id)
                continue
            queue_name = queue_type.queue_name if queue_type else None
            queued.append((task_process.id, queue_name))
            result.dispatched.append(task_process.id)

        self.task_run_service.check_processes(task_run)
        self.db.commit()

        for task_process_id, queue_name in queued:
            self.enqueue(task_process_id, queue_name)

        if queued:
            logger.info(f"Dispatched {len(queued)} processes for {task_run!r}")
        if result.has_deferred:
            logger.info(
                f"{len(result.deferred)} processes of {task_run!r} waiting for a worker slot"
            )
            self.schedule_retry(task_run.id)
        return result
