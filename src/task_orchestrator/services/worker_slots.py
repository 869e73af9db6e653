"""Worker capacity per task queue type."""

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from src.task_orchestrator.db.models import (
    TaskDefinition,
    TaskProcess,
    TaskQueueType,
    TaskRun,
)
from src.task_orchestrator.db.models.mixins import utcnow
from src.task_orchestrator.enums import TaskStatus
from src.task_orchestrator.exceptions import SlotUnavailableError

logger = logging.getLogger(__name__)


class WorkerSlotManager:
    """
    Capacity information and slot reservation for TaskQueueType pools.

    ``running_workers_count``, ``has_available_slots`` and ``available_slots``
    are point-in-time reads. ``reserve_slot`` is the only admission control:
    it locks the queue type row, counts every process holding a slot
    (Dispatched or Running) and stamps ``dispatched_at`` in the same
    transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def _count(self, queue_type_id: int, statuses) -> int:
        # Sessions run with autoflush off; pending status changes must be visible
        self.db.flush()
        count = (
            self.db.query(func.count(TaskProcess.id))
            .join(TaskRun, TaskProcess.task_run_id == TaskRun.id)
            .join(TaskDefinition, TaskRun.task_definition_id == TaskDefinition.id)
            .filter(
                TaskDefinition.task_queue_type_id == queue_type_id,
                TaskProcess.status.in_(list(statuses)),
            )
            .scalar()
        )
        return count or 0

    def _get_queue_type(self, queue_type_id: int) -> TaskQueueType:
        queue_type = self.db.get(TaskQueueType, queue_type_id)
        if queue_type is None:
            raise LookupError(f"TaskQueueType {queue_type_id} not found")
        return queue_type

    def running_workers_count(self, queue_type_id: int) -> int:
        return self._count(queue_type_id, [TaskStatus.RUNNING])

    def has_available_slots(self, queue_type_id: int) -> bool:
        queue_type = self._get_queue_type(queue_type_id)
        return self.running_workers_count(queue_type_id) < queue_type.max_workers

    def available_slots(self, queue_type_id: int) -> int:
        queue_type = self._get_queue_type(queue_type_id)
        return max(0, queue_type.max_workers - self.running_workers_count(queue_type_id))

    def queue_type_for(self, task_process: TaskProcess) -> Optional[TaskQueueType]:
        """Active queue type governing the process, if any."""
        definition = task_process.task_run.task_definition
        queue_type = definition.task_queue_type if definition else None
        if queue_type is None or not queue_type.is_active:
            return None
        return queue_type

    def reserve_slot(self, task_process: TaskProcess) -> Optional[TaskQueueType]:
        """
        Atomically reserve a worker slot for the process.

        Must be called inside the transaction that dispatches the process; the
        reservation becomes visible to other dispatchers on commit.

        Returns:
            The queue type the slot was taken from, or None when the process is
            not governed by an active queue type

        Raises:
            SlotUnavailableError: every slot of the queue type is taken
        """
        queue_type = self.queue_type_for(task_process)
        if queue_type is not None:
            # Serializes concurrent reservations on PostgreSQL; SQLite
            # serializes writers on its own.
            locked = (
                self.db.query(TaskQueueType)
                .filter(TaskQueueType.id == queue_type.id)
                .with_for_update()
                .one()
            )
            occupied = self._count(locked.id, TaskStatus.active())
            if occupied >= locked.max_workers:
                raise SlotUnavailableError(locked.name, locked.max_workers)
            logger.debug(
                f"Reserved slot {occupied + 1}/{locked.max_workers} on {locked.name} "
                f"for process {task_process.id}"
            )

        task_process.dispatched_at = utcnow()
        self.db.flush()
        return queue_type
