"""Status derivation from lifecycle timestamps."""

from datetime import datetime
from typing import Optional

from src.task_orchestrator.enums import TaskStatus


def compute_status(
    started_at: Optional[datetime],
    stopped_at: Optional[datetime],
    completed_at: Optional[datetime],
    failed_at: Optional[datetime],
    timeout_at: Optional[datetime] = None,
    dispatched_at: Optional[datetime] = None,
) -> TaskStatus:
    """
    Map the lifecycle timestamps of a run or process to its status.

    Evaluation order is fixed: an entity that never started is Pending
    (Dispatched once a worker slot was reserved for it); after that failure
    overrides timeout, timeout overrides stop and stop overrides completion.

    Args:
        started_at: When a worker picked the entity up
        stopped_at: When it was stopped by an operator or a stopped child
        completed_at: When it finished successfully
        failed_at: When it failed
        timeout_at: When it exceeded its time budget (processes only)
        dispatched_at: When a worker slot was reserved for it (processes only)

    Returns:
        Exactly one TaskStatus
    """
    if started_at is None:
        if dispatched_at is not None:
            return TaskStatus.DISPATCHED
        return TaskStatus.PENDING
    if failed_at is not None:
        return TaskStatus.FAILED
    if timeout_at is not None:
        return TaskStatus.TIMEOUT
    if stopped_at is not None:
        return TaskStatus.STOPPED
    if completed_at is None:
        return TaskStatus.RUNNING
    return TaskStatus.COMPLETED
