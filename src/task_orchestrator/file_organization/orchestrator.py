"""Sequences the file organization stages of a task run."""

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.task_orchestrator.config import file_organization_settings
from src.task_orchestrator.db.models import TaskProcess, TaskRun
from src.task_orchestrator.enums import FileOrganizationOperation, TaskStatus
from src.task_orchestrator.file_organization.schemas import MergeMeta
from src.task_orchestrator.file_organization.windows import WindowProcessService
from src.task_orchestrator.services.dispatcher import TaskProcessDispatcher
from src.task_orchestrator.services.task_run_service import TaskRunService

logger = logging.getLogger(__name__)

Operation = FileOrganizationOperation

# Resolution stage -> MergeMeta field carrying its input
RESOLUTION_PAYLOADS = {
    Operation.LOW_CONFIDENCE_RESOLUTION: "low_confidence_files",
    Operation.NULL_GROUP_RESOLUTION: "null_groups_needing_llm",
    Operation.DUPLICATE_GROUP_RESOLUTION: "groups_for_deduplication",
}

PHASE_WINDOWS = "windows"
PHASE_MERGE = "merge"
PHASE_RESOLUTION = "resolution"

RESOLUTION_NAMES = {
    Operation.LOW_CONFIDENCE_RESOLUTION: "Low Confidence Resolution",
    Operation.NULL_GROUP_RESOLUTION: "Null Group Resolution",
    Operation.DUPLICATE_GROUP_RESOLUTION: "Duplicate Group Resolution",
}


class ResolutionOrchestrator:
    """
    Drives a task run through windows -> merge -> resolution stages.

    The merge is triggered by window completion events. Every window
    completion takes the run's row lock and counts the windows still
    outstanding; the completion that brings the count to zero creates the
    merge. A partial unique index on (task_run_id, operation) rejects any
    second merge that slips through.
    """

    def __init__(
        self,
        db: Session,
        dispatcher: Optional[TaskProcessDispatcher] = None,
        settings=None,
    ):
        self.db = db
        self.dispatcher = dispatcher or TaskProcessDispatcher(db)
        self.settings = settings or file_organization_settings
        self.task_run_service = TaskRunService(db)

    def processes(self, task_run: TaskRun, operation: Operation) -> List[TaskProcess]:
        self.db.flush()
        return (
            self.db.query(TaskProcess)
            .filter(
                TaskProcess.task_run_id == task_run.id,
                TaskProcess.operation == operation.value,
            )
            .order_by(TaskProcess.id)
            .all()
        )

    def window_processes(self, task_run: TaskRun) -> List[TaskProcess]:
        return self.processes(task_run, Operation.COMPARISON_WINDOW)

    def merge_process(self, task_run: TaskRun) -> Optional[TaskProcess]:
        processes = self.processes(task_run, Operation.MERGE)
        return processes[0] if processes else None

    def _lock(self, task_run: TaskRun) -> TaskRun:
        return (
            self.db.query(TaskRun)
            .filter(TaskRun.id == task_run.id)
            .with_for_update()
            .one()
        )

    def _commit_new_processes(self, processes: List[TaskProcess]) -> bool:
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.info(
                f"Stage processes {[p.operation for p in processes]} already created concurrently"
            )
            return False
        return True

    def remaining_windows(self, task_run: TaskRun) -> int:
        return sum(
            1
            for window in self.window_processes(task_run)
            if not self.task_run_service.is_finished(window)
        )

    def create_merge_process_if_ready(self, task_run: TaskRun) -> bool:
        """
        Create and dispatch the single merge process once every window is done.

        The merge process is inserted Pending and committed, then dispatched in
        the same call, so callers normally observe it Dispatched. It stays
        Pending only when its queue type has no free slot; the dispatcher then
        schedules a retry.

        Returns False without creating anything when a merge already exists,
        the run has no windows, a window is still outstanding, or a window
        ended unsuccessfully while merging over failed windows is disabled.
        """
        if self.merge_process(task_run) is not None:
            logger.debug(f"Merge process already exists for {task_run!r}")
            return False

        windows = self.window_processes(task_run)
        if not windows:
            logger.debug(f"No comparison windows for {task_run!r}")
            return False

        if not all(self.task_run_service.is_finished(w) for w in windows):
            return False

        unsuccessful = [
            w for w in windows if w.compute_status() != TaskStatus.COMPLETED
        ]
        if unsuccessful and not self.settings.allow_merge_with_failed_windows:
            logger.warning(
                f"Not merging {task_run!r}: {len(unsuccessful)} windows did not complete"
            )
            return False

        meta = MergeMeta(
            failed_windows=[
                f"{(w.meta or {}).get('window_start')}-{(w.meta or {}).get('window_end')}"
                for w in unsuccessful
            ]
        )
        merge_process = TaskProcess(
            task_run_id=task_run.id,
            name="Merge",
            operation=Operation.MERGE.value,
            activity="Merging comparison window results",
            meta=meta.model_dump(mode="json"),
        )
        self.db.add(merge_process)
        if not self._commit_new_processes([merge_process]):
            return False

        logger.info(f"Created merge process {merge_process.id} for {task_run!r}")
        self.db.refresh(task_run)
        self.dispatcher.dispatch(task_run)
        return True

    def on_window_completed(self, task_process: TaskProcess) -> bool:
        """Window done event: fire the merge once the last window is accounted for."""
        task_run = self._lock(task_process.task_run)
        remaining = self.remaining_windows(task_run)
        if remaining:
            logger.info(
                f"{task_process!r} finished; {remaining} windows remaining for {task_run!r}"
            )
            self.db.commit()
            return False
        return self.create_merge_process_if_ready(task_run)

    def create_resolution_processes(
        self, task_run: TaskRun, merge_process: Optional[TaskProcess] = None
    ) -> List[TaskProcess]:
        """One process per resolution stage whose merge payload is non-empty and not yet created."""
        merge_process = merge_process or self.merge_process(task_run)
        if merge_process is None:
            return []

        meta = MergeMeta.model_validate(merge_process.meta or {})
        created = []
        for operation, field_name in RESOLUTION_PAYLOADS.items():
            items = getattr(meta, field_name)
            if not items or self.processes(task_run, operation):
                continue
            resolution_process = TaskProcess(
                task_run_id=task_run.id,
                name=RESOLUTION_NAMES[operation],
                operation=operation.value,
                activity=f"Resolving {len(items)} items",
                meta={field_name: [item.model_dump(mode="json") for item in items]},
            )
            self.db.add(resolution_process)
            created.append(resolution_process)

        if not created:
            return []
        if not self._commit_new_processes(created):
            return []

        logger.info(
            f"Created {[p.operation for p in created]} resolution processes for {task_run!r}"
        )
        self.db.refresh(task_run)
        self.dispatcher.dispatch(task_run)
        return created

    def advance_to_next_phase(self, task_run: TaskRun) -> Optional[str]:
        """
        Move the run to its next stage.

        Returns the phase that was started, or None when the run is waiting
        on in-flight processes or has nothing left to do.
        """
        if not self.window_processes(task_run):
            windows = WindowProcessService(self.db, self.settings).create_window_processes(
                task_run
            )
            if not windows:
                return None
            self.db.commit()
            self.db.refresh(task_run)
            self.dispatcher.dispatch(task_run)
            return PHASE_WINDOWS

        merge_process = self.merge_process(task_run)
        if merge_process is None:
            if self.create_merge_process_if_ready(task_run):
                return PHASE_MERGE
            return None

        if merge_process.compute_status() == TaskStatus.COMPLETED:
            if self.create_resolution_processes(task_run, merge_process):
                return PHASE_RESOLUTION
        return None
