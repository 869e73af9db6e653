"""Overlapping comparison windows over the pages of a task run."""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from src.task_orchestrator.config import file_organization_settings
from src.task_orchestrator.db.models import TaskProcess, TaskRun
from src.task_orchestrator.enums import ArtifactCategory, FileOrganizationOperation
from src.task_orchestrator.exceptions import ValidationError
from src.task_orchestrator.file_organization.schemas import WindowFile, WindowMeta
from src.task_orchestrator.services.artifact_service import ArtifactService

logger = logging.getLogger(__name__)

MIN_WINDOW_SIZE = 2
MAX_WINDOW_SIZE = 100


def validate_window_parameters(window_size: int, overlap: int) -> None:
    if window_size < MIN_WINDOW_SIZE or window_size > MAX_WINDOW_SIZE:
        raise ValidationError(
            f"Window size must be between {MIN_WINDOW_SIZE} and {MAX_WINDOW_SIZE}, got {window_size}"
        )
    if overlap < 1:
        raise ValidationError(f"Overlap must be at least 1, got {overlap}")
    if overlap >= window_size:
        raise ValidationError(
            f"Overlap ({overlap}) must be smaller than window size ({window_size})"
        )


def plan_windows(
    files: List[WindowFile], window_size: int, overlap: int
) -> List[WindowMeta]:
    """
    Split pages into overlapping windows.

    Pages are ordered by page number and consecutive windows share
    ``overlap`` pages. A trailing window with fewer than two pages is dropped
    since there is nothing to compare.

    Example: 10 pages, size 5, overlap 1 -> [1-5], [5-9], [9-10].
    """
    validate_window_parameters(window_size, overlap)
    ordered = sorted(files, key=lambda f: f.page_number)
    step = window_size - overlap
    windows = []

    for start in range(0, len(ordered), step):
        chunk = ordered[start : start + window_size]
        if len(chunk) < MIN_WINDOW_SIZE:
            break
        windows.append(
            WindowMeta(
                window_start=chunk[0].page_number,
                window_end=chunk[-1].page_number,
                window_files=chunk,
            )
        )
        if start + window_size >= len(ordered):
            break

    return windows


class WindowProcessService:
    """Creates the comparison_window processes of a task run."""

    def __init__(self, db: Session, settings=None):
        self.db = db
        self.settings = settings or file_organization_settings

    def files_for_task_run(self, task_run: TaskRun) -> List[WindowFile]:
        """Input artifacts of the run are the pages; meta.page_number wins over position."""
        artifacts = ArtifactService(self.db).list(task_run, ArtifactCategory.INPUT)
        files = []
        for artifact in artifacts:
            meta = artifact.meta or {}
            page_number = meta.get("page_number", artifact.position)
            files.append(WindowFile(file_id=artifact.id, page_number=int(page_number)))
        return files

    def create_window_processes(
        self,
        task_run: TaskRun,
        files: Optional[List[WindowFile]] = None,
        window_size: Optional[int] = None,
        overlap: Optional[int] = None,
    ) -> List[TaskProcess]:
        if window_size is None:
            window_size = self.settings.comparison_window_size
        if overlap is None:
            overlap = self.settings.comparison_window_overlap
        if files is None:
            files = self.files_for_task_run(task_run)

        windows = plan_windows(files, window_size, overlap)
        processes = []
        for window in windows:
            task_process = TaskProcess(
                task_run=task_run,
                name=f"Comparison Window (pages {window.window_range})",
                operation=FileOrganizationOperation.COMPARISON_WINDOW.value,
                activity=f"Comparing pages {window.window_range}",
                meta=window.model_dump(mode="json"),
            )
            self.db.add(task_process)
            processes.append(task_process)

        self.db.flush()
        logger.info(
            f"Created {len(processes)} comparison windows for {task_run!r} "
            f"({len(files)} files, size={window_size}, overlap={overlap})"
        )
        return processes
