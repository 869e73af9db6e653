"""Cross-window conflict detection for comparison window results."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from src.task_orchestrator.config import file_organization_settings
from src.task_orchestrator.db.models import TaskRun
from src.task_orchestrator.enums import ArtifactCategory, FileOrganizationOperation
from src.task_orchestrator.file_organization.schemas import (
    FileAssignment,
    WindowMeta,
    WindowResult,
)
from src.task_orchestrator.services.artifact_service import ArtifactService

logger = logging.getLogger(__name__)


@dataclass
class LoadedWindow:
    """A comparison window with its (possibly missing) result."""

    window_start: int
    window_end: int
    files: List[FileAssignment]
    file_ids: Dict[int, int] = field(default_factory=dict)
    task_process_id: Optional[int] = None
    status: Optional[str] = None

    @property
    def window_range(self) -> str:
        return f"{self.window_start}-{self.window_end}"

    @property
    def page_numbers(self) -> List[int]:
        return sorted(self.file_ids)


@dataclass(frozen=True)
class PageAssignment:
    """One window's assignment of one page."""

    page_number: int
    window_range: str
    window_start: int
    window_end: int
    group_name: str
    confidence: int
    description: str = ""
    explanation: str = ""
    belongs_to_previous: Optional[int] = None
    file_id: Optional[int] = None


@dataclass(frozen=True)
class GroupCandidate:
    """A group a conflicting page could belong to, ranked by average confidence."""

    group_name: str
    avg_confidence: float
    windows: List[str]


@dataclass
class ConflictReport:
    """Pages partitioned into conflicting and consistent assignments."""

    conflicts: Dict[int, List[PageAssignment]]
    consistent: Dict[int, List[PageAssignment]]

    def candidates(self, page_number: int) -> List[GroupCandidate]:
        assignments = self.conflicts.get(page_number) or self.consistent.get(
            page_number, []
        )
        return rank_candidates(assignments)

    @property
    def conflict_pages(self) -> List[int]:
        return sorted(self.conflicts)


def rank_candidates(assignments: Iterable[PageAssignment]) -> List[GroupCandidate]:
    """Average confidence per group name, highest first; ties by name."""
    by_group: Dict[str, List[PageAssignment]] = {}
    for assignment in assignments:
        by_group.setdefault(assignment.group_name, []).append(assignment)

    candidates = [
        GroupCandidate(
            group_name=group_name,
            avg_confidence=round(
                sum(a.confidence for a in items) / len(items), 2
            ),
            windows=[a.window_range for a in items],
        )
        for group_name, items in by_group.items()
    ]
    return sorted(candidates, key=lambda c: (-c.avg_confidence, c.group_name))


class WindowComparisonAggregator:
    """
    Collects per-window results and detects pages the windows disagree on.

    The report only depends on the set of windows, never on the order they
    were added or completed in.
    """

    def __init__(self, windows: Iterable[LoadedWindow], settings=None):
        self.settings = settings or file_organization_settings
        self.windows = sorted(
            windows, key=lambda w: (w.window_start, w.window_end, w.task_process_id or 0)
        )

    def _confidence(self, assignment: FileAssignment) -> int:
        if assignment.group_name_confidence is None:
            return self.settings.default_confidence
        return assignment.group_name_confidence

    def assignments_by_page(self) -> Dict[int, List[PageAssignment]]:
        by_page: Dict[int, List[PageAssignment]] = {}
        for window in self.windows:
            for file in window.files:
                by_page.setdefault(file.page_number, []).append(
                    PageAssignment(
                        page_number=file.page_number,
                        window_range=window.window_range,
                        window_start=window.window_start,
                        window_end=window.window_end,
                        group_name=file.group_name or "",
                        confidence=self._confidence(file),
                        description=file.description,
                        explanation=file.group_explanation,
                        belongs_to_previous=file.belongs_to_previous,
                        file_id=window.file_ids.get(file.page_number),
                    )
                )

        for page_number, assignments in by_page.items():
            assignments.sort(
                key=lambda a: (a.window_start, a.window_end, a.group_name, -a.confidence)
            )
        return dict(sorted(by_page.items()))

    def conflict_report(self) -> ConflictReport:
        conflicts = {}
        consistent = {}
        for page_number, assignments in self.assignments_by_page().items():
            distinct = {a.group_name for a in assignments}
            if len(distinct) > 1:
                conflicts[page_number] = assignments
            else:
                consistent[page_number] = assignments
        logger.debug(
            f"Aggregated {len(self.windows)} windows: {len(conflicts)} conflicting pages, "
            f"{len(consistent)} consistent pages"
        )
        return ConflictReport(conflicts=conflicts, consistent=consistent)

    def page_analysis(self, page_number: int) -> List[PageAssignment]:
        return self.assignments_by_page().get(page_number, [])

    def group_pages(self, group_name: str) -> Dict[int, List[PageAssignment]]:
        """Pages any window put in the group (case-insensitive), with every assignment."""
        target = group_name.strip().lower()
        return {
            page_number: assignments
            for page_number, assignments in self.assignments_by_page().items()
            if any(a.group_name.lower() == target for a in assignments)
        }


def load_windows(db: Session, task_run: TaskRun) -> List[LoadedWindow]:
    """Read every comparison window of the run with its output artifact, if any."""
    artifact_service = ArtifactService(db)
    windows = []
    for task_process in task_run.processes_for(
        FileOrganizationOperation.COMPARISON_WINDOW
    ):
        meta = WindowMeta.model_validate(task_process.meta or {})
        files: List[FileAssignment] = []
        for artifact in artifact_service.list(task_process, ArtifactCategory.OUTPUT):
            result = WindowResult.model_validate(artifact.json_content or {})
            files.extend(result.files)
        windows.append(
            LoadedWindow(
                window_start=meta.window_start,
                window_end=meta.window_end,
                files=files,
                file_ids={f.page_number: f.file_id for f in meta.window_files},
                task_process_id=task_process.id,
                status=task_process.compute_status().value,
            )
        )
    return windows
