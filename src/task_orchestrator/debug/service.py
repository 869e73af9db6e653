"""Introspection and manual rerun operations for file organization task runs."""

import logging
import re
from typing import List, Optional, Tuple

from rich.console import Console
from rich.table import Table
from sqlalchemy.orm import Session

from src.task_orchestrator.db.models import TaskProcess, TaskRun
from src.task_orchestrator.enums import ArtifactCategory, FileOrganizationOperation
from src.task_orchestrator.exceptions import ValidationError
from src.task_orchestrator.file_organization.aggregator import (
    PageAssignment,
    WindowComparisonAggregator,
    load_windows,
    rank_candidates,
)
from src.task_orchestrator.file_organization.group_store import GroupArtifactStore
from src.task_orchestrator.file_organization.orchestrator import ResolutionOrchestrator
from src.task_orchestrator.file_organization.schemas import MergeMeta
from src.task_orchestrator.services.artifact_service import ArtifactService
from src.task_orchestrator.services.dispatcher import TaskProcessDispatcher
from src.task_orchestrator.services.task_run_service import TaskRunService

logger = logging.getLogger(__name__)

Operation = FileOrganizationOperation

_WINDOW_RANGE = re.compile(r"^\s*(\d+)\s*-\s*(\d+)\s*$")


def parse_window_range(value: str) -> Tuple[int, int]:
    match = _WINDOW_RANGE.match(value or "")
    if not match:
        raise ValidationError(
            f"Invalid window range '{value}'. Expected format: START-END (e.g. 1-10)"
        )
    start, end = int(match.group(1)), int(match.group(2))
    if start > end:
        raise ValidationError(f"Invalid window range '{value}': start is after end")
    return start, end


class FileOrganizationDebugService:
    """
    Read-only views and destructive reruns for one task run.

    Every ``show_*`` and ``rerun_*`` method returns a process exit code.
    Reruns mutate inside a single transaction and only dispatch after it
    committed; any error rolls the whole rerun back.
    """

    def __init__(
        self,
        db: Session,
        console: Optional[Console] = None,
        dispatcher: Optional[TaskProcessDispatcher] = None,
    ):
        self.db = db
        self.console = console or Console()
        self.dispatcher = dispatcher or TaskProcessDispatcher(db)
        self.orchestrator = ResolutionOrchestrator(db, dispatcher=self.dispatcher)
        self.artifacts = ArtifactService(db)
        self.groups = GroupArtifactStore(db)
        self.task_run_service = TaskRunService(db)

    # --- Read-only views ---

    def _aggregator(self, task_run: TaskRun) -> WindowComparisonAggregator:
        return WindowComparisonAggregator(load_windows(self.db, task_run))

    def show_overview(self, task_run: TaskRun) -> int:
        self.console.print(
            f"[bold]TaskRun {task_run.id}[/bold] {task_run.name or ''} "
            f"status={task_run.compute_status().value} processes={task_run.process_count} "
            f"inputs={task_run.input_artifacts_count} outputs={task_run.output_artifacts_count}"
        )

        table = Table(title="Processes", show_lines=False)
        table.add_column("ID", justify="right")
        table.add_column("Operation")
        table.add_column("Name")
        table.add_column("Status")
        table.add_column("Outputs", justify="right")
        table.add_column("Error")
        for task_process in task_run.task_processes:
            table.add_row(
                str(task_process.id),
                task_process.operation or "",
                task_process.name or "",
                task_process.compute_status().value,
                str(task_process.output_artifacts_count or 0),
                (task_process.error or "")[:80],
            )
        self.console.print(table)

        merge_process = self.orchestrator.merge_process(task_run)
        if merge_process is not None and merge_process.meta:
            meta = MergeMeta.model_validate(merge_process.meta)
            self.console.print(
                f"Merge: {len(meta.low_confidence_files)} low confidence files, "
                f"{len(meta.null_groups_needing_llm)} null groups needing resolution, "
                f"{len(meta.groups_for_deduplication)} groups for deduplication"
            )

        groups = self.groups.read_groups(task_run)
        if groups:
            group_table = Table(title="Output Groups")
            group_table.add_column("Group")
            group_table.add_column("Pages")
            group_table.add_column("Avg", justify="right")
            group_table.add_column("Min", justify="right")
            group_table.add_column("Max", justify="right")
            for group in groups:
                summary = group.confidence_summary
                group_table.add_row(
                    group.name,
                    ", ".join(str(p) for p in group.page_numbers),
                    f"{summary.avg:.2f}" if summary else "-",
                    str(summary.min) if summary else "-",
                    str(summary.max) if summary else "-",
                )
            self.console.print(group_table)
        return 0

    def show_window_detail(self, task_run: TaskRun, window_range: str) -> int:
        try:
            start, end = parse_window_range(window_range)
        except ValidationError as e:
            self.console.print(f"[red]{e}[/red]")
            return 1

        window = next(
            (
                w
                for w in load_windows(self.db, task_run)
                if w.window_start == start and w.window_end == end
            ),
            None,
        )
        if window is None:
            self.console.print(f"[red]Window {start}-{end} not found[/red]")
            return 1

        table = Table(title=f"Window {window.window_range} ({window.status})")
        table.add_column("Page", justify="right")
        table.add_column("Group")
        table.add_column("Confidence", justify="right")
        table.add_column("Belongs to previous")
        table.add_column("Explanation")
        for file in sorted(window.files, key=lambda f: f.page_number):
            table.add_row(
                str(file.page_number),
                file.group_name or "(none)",
                str(file.group_name_confidence if file.group_name_confidence is not None else "-"),
                "" if file.belongs_to_previous is None else str(file.belongs_to_previous),
                file.group_explanation,
            )
        self.console.print(table)
        return 0

    def _assignment_table(self, title: str, assignments: List[PageAssignment]) -> Table:
        table = Table(title=title)
        table.add_column("Page", justify="right")
        table.add_column("Window")
        table.add_column("Group")
        table.add_column("Confidence", justify="right")
        table.add_column("Explanation")
        for assignment in assignments:
            table.add_row(
                str(assignment.page_number),
                assignment.window_range,
                assignment.group_name or "(none)",
                str(assignment.confidence),
                assignment.explanation,
            )
        return table

    def show_page_analysis(self, task_run: TaskRun, page_number: int) -> int:
        assignments = self._aggregator(task_run).page_analysis(page_number)
        if not assignments:
            self.console.print(f"[yellow]No window assigned page {page_number}[/yellow]")
            return 1
        self.console.print(self._assignment_table(f"Page {page_number}", assignments))
        for candidate in rank_candidates(assignments):
            self.console.print(
                f"  {candidate.group_name or '(none)'}: avg {candidate.avg_confidence:.2f} "
                f"in windows {', '.join(candidate.windows)}"
            )
        return 0

    def show_group_pages(self, task_run: TaskRun, group_name: str) -> int:
        pages = self._aggregator(task_run).group_pages(group_name)
        if not pages:
            self.console.print(f"[yellow]No pages assigned to group '{group_name}'[/yellow]")
            return 1
        assignments = [a for page in pages.values() for a in page]
        self.console.print(self._assignment_table(f"Group '{group_name}'", assignments))
        return 0

    def show_mismatches(self, task_run: TaskRun) -> int:
        report = self._aggregator(task_run).conflict_report()
        if not report.conflicts:
            self.console.print("[green]No group assignment conflicts found![/green]")
            return 0

        self.console.print(
            f"[bold]{len(report.conflicts)} pages with conflicting group assignments[/bold]"
        )
        for page_number in report.conflict_pages:
            table = Table(title=f"Page {page_number}")
            table.add_column("Group")
            table.add_column("Avg confidence", justify="right")
            table.add_column("Windows")
            for candidate in report.candidates(page_number):
                table.add_row(
                    candidate.group_name or "(none)",
                    f"{candidate.avg_confidence:.2f}",
                    ", ".join(candidate.windows),
                )
            self.console.print(table)
        return 0

    def show_dedup(self, task_run: TaskRun) -> int:
        merge_process = self.orchestrator.merge_process(task_run)
        if merge_process is None:
            self.console.print("[red]No merge process found[/red]")
            return 1
        meta = MergeMeta.model_validate(merge_process.meta or {})
        if not meta.groups_for_deduplication:
            self.console.print("No groups flagged for deduplication")
            return 0
        table = Table(title="Groups for deduplication")
        table.add_column("Group")
        table.add_column("Files", justify="right")
        table.add_column("Sample pages")
        table.add_column("Similar to")
        for group in meta.groups_for_deduplication:
            table.add_row(
                group.name,
                str(group.file_count),
                ", ".join(f"{s.page_number} ({s.confidence})" for s in group.sample_files),
                ", ".join(group.similar_groups),
            )
        self.console.print(table)
        return 0

    # --- Reruns ---

    def _delete_process(self, task_process: TaskProcess) -> None:
        self.artifacts.delete_owned(task_process, ArtifactCategory.OUTPUT)
        self.artifacts.detach(task_process, ArtifactCategory.INPUT)
        self.db.delete(task_process)

    def _reset_process(self, task_process: TaskProcess, meta: dict) -> None:
        self.artifacts.delete_owned(task_process, ArtifactCategory.OUTPUT)
        task_process.reset_lifecycle()
        task_process.meta = meta
        task_process.input_tokens = 0
        task_process.output_tokens = 0

    def _resolution_processes(self, task_run: TaskRun) -> List[TaskProcess]:
        return [
            p
            for operation in Operation.resolution_stages()
            for p in self.orchestrator.processes(task_run, operation)
        ]

    def _settle(self, task_run: TaskRun) -> None:
        self.db.flush()
        self.db.expire(task_run, ["task_processes"])
        self.task_run_service.check_processes(task_run)
        self.db.flush()

    def _finish(self, task_run: TaskRun) -> None:
        self._settle(task_run)
        self.db.commit()

    def rerun_merge(self, task_run: TaskRun) -> int:
        merge_process = self.orchestrator.merge_process(task_run)
        if merge_process is None:
            self.console.print("[red]No merge process found[/red]")
            return 1

        try:
            for task_process in self._resolution_processes(task_run):
                self._delete_process(task_process)
            failed_windows = MergeMeta.model_validate(merge_process.meta or {}).failed_windows
            self._reset_process(
                merge_process, MergeMeta(failed_windows=failed_windows).model_dump(mode="json")
            )
            self.artifacts.delete_owned(task_run, ArtifactCategory.OUTPUT)
            self._finish(task_run)
        except Exception:
            self.db.rollback()
            raise

        self.dispatcher.dispatch(task_run)
        self.console.print(f"[green]Merge process {merge_process.id} reset and dispatched[/green]")
        return 0

    def rerun_dedup(self, task_run: TaskRun) -> int:
        merge_process = self.orchestrator.merge_process(task_run)
        if merge_process is None:
            self.console.print("[red]No merge process found[/red]")
            return 1
        merge_meta = MergeMeta.model_validate(merge_process.meta or {})
        dedup_processes = self.orchestrator.processes(
            task_run, Operation.DUPLICATE_GROUP_RESOLUTION
        )
        if not dedup_processes:
            self.console.print("[red]No duplicate group resolution process found[/red]")
            return 1

        dedup_process = dedup_processes[0]
        try:
            self._reset_process(
                dedup_process,
                {
                    "groups_for_deduplication": [
                        g.model_dump(mode="json") for g in merge_meta.groups_for_deduplication
                    ]
                },
            )
            self.db.flush()
            self.groups.restore_latest_groups(task_run)
            self._finish(task_run)
        except Exception:
            self.db.rollback()
            raise

        self.dispatcher.dispatch(task_run)
        self.console.print(
            f"[green]Duplicate group resolution {dedup_process.id} reset and dispatched[/green]"
        )
        return 0

    def reset_from_windows(self, task_run: TaskRun) -> int:
        """
        Drop every stage after the windows and start again from the merge.

        Deletions and the new merge process are committed together; when the
        windows are not ready the deletions are committed on their own.
        """
        try:
            downstream = self._resolution_processes(task_run)
            merge_process = self.orchestrator.merge_process(task_run)
            if merge_process is not None:
                downstream.append(merge_process)
            for task_process in downstream:
                self._delete_process(task_process)
            self.artifacts.delete_owned(task_run, ArtifactCategory.OUTPUT)
            self._settle(task_run)
            output_count = task_run.output_artifacts_count

            created = self.orchestrator.create_merge_process_if_ready(task_run)
            if not created:
                self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.console.print(
            f"Deleted {len(downstream)} downstream processes; output artifacts: {output_count}"
        )
        if not created:
            self.console.print(
                "[yellow]Merge process was not created; windows are not ready[/yellow]"
            )
            return 1
        self.console.print("[green]Merge process created and dispatched[/green]")
        return 0
