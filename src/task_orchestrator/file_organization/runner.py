"""Task runner executing the file organization operations."""

import logging
from typing import Dict, List

from sqlalchemy.orm import Session

from src.task_orchestrator.config import file_organization_settings
from src.task_orchestrator.db.models import Artifact, TaskProcess, TaskRun
from src.task_orchestrator.db.models.mixins import utcnow
from src.task_orchestrator.enums import (
    ArtifactCategory,
    FileOrganizationOperation,
    TaskStatus,
)
from src.task_orchestrator.exceptions import ValidationError
from src.task_orchestrator.file_organization.aggregator import load_windows
from src.task_orchestrator.file_organization.group_store import GroupArtifactStore
from src.task_orchestrator.file_organization.merge import FileOrganizationMergeService
from src.task_orchestrator.file_organization.orchestrator import ResolutionOrchestrator
from src.task_orchestrator.file_organization.resolution import (
    apply_page_decisions,
    apply_rename_decisions,
)
from src.task_orchestrator.file_organization.schemas import (
    DedupGroup,
    FileAssignment,
    GroupRenameDecision,
    LowConfidenceFile,
    MergeMeta,
    NullGroupFile,
    PageDecision,
    WindowMeta,
    WindowResult,
)
from src.task_orchestrator.protocols import ClassifierResponse, GroupClassifierProtocol
from src.task_orchestrator.services.artifact_service import ArtifactService

logger = logging.getLogger(__name__)

Operation = FileOrganizationOperation


class FileOrganizationTaskRunner:
    """Splits a run's pages into windows and runs each pipeline stage."""

    name = "File Organization"

    def __init__(self, classifier: GroupClassifierProtocol, settings=None):
        self.classifier = classifier
        self.settings = settings or file_organization_settings
        self.merge_service = FileOrganizationMergeService(self.settings)

    # --- TaskRunnerProtocol ---

    def prepare_run(self, db: Session, task_run: TaskRun) -> None:
        phase = ResolutionOrchestrator(db, settings=self.settings).advance_to_next_phase(
            task_run
        )
        if phase is None and not task_run.task_processes:
            # Nothing to organize
            now = utcnow()
            task_run.started_at = task_run.started_at or now
            task_run.completed_at = now
            db.commit()
            logger.info(f"{task_run!r} has fewer than two files; nothing to organize")

    def run_process(self, db: Session, task_process: TaskProcess) -> None:
        handlers = {
            Operation.COMPARISON_WINDOW.value: self.run_comparison_window,
            Operation.MERGE.value: self.run_merge,
            Operation.LOW_CONFIDENCE_RESOLUTION.value: self.run_low_confidence_resolution,
            Operation.NULL_GROUP_RESOLUTION.value: self.run_null_group_resolution,
            Operation.DUPLICATE_GROUP_RESOLUTION.value: self.run_duplicate_group_resolution,
        }
        handler = handlers.get(task_process.operation)
        if handler is None:
            raise ValidationError(
                f"Unknown file organization operation: {task_process.operation!r}"
            )
        handler(db, task_process)

    def after_process(self, db: Session, task_process: TaskProcess) -> None:
        orchestrator = ResolutionOrchestrator(db, settings=self.settings)
        if task_process.operation == Operation.COMPARISON_WINDOW.value:
            # Failed windows count down too; the merge policy decides if they block
            orchestrator.on_window_completed(task_process)
        elif (
            task_process.operation == Operation.MERGE.value
            and task_process.compute_status() == TaskStatus.COMPLETED
        ):
            orchestrator.create_resolution_processes(task_process.task_run, task_process)

    # --- Operations ---

    @staticmethod
    def _record_usage(task_process: TaskProcess, response: ClassifierResponse) -> None:
        task_process.input_tokens = (task_process.input_tokens or 0) + response.usage.input_tokens
        task_process.output_tokens = (
            task_process.output_tokens or 0
        ) + response.usage.output_tokens

    def run_comparison_window(self, db: Session, task_process: TaskProcess) -> None:
        window = WindowMeta.model_validate(task_process.meta or {})
        response = self.classifier.classify_window(window.window_files)
        self._record_usage(task_process, response)

        assignments = [FileAssignment.model_validate(item) for item in response.items]
        allowed = {f.page_number for f in window.window_files}
        for assignment in assignments:
            if assignment.page_number not in allowed:
                raise ValidationError(
                    f"Classifier returned page {assignment.page_number} outside window "
                    f"{window.window_range}"
                )

        result = WindowResult(
            window_start=window.window_start,
            window_end=window.window_end,
            files=assignments,
        )
        artifact = Artifact(
            name=f"Window {window.window_range}",
            json_content=result.model_dump(mode="json"),
            meta={
                "window_start": window.window_start,
                "window_end": window.window_end,
                "window_files": [f.model_dump() for f in window.window_files],
            },
        )
        ArtifactService(db).attach(
            task_process,
            [artifact],
            ArtifactCategory.OUTPUT,
            task_process_id=task_process.id,
        )

    def run_merge(self, db: Session, task_process: TaskProcess) -> None:
        task_run = task_process.task_run
        existing = MergeMeta.model_validate(task_process.meta or {})
        windows = [
            w for w in load_windows(db, task_run) if w.status == TaskStatus.COMPLETED.value
        ]
        result = self.merge_service.merge(windows)
        result.meta.failed_windows = existing.failed_windows
        task_process.meta = result.meta.model_dump(mode="json")

        GroupArtifactStore(db).replace_groups(task_run, task_process, result.groups)

    def _file_ids(self, items) -> Dict[int, int]:
        return {item.page_number: item.file_id for item in items if item.file_id}

    def _rewrite_groups(self, db: Session, task_process: TaskProcess, transform) -> None:
        store = GroupArtifactStore(db)
        task_run = store.lock_task_run(task_process.task_run)
        groups = transform(store.read_groups(task_run))
        store.replace_groups(task_run, task_process, groups)

    def run_low_confidence_resolution(self, db: Session, task_process: TaskProcess) -> None:
        files: List[LowConfidenceFile] = [
            LowConfidenceFile.model_validate(item)
            for item in (task_process.meta or {}).get("low_confidence_files", [])
        ]
        response = self.classifier.resolve_low_confidence(files)
        self._record_usage(task_process, response)
        decisions = [PageDecision.model_validate(item) for item in response.items]
        self._rewrite_groups(
            db,
            task_process,
            lambda groups: apply_page_decisions(
                groups,
                decisions,
                self._file_ids(files),
                self.settings.default_confidence,
            ),
        )

    def run_null_group_resolution(self, db: Session, task_process: TaskProcess) -> None:
        files: List[NullGroupFile] = [
            NullGroupFile.model_validate(item)
            for item in (task_process.meta or {}).get("null_groups_needing_llm", [])
        ]
        response = self.classifier.resolve_null_groups(files)
        self._record_usage(task_process, response)
        decisions = [PageDecision.model_validate(item) for item in response.items]
        self._rewrite_groups(
            db,
            task_process,
            lambda groups: apply_page_decisions(
                groups,
                decisions,
                self._file_ids(files),
                self.settings.default_confidence,
            ),
        )

    def run_duplicate_group_resolution(self, db: Session, task_process: TaskProcess) -> None:
        groups_for_deduplication: List[DedupGroup] = [
            DedupGroup.model_validate(item)
            for item in (task_process.meta or {}).get("groups_for_deduplication", [])
        ]
        response = self.classifier.deduplicate_groups(groups_for_deduplication)
        self._record_usage(task_process, response)
        decisions = [GroupRenameDecision.model_validate(item) for item in response.items]
        self._rewrite_groups(
            db,
            task_process,
            lambda groups: apply_rename_decisions(groups, decisions),
        )
