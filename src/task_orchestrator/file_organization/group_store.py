"""Reads and replaces the group artifacts that make up a task run's output."""

import logging
from typing import List

from sqlalchemy.orm import Session

from src.task_orchestrator.db.models import Artifact, TaskProcess, TaskRun
from src.task_orchestrator.db.models.mixins import as_utc
from src.task_orchestrator.enums import (
    ArtifactCategory,
    FileOrganizationOperation,
    TaskStatus,
)
from src.task_orchestrator.file_organization.schemas import MergedGroup
from src.task_orchestrator.services.artifact_service import ArtifactService

logger = logging.getLogger(__name__)


def group_artifact(group: MergedGroup, position: int) -> Artifact:
    summary = group.confidence_summary
    return Artifact(
        name=group.name,
        json_content=group.model_dump(mode="json"),
        meta={
            "group_name": group.name,
            "description": group.description,
            "file_count": len(group.files),
            "page_numbers": group.page_numbers,
            "confidence_summary": summary.model_dump() if summary else None,
        },
        position=position,
    )


class GroupArtifactStore:
    def __init__(self, db: Session):
        self.db = db
        self.artifacts = ArtifactService(db)

    def read_groups(self, owner) -> List[MergedGroup]:
        return [
            MergedGroup.model_validate(artifact.json_content or {})
            for artifact in self.artifacts.list(owner, ArtifactCategory.OUTPUT)
            if artifact.json_content
        ]

    def lock_task_run(self, task_run: TaskRun) -> TaskRun:
        """Serialize stages that rewrite the run's groups."""
        return (
            self.db.query(TaskRun)
            .filter(TaskRun.id == task_run.id)
            .with_for_update()
            .one()
        )

    def replace_groups(
        self, task_run: TaskRun, task_process: TaskProcess, groups: List[MergedGroup]
    ) -> List[Artifact]:
        """
        Store ``groups`` as the process output and as the run's current output.

        Previous run-level links are detached; the artifacts themselves stay
        with the process that produced them.
        """
        new_artifacts = [group_artifact(group, index) for index, group in enumerate(groups)]
        self.artifacts.attach(
            task_process,
            new_artifacts,
            ArtifactCategory.OUTPUT,
            task_process_id=task_process.id,
        )
        self.artifacts.detach(task_run, ArtifactCategory.OUTPUT)
        self.artifacts.attach(
            task_run,
            new_artifacts,
            ArtifactCategory.OUTPUT,
            task_process_id=task_process.id,
        )
        logger.info(
            f"{task_process!r} wrote {len(new_artifacts)} group artifacts for {task_run!r}"
        )
        return new_artifacts

    def restore_latest_groups(self, task_run: TaskRun) -> List[Artifact]:
        """
        Point the run's output at the newest group set still on record.

        Used after a stage's outputs were deleted; the run falls back to the
        last completed merge or resolution process that still owns artifacts.
        """
        producers = [
            p
            for p in task_run.task_processes
            if p.operation in {o.value for o in FileOrganizationOperation.singletons()}
            and p.compute_status() == TaskStatus.COMPLETED
        ]
        producers.sort(key=lambda p: (as_utc(p.completed_at), p.id))

        self.artifacts.detach(task_run, ArtifactCategory.OUTPUT)
        for producer in reversed(producers):
            artifacts = self.artifacts.list(producer, ArtifactCategory.OUTPUT)
            if artifacts:
                self.artifacts.attach(
                    task_run,
                    artifacts,
                    ArtifactCategory.OUTPUT,
                    task_process_id=producer.id,
                )
                return artifacts
        return []
