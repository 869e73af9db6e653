"""Attach, list and detach artifacts on task runs and task processes."""

import logging
from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from src.task_orchestrator.db.models import Artifact, Artifactable
from src.task_orchestrator.enums import ArtifactCategory

logger = logging.getLogger(__name__)

_COUNTER_COLUMNS = {
    ArtifactCategory.INPUT: "input_artifacts_count",
    ArtifactCategory.OUTPUT: "output_artifacts_count",
}


class ArtifactService:
    """Polymorphic artifact links keyed by the owner's table name and id."""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _owner_key(owner):
        return owner.__tablename__, owner.id

    def attach(
        self,
        owner,
        artifacts: Iterable[Artifact],
        category: ArtifactCategory = ArtifactCategory.OUTPUT,
        task_process_id: Optional[int] = None,
    ) -> None:
        owner_type, owner_id = self._owner_key(owner)
        for artifact in artifacts:
            if artifact.id is None:
                self.db.add(artifact)
                self.db.flush()
            self.db.add(
                Artifactable(
                    artifact_id=artifact.id,
                    artifactable_type=owner_type,
                    artifactable_id=owner_id,
                    category=category,
                    task_process_id=task_process_id,
                )
            )
        self.db.flush()
        self.update_relation_counter(owner, category)

    def list(
        self, owner, category: ArtifactCategory = ArtifactCategory.OUTPUT
    ) -> List[Artifact]:
        owner_type, owner_id = self._owner_key(owner)
        return (
            self.db.query(Artifact)
            .join(Artifactable, Artifactable.artifact_id == Artifact.id)
            .filter(
                Artifactable.artifactable_type == owner_type,
                Artifactable.artifactable_id == owner_id,
                Artifactable.category == category,
            )
            .order_by(Artifact.position, Artifact.id)
            .all()
        )

    def detach(
        self, owner, category: ArtifactCategory = ArtifactCategory.OUTPUT
    ) -> int:
        """Remove the owner's links of one category without deleting artifacts."""
        owner_type, owner_id = self._owner_key(owner)
        removed = (
            self.db.query(Artifactable)
            .filter(
                Artifactable.artifactable_type == owner_type,
                Artifactable.artifactable_id == owner_id,
                Artifactable.category == category,
            )
            .delete(synchronize_session=False)
        )
        self.db.flush()
        self.update_relation_counter(owner, category)
        return removed

    def delete_owned(
        self, owner, category: ArtifactCategory = ArtifactCategory.OUTPUT
    ) -> int:
        """
        Delete the owner's artifacts of one category along with every link to them.

        Links held by other owners (e.g. a task run that also lists a process
        output) are removed too and their counters recounted.
        """
        self.db.flush()
        artifacts = self.list(owner, category)
        if not artifacts:
            self.update_relation_counter(owner, category)
            return 0

        artifact_ids = [artifact.id for artifact in artifacts]
        affected = (
            self.db.query(Artifactable.artifactable_type, Artifactable.artifactable_id, Artifactable.category)
            .filter(Artifactable.artifact_id.in_(artifact_ids))
            .distinct()
            .all()
        )
        self.db.query(Artifactable).filter(
            Artifactable.artifact_id.in_(artifact_ids)
        ).delete(synchronize_session=False)
        self.db.query(Artifact).filter(Artifact.id.in_(artifact_ids)).delete(
            synchronize_session=False
        )
        for artifact in artifacts:
            self.db.expunge(artifact)
        self.db.flush()

        self.update_relation_counter(owner, category)
        for owner_type, owner_id, link_category in affected:
            other = self._load_owner(owner_type, owner_id)
            if other is not None:
                self.update_relation_counter(other, link_category)

        logger.info(
            f"Deleted {len(artifact_ids)} {category.value} artifacts of {owner!r}"
        )
        return len(artifact_ids)

    def update_relation_counter(self, owner, category: ArtifactCategory) -> int:
        """Recount the owner's cached artifact counter for one category."""
        column = _COUNTER_COLUMNS[category]
        if not hasattr(owner, column):
            return 0
        owner_type, owner_id = self._owner_key(owner)
        count = (
            self.db.query(func.count(Artifactable.id))
            .filter(
                Artifactable.artifactable_type == owner_type,
                Artifactable.artifactable_id == owner_id,
                Artifactable.category == category,
            )
            .scalar()
        )
        setattr(owner, column, count or 0)
        return count or 0

    def _load_owner(self, owner_type: str, owner_id: int):
        from src.task_orchestrator.db.models import TaskProcess, TaskRun

        for model in (TaskRun, TaskProcess):
            if model.__tablename__ == owner_type:
                return self.db.get(model, owner_id)
        return None
