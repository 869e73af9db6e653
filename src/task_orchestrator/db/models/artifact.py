from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from src.task_orchestrator.db.database import Base
from src.task_orchestrator.db.models.mixins import utcnow
from src.task_orchestrator.enums import ArtifactCategory


class Artifact(Base):
    """Immutable content produced or consumed by a task process."""

    __tablename__ = "artifacts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=True)
    text_content = Column(Text, nullable=True)
    json_content = Column(JSON, nullable=True)
    meta = Column(JSON, nullable=True)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Links are removed with bulk deletes; the collection is read-only
    links = relationship("Artifactable", viewonly=True)

    def __repr__(self):
        return f"<Artifact(id={self.id}, name={self.name!r})>"


class Artifactable(Base):
    """
    Polymorphic link between an artifact and the run or process that owns it.

    ``artifactable_type`` holds the owner's table name.
    """

    __tablename__ = "artifactables"
    __table_args__ = (
        Index(
            "ix_artifactables_owner",
            "artifactable_type",
            "artifactable_id",
            "category",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    artifact_id = Column(
        Integer, ForeignKey("artifacts.id", ondelete="CASCADE"), nullable=False
    )
    artifactable_type = Column(String(100), nullable=False)
    artifactable_id = Column(Integer, nullable=False)
    category = Column(
        Enum(ArtifactCategory, name="artifact_category"),
        nullable=False,
        default=ArtifactCategory.OUTPUT,
    )
    task_process_id = Column(
        Integer, ForeignKey("task_processes.id", ondelete="SET NULL"), nullable=True
    )

    artifact = relationship("Artifact")

    def __repr__(self):
        return (
            f"<Artifactable(artifact_id={self.artifact_id}, "
            f"owner={self.artifactable_type}:{self.artifactable_id}, category={self.category.value})>"
        )
