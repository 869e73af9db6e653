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
    text,
)
from sqlalchemy.orm import relationship

from src.task_orchestrator.db.database import Base
from src.task_orchestrator.db.models.mixins import StatusMixin, utcnow
from src.task_orchestrator.enums import FileOrganizationOperation, TaskStatus

_SINGLETON_OPERATIONS = ", ".join(
    f"'{operation.value}'" for operation in FileOrganizationOperation.singletons()
)


class TaskDefinition(Base):
    """Reusable configuration for a class of task."""

    __tablename__ = "task_definitions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    task_runner_name = Column(String(100), nullable=False, index=True)
    task_runner_config = Column(JSON, nullable=True)
    timeout_after_seconds = Column(Integer, nullable=True)
    max_process_retries = Column(Integer, nullable=True)
    task_queue_type_id = Column(
        Integer, ForeignKey("task_queue_types.id"), nullable=True, index=True
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    task_queue_type = relationship("TaskQueueType", back_populates="task_definitions")
    task_runs = relationship("TaskRun", back_populates="task_definition")

    def __repr__(self):
        return f"<TaskDefinition(id={self.id}, name={self.name!r}, runner={self.task_runner_name!r})>"


class TaskRun(StatusMixin, Base):
    """
    One execution of a TaskDefinition.

    The timestamps are rolled up from the child processes; ``status`` is a
    cache of compute_status() refreshed on every flush.
    """

    __tablename__ = "task_runs"

    id = Column(Integer, primary_key=True, index=True)
    task_definition_id = Column(
        Integer, ForeignKey("task_definitions.id"), nullable=False, index=True
    )
    workflow_run_id = Column(
        Integer, ForeignKey("workflow_runs.id"), nullable=True, index=True
    )
    workflow_node_id = Column(
        Integer, ForeignKey("task_workflow_nodes.id"), nullable=True
    )
    name = Column(String(255), nullable=True)
    status = Column(
        Enum(TaskStatus, name="task_status"),
        nullable=False,
        default=TaskStatus.PENDING,
        index=True,
    )
    started_at = Column(DateTime(timezone=True), nullable=True)
    stopped_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)
    input_tokens = Column(Integer, nullable=False, default=0)
    output_tokens = Column(Integer, nullable=False, default=0)
    process_count = Column(Integer, nullable=False, default=0)
    input_artifacts_count = Column(Integer, nullable=False, default=0)
    output_artifacts_count = Column(Integer, nullable=False, default=0)
    meta = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    task_definition = relationship("TaskDefinition", back_populates="task_runs")
    workflow_run = relationship("WorkflowRun", back_populates="task_runs")
    task_processes = relationship(
        "TaskProcess",
        back_populates="task_run",
        cascade="all, delete-orphan",
        order_by="TaskProcess.id",
    )

    def processes_for(self, operation) -> list:
        """Child processes tagged with the given operation."""
        value = getattr(operation, "value", operation)
        return [p for p in self.task_processes if p.operation == value]

    def __repr__(self):
        status = self.status.value if self.status else None
        return f"<TaskRun(id={self.id}, name={self.name!r}, status={status})>"


class TaskProcess(StatusMixin, Base):
    """The unit of work dispatched to a worker."""

    __tablename__ = "task_processes"
    __table_args__ = (
        Index(
            "uq_task_processes_run_singleton_operation",
            "task_run_id",
            "operation",
            unique=True,
            sqlite_where=text(f"operation IN ({_SINGLETON_OPERATIONS})"),
            postgresql_where=text(f"operation IN ({_SINGLETON_OPERATIONS})"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    task_run_id = Column(
        Integer,
        ForeignKey("task_runs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(255), nullable=True)
    operation = Column(String(100), nullable=True, index=True)
    activity = Column(String(500), nullable=True)
    meta = Column(JSON, nullable=True)
    error = Column(Text, nullable=True)
    status = Column(
        Enum(TaskStatus, name="task_status"),
        nullable=False,
        default=TaskStatus.PENDING,
        index=True,
    )
    restart_count = Column(Integer, nullable=False, default=0)
    dispatched_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    stopped_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)
    timeout_at = Column(DateTime(timezone=True), nullable=True)
    input_tokens = Column(Integer, nullable=False, default=0)
    output_tokens = Column(Integer, nullable=False, default=0)
    input_artifacts_count = Column(Integer, nullable=False, default=0)
    output_artifacts_count = Column(Integer, nullable=False, default=0)
    celery_task_id = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    task_run = relationship("TaskRun", back_populates="task_processes")

    def reset_lifecycle(self) -> None:
        """Clear every lifecycle timestamp so the process is Pending again."""
        self.dispatched_at = None
        self.started_at = None
        self.stopped_at = None
        self.completed_at = None
        self.failed_at = None
        self.timeout_at = None
        self.error = None

    def __repr__(self):
        status = self.status.value if self.status else None
        return f"<TaskProcess(id={self.id}, operation={self.operation!r}, status={status})>"
