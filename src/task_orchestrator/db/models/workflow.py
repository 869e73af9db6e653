from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import relationship

from src.task_orchestrator.db.database import Base
from src.task_orchestrator.db.models.mixins import StatusMixin, utcnow
from src.task_orchestrator.enums import TaskStatus


class TaskWorkflow(Base):
    """A reusable DAG of task definitions."""

    __tablename__ = "task_workflows"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    nodes = relationship(
        "TaskWorkflowNode",
        back_populates="task_workflow",
        cascade="all, delete-orphan",
        order_by="TaskWorkflowNode.id",
    )
    connections = relationship(
        "TaskWorkflowConnection",
        back_populates="task_workflow",
        cascade="all, delete-orphan",
    )
    workflow_runs = relationship("WorkflowRun", back_populates="task_workflow")

    def __repr__(self):
        return f"<TaskWorkflow(id={self.id}, name={self.name!r})>"


class TaskWorkflowNode(Base):
    """A task definition placed in a workflow DAG."""

    __tablename__ = "task_workflow_nodes"

    id = Column(Integer, primary_key=True, index=True)
    task_workflow_id = Column(
        Integer, ForeignKey("task_workflows.id", ondelete="CASCADE"), nullable=False
    )
    task_definition_id = Column(
        Integer, ForeignKey("task_definitions.id"), nullable=False
    )
    name = Column(String(255), nullable=False)

    task_workflow = relationship("TaskWorkflow", back_populates="nodes")
    task_definition = relationship("TaskDefinition")

    def __repr__(self):
        return f"<TaskWorkflowNode(id={self.id}, name={self.name!r})>"


class TaskWorkflowConnection(Base):
    """Directed edge between two workflow nodes."""

    __tablename__ = "task_workflow_connections"

    id = Column(Integer, primary_key=True, index=True)
    task_workflow_id = Column(
        Integer, ForeignKey("task_workflows.id", ondelete="CASCADE"), nullable=False
    )
    source_node_id = Column(
        Integer, ForeignKey("task_workflow_nodes.id", ondelete="CASCADE"), nullable=False
    )
    target_node_id = Column(
        Integer, ForeignKey("task_workflow_nodes.id", ondelete="CASCADE"), nullable=False
    )

    task_workflow = relationship("TaskWorkflow", back_populates="connections")
    source_node = relationship("TaskWorkflowNode", foreign_keys=[source_node_id])
    target_node = relationship("TaskWorkflowNode", foreign_keys=[target_node_id])


class WorkflowRun(StatusMixin, Base):
    """
    Top-level execution of a TaskWorkflow.

    Only its timestamps change after creation; the status is rolled up from
    its task runs. Rows are soft-deleted through ``deleted_at``.
    """

    __tablename__ = "workflow_runs"

    id = Column(Integer, primary_key=True, index=True)
    task_workflow_id = Column(
        Integer, ForeignKey("task_workflows.id"), nullable=True, index=True
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
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    task_workflow = relationship("TaskWorkflow", back_populates="workflow_runs")
    task_runs = relationship(
        "TaskRun", back_populates="workflow_run", order_by="TaskRun.id"
    )

    def __repr__(self):
        status = self.status.value if self.status else None
        return f"<WorkflowRun(id={self.id}, status={status})>"
