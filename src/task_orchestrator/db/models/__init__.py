"""SQLAlchemy models; importing this package registers every table on Base."""

from .artifact import Artifact, Artifactable
from .task import TaskDefinition, TaskProcess, TaskRun
from .task_queue_type import TaskQueueType
from .workflow import TaskWorkflow, TaskWorkflowConnection, TaskWorkflowNode, WorkflowRun

__all__ = [
    "Artifact",
    "Artifactable",
    "TaskDefinition",
    "TaskProcess",
    "TaskQueueType",
    "TaskRun",
    "TaskWorkflow",
    "TaskWorkflowConnection",
    "TaskWorkflowNode",
    "WorkflowRun",
]
