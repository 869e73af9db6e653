"""Shared enumerations for task orchestration."""

from enum import Enum
from typing import FrozenSet


class TaskStatus(str, Enum):
    """Status shared by every state-bearing entity (workflow runs, task runs, processes)."""

    PENDING = "Pending"
    DISPATCHED = "Dispatched"
    RUNNING = "Running"
    STOPPED = "Stopped"
    COMPLETED = "Completed"
    TIMEOUT = "Timeout"
    FAILED = "Failed"

    @classmethod
    def terminal(cls) -> FrozenSet["TaskStatus"]:
        """Statuses after which an entity no longer changes on its own."""
        return frozenset({cls.STOPPED, cls.COMPLETED, cls.TIMEOUT, cls.FAILED})

    @classmethod
    def active(cls) -> FrozenSet["TaskStatus"]:
        """Statuses that occupy a worker slot."""
        return frozenset({cls.DISPATCHED, cls.RUNNING})

    @property
    def is_terminal(self) -> bool:
        return self in TaskStatus.terminal()


# Capability subsets: a WorkflowRun and TaskRun have no dispatch or timeout timestamps
TASK_RUN_STATUSES = frozenset(
    {
        TaskStatus.PENDING,
        TaskStatus.RUNNING,
        TaskStatus.STOPPED,
        TaskStatus.COMPLETED,
        TaskStatus.FAILED,
    }
)
WORKFLOW_RUN_STATUSES = TASK_RUN_STATUSES


class ArtifactCategory(str, Enum):
    """Role an artifact plays for the entity it is attached to."""

    INPUT = "input"
    OUTPUT = "output"


class FileOrganizationOperation(str, Enum):
    """Operation tags of the file organization pipeline, in pipeline order."""

    COMPARISON_WINDOW = "comparison_window"
    MERGE = "merge"
    LOW_CONFIDENCE_RESOLUTION = "low_confidence_resolution"
    NULL_GROUP_RESOLUTION = "null_group_resolution"
    DUPLICATE_GROUP_RESOLUTION = "duplicate_group_resolution"

    @classmethod
    def resolution_stages(cls) -> list:
        return [
            cls.LOW_CONFIDENCE_RESOLUTION,
            cls.NULL_GROUP_RESOLUTION,
            cls.DUPLICATE_GROUP_RESOLUTION,
        ]

    @classmethod
    def singletons(cls) -> list:
        """Operations that may exist at most once per task run."""
        return [cls.MERGE, *cls.resolution_stages()]


class BlankPageHandling(str, Enum):
    """What the merge does with pages no window gave a group name."""

    # Join the neighbouring group; differing neighbours go to null group resolution
    JOIN_PREVIOUS = "join_previous"
    CREATE_BLANK_GROUP = "create_blank_group"
    DISCARD = "discard"
