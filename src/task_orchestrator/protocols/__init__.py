"""Protocol definitions for core interfaces maintained in this package."""

from .group_classifier_protocol import (
    ClassifierResponse,
    ClassifierUsage,
    GroupClassifierProtocol,
)
from .task_runner_protocol import TaskRunnerProtocol

__all__ = [
    "ClassifierResponse",
    "ClassifierUsage",
    "GroupClassifierProtocol",
    "TaskRunnerProtocol",
]
