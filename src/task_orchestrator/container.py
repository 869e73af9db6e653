"""Dependency injection container for the task-orchestrator application."""

from typing import Dict, Optional

from src.task_orchestrator.config import task_orchestrator_settings
from src.task_orchestrator.exceptions import TaskRunnerNotFoundError
from src.task_orchestrator.protocols import GroupClassifierProtocol, TaskRunnerProtocol


class DependencyContainer:
    """Container for managing application dependencies with lazy instantiation."""

    def __init__(self):
        """Initialize the container with empty caches."""
        self._group_classifier: Optional[GroupClassifierProtocol] = None
        self._task_runners: Dict[str, TaskRunnerProtocol] = {}

    def register_group_classifier(self, classifier: GroupClassifierProtocol) -> None:
        """Install the LLM-backed classifier used by file organization runs."""
        self._group_classifier = classifier

    def get_group_classifier(self) -> GroupClassifierProtocol:
        """
        Get the group classifier instance.

        Returns the mock classifier when USE_MOCK_CLASSIFIER=True and nothing
        else was registered.
        """
        if self._group_classifier is None:
            if not task_orchestrator_settings.use_mock_classifier:
                raise RuntimeError(
                    "No group classifier registered and USE_MOCK_CLASSIFIER is disabled."
                )
            from dev.mocks_clients import MockGroupClassifier

            self._group_classifier = MockGroupClassifier()
        return self._group_classifier

    def register_task_runner(self, runner: TaskRunnerProtocol) -> None:
        self._task_runners[runner.name] = runner

    def get_task_runner(self, name: str) -> TaskRunnerProtocol:
        """Get the runner registered under ``name``, building the built-in ones on demand."""
        if name not in self._task_runners:
            from src.task_orchestrator.file_organization.runner import (
                FileOrganizationTaskRunner,
            )

            if name != FileOrganizationTaskRunner.name:
                raise TaskRunnerNotFoundError(f"No task runner named {name!r}")
            self.register_task_runner(
                FileOrganizationTaskRunner(self.get_group_classifier())
            )
        return self._task_runners[name]


_container: Optional[DependencyContainer] = None


def get_container() -> DependencyContainer:
    """Return the process-wide dependency container."""
    global _container
    if _container is None:
        _container = DependencyContainer()
    return _container


def reset_container() -> None:
    """Drop the cached container; used by tests."""
    global _container
    _container = None
