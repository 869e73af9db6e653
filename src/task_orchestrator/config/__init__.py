"""Configuration module for the task-orchestrator project."""

from .celery_settings import CelerySettings
from .db_settings import DBSettings
from .file_organization_settings import FileOrganizationSettings
from .task_orchestrator_settings import TaskOrchestratorSettings

# Singleton instances for direct access
task_orchestrator_settings = TaskOrchestratorSettings()
db_settings = DBSettings()
celery_settings = CelerySettings()
file_organization_settings = FileOrganizationSettings()


def get_settings() -> TaskOrchestratorSettings:
    """Return a freshly loaded application settings instance."""
    return TaskOrchestratorSettings()


__all__ = [
    # Classes
    "CelerySettings",
    "DBSettings",
    "FileOrganizationSettings",
    "TaskOrchestratorSettings",
    # Singleton instances
    "task_orchestrator_settings",
    "db_settings",
    "celery_settings",
    "file_organization_settings",
    "get_settings",
]
