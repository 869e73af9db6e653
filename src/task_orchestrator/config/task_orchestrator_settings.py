"""Main application configuration for the task-orchestrator project."""

from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TaskOrchestratorSettings(BaseSettings):
    """The configurable fields for the task-orchestrator application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    debug: bool = Field(
        default=False,
        title="Debug Mode",
        description="Enable mock client mode for development and testing.",
        alias="TASK_ORCHESTRATOR_DEBUG_MODE",
    )

    # --- Service Toggles ---
    use_sqlite: bool = Field(
        default=True,
        title="Use SQLite",
        description="Toggle between SQLite (True) and PostgreSQL (False) databases.",
        alias="USE_SQLITE",
    )
    sqlite_file_path: str = Field(
        default="test_db.sqlite3",
        title="SQLite File Path",
        description="Database file used when USE_SQLITE is enabled.",
        alias="SQLITE_FILE_PATH",
    )
    use_mock_classifier: bool = Field(
        default=True,
        title="Use Mock Classifier",
        description="Return the mocked group classifier instead of a registered LLM client.",
        alias="USE_MOCK_CLASSIFIER",
    )

    # --- Process lifecycle ---
    default_timeout_after_seconds: int = Field(
        default=600,
        title="Default Timeout",
        description="Seconds a process may run before it is marked as timed out "
        "when its task definition does not set a timeout.",
        alias="DEFAULT_TIMEOUT_AFTER_SECONDS",
    )
    default_max_process_retries: int = Field(
        default=3,
        title="Default Max Process Retries",
        description="Restarts allowed for a timed-out process when its task "
        "definition does not set a limit.",
        alias="DEFAULT_MAX_PROCESS_RETRIES",
    )
    slot_retry_countdown_seconds: int = Field(
        default=10,
        title="Slot Retry Countdown",
        description="Delay before a dispatch is retried after no worker slot was available.",
        alias="SLOT_RETRY_COUNTDOWN_SECONDS",
    )
    timeout_check_interval_seconds: int = Field(
        default=60,
        ge=1,
        title="Timeout Check Interval",
        description="How often Celery beat runs the timed-out process sweep.",
        alias="TIMEOUT_CHECK_INTERVAL_SECONDS",
    )

    @field_validator("debug", "use_sqlite", "use_mock_classifier", mode="before")
    @classmethod
    def parse_bool(cls, value: Any) -> bool:
        """Ensure toggles are parsed as booleans from strings."""
        if isinstance(value, str):
            return value.lower() in {"true", "1", "yes", "on"}
        return bool(value)
