"""Job queue settings: the Redis broker and the Celery queues task processes use."""

from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CelerySettings(BaseSettings):
    """
    Where Celery finds its broker and result backend, and how jobs are routed.

    The broker and backend URLs are assembled from the Redis host and port
    unless ``CELERY_BROKER_URL`` / ``CELERY_RESULT_BACKEND`` give them whole.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    redis_host: str = Field(
        default="redis",
        title="Redis Host",
        description="Hostname of the Redis server backing Celery.",
        alias="TASK_ORCHESTRATOR_REDIS_HOST",
    )
    redis_port: int = Field(
        default=6379,
        title="Redis Port",
        description="Port of the Redis server backing Celery.",
        alias="TASK_ORCHESTRATOR_REDIS_PORT",
    )
    broker_db: int = Field(
        default=0,
        ge=0,
        title="Broker Database",
        description="Redis database index holding the job queues.",
        alias="CELERY_BROKER_DB",
    )
    result_db: int = Field(
        default=1,
        ge=0,
        title="Result Database",
        description="Redis database index holding job results.",
        alias="CELERY_RESULT_DB",
    )
    broker_url_override: Optional[str] = Field(
        default=None,
        title="Broker URL",
        description="Complete broker URL; replaces the assembled Redis URL.",
        alias="CELERY_BROKER_URL",
    )
    result_backend_override: Optional[str] = Field(
        default=None,
        title="Result Backend URL",
        description="Complete result backend URL; replaces the assembled Redis URL.",
        alias="CELERY_RESULT_BACKEND",
    )

    # --- Routing ---
    default_queue: str = Field(
        default="task_processes",
        title="Default Queue",
        description="Queue for processes whose definition has no active queue type.",
        alias="CELERY_DEFAULT_QUEUE",
    )
    dispatch_queue: str = Field(
        default="dispatch",
        title="Dispatch Queue",
        description="Queue for dispatch and timeout sweep jobs.",
        alias="CELERY_DISPATCH_QUEUE",
    )

    # --- Limits ---
    task_time_limit_seconds: int = Field(
        default=600,
        ge=1,
        title="Task Time Limit",
        description="Hard limit after which a worker kills a job.",
        alias="CELERY_TASK_TIME_LIMIT",
    )
    task_soft_time_limit_seconds: int = Field(
        default=540,
        ge=1,
        title="Task Soft Time Limit",
        description="Limit at which a job is asked to stop; must be below the hard limit.",
        alias="CELERY_TASK_SOFT_TIME_LIMIT",
    )

    @property
    def celery_broker_url(self) -> str:
        if self.broker_url_override:
            return self.broker_url_override
        return f"redis://{self.redis_host}:{self.redis_port}/{self.broker_db}"

    @property
    def celery_result_backend(self) -> str:
        if self.result_backend_override:
            return self.result_backend_override
        return f"redis://{self.redis_host}:{self.redis_port}/{self.result_db}"

    @model_validator(mode="after")
    def validate_time_limits(self) -> "CelerySettings":
        if self.task_soft_time_limit_seconds >= self.task_time_limit_seconds:
            raise ValueError(
                "task_soft_time_limit_seconds must be smaller than task_time_limit_seconds"
            )
        return self
