"""Celery application configuration for background task processing."""

from celery import Celery

from src.task_orchestrator.config import celery_settings, task_orchestrator_settings

# Initialize Celery app with Redis broker
celery_app = Celery(
    "task_orchestrator",
    broker=celery_settings.celery_broker_url,
    backend=celery_settings.celery_result_backend,
    include=["src.task_orchestrator.celery.tasks"],
)

# Celery configuration
celery_app.conf.update(
    # Task execution settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Task time limits
    task_time_limit=celery_settings.task_time_limit_seconds,
    task_soft_time_limit=celery_settings.task_soft_time_limit_seconds,
    # Processes of a queue type are routed to its queue_name at enqueue time
    task_default_queue=celery_settings.default_queue,
    task_routes={
        "dispatch_task_run_task": {"queue": celery_settings.dispatch_queue},
        "check_timeouts_task": {"queue": celery_settings.dispatch_queue},
    },
    # Result backend settings
    result_expires=3600,  # Results expire after 1 hour
    # Retry settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # Worker settings
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
    # Periodic sweep for timed-out processes and runs waiting on slots
    beat_schedule={
        "check-timeouts": {
            "task": "check_timeouts_task",
            "schedule": float(task_orchestrator_settings.timeout_check_interval_seconds),
        },
    },
)
