"""Exceptions raised by the orchestration core."""


class TaskOrchestratorError(Exception):
    """Base class for orchestration errors."""


class ValidationError(TaskOrchestratorError, ValueError):
    """Input rejected before any state was mutated."""


class SlotUnavailableError(TaskOrchestratorError):
    """No worker slot could be reserved for a queue type.

    The condition is transient: the process stays Pending and may be
    dispatched again once a running process finishes.
    """

    retryable = True

    def __init__(self, queue_type_name: str, max_workers: int):
        self.queue_type_name = queue_type_name
        self.max_workers = max_workers
        super().__init__(
            f"No worker slot available on queue type '{queue_type_name}' "
            f"(max_workers={max_workers})"
        )


class TaskRunNotFoundError(TaskOrchestratorError, LookupError):
    """Requested task run does not exist."""


class TaskProcessNotFoundError(TaskOrchestratorError, LookupError):
    """Requested task process does not exist."""


class TaskRunnerNotFoundError(TaskOrchestratorError, LookupError):
    """No task runner is registered under the requested name."""
