"""Protocol for task runners executed by the worker."""

from __future__ import annotations

from typing import Protocol

from sqlalchemy.orm import Session

from src.task_orchestrator.db.models import TaskProcess, TaskRun


class TaskRunnerProtocol(Protocol):
    """A runner knows how to split a task run into processes and execute them."""

    name: str

    def prepare_run(self, db: Session, task_run: TaskRun) -> None:
        """Create the initial processes of a task run."""
        ...

    def run_process(self, db: Session, task_process: TaskProcess) -> None:
        """Execute one process, writing its output artifacts and meta."""
        ...

    def after_process(self, db: Session, task_process: TaskProcess) -> None:
        """React to a finished process, e.g. create the next pipeline stage."""
        ...
