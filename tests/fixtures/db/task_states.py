"""Factory functions for creating test task orchestration records."""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from src.task_orchestrator.db.models import (
    Artifact,
    TaskDefinition,
    TaskProcess,
    TaskQueueType,
    TaskRun,
)
from src.task_orchestrator.enums import ArtifactCategory, FileOrganizationOperation
from src.task_orchestrator.services.artifact_service import ArtifactService

FILE_ORGANIZATION = "File Organization"


def create_queue_type(db_session, **kwargs) -> TaskQueueType:
    queue_type = TaskQueueType(
        name=kwargs.get("name", "llm"),
        max_workers=kwargs.get("max_workers", 2),
        queue_name=kwargs.get("queue_name", "llm"),
        is_active=kwargs.get("is_active", True),
    )
    db_session.add(queue_type)
    db_session.commit()
    db_session.refresh(queue_type)
    return queue_type


def create_task_definition(db_session, **kwargs) -> TaskDefinition:
    definition = TaskDefinition(
        name=kwargs.get("name", "Organize files"),
        task_runner_name=kwargs.get("task_runner_name", FILE_ORGANIZATION),
        timeout_after_seconds=kwargs.get("timeout_after_seconds", 600),
        max_process_retries=kwargs.get("max_process_retries", 2),
        task_queue_type_id=kwargs.get("task_queue_type_id"),
    )
    db_session.add(definition)
    db_session.commit()
    db_session.refresh(definition)
    return definition


def create_task_run(db_session, **kwargs) -> TaskRun:
    """
    Create a pending task run, with a fresh task definition unless one is given.

    Args:
        db_session: SQLAlchemy database session
        **kwargs: Optional fields to override defaults; ``page_count`` attaches
            that many input page artifacts
    """
    definition = kwargs.get("task_definition") or create_task_definition(db_session)
    task_run = TaskRun(
        task_definition_id=definition.id,
        name=kwargs.get("name", "Organize test files"),
        workflow_run_id=kwargs.get("workflow_run_id"),
    )
    db_session.add(task_run)
    db_session.commit()

    page_count = kwargs.get("page_count", 0)
    if page_count:
        pages = [
            Artifact(name=f"page-{page}.pdf", meta={"page_number": page}, position=page)
            for page in range(1, page_count + 1)
        ]
        ArtifactService(db_session).attach(task_run, pages, ArtifactCategory.INPUT)
        db_session.commit()

    db_session.refresh(task_run)
    return task_run


def create_process(db_session, task_run: TaskRun, **kwargs) -> TaskProcess:
    """Create a process; ``state`` is one of pending, running, completed, failed, stopped, timeout."""
    now = datetime.now(timezone.utc)
    state = kwargs.get("state", "pending")
    task_process = TaskProcess(
        task_run_id=task_run.id,
        name=kwargs.get("name", "Test process"),
        operation=kwargs.get("operation"),
        meta=kwargs.get("meta"),
        restart_count=kwargs.get("restart_count", 0),
    )
    if state != "pending":
        task_process.started_at = kwargs.get("started_at", now - timedelta(seconds=5))
    if state == "completed":
        task_process.completed_at = now
    elif state == "failed":
        task_process.failed_at = now
    elif state == "stopped":
        task_process.stopped_at = now
    elif state == "timeout":
        task_process.timeout_at = now

    db_session.add(task_process)
    db_session.commit()
    db_session.refresh(task_process)
    return task_process


def create_window_process(
    db_session,
    task_run: TaskRun,
    window_start: int,
    window_end: int,
    groups: Optional[Dict[int, str]] = None,
    confidences: Optional[Dict[int, int]] = None,
    state: str = "completed",
    adjacency: Optional[Dict[int, int]] = None,
) -> TaskProcess:
    """
    Create a comparison window covering ``window_start``..``window_end``.

    When ``groups`` is given the window gets an output artifact assigning each
    page to its group; pages missing from ``groups`` default to "Group A".
    ``adjacency`` holds belongs_to_previous scores; pages without one score 1,
    except the first page of the window which has none.
    """
    pages = list(range(window_start, window_end + 1))
    meta = {
        "window_start": window_start,
        "window_end": window_end,
        "window_files": [{"file_id": 1000 + page, "page_number": page} for page in pages],
    }
    task_process = create_process(
        db_session,
        task_run,
        name=f"Comparison Window (pages {window_start}-{window_end})",
        operation=FileOrganizationOperation.COMPARISON_WINDOW.value,
        meta=meta,
        state=state,
    )

    if groups is not None:
        confidences = confidences or {}
        adjacency = adjacency or {}
        files: List[dict] = [
            {
                "page_number": page,
                "group_name": groups.get(page, "Group A"),
                "description": f"{groups.get(page, 'Group A')} documents",
                "group_name_confidence": confidences.get(page, 4),
                "belongs_to_previous": adjacency.get(
                    page, None if page == window_start else 1
                ),
            }
            for page in pages
        ]
        artifact = Artifact(
            name=f"Window {window_start}-{window_end}",
            json_content={
                "window_start": window_start,
                "window_end": window_end,
                "files": files,
            },
        )
        ArtifactService(db_session).attach(
            task_process, [artifact], ArtifactCategory.OUTPUT, task_process_id=task_process.id
        )
        db_session.commit()
        db_session.refresh(task_process)
    return task_process
