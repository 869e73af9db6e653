"""CLI entrypoint for operating task runs."""

import logging
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from src.task_orchestrator.db.database import create_db_session
from src.task_orchestrator.db.models import TaskQueueType, TaskRun
from src.task_orchestrator.debug.service import FileOrganizationDebugService
from src.task_orchestrator.services.worker_slots import WorkerSlotManager

console = Console()


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Task orchestration operator commands."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO)


@cli.command("debug")
@click.argument("task_run_id", type=int)
@click.option("--window", "window_range", type=str, default=None, help="Show one window, e.g. 1-10.")
@click.option("--page", type=int, default=None, help="Show every window's assignment of a page.")
@click.option("--group", "group_name", type=str, default=None, help="Show the pages assigned to a group.")
@click.option("--mismatches", is_flag=True, help="Show pages the windows disagree on.")
@click.option("--dedup", is_flag=True, help="Show the groups forwarded to deduplication.")
@click.option("--rerun-merge", is_flag=True, help="Reset the merge process and dispatch it again.")
@click.option("--rerun-dedup", is_flag=True, help="Reset duplicate group resolution and dispatch it again.")
@click.option(
    "--reset-from-windows",
    is_flag=True,
    help="Delete merge and resolution stages and recreate the merge.",
)
def debug_command(
    task_run_id: int,
    window_range: Optional[str],
    page: Optional[int],
    group_name: Optional[str],
    mismatches: bool,
    dedup: bool,
    rerun_merge: bool,
    rerun_dedup: bool,
    reset_from_windows: bool,
) -> None:
    """Inspect or rerun a file organization task run."""
    db = create_db_session()
    try:
        task_run = db.get(TaskRun, task_run_id)
        if task_run is None:
            console.print(f"[red]TaskRun {task_run_id} not found[/red]")
            raise SystemExit(1)

        service = FileOrganizationDebugService(db, console=console)
        if rerun_merge:
            exit_code = service.rerun_merge(task_run)
        elif rerun_dedup:
            exit_code = service.rerun_dedup(task_run)
        elif reset_from_windows:
            exit_code = service.reset_from_windows(task_run)
        elif window_range:
            exit_code = service.show_window_detail(task_run, window_range)
        elif page is not None:
            exit_code = service.show_page_analysis(task_run, page)
        elif group_name:
            exit_code = service.show_group_pages(task_run, group_name)
        elif mismatches:
            exit_code = service.show_mismatches(task_run)
        elif dedup:
            exit_code = service.show_dedup(task_run)
        else:
            exit_code = service.show_overview(task_run)
    finally:
        db.close()

    if exit_code:
        raise SystemExit(exit_code)


@cli.command("start")
@click.argument("task_run_id", type=int)
def start_command(task_run_id: int) -> None:
    """Queue a task run for its first stage."""
    from src.task_orchestrator.celery.tasks import start_task_run_task

    start_task_run_task.delay(task_run_id)
    console.print(f"Queued TaskRun {task_run_id}")


@cli.command("slots")
def slots_command() -> None:
    """Show worker slot usage of every queue type."""
    db = create_db_session()
    try:
        slots = WorkerSlotManager(db)
        table = Table(title="Worker Slots")
        table.add_column("Queue type")
        table.add_column("Queue")
        table.add_column("Active")
        table.add_column("Running", justify="right")
        table.add_column("Max", justify="right")
        table.add_column("Available", justify="right")
        for queue_type in db.query(TaskQueueType).order_by(TaskQueueType.name).all():
            table.add_row(
                queue_type.name,
                queue_type.queue_name or "",
                "yes" if queue_type.is_active else "no",
                str(slots.running_workers_count(queue_type.id)),
                str(queue_type.max_workers),
                str(slots.available_slots(queue_type.id)),
            )
        console.print(table)
    finally:
        db.close()


if __name__ == "__main__":  # pragma: no cover
    cli()
