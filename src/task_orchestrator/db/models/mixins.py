"""Shared model behaviour for state-bearing entities."""

import logging
from datetime import datetime, timezone

from sqlalchemy import event
from sqlalchemy.orm import Session

from src.task_orchestrator.enums import TaskStatus
from src.task_orchestrator.services.status import compute_status

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class StatusMixin:
    """
    Derives the cached ``status`` column from lifecycle timestamps.

    The status is never assigned directly; it is recomputed for every new or
    dirty instance right before the session flushes.
    """

    def compute_status(self) -> TaskStatus:
        return compute_status(
            started_at=self.started_at,
            stopped_at=getattr(self, "stopped_at", None),
            completed_at=self.completed_at,
            failed_at=self.failed_at,
            timeout_at=getattr(self, "timeout_at", None),
            dispatched_at=getattr(self, "dispatched_at", None),
        )

    def refresh_status(self) -> TaskStatus:
        status = self.compute_status()
        if self.status != status:
            logger.debug(f"{self!r} status {self.status} -> {status}")
        self.status = status
        return status

    @property
    def is_terminal(self) -> bool:
        return self.compute_status().is_terminal


@event.listens_for(Session, "before_flush")
def _refresh_statuses(session, flush_context, instances):
    for instance in list(session.new) + list(session.dirty):
        if isinstance(instance, StatusMixin):
            instance.refresh_status()
