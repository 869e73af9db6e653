from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from src.task_orchestrator.db.database import Base
from src.task_orchestrator.db.models.mixins import utcnow


class TaskQueueType(Base):
    """Named worker pool with a maximum number of concurrently running processes."""

    __tablename__ = "task_queue_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, unique=True)
    max_workers = Column(Integer, nullable=False, default=1)
    # Celery queue the processes are routed to
    queue_name = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    task_definitions = relationship("TaskDefinition", back_populates="task_queue_type")

    def __repr__(self):
        return f"<TaskQueueType(id={self.id}, name={self.name!r}, max_workers={self.max_workers})>"
