"""Durable scheduled tasks"""

from sqlalchemy import Column, Integer, String, DateTime, Text, Index, CheckConstraint

from app.core.database import Base
from app.core.security import utc_now


class ScheduledTask(Base):
    """A unit of deferred work that survives process restarts"""

    __tablename__ = "scheduled_tasks"

    id = Column(Integer, primary_key=True, index=True)
    task_type = Column(String(64), nullable=False)
    payload_json = Column(Text, nullable=True)
    due_at = Column(DateTime, nullable=False)
    status = Column(String(16), default="pending", nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index('idx_scheduled_tasks_status_due', 'status', 'due_at'),
        Index('idx_scheduled_tasks_type', 'task_type'),
        CheckConstraint(
            "status IN ('pending', 'running', 'completed', 'failed', 'cancelled')",
            name='chk_task_status'
        ),
        CheckConstraint('attempts >= 0', name='chk_task_attempts'),
    )

    def __repr__(self):
        return f"<ScheduledTask(id={self.id}, task_type='{self.task_type}', status='{self.status}')>"

    def to_dict(self):
        """Convert to dictionary"""
        return {
            "id": self.id,
            "task_type": self.task_type,
            "due_at": self.due_at.isoformat() if self.due_at else None,
            "status": self.status,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None
        }
