"""Contest state and quiz attempt models"""

from sqlalchemy import Column, Integer, Boolean, DateTime, ForeignKey, JSON, String, CheckConstraint
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.core.security import utc_now


class ContestConfig(Base):
    """Single-row contest state"""

    __tablename__ = "contest_config"

    id = Column(Integer, primary_key=True)
    quiz_active = Column(Boolean, default=False, nullable=False)
    voting_active = Column(Boolean, default=False, nullable=False)
    results_active = Column(Boolean, default=False, nullable=False)
    quiz_time_limit_minutes = Column(Integer, default=30, nullable=False)
    current_round = Column(Integer, default=1, nullable=False)
    quiz_started_at = Column(DateTime, nullable=True)
    auto_submit_task_id = Column(Integer, ForeignKey("scheduled_tasks.id", ondelete="SET NULL"), nullable=True)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    __table_args__ = (
        CheckConstraint(
            'quiz_time_limit_minutes >= 5 AND quiz_time_limit_minutes <= 180',
            name='chk_quiz_time_limit'
        ),
    )

    def to_dict(self):
        """Convert to dictionary"""
        return {
            "quiz_active": self.quiz_active,
            "voting_active": self.voting_active,
            "results_active": self.results_active,
            "quiz_time_limit_minutes": self.quiz_time_limit_minutes,
            "current_round": self.current_round,
            "quiz_started_at": self.quiz_started_at.isoformat() if self.quiz_started_at else None,
        }


class QuizAttempt(Base):
    """A team's quiz attempt"""

    __tablename__ = "quiz_attempts"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), unique=True, nullable=False)
    status = Column(String(20), default="in_progress", nullable=False)
    answers = Column(JSON, nullable=False, default=dict)
    started_at = Column(DateTime, default=utc_now, nullable=False)
    submitted_at = Column(DateTime, nullable=True)

    team = relationship("Team", back_populates="quiz_attempt")

    __table_args__ = (
        CheckConstraint(
            "status IN ('in_progress', 'submitted', 'auto_submitted')",
            name='chk_quiz_attempt_status'
        ),
    )

    def to_dict(self):
        """Convert to dictionary"""
        return {
            "id": self.id,
            "team_id": self.team_id,
            "status": self.status,
            "answers": self.answers or {},
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None
        }
