"""Database models"""

from app.models.principal import AdminUser, Team
from app.models.session import AuthSession
from app.models.rate_limit import RateLimitEntry
from app.models.audit import AuditEvent
from app.models.task import ScheduledTask
from app.models.contest import ContestConfig, QuizAttempt

__all__ = [
    "AdminUser", "Team", "AuthSession", "RateLimitEntry", "AuditEvent",
    "ScheduledTask", "ContestConfig", "QuizAttempt",
]
