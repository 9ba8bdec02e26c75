"""Shared rate-limit counters for multi-instance deployments"""

from sqlalchemy import Column, Integer, String, DateTime

from app.core.database import Base
from app.core.security import utc_now


class RateLimitEntry(Base):
    """Login attempt counter keyed by a hashed identifier"""

    __tablename__ = "rate_limits"

    identifier_hash = Column(String(64), primary_key=True)
    attempt_count = Column(Integer, default=0, nullable=False)
    reset_at = Column(DateTime, nullable=False)
    locked_until = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    def __repr__(self):
        return f"<RateLimitEntry(identifier_hash='{self.identifier_hash[:8]}...', attempts={self.attempt_count})>"
