"""Audit event model for security-relevant actions."""

from sqlalchemy import Column, Integer, String, DateTime, Text, Index

from app.core.database import Base
from app.core.security import utc_now


class AuditEvent(Base):
    """Immutable audit events."""

    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, index=True)
    actor_type = Column(String(16), nullable=True)  # admin | team | system
    actor_id = Column(Integer, nullable=True)
    action = Column(String(64), nullable=False, index=True)
    target_type = Column(String(64), nullable=True, index=True)
    target_id = Column(String(128), nullable=True, index=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    metadata_json = Column(Text, nullable=True)
    severity = Column(String(10), default="INFO", nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    __table_args__ = (
        Index("idx_audit_events_created_at", "created_at"),
        Index("idx_audit_events_actor", "actor_type", "actor_id"),
    )
