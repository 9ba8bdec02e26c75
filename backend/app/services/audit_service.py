"""Audit service for security-relevant events."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.audit import AuditEvent

logger = logging.getLogger(__name__)


class AuditService:
    """Persist immutable audit trail entries."""

    @staticmethod
    def record(
        db: Session,
        *,
        action: str,
        actor_type: Optional[str] = None,
        actor_id: Optional[int] = None,
        target_type: Optional[str] = None,
        target_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        severity: str = "INFO",
    ) -> Optional[AuditEvent]:
        """Append an audit event.

        Fire-and-forget: a failed write is logged and the caller carries on.
        """
        event = AuditEvent(
            actor_type=actor_type,
            actor_id=actor_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            ip_address=ip_address,
            user_agent=(user_agent or "")[:512] or None,
            metadata_json=json.dumps(metadata or {}, ensure_ascii=False, default=str),
            severity=severity,
        )
        try:
            db.add(event)
            db.commit()
            db.refresh(event)
            return event
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Failed to record audit event %s: %s", action, exc)
            return None

    @staticmethod
    def list_events(
        db: Session,
        *,
        limit: int = 100,
        action: Optional[str] = None,
        actor_type: Optional[str] = None,
    ) -> List[AuditEvent]:
        query = db.query(AuditEvent).order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc())
        if action:
            query = query.filter(AuditEvent.action == action)
        if actor_type:
            query = query.filter(AuditEvent.actor_type == actor_type)
        return query.limit(max(1, min(limit, 500))).all()


audit_service = AuditService()
