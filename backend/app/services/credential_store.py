"""Credential/session store - the only code that queries principals and sessions"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import StorageError
from app.models.principal import PRINCIPAL_MODELS, AdminUser, Team
from app.models.session import AuthSession

logger = logging.getLogger(__name__)

Principal = Union[AdminUser, Team]


def _model_for(session_type: str):
    try:
        return PRINCIPAL_MODELS[session_type]
    except KeyError:
        raise ValueError(f"Unknown session type: {session_type}")


def _login_column(model):
    return model.username if model is AdminUser else model.team_name


class CredentialStore:
    """SQLAlchemy-backed principal and session persistence.

    Every database failure surfaces as ``StorageError``; nothing is retried.
    """

    @staticmethod
    def _fail(db: Session, operation: str, exc: Exception) -> StorageError:
        db.rollback()
        logger.error("Credential store %s failed: %s", operation, exc)
        return StorageError()

    @staticmethod
    def find_active_principal(db: Session, session_type: str, login_identifier: str) -> Optional[Principal]:
        model = _model_for(session_type)
        try:
            return (
                db.query(model)
                .filter(_login_column(model) == login_identifier, model.is_active.is_(True))
                .first()
            )
        except SQLAlchemyError as exc:
            raise CredentialStore._fail(db, "find_active_principal", exc)

    @staticmethod
    def get_principal(db: Session, session_type: str, principal_id: int) -> Optional[Principal]:
        model = _model_for(session_type)
        try:
            return db.query(model).filter(model.id == principal_id).first()
        except SQLAlchemyError as exc:
            raise CredentialStore._fail(db, "get_principal", exc)

    @staticmethod
    def insert_session(
        db: Session,
        session_row: AuthSession,
        principal: Optional[Principal] = None,
    ) -> AuthSession:
        """Persist a session row; the principal's ``last_login`` lands in the same commit."""
        try:
            db.add(session_row)
            if principal is not None:
                principal.last_login = session_row.created_at
            db.commit()
            db.refresh(session_row)
            return session_row
        except SQLAlchemyError as exc:
            raise CredentialStore._fail(db, "insert_session", exc)

    @staticmethod
    def find_session(db: Session, token_ref: str) -> Optional[AuthSession]:
        try:
            return db.query(AuthSession).filter(AuthSession.token_ref == token_ref).first()
        except SQLAlchemyError as exc:
            raise CredentialStore._fail(db, "find_session", exc)

    @staticmethod
    def delete_session(db: Session, token_ref: str, session_type: Optional[str] = None) -> int:
        query = db.query(AuthSession).filter(AuthSession.token_ref == token_ref)
        if session_type is not None:
            query = query.filter(AuthSession.session_type == session_type)
        try:
            count = query.delete()
            db.commit()
            return count
        except SQLAlchemyError as exc:
            raise CredentialStore._fail(db, "delete_session", exc)

    @staticmethod
    def delete_sessions_for_principal(db: Session, session_type: str, principal_id: int) -> int:
        owner = AuthSession.admin_user_id if session_type == "admin" else AuthSession.team_id
        try:
            count = (
                db.query(AuthSession)
                .filter(AuthSession.session_type == session_type, owner == principal_id)
                .delete()
            )
            db.commit()
            return count
        except SQLAlchemyError as exc:
            raise CredentialStore._fail(db, "delete_sessions_for_principal", exc)

    @staticmethod
    def touch_session(db: Session, session_row: AuthSession, ts: datetime) -> None:
        try:
            session_row.last_activity = ts
            db.commit()
        except SQLAlchemyError as exc:
            raise CredentialStore._fail(db, "touch_session", exc)


credential_store = CredentialStore()
