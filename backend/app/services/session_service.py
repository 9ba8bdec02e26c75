"""Session issuance, validation and revocation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from app.config import Settings, settings
from app.core.exceptions import (
    InvalidTokenError,
    PrincipalInactiveError,
    SessionRevokedOrExpiredError,
    StorageError,
    UnauthorizedError,
    WrongSessionTypeError,
)
from app.core.metrics import SESSIONS_ISSUED, UNAUTHORIZED_REQUESTS
from app.core.security import (
    create_session_token,
    decode_session_token,
    naive_utc,
    token_reference,
    utc_now,
)
from app.models.session import AuthSession
from app.services.credential_store import CredentialStore, Principal, credential_store

logger = logging.getLogger(__name__)

SESSION_TYPES = ("admin", "team")


@dataclass
class IssuedSession:
    token: str
    expires_at: datetime
    session: AuthSession


@dataclass
class AuthContext:
    """The principal behind a validated token."""

    principal: Principal
    session_type: str
    session: AuthSession
    claims: Dict[str, Any]

    @property
    def role(self) -> str:
        return self.principal.role


class SessionService:
    """Signed, server-tracked sessions.

    A token is honoured only while its signature and embedded expiry hold, its
    session row still exists and is unexpired, and its principal is active.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        store: Optional[CredentialStore] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.config = config or settings
        self.store = store or credential_store
        self._clock = clock

    def ttl_for(self, session_type: str) -> timedelta:
        if session_type == "admin":
            return timedelta(hours=self.config.ADMIN_SESSION_TTL_HOURS)
        if session_type == "team":
            return timedelta(hours=self.config.TEAM_SESSION_TTL_HOURS)
        raise ValueError(f"Unknown session type: {session_type}")

    def issue(
        self,
        db: Session,
        principal: Principal,
        session_type: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        ttl: Optional[timedelta] = None,
    ) -> IssuedSession:
        """
        Sign a token for ``principal`` and persist its session row

        Raises:
            ConfigurationError: Signing key missing or too weak
            StorageError: Session row could not be written
        """
        if principal.session_type != session_type:
            raise ValueError(f"Cannot issue a {session_type} session for a {principal.session_type} principal")

        # JWT timestamps have one-second resolution; keep the row in step.
        now = self._clock().replace(microsecond=0)
        expires_at = now + (ttl or self.ttl_for(session_type))
        token = create_session_token(
            {
                "sub": str(principal.id),
                "login": principal.login_identifier,
                "role": principal.role,
                "session_type": session_type,
            },
            issued_at=now,
            expires_at=expires_at,
            config=self.config,
        )

        row = AuthSession(
            token_ref=token_reference(token),
            session_type=session_type,
            admin_user_id=principal.id if session_type == "admin" else None,
            team_id=principal.id if session_type == "team" else None,
            ip_address=ip_address,
            user_agent=(user_agent or "")[:512] or None,
            expires_at=expires_at,
            created_at=now,
            last_activity=now,
        )
        self.store.insert_session(db, row, principal)
        SESSIONS_ISSUED.labels(session_type).inc()
        logger.info(
            "Issued %s session %s for principal %s (expires %s)",
            session_type, row.token_ref[:12], principal.id, expires_at.isoformat(),
        )
        return IssuedSession(token=token, expires_at=expires_at, session=row)

    def validate(self, db: Session, token: str, expected_type: str) -> AuthContext:
        """
        Resolve the live principal behind ``token``

        Raises:
            InvalidTokenError, ExpiredTokenError, WrongSessionTypeError,
            SessionRevokedOrExpiredError, PrincipalInactiveError: all render
            as a uniform 401
            StorageError: Store unavailable
        """
        try:
            return self._validate(db, token, expected_type)
        except UnauthorizedError as exc:
            UNAUTHORIZED_REQUESTS.labels(exc.reason).inc()
            logger.info("Rejected %s session: %s", expected_type, exc.reason)
            raise

    def _validate(self, db: Session, token: str, expected_type: str) -> AuthContext:
        now = self._clock()
        claims = decode_session_token(token, now=now, config=self.config)

        if claims["session_type"] != expected_type:
            raise WrongSessionTypeError()

        try:
            principal_id = int(claims["sub"])
        except (TypeError, ValueError):
            raise InvalidTokenError("malformed_sub")

        row = self.store.find_session(db, token_reference(token))
        if row is None or naive_utc(row.expires_at) <= now:
            raise SessionRevokedOrExpiredError()
        if row.session_type != expected_type or row.principal_id != principal_id:
            raise SessionRevokedOrExpiredError("session_owner_mismatch")

        principal = self.store.get_principal(db, expected_type, principal_id)
        if principal is None or not principal.is_active:
            raise PrincipalInactiveError()

        try:
            self.store.touch_session(db, row, now)
        except StorageError:
            logger.warning("Could not update activity for session %s", row.token_ref[:12])

        return AuthContext(principal=principal, session_type=expected_type, session=row, claims=claims)

    def revoke(self, db: Session, token: Optional[str], session_type: Optional[str] = None) -> bool:
        """Delete the session row for ``token``.

        Works without verifying the token and never raises; returns whether a
        row was removed. With ``session_type`` only a row of that type is touched.
        """
        if not token or not isinstance(token, str):
            return False
        token_ref = token_reference(token)
        try:
            removed = self.store.delete_session(db, token_ref, session_type) > 0
        except StorageError:
            logger.warning("Could not delete session %s during sign-out", token_ref[:12])
            return False
        if removed:
            logger.info("Revoked session %s", token_ref[:12])
        return removed

    def revoke_all_for_principal(self, db: Session, session_type: str, principal_id: int) -> int:
        count = self.store.delete_sessions_for_principal(db, session_type, principal_id)
        if count:
            logger.info("Revoked %d %s session(s) for principal %s", count, session_type, principal_id)
        return count
