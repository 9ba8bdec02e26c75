"""Sign-in orchestration for admins and teams"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.config import Settings, settings
from app.core.exceptions import (
    ConfigurationError,
    InvalidCredentialsError,
    RateLimitExceededError,
    StorageError,
    UnauthorizedError,
)
from app.core.metrics import LOGIN_ATTEMPTS
from app.core.security import burn_password_check, decode_session_token, utc_now, verify_password
from app.services.audit_service import AuditService, audit_service
from app.services.credential_store import CredentialStore, Principal, credential_store
from app.services.rate_limiter import LoginRateLimiter, RateLimitPolicy, create_rate_limit_store
from app.services.session_service import SESSION_TYPES, SessionService

logger = logging.getLogger(__name__)


class SignInState(str, Enum):
    START = "start"
    RATE_LIMIT_CHECKED = "rate_limit_checked"
    CREDENTIAL_LOOKED_UP = "credential_looked_up"
    PASSWORD_VERIFIED = "password_verified"
    SESSION_ISSUED = "session_issued"
    RESPONDED = "responded"
    # Terminal failures
    RATE_LIMITED = "rate_limited"
    CREDENTIAL_NOT_FOUND = "credential_not_found"
    PASSWORD_INVALID = "password_invalid"
    STORAGE_FAILURE = "storage_failure"


@dataclass
class SignInResult:
    token: str
    expires_at: datetime
    principal: Principal
    session_type: str
    state: SignInState = SignInState.RESPONDED


class AuthService:
    """Rate limit -> credential lookup -> password check -> session issue."""

    def __init__(
        self,
        rate_limiter: LoginRateLimiter,
        session_service: SessionService,
        store: Optional[CredentialStore] = None,
        audit: Optional[AuditService] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.rate_limiter = rate_limiter
        self.sessions = session_service
        self.store = store or credential_store
        self.audit = audit or audit_service
        self._clock = clock

    @staticmethod
    def _limiter_key(session_type: str, login_identifier: str) -> str:
        return f"{session_type}:{login_identifier}"

    def _finish(self, session_type: str, state: SignInState) -> None:
        LOGIN_ATTEMPTS.labels(session_type, state.value).inc()
        logger.debug("Sign-in (%s) reached state %s", session_type, state.value)

    def sign_in(
        self,
        db: Session,
        session_type: str,
        login_identifier: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> SignInResult:
        """
        Authenticate a principal and open a session

        Raises:
            RateLimitExceededError: Identifier is locked out
            InvalidCredentialsError: Unknown identifier or wrong password
            StorageError: Store unavailable
            ConfigurationError: Token signing misconfigured
        """
        if session_type not in SESSION_TYPES:
            raise ValueError(f"Unknown session type: {session_type}")

        key = self._limiter_key(session_type, login_identifier)
        try:
            decision = self.rate_limiter.check(key)
            if not decision.allowed:
                self._finish(session_type, SignInState.RATE_LIMITED)
                self.audit.record(
                    db,
                    action=f"{session_type}_login_locked",
                    actor_type=session_type,
                    target_type=session_type,
                    target_id=login_identifier[:128],
                    ip_address=ip_address,
                    user_agent=user_agent,
                    metadata={"locked_until": decision.locked_until},
                    severity="WARN",
                )
                raise RateLimitExceededError(locked_until=decision.locked_until)

            principal = self.store.find_active_principal(db, session_type, login_identifier)
            if principal is None:
                burn_password_check(password)
                self._finish(session_type, SignInState.CREDENTIAL_NOT_FOUND)
                self._record_failure(db, session_type, login_identifier, None, ip_address, user_agent)
                raise InvalidCredentialsError()

            if not verify_password(password, principal.password_hash):
                self._finish(session_type, SignInState.PASSWORD_INVALID)
                self._record_failure(db, session_type, login_identifier, principal.id, ip_address, user_agent)
                raise InvalidCredentialsError()

            issued = self.sessions.issue(db, principal, session_type, ip_address, user_agent)
            self.rate_limiter.reset(key)
        except StorageError:
            self._finish(session_type, SignInState.STORAGE_FAILURE)
            logger.exception("Sign-in for %s aborted by storage failure", session_type)
            raise
        except ConfigurationError:
            logger.exception("Sign-in for %s aborted by configuration error", session_type)
            raise

        self._finish(session_type, SignInState.RESPONDED)
        self.audit.record(
            db,
            action=f"{session_type}_login",
            actor_type=session_type,
            actor_id=principal.id,
            ip_address=ip_address,
            user_agent=user_agent,
            metadata={"login": principal.login_identifier},
        )
        logger.info("%s %s signed in", session_type.capitalize(), principal.id)
        return SignInResult(
            token=issued.token,
            expires_at=issued.expires_at,
            principal=principal,
            session_type=session_type,
        )

    def _record_failure(
        self,
        db: Session,
        session_type: str,
        login_identifier: str,
        principal_id: Optional[int],
        ip_address: Optional[str],
        user_agent: Optional[str],
    ) -> None:
        self.audit.record(
            db,
            action=f"{session_type}_login_failed",
            actor_type=session_type,
            actor_id=principal_id,
            target_type=session_type,
            target_id=login_identifier[:128],
            ip_address=ip_address,
            user_agent=user_agent,
            severity="WARN",
        )

    def sign_out(
        self,
        db: Session,
        token: Optional[str],
        session_type: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """Revoke the ``session_type`` session behind ``token``; never raises."""
        claims = None
        if token:
            try:
                claims = decode_session_token(token, now=self._clock(), config=self.sessions.config)
            except (UnauthorizedError, ConfigurationError) as exc:
                logger.debug("Sign-out with unverifiable token: %s", getattr(exc, "reason", exc))

        self.sessions.revoke(db, token, session_type)

        if claims and claims.get("session_type") == session_type:
            try:
                actor_id = int(claims["sub"])
            except (TypeError, ValueError):
                actor_id = None
            self.audit.record(
                db,
                action=f"{session_type}_logout",
                actor_type=session_type,
                actor_id=actor_id,
                ip_address=ip_address,
                user_agent=user_agent,
                metadata={"login": claims.get("login")},
            )


def build_auth_service(config: Optional[Settings] = None) -> AuthService:
    """Wire the sign-in pipeline from settings."""
    config = config or settings
    limiter = LoginRateLimiter(
        store=create_rate_limit_store(config),
        policy=RateLimitPolicy.from_settings(config),
    )
    return AuthService(rate_limiter=limiter, session_service=SessionService(config=config))
