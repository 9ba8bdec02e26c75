"""API dependencies - session authentication, authorization and cookies"""

from typing import Callable, Optional, Tuple

from fastapi import Depends, Request, Response
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.config import Settings, settings
from app.core.database import get_db
from app.core.exceptions import UnauthorizedError
from app.core.permissions import Capability, require_capability
from app.core.security import get_client_ip
from app.models.principal import AdminUser, Team
from app.services.auth_service import AuthService, build_auth_service
from app.services.session_service import AuthContext, SessionService

# Bearer header is accepted as a fallback to the session cookie.
bearer_scheme = HTTPBearer(auto_error=False)


def get_auth_service(request: Request) -> AuthService:
    """Sign-in pipeline wired at startup (built on first use otherwise)"""
    auth_service = getattr(request.app.state, "auth_service", None)
    if auth_service is None:
        auth_service = build_auth_service(settings)
        request.app.state.auth_service = auth_service
    return auth_service


def get_session_service(auth_service: AuthService = Depends(get_auth_service)) -> SessionService:
    return auth_service.sessions


def client_meta(request: Request) -> Tuple[str, Optional[str]]:
    """Caller IP and user agent"""
    fallback = request.client.host if request.client else None
    return get_client_ip(request.headers, fallback), request.headers.get("user-agent")


def cookie_name_for(session_type: str, config: Settings = settings) -> str:
    return config.ADMIN_COOKIE_NAME if session_type == "admin" else config.TEAM_COOKIE_NAME


def extract_token(
    request: Request,
    session_type: str,
    credentials: Optional[HTTPAuthorizationCredentials] = None,
) -> Optional[str]:
    token = request.cookies.get(cookie_name_for(session_type))
    if token:
        return token
    if credentials and credentials.scheme.lower() == "bearer":
        return credentials.credentials
    return None


def set_session_cookie(
    response: Response,
    session_type: str,
    token: str,
    config: Settings = settings,
) -> None:
    """
    Attach the session token as an HttpOnly cookie

    Admin cookies are SameSite=strict, team cookies lax; both are Secure in
    production and live exactly as long as the session.
    """
    is_admin = session_type == "admin"
    ttl_hours = config.ADMIN_SESSION_TTL_HOURS if is_admin else config.TEAM_SESSION_TTL_HOURS
    response.set_cookie(
        key=cookie_name_for(session_type, config),
        value=token,
        max_age=ttl_hours * 3600,
        path=config.ADMIN_COOKIE_PATH if is_admin else config.TEAM_COOKIE_PATH,
        httponly=True,
        secure=config.is_production,
        samesite="strict" if is_admin else "lax",
    )


def clear_session_cookie(response: Response, session_type: str, config: Settings = settings) -> None:
    is_admin = session_type == "admin"
    response.delete_cookie(
        key=cookie_name_for(session_type, config),
        path=config.ADMIN_COOKIE_PATH if is_admin else config.TEAM_COOKIE_PATH,
        httponly=True,
        secure=config.is_production,
        samesite="strict" if is_admin else "lax",
    )


def _session_context(session_type: str) -> Callable[..., AuthContext]:
    def dependency(
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
        db: Session = Depends(get_db),
        sessions: SessionService = Depends(get_session_service),
    ) -> AuthContext:
        token = extract_token(request, session_type, credentials)
        if not token:
            raise UnauthorizedError("missing_token")
        return sessions.validate(db, token, session_type)

    dependency.__name__ = f"get_{session_type}_context"
    return dependency


get_admin_context = _session_context("admin")
get_team_context = _session_context("team")


def get_current_admin(context: AuthContext = Depends(get_admin_context)) -> AdminUser:
    """
    Get current admin from the admin session

    Raises:
        UnauthorizedError: If the token or session is not valid
    """
    return context.principal


def get_current_team(context: AuthContext = Depends(get_team_context)) -> Team:
    """
    Get current team from the team session

    Raises:
        UnauthorizedError: If the token or session is not valid
    """
    return context.principal


def admin_with(capability: Capability) -> Callable[..., AdminUser]:
    """Dependency: current admin, which must hold ``capability``."""
    def dependency(current_admin: AdminUser = Depends(get_current_admin)) -> AdminUser:
        require_capability(current_admin.role, capability)
        return current_admin
    return dependency


def team_with(capability: Capability) -> Callable[..., Team]:
    """Dependency: current team, which must hold ``capability``."""
    def dependency(current_team: Team = Depends(get_current_team)) -> Team:
        require_capability(current_team.role, capability)
        return current_team
    return dependency
