"""Admin authentication routes"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.permissions import capability_names
from app.models.principal import AdminUser
from app.schemas.auth import AdminSignIn, AdminSignInResponse, AdminSummary, SignOutResponse
from app.services.auth_service import AuthService
from app.api.deps import (
    bearer_scheme,
    clear_session_cookie,
    client_meta,
    extract_token,
    get_auth_service,
    get_current_admin,
    set_session_cookie,
)

router = APIRouter()


def admin_summary(admin: AdminUser) -> AdminSummary:
    summary = AdminSummary.model_validate(admin)
    summary.capabilities = capability_names(admin.role)
    return summary


@router.post("/signin", response_model=AdminSignInResponse, status_code=status.HTTP_200_OK)
def admin_signin(
    credentials: AdminSignIn,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Admin sign-in - verify credentials and open an admin session

    Returns:
        Admin summary and session expiry; the token travels in the cookie
    """
    ip_address, user_agent = client_meta(request)
    result = auth_service.sign_in(
        db, "admin", credentials.username, credentials.password, ip_address, user_agent
    )
    set_session_cookie(response, "admin", result.token)
    return AdminSignInResponse(admin=admin_summary(result.principal), expires_at=result.expires_at)


@router.post("/signout", response_model=SignOutResponse, status_code=status.HTTP_200_OK)
def admin_signout(
    request: Request,
    response: Response,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Admin sign-out - always succeeds and clears the cookie"""
    ip_address, user_agent = client_meta(request)
    token = extract_token(request, "admin", credentials)
    auth_service.sign_out(db, token, "admin", ip_address, user_agent)
    clear_session_cookie(response, "admin")
    return SignOutResponse()


@router.get("/me", response_model=AdminSummary)
def get_admin_me(current_admin: AdminUser = Depends(get_current_admin)):
    """Current admin information"""
    return admin_summary(current_admin)
