"""Team authentication routes"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models.principal import Team
from app.schemas.auth import (
    SignOutResponse,
    TeamSignIn,
    TeamSignInResponse,
    TeamSignUp,
    TeamSummary,
)
from app.services.audit_service import audit_service
from app.services.auth_service import AuthService
from app.services.team_service import team_service
from app.api.deps import (
    bearer_scheme,
    clear_session_cookie,
    client_meta,
    extract_token,
    get_auth_service,
    get_current_team,
    set_session_cookie,
)

router = APIRouter()


@router.post("/signup", response_model=TeamSummary, status_code=status.HTTP_201_CREATED)
def team_signup(
    registration: TeamSignUp,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Register a new team

    Args:
        registration: Team name, leader, members and password

    Returns:
        Created team (without credentials)
    """
    team = team_service.register_team(db, registration)
    ip_address, user_agent = client_meta(request)
    audit_service.record(
        db,
        action="team_signup",
        actor_type="team",
        actor_id=team.id,
        target_type="team",
        target_id=str(team.id),
        ip_address=ip_address,
        user_agent=user_agent,
        metadata={"team_name": team.team_name, "team_code": team.team_code},
    )
    return TeamSummary.model_validate(team)


@router.post("/signin", response_model=TeamSignInResponse, status_code=status.HTTP_200_OK)
def team_signin(
    credentials: TeamSignIn,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Team sign-in - verify credentials and open a team session"""
    ip_address, user_agent = client_meta(request)
    result = auth_service.sign_in(
        db, "team", credentials.team_name, credentials.password, ip_address, user_agent
    )
    set_session_cookie(response, "team", result.token)
    return TeamSignInResponse(
        team=TeamSummary.model_validate(result.principal),
        expires_at=result.expires_at,
    )


@router.post("/signout", response_model=SignOutResponse, status_code=status.HTTP_200_OK)
def team_signout(
    request: Request,
    response: Response,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
):
    ip_address, user_agent = client_meta(request)
    token = extract_token(request, "team", credentials)
    auth_service.sign_out(db, token, "team", ip_address, user_agent)
    clear_session_cookie(response, "team")
    return SignOutResponse()


@router.get("/session", response_model=TeamSummary)
def get_team_session(current_team: Team = Depends(get_current_team)):
    """Current team information"""
    return TeamSummary.model_validate(current_team)
