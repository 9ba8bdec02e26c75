"""Admin routes - team and admin management, audit trail, contest control"""

import json
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.permissions import Capability
from app.models.audit import AuditEvent
from app.models.principal import AdminUser
from app.schemas.audit import AuditEventResponse
from app.schemas.auth import AdminSummary, TeamSummary
from app.schemas.contest import ContestControlRequest, ContestStateResponse
from app.services.admin_user_service import admin_user_service
from app.services.audit_service import audit_service
from app.services.contest_service import contest_service
from app.services.session_service import SessionService
from app.services.team_service import team_service
from app.api.deps import admin_with, client_meta, get_session_service
from app.api.v1.admin_auth import admin_summary

router = APIRouter()


def _audit_admin_action(
    db: Session,
    request: Request,
    current_admin: AdminUser,
    action: str,
    target_type: str,
    target_id: str,
    metadata: Optional[dict] = None,
) -> None:
    ip_address, user_agent = client_meta(request)
    audit_service.record(
        db,
        action=action,
        actor_type="admin",
        actor_id=current_admin.id,
        target_type=target_type,
        target_id=target_id,
        ip_address=ip_address,
        user_agent=user_agent,
        metadata=metadata,
    )


@router.get("/teams", response_model=List[TeamSummary])
def list_teams(
    active: Optional[bool] = None,
    current_admin: AdminUser = Depends(admin_with(Capability.MANAGE_TEAMS)),
    db: Session = Depends(get_db),
):
    """List registered teams, newest first"""
    return [TeamSummary.model_validate(team) for team in team_service.list_teams(db, active)]


@router.post("/teams/{team_id}/activate", response_model=TeamSummary)
def activate_team(
    team_id: int,
    request: Request,
    current_admin: AdminUser = Depends(admin_with(Capability.MANAGE_TEAMS)),
    db: Session = Depends(get_db),
    sessions: SessionService = Depends(get_session_service),
):
    team = team_service.set_active(db, team_id, True, sessions)
    _audit_admin_action(db, request, current_admin, "team_activated", "team", str(team.id))
    return TeamSummary.model_validate(team)


@router.post("/teams/{team_id}/deactivate", response_model=TeamSummary)
def deactivate_team(
    team_id: int,
    request: Request,
    current_admin: AdminUser = Depends(admin_with(Capability.MANAGE_TEAMS)),
    db: Session = Depends(get_db),
    sessions: SessionService = Depends(get_session_service),
):
    """Deactivate a team and end its open sessions"""
    team = team_service.set_active(db, team_id, False, sessions)
    _audit_admin_action(db, request, current_admin, "team_deactivated", "team", str(team.id))
    return TeamSummary.model_validate(team)


@router.get("/users", response_model=List[AdminSummary])
def list_admin_users(
    current_admin: AdminUser = Depends(admin_with(Capability.MANAGE_ADMINS)),
    db: Session = Depends(get_db),
):
    return [admin_summary(admin) for admin in admin_user_service.list_admins(db)]


@router.post("/users/{admin_id}/activate", response_model=AdminSummary)
def activate_admin_user(
    admin_id: int,
    request: Request,
    current_admin: AdminUser = Depends(admin_with(Capability.MANAGE_ADMINS)),
    db: Session = Depends(get_db),
    sessions: SessionService = Depends(get_session_service),
):
    admin = admin_user_service.set_active(db, admin_id, True, current_admin.id, sessions)
    _audit_admin_action(db, request, current_admin, "admin_activated", "admin", str(admin.id))
    return admin_summary(admin)


@router.post("/users/{admin_id}/deactivate", response_model=AdminSummary)
def deactivate_admin_user(
    admin_id: int,
    request: Request,
    current_admin: AdminUser = Depends(admin_with(Capability.MANAGE_ADMINS)),
    db: Session = Depends(get_db),
    sessions: SessionService = Depends(get_session_service),
):
    """Deactivate another admin and end their open sessions"""
    admin = admin_user_service.set_active(db, admin_id, False, current_admin.id, sessions)
    _audit_admin_action(db, request, current_admin, "admin_deactivated", "admin", str(admin.id))
    return admin_summary(admin)


@router.get("/audit-events", response_model=List[AuditEventResponse])
def get_audit_events(
    limit: int = 100,
    action: Optional[str] = None,
    actor_type: Optional[str] = None,
    current_admin: AdminUser = Depends(admin_with(Capability.VIEW_AUDIT_LOG)),
    db: Session = Depends(get_db),
):
    """List recent audit trail entries."""
    events = audit_service.list_events(db, limit=limit, action=action, actor_type=actor_type)
    return [_audit_row(ev) for ev in events]


def _audit_row(ev: AuditEvent) -> AuditEventResponse:
    metadata = {}
    if ev.metadata_json:
        try:
            metadata = json.loads(ev.metadata_json)
        except json.JSONDecodeError:
            metadata = {"raw": ev.metadata_json}
    return AuditEventResponse(
        id=ev.id,
        actor_type=ev.actor_type,
        actor_id=ev.actor_id,
        action=ev.action,
        target_type=ev.target_type,
        target_id=ev.target_id,
        ip_address=ev.ip_address,
        user_agent=ev.user_agent,
        severity=ev.severity,
        metadata=metadata,
        created_at=ev.created_at,
    )


@router.get("/contest-control", response_model=ContestStateResponse)
def get_contest_control(
    current_admin: AdminUser = Depends(admin_with(Capability.CONTROL_CONTEST)),
    db: Session = Depends(get_db),
):
    return contest_service.get_state(db)


@router.post("/contest-control", response_model=ContestStateResponse, status_code=status.HTTP_200_OK)
def update_contest_control(
    body: ContestControlRequest,
    request: Request,
    current_admin: AdminUser = Depends(admin_with(Capability.CONTROL_CONTEST)),
    db: Session = Depends(get_db),
):
    """
    Apply a contest-control action

    Args:
        body: Action name and its value (flag or minutes)

    Returns:
        Contest state after the change
    """
    contest_service.apply_action(db, body.action, body.value)
    _audit_admin_action(
        db,
        request,
        current_admin,
        "contest_control",
        "contest",
        body.action.value,
        metadata={"value": body.value},
    )
    return contest_service.get_state(db)
