"""Team service - registration and activation management"""

from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import ResourceAlreadyExistsError, ResourceNotFoundError
from app.core.security import generate_team_code, get_password_hash
from app.models.principal import Team
from app.schemas.auth import TeamSignUp
from app.services.session_service import SessionService
import logging

logger = logging.getLogger(__name__)


class TeamService:
    """Service for team management"""

    @staticmethod
    def _unique_team_code(db: Session) -> str:
        while True:
            code = generate_team_code()
            if not db.query(Team.id).filter(Team.team_code == code).first():
                return code

    @staticmethod
    def register_team(db: Session, data: TeamSignUp) -> Team:
        """
        Register a new team

        Args:
            db: Database session
            data: Validated sign-up form

        Returns:
            Created team

        Raises:
            ResourceAlreadyExistsError: Team name taken (case-insensitive)
        """
        existing = (
            db.query(Team.id)
            .filter(func.lower(Team.team_name) == data.team_name.lower())
            .first()
        )
        if existing:
            raise ResourceAlreadyExistsError("Team name")

        members = [{"name": data.leader_name, "email": data.leader_email, "is_leader": True}]
        members.extend({"name": name, "email": None, "is_leader": False} for name in data.member_names)

        team = Team(
            team_name=data.team_name,
            team_code=TeamService._unique_team_code(db),
            password_hash=get_password_hash(data.password),
            leader_name=data.leader_name,
            leader_email=data.leader_email,
            members=members,
        )
        db.add(team)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ResourceAlreadyExistsError("Team name")
        db.refresh(team)

        logger.info(f"Registered team: {team.team_name} ({team.team_code})")
        return team

    @staticmethod
    def get_team(db: Session, team_id: int) -> Team:
        team = db.query(Team).filter(Team.id == team_id).first()
        if not team:
            raise ResourceNotFoundError("Team")
        return team

    @staticmethod
    def list_teams(db: Session, active: Optional[bool] = None) -> List[Team]:
        query = db.query(Team).order_by(Team.created_at.desc(), Team.id.desc())
        if active is not None:
            query = query.filter(Team.is_active.is_(active))
        return query.all()

    @staticmethod
    def set_active(db: Session, team_id: int, active: bool, session_service: SessionService) -> Team:
        """
        Activate or deactivate a team

        Deactivation also drops every open session of the team.
        """
        team = TeamService.get_team(db, team_id)
        team.is_active = active
        db.commit()
        db.refresh(team)

        if not active:
            session_service.revoke_all_for_principal(db, "team", team.id)

        logger.info(f"Team {team.team_name} {'activated' if active else 'deactivated'}")
        return team


team_service = TeamService()
