"""Principal models - admin users and teams"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON, Index, CheckConstraint
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.core.security import utc_now


class AdminUser(Base):
    """Administrator account"""

    __tablename__ = "admin_users"

    session_type = "admin"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False)
    email = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), default="admin", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    last_login = Column(DateTime)

    sessions = relationship("AuthSession", back_populates="admin_user", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_admin_users_username', 'username'),
        CheckConstraint(
            "role IN ('super_admin', 'admin', 'moderator')",
            name='chk_admin_role'
        ),
    )

    @property
    def login_identifier(self) -> str:
        return self.username

    def __repr__(self):
        return f"<AdminUser(id={self.id}, username='{self.username}', role='{self.role}')>"

    def to_dict(self):
        """Convert to dictionary"""
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_login": self.last_login.isoformat() if self.last_login else None
        }


class Team(Base):
    """Contest team; the team name is its login identifier"""

    __tablename__ = "teams"

    session_type = "team"
    role = "team"

    id = Column(Integer, primary_key=True, index=True)
    team_name = Column(String(100), unique=True, nullable=False)
    team_code = Column(String(32), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    leader_name = Column(String(100), nullable=False)
    leader_email = Column(String(255), nullable=False)
    members = Column(JSON, nullable=False, default=list)
    current_round = Column(Integer, default=1, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    last_login = Column(DateTime)

    sessions = relationship("AuthSession", back_populates="team", cascade="all, delete-orphan")
    quiz_attempt = relationship("QuizAttempt", back_populates="team", uselist=False, cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_teams_team_name', 'team_name'),
        CheckConstraint('current_round >= 1', name='chk_team_round'),
    )

    @property
    def login_identifier(self) -> str:
        return self.team_name

    def __repr__(self):
        return f"<Team(id={self.id}, team_name='{self.team_name}')>"

    def to_dict(self):
        """Convert to dictionary"""
        return {
            "id": self.id,
            "team_name": self.team_name,
            "team_code": self.team_code,
            "leader_name": self.leader_name,
            "leader_email": self.leader_email,
            "members": self.members or [],
            "current_round": self.current_round,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_login": self.last_login.isoformat() if self.last_login else None
        }


PRINCIPAL_MODELS = {
    AdminUser.session_type: AdminUser,
    Team.session_type: Team,
}
