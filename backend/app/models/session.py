"""Persisted login sessions"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.core.security import utc_now


class AuthSession(Base):
    """Server-side record binding an issued token to a principal.

    Only the SHA-256 digest of the token is stored. Revocation deletes the row.
    """

    __tablename__ = "auth_sessions"

    id = Column(Integer, primary_key=True, index=True)
    token_ref = Column(String(64), unique=True, nullable=False)
    session_type = Column(String(10), nullable=False)
    admin_user_id = Column(Integer, ForeignKey("admin_users.id", ondelete="CASCADE"), nullable=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    last_activity = Column(DateTime, default=utc_now, nullable=False)

    admin_user = relationship("AdminUser", back_populates="sessions")
    team = relationship("Team", back_populates="sessions")

    __table_args__ = (
        Index('idx_auth_sessions_token_ref', 'token_ref'),
        Index('idx_auth_sessions_admin_user', 'admin_user_id'),
        Index('idx_auth_sessions_team', 'team_id'),
        CheckConstraint(
            "(session_type = 'admin' AND admin_user_id IS NOT NULL AND team_id IS NULL) OR "
            "(session_type = 'team' AND team_id IS NOT NULL AND admin_user_id IS NULL)",
            name='chk_session_owner'
        ),
    )

    @property
    def principal_id(self):
        return self.admin_user_id if self.session_type == "admin" else self.team_id

    def __repr__(self):
        return (
            f"<AuthSession(id={self.id}, session_type='{self.session_type}', "
            f"principal_id={self.principal_id}, token_ref='{self.token_ref[:8]}...')>"
        )
