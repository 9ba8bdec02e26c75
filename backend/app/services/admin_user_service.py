"""Admin user service - provisioning and activation management"""

from typing import List, Optional

from sqlalchemy.orm import Session

from app.config import Settings
from app.core.exceptions import BusinessLogicError, ResourceAlreadyExistsError, ResourceNotFoundError
from app.core.permissions import ADMIN_ROLES
from app.core.security import get_password_hash
from app.models.principal import AdminUser
from app.services.session_service import SessionService
import logging

logger = logging.getLogger(__name__)


class AdminUserService:
    """Service for admin account management"""

    @staticmethod
    def create_admin(
        db: Session,
        username: str,
        password: str,
        role: str = "admin",
        email: Optional[str] = None,
    ) -> AdminUser:
        """
        Create new admin user

        Args:
            db: Database session
            username: Login name
            password: Plain text password (stored as a bcrypt digest)
            role: One of super_admin, admin, moderator
            email: Optional contact address

        Returns:
            Created admin
        """
        if role not in ADMIN_ROLES:
            raise BusinessLogicError(f"Unknown admin role '{role}'")
        if db.query(AdminUser.id).filter(AdminUser.username == username).first():
            raise ResourceAlreadyExistsError("Admin user")

        admin = AdminUser(
            username=username,
            email=email,
            password_hash=get_password_hash(password),
            role=role,
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)

        logger.info(f"Created admin user: {admin.username} (role: {admin.role})")
        return admin

    @staticmethod
    def ensure_bootstrap_admin(db: Session, config: Settings) -> Optional[AdminUser]:
        """Create the configured super admin if a password is set and it does not exist yet."""
        if not config.ADMIN_PASSWORD:
            logger.info("ADMIN_PASSWORD not set; skipping bootstrap admin creation")
            return None
        existing = db.query(AdminUser).filter(AdminUser.username == config.ADMIN_USERNAME).first()
        if existing:
            return existing
        return AdminUserService.create_admin(
            db,
            config.ADMIN_USERNAME,
            config.ADMIN_PASSWORD,
            role="super_admin",
            email=config.ADMIN_EMAIL,
        )

    @staticmethod
    def list_admins(db: Session) -> List[AdminUser]:
        return db.query(AdminUser).order_by(AdminUser.id.asc()).all()

    @staticmethod
    def set_active(
        db: Session,
        admin_id: int,
        active: bool,
        acting_admin_id: int,
        session_service: SessionService,
    ) -> AdminUser:
        """
        Activate or deactivate an admin

        An admin cannot deactivate themselves. Deactivation drops the
        target's open sessions.
        """
        admin = db.query(AdminUser).filter(AdminUser.id == admin_id).first()
        if not admin:
            raise ResourceNotFoundError("Admin user")
        if not active and admin.id == acting_admin_id:
            raise BusinessLogicError("Admins cannot deactivate their own account")

        admin.is_active = active
        db.commit()
        db.refresh(admin)

        if not active:
            session_service.revoke_all_for_principal(db, "admin", admin.id)

        logger.info(f"Admin {admin.username} {'activated' if active else 'deactivated'}")
        return admin


admin_user_service = AdminUserService()
