import pytest

from app.config import Settings
from app.core.exceptions import BusinessLogicError, ResourceAlreadyExistsError, ValidationError
from app.core.security import verify_password
from app.models.principal import AdminUser
from app.services.admin_user_service import admin_user_service


def test_bootstrap_admin_skipped_without_password(db):
    cfg = Settings(SECRET_KEY="k" * 64, ADMIN_PASSWORD="")
    assert admin_user_service.ensure_bootstrap_admin(db, cfg) is None
    assert db.query(AdminUser).count() == 0


def test_bootstrap_admin_created_once(db):
    cfg = Settings(SECRET_KEY="k" * 64, ADMIN_USERNAME="root", ADMIN_PASSWORD="a-long-bootstrap-pass")
    first = admin_user_service.ensure_bootstrap_admin(db, cfg)
    second = admin_user_service.ensure_bootstrap_admin(db, cfg)

    assert first.id == second.id
    assert first.role == "super_admin"
    assert verify_password("a-long-bootstrap-pass", first.password_hash)
    assert first.password_hash != "a-long-bootstrap-pass"


def test_create_admin_validates_role_and_uniqueness(db):
    admin_user_service.create_admin(db, "ops", "ops-password", role="moderator")
    with pytest.raises(ResourceAlreadyExistsError):
        admin_user_service.create_admin(db, "ops", "other-password")
    with pytest.raises(BusinessLogicError):
        admin_user_service.create_admin(db, "nobody", "pw-pw-pw", role="team")


def test_create_admin_rejects_password_over_72_bytes(db):
    with pytest.raises(ValidationError):
        admin_user_service.create_admin(db, "wordy", "é" * 37)
    assert db.query(AdminUser).count() == 0
