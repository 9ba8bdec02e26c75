from datetime import timedelta

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import (
    InvalidCredentialsError,
    RateLimitExceededError,
    SessionRevokedOrExpiredError,
    StorageError,
)
from app.models.audit import AuditEvent
from app.models.session import AuthSession
from app.services.auth_service import SignInState


def test_admin_sign_in_issues_eight_hour_session(db, make_admin, auth_service, clock):
    admin = make_admin()
    result = auth_service.sign_in(db, "admin", "admin", "correct-horse-battery", "10.0.0.1", "pytest")

    assert result.state == SignInState.RESPONDED
    assert result.principal.id == admin.id
    assert result.expires_at == clock.now + timedelta(hours=8)

    clock.advance(seconds=1)
    context = auth_service.sessions.validate(db, result.token, "admin")
    assert context.principal.id == admin.id

    db.refresh(admin)
    assert admin.last_login == result.expires_at - timedelta(hours=8)
    assert db.query(AuditEvent).filter(AuditEvent.action == "admin_login").count() == 1


def test_team_sign_in_issues_day_long_session(db, make_team, auth_service, clock):
    make_team()
    result = auth_service.sign_in(db, "team", "Team Rocket", "team-pass")
    assert result.expires_at == clock.now + timedelta(hours=24)


def test_unknown_identifier_and_wrong_password_are_indistinguishable(db, make_admin, auth_service):
    make_admin()
    with pytest.raises(InvalidCredentialsError) as unknown:
        auth_service.sign_in(db, "admin", "nobody", "whatever")
    with pytest.raises(InvalidCredentialsError) as wrong:
        auth_service.sign_in(db, "admin", "admin", "wrong-password")

    assert unknown.value.message == wrong.value.message
    assert unknown.value.status_code == wrong.value.status_code == 401
    assert db.query(AuditEvent).filter(AuditEvent.action == "admin_login_failed").count() == 2


def test_inactive_principal_cannot_sign_in(db, make_team, auth_service):
    make_team(is_active=False)
    with pytest.raises(InvalidCredentialsError):
        auth_service.sign_in(db, "team", "Team Rocket", "team-pass")


def test_lockout_applies_even_with_correct_password(db, make_admin, auth_service, clock):
    make_admin()
    outcomes = []
    for _ in range(5):
        try:
            auth_service.sign_in(db, "admin", "admin", "wrong-password")
        except InvalidCredentialsError:
            outcomes.append("invalid")
        except RateLimitExceededError:
            outcomes.append("locked")
    assert outcomes == ["invalid"] * 4 + ["locked"]

    with pytest.raises(RateLimitExceededError) as exc_info:
        auth_service.sign_in(db, "admin", "admin", "correct-horse-battery")
    locked_until = exc_info.value.locked_until
    assert timedelta(minutes=14) < locked_until - clock.now <= timedelta(minutes=15)
    assert exc_info.value.details["locked_until"] == locked_until.isoformat()
    assert db.query(AuthSession).count() == 0


def test_lockout_expires(db, make_admin, auth_service, clock):
    make_admin()
    for _ in range(5):
        with pytest.raises((InvalidCredentialsError, RateLimitExceededError)):
            auth_service.sign_in(db, "admin", "admin", "wrong-password")

    clock.advance(minutes=15, seconds=1)
    result = auth_service.sign_in(db, "admin", "admin", "correct-horse-battery")
    assert result.token


def test_successful_sign_in_resets_attempts(db, make_admin, auth_service):
    make_admin()
    for _ in range(3):
        with pytest.raises(InvalidCredentialsError):
            auth_service.sign_in(db, "admin", "admin", "wrong-password")
    auth_service.sign_in(db, "admin", "admin", "correct-horse-battery")

    for _ in range(4):
        with pytest.raises(InvalidCredentialsError):
            auth_service.sign_in(db, "admin", "admin", "wrong-password")


def test_admin_and_team_counters_are_separate(db, make_admin, make_team, auth_service):
    make_admin(username="shared")
    make_team(team_name="shared")
    for _ in range(5):
        with pytest.raises((InvalidCredentialsError, RateLimitExceededError)):
            auth_service.sign_in(db, "admin", "shared", "wrong-password")

    assert auth_service.sign_in(db, "team", "shared", "team-pass").token


def test_storage_failure_propagates(db, make_admin, auth_service, monkeypatch):
    make_admin()

    def broken(*args, **kwargs):
        raise StorageError()

    monkeypatch.setattr(auth_service.store, "find_active_principal", broken)
    with pytest.raises(StorageError):
        auth_service.sign_in(db, "admin", "admin", "correct-horse-battery")


def test_sign_out_revokes_session(db, make_admin, auth_service):
    make_admin()
    result = auth_service.sign_in(db, "admin", "admin", "correct-horse-battery")
    auth_service.sign_out(db, result.token, "admin")

    with pytest.raises(SessionRevokedOrExpiredError):
        auth_service.sessions.validate(db, result.token, "admin")
    assert db.query(AuditEvent).filter(AuditEvent.action == "admin_logout").count() == 1


def test_sign_out_with_garbage_token_is_silent(db, make_admin, auth_service):
    make_admin()
    auth_service.sign_in(db, "admin", "admin", "correct-horse-battery")

    auth_service.sign_out(db, "garbage.token.value", "admin")
    auth_service.sign_out(db, None, "admin")

    assert db.query(AuthSession).count() == 1
    assert db.query(AuditEvent).filter(AuditEvent.action == "admin_logout").count() == 0


def test_failed_session_write_leaves_no_row_and_no_last_login(db, make_admin, auth_service, monkeypatch):
    admin = make_admin()

    def broken_commit():
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(db, "commit", broken_commit)
    with pytest.raises(StorageError):
        auth_service.sign_in(db, "admin", "admin", "correct-horse-battery")
    monkeypatch.undo()

    assert db.query(AuthSession).count() == 0
    db.refresh(admin)
    assert admin.last_login is None


def test_admin_sign_out_leaves_team_session_alone(db, make_team, auth_service):
    team = make_team()
    result = auth_service.sign_in(db, "team", "Team Rocket", "team-pass")

    auth_service.sign_out(db, result.token, "admin")

    context = auth_service.sessions.validate(db, result.token, "team")
    assert context.principal.id == team.id
    assert db.query(AuditEvent).filter(AuditEvent.action == "admin_logout").count() == 0
