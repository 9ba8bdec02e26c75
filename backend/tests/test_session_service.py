from datetime import timedelta

import pytest
from jose import jwt

from app.core.exceptions import (
    ConfigurationError,
    ExpiredTokenError,
    InvalidTokenError,
    PrincipalInactiveError,
    SessionRevokedOrExpiredError,
    WrongSessionTypeError,
)
from app.core.security import create_session_token, decode_session_token, token_reference
from app.config import Settings
from app.models.session import AuthSession


def test_admin_session_round_trip(db, make_admin, session_service, clock):
    admin = make_admin()
    issued = session_service.issue(db, admin, "admin", "10.0.0.1", "pytest")

    assert issued.expires_at == clock.now + timedelta(hours=8)

    clock.advance(seconds=1)
    context = session_service.validate(db, issued.token, "admin")
    assert context.principal.id == admin.id
    assert context.role == "super_admin"
    assert context.claims["login"] == "admin"
    assert context.session.last_activity == clock.now


def test_team_session_lasts_24_hours(db, make_team, session_service, clock):
    team = make_team()
    issued = session_service.issue(db, team, "team")
    assert issued.expires_at == clock.now + timedelta(hours=24)

    clock.advance(hours=23, minutes=59)
    assert session_service.validate(db, issued.token, "team").principal.id == team.id

    clock.advance(minutes=1)
    with pytest.raises(ExpiredTokenError):
        session_service.validate(db, issued.token, "team")


def test_only_token_digest_is_stored(db, make_admin, session_service):
    issued = session_service.issue(db, make_admin(), "admin")
    row = db.query(AuthSession).one()
    assert row.token_ref == token_reference(issued.token)
    assert issued.token not in row.token_ref


def test_expired_clone_is_rejected(db, make_admin, session_service, test_settings, clock):
    admin = make_admin()
    issued = session_service.issue(db, admin, "admin")
    claims = jwt.decode(
        issued.token,
        test_settings.SECRET_KEY,
        algorithms=["HS256"],
        options={"verify_exp": False},
    )
    clone = create_session_token(
        {k: claims[k] for k in ("sub", "login", "role", "session_type")},
        issued_at=clock.now - timedelta(hours=9),
        expires_at=clock.now - timedelta(hours=1),
        config=test_settings,
    )
    with pytest.raises(ExpiredTokenError):
        session_service.validate(db, clone, "admin")


def test_tampered_token_is_invalid(db, make_admin, session_service):
    issued = session_service.issue(db, make_admin(), "admin")
    tampered = issued.token[:-2] + ("A" if issued.token[-2] != "A" else "B") + issued.token[-1]
    with pytest.raises(InvalidTokenError):
        session_service.validate(db, tampered, "admin")


def test_token_signed_with_other_key_is_invalid(db, make_admin, session_service, clock):
    admin = make_admin()
    other = Settings(SECRET_KEY="o" * 64)
    forged = create_session_token(
        {"sub": str(admin.id), "login": "admin", "role": "super_admin", "session_type": "admin"},
        issued_at=clock.now,
        expires_at=clock.now + timedelta(hours=1),
        config=other,
    )
    with pytest.raises(InvalidTokenError):
        session_service.validate(db, forged, "admin")


def test_valid_signature_without_session_row_is_rejected(db, make_admin, session_service, test_settings, clock):
    admin = make_admin()
    token = create_session_token(
        {"sub": str(admin.id), "login": "admin", "role": "super_admin", "session_type": "admin"},
        issued_at=clock.now,
        expires_at=clock.now + timedelta(hours=1),
        config=test_settings,
    )
    with pytest.raises(SessionRevokedOrExpiredError):
        session_service.validate(db, token, "admin")


def test_team_token_rejected_on_admin_endpoint(db, make_team, session_service):
    issued = session_service.issue(db, make_team(), "team")
    with pytest.raises(WrongSessionTypeError):
        session_service.validate(db, issued.token, "admin")


def test_issue_validate_revoke_validate(db, make_admin, session_service):
    issued = session_service.issue(db, make_admin(), "admin")
    session_service.validate(db, issued.token, "admin")

    assert session_service.revoke(db, issued.token) is True
    with pytest.raises(SessionRevokedOrExpiredError):
        session_service.validate(db, issued.token, "admin")
    assert session_service.revoke(db, issued.token) is False


def test_revoke_tolerates_garbage(db, session_service):
    assert session_service.revoke(db, "not-a-jwt") is False
    assert session_service.revoke(db, "") is False
    assert session_service.revoke(db, None) is False


def test_deactivated_principal_is_rejected(db, make_team, session_service):
    team = make_team()
    issued = session_service.issue(db, team, "team")
    team.is_active = False
    db.commit()
    with pytest.raises(PrincipalInactiveError):
        session_service.validate(db, issued.token, "team")


def test_session_row_expiry_is_enforced(db, make_admin, session_service, clock):
    issued = session_service.issue(db, make_admin(), "admin", ttl=timedelta(hours=8))
    row = db.query(AuthSession).one()
    row.expires_at = clock.now + timedelta(minutes=5)
    db.commit()

    clock.advance(minutes=5)
    with pytest.raises(SessionRevokedOrExpiredError):
        session_service.validate(db, issued.token, "admin")


def test_revoke_all_for_principal(db, make_admin, session_service):
    admin = make_admin()
    first = session_service.issue(db, admin, "admin")
    second = session_service.issue(db, admin, "admin")
    assert session_service.revoke_all_for_principal(db, "admin", admin.id) == 2
    for issued in (first, second):
        with pytest.raises(SessionRevokedOrExpiredError):
            session_service.validate(db, issued.token, "admin")


def test_missing_signing_key_fails_closed(clock):
    with pytest.raises(ConfigurationError):
        create_session_token(
            {"sub": "1", "login": "a", "role": "admin", "session_type": "admin"},
            issued_at=clock.now,
            expires_at=clock.now + timedelta(hours=1),
            config=Settings(SECRET_KEY=""),
        )


def test_decode_reports_expiry(test_settings, clock):
    token = create_session_token(
        {"sub": "1", "login": "a", "role": "admin", "session_type": "admin"},
        issued_at=clock.now,
        expires_at=clock.now + timedelta(hours=8),
        config=test_settings,
    )
    payload = decode_session_token(token, now=clock.now, config=test_settings)
    assert payload["expires_at"] == clock.now + timedelta(hours=8)
    assert payload["jti"]
