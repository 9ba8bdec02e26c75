import os
import tempfile
from datetime import datetime, timedelta

# Settings are read once at import time; point them at a throwaway database first.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_INIT_MODE", "off")
os.environ.setdefault("RUN_EMBEDDED_WORKER", "false")
os.environ.setdefault("SECRET_KEY", "test-signing-key-" + "x" * 64)
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "contest-tests", "app.log"))

import pytest
from sqlalchemy.orm import sessionmaker

from app.config import Settings
from app.core.database import Base, engine
from app.core.security import get_password_hash
from app.models.principal import AdminUser, Team
from app.services.rate_limiter import InMemoryRateLimitStore, LoginRateLimiter, RateLimitPolicy
from app.services.session_service import SessionService
from app.services.auth_service import AuthService

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeClock:
    """Manually advanced clock returning naive UTC datetimes."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 3, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def test_settings():
    return Settings(SECRET_KEY="k" * 64, ENVIRONMENT="development")


@pytest.fixture
def session_service(test_settings, clock):
    return SessionService(config=test_settings, clock=clock)


@pytest.fixture
def auth_service(session_service, clock):
    limiter = LoginRateLimiter(store=InMemoryRateLimitStore(), policy=RateLimitPolicy(), clock=clock)
    return AuthService(rate_limiter=limiter, session_service=session_service, clock=clock)


@pytest.fixture
def make_admin(db):
    def _make(username="admin", password="correct-horse-battery", role="super_admin", is_active=True):
        admin = AdminUser(
            username=username,
            password_hash=get_password_hash(password),
            role=role,
            is_active=is_active,
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)
        return admin
    return _make


@pytest.fixture
def make_team(db):
    def _make(team_name="Team Rocket", password="team-pass", is_active=True):
        team = Team(
            team_name=team_name,
            team_code=f"TEAM_{abs(hash(team_name)) % 10**8:08d}",
            password_hash=get_password_hash(password),
            leader_name="Jessie",
            leader_email="jessie@rocket.io",
            members=[{"name": "Jessie", "email": "jessie@rocket.io", "is_leader": True}],
            is_active=is_active,
        )
        db.add(team)
        db.commit()
        db.refresh(team)
        return team
    return _make


@pytest.fixture
def client(db):
    from fastapi.testclient import TestClient

    from app.core.database import get_db
    from app.main import app

    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.auth_service = None
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        app.state.auth_service = None
