"""Application configuration management"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, List, Optional
from urllib.parse import quote_plus

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode

from app.core.exceptions import ConfigurationError

# Base directory: backend/
_BASE_DIR = Path(__file__).resolve().parent.parent

MIN_PRODUCTION_SECRET_LENGTH = 64

# bcrypt only accepts this many bytes of input.
MAX_PASSWORD_BYTES = 72

INSECURE_SECRET_MARKERS = {
    "",
    "dev-secret-key-change-in-production",
    "fallback-secret-for-development",
    "fallback-secret",
    "change-me",
}

INSECURE_ADMIN_PASSWORDS = {
    "admin123",
    "change_this_password_immediately",
}


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Application
    APP_NAME: str = "Contest Platform"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 4

    # Database (PostgreSQL)
    DATABASE_URL: str = ""
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "contest_db"
    POSTGRES_USER: str = "contest"
    POSTGRES_PASSWORD: str = "contest"
    DATABASE_POOL_SIZE: int = 30
    DATABASE_MAX_OVERFLOW: int = 20

    # Token signing
    SECRET_KEY: str = "dev-secret-key-change-in-production"
    ALGORITHM: str = "HS256"

    # Sessions
    ADMIN_SESSION_TTL_HOURS: int = 8
    TEAM_SESSION_TTL_HOURS: int = 24
    ADMIN_COOKIE_NAME: str = "admin-token"
    TEAM_COOKIE_NAME: str = "team-token"
    ADMIN_COOKIE_PATH: str = "/"
    TEAM_COOKIE_PATH: str = "/"

    # Login rate limiting
    MAX_LOGIN_ATTEMPTS: int = 5
    LOCKOUT_DURATION_MINUTES: int = 15
    RATE_LIMIT_WINDOW_MINUTES: int = 15
    RATE_LIMIT_BACKEND: str = "memory"  # memory | database

    # Worker queue
    RUN_EMBEDDED_WORKER: bool = True
    WORKER_POLL_INTERVAL_SECONDS: float = 1.0
    WORKER_MAX_RETRIES: int = 1
    WORKER_BATCH_SIZE: int = 5
    TASK_STALE_SECONDS: int = 300

    # Contest defaults
    DEFAULT_QUIZ_TIME_LIMIT_MINUTES: int = 30

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    # CORS
    CORS_ORIGINS: Annotated[List[str], NoDecode] = ["http://localhost:3000"]

    # Bootstrap admin (created at startup only when a password is configured)
    ADMIN_USERNAME: str = "admin"
    ADMIN_PASSWORD: str = ""
    ADMIN_EMAIL: Optional[str] = None

    # Database initialization discipline
    DB_INIT_MODE: str = "migrate"  # migrate | create_all | off
    DB_REQUIRE_HEAD: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, value: Any) -> Any:
        """
        Accept JSON array or comma-separated origins from env.

        Examples:
            CORS_ORIGINS=["http://localhost:3000","http://example.com"]
            CORS_ORIGINS=http://localhost:3000,http://example.com
        """
        if not isinstance(value, str):
            return value

        raw = value.strip()
        if not raw:
            return []

        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None

        if isinstance(parsed, str):
            return [parsed]
        if isinstance(parsed, list):
            return [str(origin).strip() for origin in parsed if str(origin).strip()]

        return [origin.strip() for origin in raw.split(",") if origin.strip()]

    @field_validator("RATE_LIMIT_BACKEND")
    @classmethod
    def _check_rate_limit_backend(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in {"memory", "database"}:
            raise ValueError("RATE_LIMIT_BACKEND must be 'memory' or 'database'")
        return value

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    def get_log_file(self) -> str:
        p = self.LOG_FILE
        if not p or p.startswith(".."):
            return str(_BASE_DIR.parent / "logs" / "app.log")
        return p

    def get_database_url(self) -> str:
        """
        Resolve database URL.

        Priority:
          1) Explicit DATABASE_URL
          2) Construct from POSTGRES_* parts with safe URL encoding
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL

        user = quote_plus(self.POSTGRES_USER)
        password = quote_plus(self.POSTGRES_PASSWORD)
        return (
            f"postgresql://{user}:{password}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    def signing_key_problem(self) -> Optional[str]:
        """Describe why SECRET_KEY is unfit for production, or None if it is strong."""
        if self.SECRET_KEY in INSECURE_SECRET_MARKERS:
            return "SECRET_KEY is empty or a known placeholder"
        if len(self.SECRET_KEY) < MIN_PRODUCTION_SECRET_LENGTH:
            return f"SECRET_KEY must be at least {MIN_PRODUCTION_SECRET_LENGTH} characters"
        return None

    @property
    def insecure_mode(self) -> bool:
        """True when running outside production with a weak signing key."""
        return not self.is_production and self.signing_key_problem() is not None

    def validate_security_settings(self) -> None:
        """
        Validate runtime security defaults in production.

        Raises:
            ConfigurationError: If insecure defaults are detected.
        """
        if not self.SECRET_KEY:
            raise ConfigurationError("SECRET_KEY must be configured.")

        if len(self.ADMIN_PASSWORD.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ConfigurationError(
                f"ADMIN_PASSWORD must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded."
            )

        if not self.is_production:
            return

        problem = self.signing_key_problem()
        if problem:
            raise ConfigurationError(
                f"Insecure SECRET_KEY for production: {problem}. "
                "Use a strong key (e.g. `openssl rand -hex 32`)."
            )

        if self.ADMIN_PASSWORD and (
            self.ADMIN_PASSWORD in INSECURE_ADMIN_PASSWORDS or len(self.ADMIN_PASSWORD) < 10
        ):
            raise ConfigurationError(
                "Insecure ADMIN_PASSWORD for production. Set a strong admin password before startup."
            )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
