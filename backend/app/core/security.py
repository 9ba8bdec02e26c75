"""Security utilities - JWT signing, password hashing, request helpers"""

import calendar
import hashlib
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

import bcrypt
from jose import JWTError, jwt

from app.config import MAX_PASSWORD_BYTES, Settings, settings
from app.core.exceptions import ConfigurationError, ExpiredTokenError, InvalidTokenError, ValidationError

_REQUIRED_CLAIMS = ("sub", "login", "role", "session_type", "exp")

# Used to keep sign-in timing uniform when the login identifier is unknown.
_DUMMY_PASSWORD_HASH = bcrypt.hashpw(b"not-a-real-password", bcrypt.gensalt()).decode("utf-8")


def utc_now() -> datetime:
    """Current UTC time as a naive datetime (the convention for all stored timestamps)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Normalise a possibly tz-aware datetime read back from the database."""
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash

    bcrypt.checkpw compares digests in constant time.

    Args:
        plain_password: Plain text password
        hashed_password: Hashed password

    Returns:
        bool: True if password matches
    """
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        # Malformed digests and over-long passwords never authenticate.
        return False


def burn_password_check(plain_password: str) -> None:
    """Spend the same bcrypt work as a real check against a throwaway digest."""
    verify_password(plain_password, _DUMMY_PASSWORD_HASH)


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt

    Args:
        password: Plain text password

    Returns:
        str: Hashed password
    """
    encoded = password.encode('utf-8')
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValidationError(
            f"Password must be at most {MAX_PASSWORD_BYTES} bytes",
            {"field": "password"},
        )
    return bcrypt.hashpw(
        encoded,
        bcrypt.gensalt()
    ).decode('utf-8')


def _signing_key(config: Settings) -> str:
    """Return the signing key or fail closed."""
    if not config.SECRET_KEY:
        raise ConfigurationError("Token signing key is not configured")
    if config.is_production and config.signing_key_problem():
        raise ConfigurationError("Token signing key is too weak for production")
    return config.SECRET_KEY


def create_session_token(
    claims: Mapping[str, Any],
    *,
    issued_at: datetime,
    expires_at: datetime,
    config: Optional[Settings] = None,
) -> str:
    """
    Create a signed session JWT

    Args:
        claims: Identity claims (sub, login, role, session_type)
        issued_at: Issue time (naive UTC)
        expires_at: Embedded expiry (naive UTC)
        config: Settings override, defaults to the process settings

    Returns:
        str: Encoded JWT token
    """
    config = config or settings
    to_encode = dict(claims)
    to_encode.update({
        "iat": calendar.timegm(issued_at.utctimetuple()),
        "exp": calendar.timegm(expires_at.utctimetuple()),
        "jti": secrets.token_urlsafe(32),  # Unique token ID
    })
    return jwt.encode(to_encode, _signing_key(config), algorithm=config.ALGORITHM)


def decode_session_token(
    token: str,
    *,
    now: Optional[datetime] = None,
    config: Optional[Settings] = None,
) -> Dict[str, Any]:
    """
    Decode and verify a session JWT

    The signature is checked by jose; expiry is checked here against ``now``
    so callers can supply their own clock.

    Raises:
        InvalidTokenError: Bad signature, structure or missing claims
        ExpiredTokenError: Embedded expiry has passed
    """
    config = config or settings
    if not token or not isinstance(token, str):
        raise InvalidTokenError("empty_token")
    try:
        payload = jwt.decode(
            token,
            _signing_key(config),
            algorithms=[config.ALGORITHM],
            options={"verify_exp": False, "verify_iat": False},
        )
    except JWTError:
        raise InvalidTokenError()

    if any(claim not in payload for claim in _REQUIRED_CLAIMS):
        raise InvalidTokenError("missing_claims")
    try:
        expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc).replace(tzinfo=None)
    except (TypeError, ValueError, OverflowError):
        raise InvalidTokenError("malformed_exp")

    if (now or utc_now()) >= expires_at:
        raise ExpiredTokenError()
    payload["expires_at"] = expires_at
    return payload


def token_reference(token: str) -> str:
    """Digest under which a session row references its token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def hash_identifier(identifier: str) -> str:
    """Hash sensitive identifiers before they reach logs or shared stores."""
    return hashlib.sha256(identifier.encode("utf-8")).hexdigest()


def generate_team_code() -> str:
    """
    Generate a public team code, e.g. ``TEAM_7Q2K9XPL``

    Returns:
        str: Random team code
    """
    alphabet = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
    return "TEAM_" + "".join(secrets.choice(alphabet) for _ in range(8))


def get_client_ip(headers: Mapping[str, str], fallback: Optional[str] = None) -> str:
    """Resolve the caller IP from proxy headers, then the socket peer."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    for header in ("x-real-ip", "cf-connecting-ip"):
        value = headers.get(header)
        if value:
            return value.strip()
    return fallback or "unknown"
