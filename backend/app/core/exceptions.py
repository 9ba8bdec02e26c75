"""Custom exception classes for the application"""

from datetime import datetime
from typing import Optional, Dict, Any


class BaseAPIException(Exception):
    """Base exception for all API errors"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# Authentication Errors
class AuthenticationError(BaseAPIException):
    """Base authentication error"""
    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=401, details=details)


class InvalidCredentialsError(AuthenticationError):
    """Unknown login identifier or wrong password (deliberately indistinguishable)"""
    def __init__(self):
        super().__init__("Invalid username or password")


class UnauthorizedError(AuthenticationError):
    """
    Token or session check failed.

    Every subclass renders as the same public "Unauthorized" message; the
    specific failure lives in ``reason`` and is only ever logged.
    """
    reason = "unauthorized"

    def __init__(self, reason: Optional[str] = None):
        if reason:
            self.reason = reason
        super().__init__("Unauthorized")


class InvalidTokenError(UnauthorizedError):
    """Bad signature, structure or claims"""
    reason = "invalid_token"


class ExpiredTokenError(UnauthorizedError):
    """Embedded token expiry has passed"""
    reason = "expired_token"


class SessionRevokedOrExpiredError(UnauthorizedError):
    """No live session row for the token"""
    reason = "session_revoked_or_expired"


class WrongSessionTypeError(UnauthorizedError):
    """Admin endpoint called with a team token or vice versa"""
    reason = "wrong_session_type"


class PrincipalInactiveError(UnauthorizedError):
    """Principal was deactivated or removed after the token was issued"""
    reason = "principal_inactive"


class RateLimitExceededError(BaseAPIException):
    """Rate limit exceeded"""
    def __init__(
        self,
        message: str = "Too many login attempts. Please try again later.",
        locked_until: Optional[datetime] = None,
    ):
        details = {"locked_until": locked_until.isoformat()} if locked_until else None
        self.locked_until = locked_until
        super().__init__(message, status_code=429, details=details)


# Authorization Errors
class AuthorizationError(BaseAPIException):
    """Insufficient permissions"""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, status_code=403)


# Resource Errors
class ResourceNotFoundError(BaseAPIException):
    """Resource not found"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", status_code=404)


class ResourceAlreadyExistsError(BaseAPIException):
    """Resource already exists"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} already exists", status_code=409)


# Validation Errors
class ValidationError(BaseAPIException):
    """Validation error"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=422, details=details)


# Business Logic Errors
class BusinessLogicError(BaseAPIException):
    """Business logic error"""
    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class QuizNotActiveError(BusinessLogicError):
    """Quiz is not currently running"""
    def __init__(self):
        super().__init__("Quiz is not currently active")


# System Errors
class StorageError(BaseAPIException):
    """Credential/session store operation failed"""
    def __init__(self, message: str = "Storage operation failed"):
        super().__init__(message, status_code=500)


class ConfigurationError(BaseAPIException):
    """Server is misconfigured (e.g. missing or weak signing key)"""
    def __init__(self, message: str = "Server configuration error"):
        super().__init__(message, status_code=500)
