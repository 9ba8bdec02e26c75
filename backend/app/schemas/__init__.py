"""Pydantic schemas for API validation"""

from app.schemas.auth import (
    AdminSignIn,
    TeamSignIn,
    TeamSignUp,
    AdminSummary,
    TeamSummary,
    AdminSignInResponse,
    TeamSignInResponse,
    SignOutResponse,
)
from app.schemas.contest import ContestControlRequest, ContestStateResponse, QuizSubmission, QuizAttemptResponse
from app.schemas.response import ErrorResponse, HealthResponse
from app.schemas.audit import AuditEventResponse

__all__ = [
    "AdminSignIn", "TeamSignIn", "TeamSignUp", "AdminSummary", "TeamSummary",
    "AdminSignInResponse", "TeamSignInResponse", "SignOutResponse",
    "ContestControlRequest", "ContestStateResponse", "QuizSubmission", "QuizAttemptResponse",
    "AuditEventResponse",
    "ErrorResponse", "HealthResponse",
]
