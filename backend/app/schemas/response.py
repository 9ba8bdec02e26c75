"""Generic API response schemas"""

from pydantic import BaseModel, Field
from typing import Optional, Any, Dict

from app.core.security import utc_now


def _timestamp() -> str:
    return utc_now().isoformat()


class ErrorResponse(BaseModel):
    """Generic API error response"""
    success: bool = False
    error: str
    details: Optional[Any] = None
    path: Optional[str] = None
    timestamp: str = Field(default_factory=_timestamp)


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    timestamp: str = Field(default_factory=_timestamp)
    readiness: Dict[str, Any] = {}
