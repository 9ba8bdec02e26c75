"""Authentication and principal schemas"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from app.config import MAX_PASSWORD_BYTES


class AdminSignIn(BaseModel):
    """Admin sign-in schema"""
    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1, max_length=256)


class TeamSignIn(BaseModel):
    """Team sign-in schema"""
    team_name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1, max_length=256)

    @field_validator("team_name")
    @classmethod
    def strip_team_name(cls, v):
        return v.strip()


class TeamMember(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    is_leader: bool = False


class TeamSignUp(BaseModel):
    """Team registration schema"""
    team_name: str = Field(..., min_length=2, max_length=100)
    leader_name: str = Field(..., min_length=1, max_length=100)
    leader_email: EmailStr
    member_names: List[str] = Field(..., min_length=1, max_length=4)
    password: str = Field(..., min_length=4, max_length=MAX_PASSWORD_BYTES)
    confirm_password: str

    @field_validator("team_name", "leader_name")
    @classmethod
    def strip_names(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Name must not be blank")
        return v

    @field_validator("member_names")
    @classmethod
    def validate_members(cls, v):
        """Validate and clean member names"""
        cleaned = [name.strip() for name in v]
        if any(not name for name in cleaned):
            raise ValueError("Member names must not be blank")
        lowered = [name.lower() for name in cleaned]
        if len(lowered) != len(set(lowered)):
            raise ValueError("Duplicate member names found in list")
        return cleaned

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v):
        if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return v

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Team passwords don't match")
        return self


class AdminSummary(BaseModel):
    """Admin response schema (never includes the password digest)"""
    id: int
    username: str
    email: Optional[str] = None
    role: str
    is_active: bool
    capabilities: List[str] = []
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True


class TeamSummary(BaseModel):
    """Team response schema (never includes the password digest)"""
    id: int
    team_name: str
    team_code: str
    leader_name: str
    leader_email: str
    members: List[TeamMember] = []
    current_round: int
    is_active: bool
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True


class AdminSignInResponse(BaseModel):
    message: str = "Admin signed in successfully"
    admin: AdminSummary
    expires_at: datetime


class TeamSignInResponse(BaseModel):
    message: str = "Signed in successfully"
    team: TeamSummary
    expires_at: datetime


class SignOutResponse(BaseModel):
    success: bool = True
    message: str = "Signed out successfully"
