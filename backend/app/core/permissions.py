"""Role capabilities as a closed set of flags"""

from enum import Flag, auto
from typing import Dict

from app.core.exceptions import AuthorizationError


class Capability(Flag):
    """Everything a principal may be allowed to do."""

    NONE = 0
    MANAGE_TEAMS = auto()
    MANAGE_ADMINS = auto()
    VIEW_AUDIT_LOG = auto()
    CONTROL_CONTEST = auto()
    TAKE_QUIZ = auto()


ADMIN_CAPABILITIES = (
    Capability.MANAGE_TEAMS
    | Capability.MANAGE_ADMINS
    | Capability.VIEW_AUDIT_LOG
    | Capability.CONTROL_CONTEST
)

ROLE_CAPABILITIES: Dict[str, Capability] = {
    "super_admin": ADMIN_CAPABILITIES,
    "admin": ADMIN_CAPABILITIES & ~Capability.MANAGE_ADMINS,
    "moderator": Capability.VIEW_AUDIT_LOG,
    "team": Capability.TAKE_QUIZ,
}

ADMIN_ROLES = ("super_admin", "admin", "moderator")


def capabilities_for(role: str) -> Capability:
    """Unknown roles get nothing."""
    return ROLE_CAPABILITIES.get(role, Capability.NONE)


def has_capability(role: str, required: Capability) -> bool:
    return (capabilities_for(role) & required) == required


def require_capability(role: str, required: Capability) -> None:
    """
    Raises:
        AuthorizationError: If the role lacks any of the required flags
    """
    if not has_capability(role, required):
        raise AuthorizationError()


def capability_names(role: str) -> list:
    granted = capabilities_for(role)
    return sorted(c.name for c in Capability if c.value and c in granted)
