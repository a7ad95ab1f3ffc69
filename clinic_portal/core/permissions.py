"""
Core permissions utilities: which page audience each role belongs to.
"""
from enum import Enum
from typing import Dict
from ..auth.models import Role

class Audience(str, Enum):
    """
    Page audiences of the route-access matrix.
    """
    ADMIN = "admin"
    STAFF = "staff"
    PATIENT = "patient"


# Every Role must appear here; checked below at import time
ROLE_AUDIENCE: Dict[Role, Audience] = {
    Role.ADMIN: Audience.ADMIN,
    Role.DOCTOR: Audience.STAFF,
    Role.STAFF: Audience.STAFF,
    Role.PATIENT: Audience.PATIENT,
}

_unmapped = set(Role) - set(ROLE_AUDIENCE)
if _unmapped:
    raise RuntimeError(f"Roles without a page audience: {sorted(r.value for r in _unmapped)}")


def audience_for(role: Role) -> Audience:
    """
    Get the page audience for a role.

    Args:
        role: Portal role

    Returns:
        Audience: The audience the role belongs to
    """
    return ROLE_AUDIENCE[Role(role)]


def is_admin(role: Role) -> bool:
    return audience_for(role) is Audience.ADMIN


def is_patient(role: Role) -> bool:
    return audience_for(role) is Audience.PATIENT
