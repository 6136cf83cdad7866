"""
Roles × resources. Access is granted by shared password:
site staff get ROLE_PHARMACY (weekly entry), managers get ROLE_MANAGER (entry + dashboard).
"""
import enum
from typing import List, Optional


class Role(str, enum.Enum):
    ROLE_PHARMACY = "ROLE_PHARMACY"
    ROLE_MANAGER = "ROLE_MANAGER"


class Resource(str, enum.Enum):
    ENTRY = "ENTRY"          # weekly figures form
    DASHBOARD = "DASHBOARD"  # KPIs, trends, export
    EMAIL = "EMAIL"          # summary email drafting


RESOURCE_ROLES = {
    Resource.ENTRY: [Role.ROLE_PHARMACY, Role.ROLE_MANAGER],
    Resource.DASHBOARD: [Role.ROLE_MANAGER],
    Resource.EMAIL: [Role.ROLE_MANAGER],
}


def _parse_role(role: str) -> Optional[Role]:
    try:
        return Role(role)
    except ValueError:
        return None


def can_access(role: str, resource: Resource) -> bool:
    r = _parse_role(role)
    if r is None:
        return False
    return r in RESOURCE_ROLES.get(resource, [])


def allowed_resources(role: str) -> List[str]:
    r = _parse_role(role)
    if r is None:
        return []
    return [res.value for res, roles in RESOURCE_ROLES.items() if r in roles]
