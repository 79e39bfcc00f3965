"""Organization access control - centralized tenant checks.

- Staff/admin: any organization
- Client: only their own organization
"""

from uuid import UUID

from portal.db.enums import Role, STAFF_ROLES
from portal.db.models import User


class OrganizationAccessError(Exception):
    """User may not read or write records of this organization."""

    pass


def is_staff(role: Role | str) -> bool:
    role_str = role.value if hasattr(role, "value") else role
    return role_str in {r.value for r in STAFF_ROLES}


def can_access_org(user: User, org_id: UUID | None) -> bool:
    if not user.is_active:
        return False
    if is_staff(user.role):
        return True
    return org_id is not None and user.organization_id == org_id


def check_org_access(user: User, org_id: UUID | None) -> None:
    """
    Raises:
        OrganizationAccessError: if access denied
    """
    if not can_access_org(user, org_id):
        raise OrganizationAccessError("Access denied to this organization")


def check_staff(user: User) -> None:
    """
    Raises:
        OrganizationAccessError: if the user is not firm staff/admin
    """
    if not user.is_active or not is_staff(user.role):
        raise OrganizationAccessError("Staff access required")
