"""Auth-related enums."""

from enum import Enum


class Role(str, Enum):
    """
    User roles.

    - CLIENT: Member of a client organization (sees only their org's records)
    - STAFF: Firm staff (manage client records, no org administration)
    - ADMIN: Firm admin (everything, including org/user administration)
    """

    CLIENT = "client"
    STAFF = "staff"
    ADMIN = "admin"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_


STAFF_ROLES = (Role.STAFF, Role.ADMIN)
