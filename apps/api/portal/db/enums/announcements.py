"""Announcement-related enums."""

from enum import Enum


class AnnouncementType(str, Enum):
    GENERAL = "general"
    TAX_DEADLINE = "tax_deadline"
    OFFICE_CLOSURE = "office_closure"
    NEW_SERVICE = "new_service"
