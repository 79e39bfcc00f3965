"""Pydantic schemas for announcements."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from portal.db.enums import AnnouncementType


class AnnouncementCreate(BaseModel):
    """
    Create an announcement.

    scheduled_for in the future keeps it unpublished until the hourly job
    runs; otherwise it is published immediately. An empty target list means
    every client organization.
    """
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1, max_length=20000)
    type: AnnouncementType = AnnouncementType.GENERAL
    target_organization_ids: list[UUID] = Field(default_factory=list)
    is_pinned: bool = False
    scheduled_for: datetime | None = None
    expires_at: datetime | None = None


class AnnouncementUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    content: str | None = Field(None, min_length=1, max_length=20000)
    type: AnnouncementType | None = None
    target_organization_ids: list[UUID] | None = None
    is_pinned: bool | None = None
    scheduled_for: datetime | None = None
    expires_at: datetime | None = None


class AnnouncementRead(BaseModel):
    id: UUID
    title: str
    content: str
    type: AnnouncementType
    target_organization_ids: list[UUID]
    is_pinned: bool
    is_published: bool
    scheduled_for: datetime | None
    published_at: datetime | None
    expires_at: datetime | None
    created_at: datetime
    is_read: bool = False

    model_config = {"from_attributes": True}


class UnreadCount(BaseModel):
    count: int
