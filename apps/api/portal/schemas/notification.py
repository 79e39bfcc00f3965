"""Pydantic schemas for in-app notifications and the activity feed."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class NotificationRead(BaseModel):
    id: UUID
    organization_id: UUID | None
    type: str
    title: str
    message: str
    link: str | None
    is_read: bool
    read_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationList(BaseModel):
    items: list[NotificationRead]
    unread_count: int


class ActivityRead(BaseModel):
    id: UUID
    organization_id: UUID | None
    user_id: UUID | None
    action: str
    resource_type: str
    resource_id: str | None
    resource_name: str | None
    details: dict | None
    created_at: datetime

    model_config = {"from_attributes": True}
