"""Pydantic schemas for users, organizations and email preferences."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from portal.db.enums import Role


class OrganizationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    registration_number: str | None = Field(None, max_length=100)
    address: str | None = Field(None, max_length=500)


class OrganizationUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    registration_number: str | None = Field(None, max_length=100)
    address: str | None = Field(None, max_length=500)
    is_active: bool | None = None


class OrganizationRead(BaseModel):
    id: UUID
    name: str
    email: str | None
    phone: str | None
    registration_number: str | None
    address: str | None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class UserRead(BaseModel):
    id: UUID
    email: str
    name: str | None
    phone: str | None
    role: Role
    organization_id: UUID | None
    onboarding_complete: bool
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ProfileUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    phone: str | None = Field(None, max_length=50)


class UserAccessUpdate(BaseModel):
    """Admin: organization assignment and activation. Role is fixed at creation."""
    organization_id: UUID | None = None
    is_active: bool | None = None


class EmailPreferencesRead(BaseModel):
    """Serialized as camelCase (documentRequests, taskAssignments, ...)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    document_requests: bool
    task_assignments: bool
    task_comments: bool
    invoices: bool
    signatures: bool
    announcements: bool


class EmailPreferencesUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    document_requests: bool | None = None
    task_assignments: bool | None = None
    task_comments: bool | None = None
    invoices: bool | None = None
    signatures: bool | None = None
    announcements: bool | None = None
