"""Pydantic schemas for tasks, comments and recurring templates."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from portal.db.enums import RecurrenceFrequency, TaskPriority, TaskStatus


class TaskCreate(BaseModel):
    """Request to create a task."""
    organization_id: UUID
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: datetime | None = None
    assigned_to_id: UUID | None = None


class TaskUpdate(BaseModel):
    """Request to update a task (partial)."""
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    priority: TaskPriority | None = None
    due_date: datetime | None = None
    assigned_to_id: UUID | None = None


class TaskStatusUpdate(BaseModel):
    status: TaskStatus


class TaskRead(BaseModel):
    """Full task response."""
    id: UUID
    organization_id: UUID
    title: str
    description: str | None
    status: TaskStatus
    priority: TaskPriority
    due_date: datetime | None
    assigned_to_id: UUID | None
    created_by_id: UUID | None
    template_id: UUID | None
    completed_at: datetime | None
    completed_by_id: UUID | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TaskCommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


class TaskCommentRead(BaseModel):
    id: UUID
    task_id: UUID
    author_id: UUID
    content: str
    created_at: datetime
    edited_at: datetime | None

    model_config = {"from_attributes": True}


# =============================================================================
# Recurring templates
# =============================================================================

class TaskTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    category: str | None = Field(None, max_length=50)
    task_title: str | None = Field(None, max_length=200)
    task_description: str | None = Field(None, max_length=5000)
    frequency: RecurrenceFrequency
    day_of_week: int | None = Field(None, ge=0, le=6)
    day_of_month: int | None = Field(None, ge=1, le=28)
    quarter_month: int | None = Field(None, ge=1, le=3)
    month_of_year: int | None = Field(None, ge=1, le=12)
    due_days_after_generation: int = Field(14, ge=1, le=365)
    priority: TaskPriority = TaskPriority.MEDIUM


class TaskTemplateUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    category: str | None = Field(None, max_length=50)
    task_title: str | None = Field(None, max_length=200)
    task_description: str | None = Field(None, max_length=5000)
    frequency: RecurrenceFrequency | None = None
    day_of_week: int | None = Field(None, ge=0, le=6)
    day_of_month: int | None = Field(None, ge=1, le=28)
    quarter_month: int | None = Field(None, ge=1, le=3)
    month_of_year: int | None = Field(None, ge=1, le=12)
    due_days_after_generation: int | None = Field(None, ge=1, le=365)
    priority: TaskPriority | None = None
    is_active: bool | None = None


class TaskTemplateRead(BaseModel):
    id: UUID
    name: str
    description: str | None
    category: str | None
    task_title: str | None
    task_description: str | None
    frequency: RecurrenceFrequency
    day_of_week: int | None
    day_of_month: int | None
    quarter_month: int | None
    month_of_year: int | None
    due_days_after_generation: int
    priority: TaskPriority
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class SubscriptionCreate(BaseModel):
    organization_id: UUID
    template_id: UUID
    custom_title: str | None = Field(None, max_length=200)
    custom_description: str | None = Field(None, max_length=5000)
    assign_to_id: UUID | None = None


class SubscriptionRead(BaseModel):
    id: UUID
    organization_id: UUID
    template_id: UUID
    is_active: bool
    custom_title: str | None
    custom_description: str | None
    assign_to_id: UUID | None
    next_generation_at: datetime | None
    last_generated_at: datetime | None

    model_config = {"from_attributes": True}
