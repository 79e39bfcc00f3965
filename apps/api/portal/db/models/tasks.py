"""SQLAlchemy ORM models for tasks, comments and recurring task templates."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.db.base import Base
from portal.db.enums import TaskPriority, TaskStatus
from portal.db.types import utcnow


class Task(Base):
    """
    Work item for a client organization.

    Permissions:
    - Staff/admin: create, edit, cancel
    - Org members: update status, comment
    """

    __tablename__ = "tasks"
    __table_args__ = (
        Index("idx_tasks_org_status", "organization_id", "status"),
        Index("idx_tasks_due", "status", "due_date"),
        Index("idx_tasks_assignee", "assigned_to_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=TaskStatus.PENDING.value, nullable=False
    )
    priority: Mapped[str] = mapped_column(
        String(10), default=TaskPriority.MEDIUM.value, nullable=False
    )
    due_date: Mapped[datetime | None] = mapped_column(nullable=True)

    assigned_to_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    template_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("task_templates.id", ondelete="SET NULL"), nullable=True
    )

    # Set iff status == completed
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # Reminder marker: at most one due reminder per UTC day
    last_reminded_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, nullable=False
    )

    comments: Mapped[list[TaskComment]] = relationship(
        back_populates="task", order_by="TaskComment.created_at"
    )


class TaskComment(Base):
    """Append-only comment thread entry on a task (ordered by created_at)."""

    __tablename__ = "task_comments"
    __table_args__ = (Index("idx_task_comments_task", "task_id", "created_at"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    task_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    edited_at: Mapped[datetime | None] = mapped_column(nullable=True)

    task: Mapped[Task] = relationship(back_populates="comments")


class TaskTemplate(Base):
    """
    Firm-wide recurring task definition.

    Recurrence fields used per frequency:
    - weekly: day_of_week (0=Monday)
    - monthly: day_of_month
    - quarterly: quarter_month (1-3) + day_of_month
    - yearly: month_of_year + day_of_month
    """

    __tablename__ = "task_templates"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    # Defaults for generated tasks (fall back to name/description)
    task_title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    task_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    frequency: Mapped[str] = mapped_column(String(20), nullable=False)
    day_of_week: Mapped[int | None] = mapped_column(Integer, nullable=True)
    day_of_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    quarter_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    month_of_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    due_days_after_generation: Mapped[int] = mapped_column(Integer, default=14, nullable=False)
    priority: Mapped[str] = mapped_column(
        String(10), default=TaskPriority.MEDIUM.value, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, nullable=False
    )

    subscriptions: Mapped[list[TemplateSubscription]] = relationship(
        back_populates="template"
    )


class TemplateSubscription(Base):
    """
    An organization's subscription to a recurring task template.

    next_generation_at is the next-occurrence timestamp the daily
    generation job compares against.
    """

    __tablename__ = "template_subscriptions"
    __table_args__ = (
        UniqueConstraint(
            "organization_id", "template_id", name="uq_template_subscriptions_org_template"
        ),
        Index("idx_template_subscriptions_due", "is_active", "next_generation_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    template_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("task_templates.id", ondelete="CASCADE"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    custom_title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    custom_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    assign_to_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    next_generation_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_generated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    template: Mapped[TaskTemplate] = relationship(back_populates="subscriptions")
