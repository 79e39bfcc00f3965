"""SQLAlchemy ORM models for tenants, users and email preferences."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.db.base import Base
from portal.db.enums import Role
from portal.db.types import utcnow


class Organization(Base):
    """
    A client company of the firm (the tenant).

    All client-owned records belong to exactly one organization
    and must be scoped by organization_id in all queries.
    """

    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    registration_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, nullable=False
    )

    users: Mapped[list[User]] = relationship(back_populates="organization")


class User(Base):
    """
    Portal user, synced from the identity provider on first sign-in.

    Staff/admin users may have no organization; clients must end up with one.
    """

    __tablename__ = "users"
    __table_args__ = (Index("idx_users_org", "organization_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    external_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    role: Mapped[str] = mapped_column(String(20), default=Role.CLIENT.value, nullable=False)
    organization_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True
    )
    onboarding_complete: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, nullable=False
    )

    organization: Mapped[Organization | None] = relationship(back_populates="users")
    email_preferences: Mapped[EmailPreferences | None] = relationship(
        back_populates="user", uselist=False
    )

    @property
    def display_name(self) -> str:
        return self.name or self.email


class EmailPreferences(Base):
    """
    Per-user email category toggles.

    Missing row = all categories ON. Created lazily on first change.
    """

    __tablename__ = "email_preferences"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    document_requests: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    task_assignments: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    task_comments: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    invoices: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    signatures: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    announcements: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, nullable=False
    )

    user: Mapped[User] = relationship(back_populates="email_preferences")
