"""SQLAlchemy ORM models for invoices and payments."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.db.base import Base
from portal.db.enums import InvoiceStatus
from portal.db.types import utcnow


class Invoice(Base):
    """
    Invoice issued to a client organization. Amounts are in cents.

    Reminder state machine (persisted, monotonic):
    due_soon_reminder_sent_at -> overdue_reminder_sent_at -> weekly (repeating)
    last_reminder_tier/last_reminder_sent_at mirror the most recent tier fired.
    """

    __tablename__ = "invoices"
    __table_args__ = (
        Index("idx_invoices_org_status", "organization_id", "status"),
        Index("idx_invoices_status_due", "status", "due_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    invoice_number: Mapped[str] = mapped_column(String(30), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    line_items: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    paid_amount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="MYR", nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=InvoiceStatus.DRAFT.value, nullable=False
    )
    due_date: Mapped[datetime] = mapped_column(nullable=False)
    issued_at: Mapped[datetime | None] = mapped_column(nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # Reminder tiers (each fires at most once; weekly repeats every 7 days)
    due_soon_reminder_sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    overdue_reminder_sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_weekly_reminder_at: Mapped[datetime | None] = mapped_column(nullable=True)
    weekly_reminder_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_reminder_tier: Mapped[str | None] = mapped_column(String(20), nullable=True)
    last_reminder_sent_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, nullable=False
    )

    payments: Mapped[list[Payment]] = relationship(
        back_populates="invoice", order_by="Payment.paid_at"
    )

    @property
    def balance(self) -> int:
        return max(self.amount - (self.paid_amount or 0), 0)


class InvoiceSequence(Base):
    """Per-year counter backing INV-YYYY-NNNN numbers."""

    __tablename__ = "invoice_sequences"

    year: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    last_number: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class Payment(Base):
    """A payment recorded against an invoice."""

    __tablename__ = "payments"
    __table_args__ = (Index("idx_payments_invoice", "invoice_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    method: Mapped[str] = mapped_column(String(20), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    paid_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    recorded_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    invoice: Mapped[Invoice] = relationship(back_populates="payments")
