"""
Invoice service - invoices, numbering, payments and financial summary.

Status flow: draft -> pending -> overdue -> paid, with draft/pending/overdue
-> cancelled. Amounts are integer cents.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy.orm import Session

from portal.core.org_access import check_org_access, check_staff, is_staff
from portal.db.enums import EmailEvent, InvoiceStatus, NotificationType
from portal.db.models import Invoice, InvoiceSequence, Organization, Payment, User
from portal.db.types import utcnow
from portal.schemas.invoice import (
    FinancialSummary,
    InvoiceCreate,
    InvoiceUpdate,
    LineItem,
    PaymentCreate,
)
from portal.services import activity_service, notification_dispatcher, notification_service
from portal.services.email_templates import format_money

logger = logging.getLogger(__name__)

MAX_QUANTITY = 1_000_000
MAX_UNIT_PRICE = 100_000_000
MAX_DESCRIPTION_LENGTH = 1000
OPEN_STATUSES = (InvoiceStatus.PENDING.value, InvoiceStatus.OVERDUE.value)


class InvoiceServiceError(Exception):
    """Base exception for invoice service errors."""

    pass


class InvoiceNotFoundError(InvoiceServiceError):
    """Invoice not found (or not visible)."""

    pass


# =============================================================================
# Validation & numbering
# =============================================================================

def validate_line_items(line_items: list[LineItem]) -> int:
    """
    Validate line items and return the total in cents.

    Raises:
        ValueError: First offending item, 1-based
    """
    if not line_items:
        raise ValueError("At least one line item is required")

    total = 0
    for index, item in enumerate(line_items, start=1):
        if not item.description or not item.description.strip():
            raise ValueError(f"Line item {index}: Description is required")
        if item.quantity <= 0:
            raise ValueError(f"Line item {index}: Quantity must be positive")
        if item.quantity > MAX_QUANTITY:
            raise ValueError(f"Line item {index}: Quantity too large")
        if item.unit_price < 0:
            raise ValueError(f"Line item {index}: Unit price cannot be negative")
        if item.unit_price > MAX_UNIT_PRICE:
            raise ValueError(f"Line item {index}: Unit price too large")

        # Round half up, matching how the UI computes line amounts
        expected = math.floor(item.quantity * item.unit_price + 0.5)
        if abs(item.amount - expected) > 1:
            raise ValueError(
                f"Line item {index}: Amount mismatch (expected {expected}, got {item.amount})"
            )
        total += item.amount
    return total


def _clean_description(description: str | None) -> str:
    cleaned = (description or "").strip()
    if not cleaned:
        raise ValueError("Description is required")
    if len(cleaned) > MAX_DESCRIPTION_LENGTH:
        raise ValueError(f"Description too long (max {MAX_DESCRIPTION_LENGTH} characters)")
    return cleaned


def next_invoice_number(db: Session, year: int) -> str:
    """
    Allocate INV-YYYY-NNNN from the per-year sequence (flushes, no commit).

    Padding widens past 9999 (INV-2026-10000).
    """
    sequence = (
        db.query(InvoiceSequence)
        .filter(InvoiceSequence.year == year)
        .with_for_update()
        .first()
    )
    if not sequence:
        sequence = InvoiceSequence(year=year, last_number=0)
        db.add(sequence)
    sequence.last_number += 1
    db.flush()
    return f"INV-{year}-{sequence.last_number:04d}"


# =============================================================================
# Queries
# =============================================================================

def get_invoice(db: Session, invoice_id: UUID, actor: User | None = None) -> Invoice:
    """
    Clients never see drafts.

    Raises:
        InvoiceNotFoundError, OrganizationAccessError
    """
    invoice = db.query(Invoice).filter(Invoice.id == invoice_id).first()
    if not invoice:
        raise InvoiceNotFoundError(f"Invoice {invoice_id} not found")
    if actor is not None:
        check_org_access(actor, invoice.organization_id)
        if not is_staff(actor.role) and invoice.status == InvoiceStatus.DRAFT.value:
            raise InvoiceNotFoundError(f"Invoice {invoice_id} not found")
    return invoice


def _visible_invoices(db: Session, actor: User, org_id: UUID | None = None):
    query = db.query(Invoice)
    if is_staff(actor.role):
        if org_id:
            query = query.filter(Invoice.organization_id == org_id)
        return query
    target = org_id or actor.organization_id
    check_org_access(actor, target)
    return query.filter(
        Invoice.organization_id == target,
        Invoice.status != InvoiceStatus.DRAFT.value,
    )


def list_invoices(
    db: Session,
    actor: User,
    org_id: UUID | None = None,
    status: InvoiceStatus | None = None,
) -> list[Invoice]:
    query = _visible_invoices(db, actor, org_id)
    if status:
        query = query.filter(Invoice.status == status.value)
    return query.order_by(Invoice.created_at.desc()).all()


def list_payments(db: Session, invoice_id: UUID, actor: User) -> list[Payment]:
    invoice = get_invoice(db, invoice_id, actor)
    return (
        db.query(Payment)
        .filter(Payment.invoice_id == invoice.id)
        .order_by(Payment.paid_at)
        .all()
    )


# =============================================================================
# Mutations
# =============================================================================

def _notify_issued(db: Session, invoice: Invoice) -> None:
    recipients = notification_service.get_org_users(db, invoice.organization_id)
    notification_service.notify_users(
        db,
        recipients,
        type=NotificationType.INVOICE_DUE,
        title="New invoice",
        message=f"Invoice {invoice.invoice_number} has been issued. Click to view details.",
        org_id=invoice.organization_id,
        link="/invoices",
    )
    notification_dispatcher.queue_email_to_users(
        db,
        event=EmailEvent.INVOICE_CREATED,
        recipients=recipients,
        org_id=invoice.organization_id,
        invoice_number=invoice.invoice_number,
        amount=format_money(invoice.amount, invoice.currency),
        due_date=invoice.due_date,
    )


def create_invoice(db: Session, actor: User, data: InvoiceCreate) -> Invoice:
    """
    Staff: create a draft (or, with publish=True, an issued) invoice.

    Raises:
        OrganizationAccessError: Actor is not staff
        ValueError: Unknown org or invalid content
    """
    check_staff(actor)
    if not db.get(Organization, data.organization_id):
        raise ValueError("Organization not found")
    description = _clean_description(data.description)
    total = validate_line_items(data.line_items)

    now = utcnow()
    invoice = Invoice(
        organization_id=data.organization_id,
        invoice_number=next_invoice_number(db, now.year),
        description=description,
        line_items=[item.model_dump() for item in data.line_items],
        amount=total,
        currency=data.currency.upper(),
        status=InvoiceStatus.PENDING.value if data.publish else InvoiceStatus.DRAFT.value,
        due_date=data.due_date,
        issued_at=now if data.publish else None,
        created_by_id=actor.id,
    )
    db.add(invoice)
    db.flush()
    activity_service.log_activity(
        db,
        action="issued_invoice" if data.publish else "created_invoice",
        resource_type="invoice",
        user_id=actor.id,
        organization_id=invoice.organization_id,
        resource_id=invoice.id,
        resource_name=invoice.invoice_number,
        details={"amount": total},
    )
    db.commit()
    db.refresh(invoice)

    if data.publish:
        _notify_issued(db, invoice)
    return invoice


def update_invoice(db: Session, invoice_id: UUID, actor: User, data: InvoiceUpdate) -> Invoice:
    """Staff: edit a draft. Issued invoices are immutable except due date."""
    check_staff(actor)
    invoice = get_invoice(db, invoice_id, actor)
    if invoice.status != InvoiceStatus.DRAFT.value:
        raise ValueError("Only draft invoices can be edited")

    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("description") is not None:
        invoice.description = _clean_description(data.description)
    if data.line_items is not None:
        invoice.amount = validate_line_items(data.line_items)
        invoice.line_items = [item.model_dump() for item in data.line_items]
    if data.due_date is not None:
        invoice.due_date = data.due_date

    db.commit()
    db.refresh(invoice)
    return invoice


def change_due_date(db: Session, invoice_id: UUID, actor: User, due_date: datetime) -> Invoice:
    """
    Staff: move the due date of an issued invoice.

    Reminder tier markers are kept, so tiers that already fired never fire
    again. An overdue invoice whose new due date is in the future goes back
    to pending.
    """
    check_staff(actor)
    invoice = get_invoice(db, invoice_id, actor)
    if invoice.status in (InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value):
        raise ValueError(f"Cannot change the due date of a {invoice.status} invoice")

    old_due = invoice.due_date
    invoice.due_date = due_date
    if invoice.status == InvoiceStatus.OVERDUE.value and due_date > utcnow():
        invoice.status = InvoiceStatus.PENDING.value

    activity_service.log_activity(
        db,
        action="due_date_changed",
        resource_type="invoice",
        user_id=actor.id,
        organization_id=invoice.organization_id,
        resource_id=invoice.id,
        resource_name=invoice.invoice_number,
        details={"from": old_due.isoformat(), "to": due_date.isoformat()},
    )
    db.commit()
    db.refresh(invoice)
    return invoice


def publish_invoice(db: Session, invoice_id: UUID, actor: User) -> Invoice:
    """Staff: issue a draft (draft -> pending) and notify the organization."""
    check_staff(actor)
    invoice = get_invoice(db, invoice_id, actor)
    if invoice.status != InvoiceStatus.DRAFT.value:
        raise ValueError("Only draft invoices can be published")

    invoice.status = InvoiceStatus.PENDING.value
    invoice.issued_at = utcnow()
    activity_service.log_activity(
        db,
        action="issued_invoice",
        resource_type="invoice",
        user_id=actor.id,
        organization_id=invoice.organization_id,
        resource_id=invoice.id,
        resource_name=invoice.invoice_number,
    )
    db.commit()
    db.refresh(invoice)

    _notify_issued(db, invoice)
    return invoice


def cancel_invoice(db: Session, invoice_id: UUID, actor: User) -> Invoice:
    check_staff(actor)
    invoice = get_invoice(db, invoice_id, actor)
    if invoice.status == InvoiceStatus.PAID.value:
        raise ValueError("Cannot cancel a paid invoice")
    if invoice.status == InvoiceStatus.CANCELLED.value:
        raise ValueError("Invoice is already cancelled")

    invoice.status = InvoiceStatus.CANCELLED.value
    activity_service.log_activity(
        db,
        action="cancelled_invoice",
        resource_type="invoice",
        user_id=actor.id,
        organization_id=invoice.organization_id,
        resource_id=invoice.id,
        resource_name=invoice.invoice_number,
    )
    db.commit()
    db.refresh(invoice)
    return invoice


def record_payment(db: Session, invoice_id: UUID, actor: User, data: PaymentCreate) -> Payment:
    """
    Staff: record a (partial) payment. Fully paid invoices become paid.

    Raises:
        ValueError: Invoice not open, or amount not in (0, balance]
    """
    check_staff(actor)
    invoice = get_invoice(db, invoice_id, actor)
    if invoice.status == InvoiceStatus.PAID.value:
        raise ValueError("Invoice is already paid")
    if invoice.status == InvoiceStatus.CANCELLED.value:
        raise ValueError("Cannot record payment for cancelled invoice")
    if invoice.status == InvoiceStatus.DRAFT.value:
        raise ValueError("Cannot record payment for draft invoice")
    if data.amount <= 0:
        raise ValueError("Payment amount must be positive")
    if data.amount > invoice.balance:
        raise ValueError(
            "Payment would exceed invoice amount. Already paid: "
            f"{format_money(invoice.paid_amount, invoice.currency)}, "
            f"Invoice: {format_money(invoice.amount, invoice.currency)}"
        )

    paid_at = data.paid_at or utcnow()
    payment = Payment(
        invoice_id=invoice.id,
        organization_id=invoice.organization_id,
        amount=data.amount,
        method=data.method.value,
        reference=data.reference,
        notes=data.notes,
        paid_at=paid_at,
        recorded_by_id=actor.id,
    )
    db.add(payment)
    invoice.paid_amount += data.amount
    if invoice.paid_amount >= invoice.amount:
        invoice.status = InvoiceStatus.PAID.value
        invoice.paid_at = paid_at

    activity_service.log_activity(
        db,
        action="recorded_payment",
        resource_type="invoice",
        user_id=actor.id,
        organization_id=invoice.organization_id,
        resource_id=invoice.id,
        resource_name=invoice.invoice_number,
        details={"amount": data.amount, "method": data.method.value},
    )
    db.commit()
    db.refresh(payment)
    return payment


# =============================================================================
# Financial summary
# =============================================================================

def _month_start(year: int, month: int) -> datetime:
    while month < 1:
        month += 12
        year -= 1
    return datetime(year, month, 1, tzinfo=timezone.utc)


def _in_range(value: datetime | None, start: datetime, end: datetime | None = None) -> bool:
    if value is None:
        return False
    return value >= start and (end is None or value < end)


def get_financial_summary(
    db: Session,
    actor: User,
    org_id: UUID | None = None,
    now: datetime | None = None,
) -> FinancialSummary:
    """Invoiced/paid totals, outstanding aging and a 6-month trend (cents)."""
    now = now or utcnow()
    invoices = [
        inv for inv in _visible_invoices(db, actor, org_id).all()
        if inv.status != InvoiceStatus.DRAFT.value
    ]
    live = [inv for inv in invoices if inv.status != InvoiceStatus.CANCELLED.value]
    invoice_ids = {inv.id for inv in invoices}
    payments = []
    if invoice_ids:
        payments = db.query(Payment).filter(Payment.invoice_id.in_(invoice_ids)).all()

    this_month = _month_start(now.year, now.month)
    last_month = _month_start(now.year, now.month - 1)
    year_start = datetime(now.year, 1, 1, tzinfo=timezone.utc)

    def totals(start: datetime, end: datetime | None = None) -> dict:
        return {
            "invoiced": sum(inv.amount for inv in live if _in_range(inv.issued_at, start, end)),
            "paid": sum(p.amount for p in payments if _in_range(p.paid_at, start, end)),
        }

    aging = {"current": 0, "days_1_30": 0, "days_31_60": 0, "days_61_90": 0, "days_over_90": 0}
    outstanding_total = 0
    for inv in live:
        if inv.status not in OPEN_STATUSES:
            continue
        balance = inv.balance
        outstanding_total += balance
        days_overdue = math.floor((now - inv.due_date) / timedelta(days=1))
        if days_overdue < 1:
            aging["current"] += balance
        elif days_overdue <= 30:
            aging["days_1_30"] += balance
        elif days_overdue <= 60:
            aging["days_31_60"] += balance
        elif days_overdue <= 90:
            aging["days_61_90"] += balance
        else:
            aging["days_over_90"] += balance

    paid = [inv for inv in live if inv.status == InvoiceStatus.PAID.value and inv.paid_at and inv.issued_at]
    avg_days = 0
    if paid:
        total_days = sum(max(0, (inv.paid_at - inv.issued_at).days) for inv in paid)
        avg_days = round(total_days / len(paid))

    trend = []
    for offset in range(5, -1, -1):
        start = _month_start(now.year, now.month - offset)
        end = _month_start(start.year, start.month + 1)
        trend.append({
            "month": start.strftime("%b"),
            "year": start.year,
            **totals(start, end),
        })

    return FinancialSummary(
        current_month=totals(this_month),
        last_month=totals(last_month, this_month),
        ytd=totals(year_start),
        outstanding={"total": outstanding_total, "aging": aging},
        avg_days_to_payment=avg_days,
        monthly_trend=trend,
    )
