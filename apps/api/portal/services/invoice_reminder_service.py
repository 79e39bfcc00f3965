"""
Invoice reminders - daily scan of issued, unpaid invoices.

Three tiers, each persisted on the invoice so a re-run on the same day
never sends a tier twice:

- due_soon: 0 < days_until_due <= INVOICE_DUE_SOON_DAYS, once
- overdue: days_overdue >= 1, once; pending invoices become overdue
- weekly_overdue: days_overdue >= 7, every 7 days after the previous one

Markers are committed before any email is sent. A failed send is logged
and never re-arms the tier.
"""

import logging
import math
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.db.enums import (
    REMINDABLE_INVOICE_STATUSES,
    EmailEvent,
    InvoiceReminderTier,
    InvoiceStatus,
    NotificationType,
)
from portal.db.models import Invoice
from portal.db.types import utcnow
from portal.services import notification_dispatcher, notification_service
from portal.services.email_templates import format_money

logger = logging.getLogger(__name__)

WEEKLY_INTERVAL = timedelta(days=7)


def _days_between(later: datetime, earlier: datetime) -> int:
    return math.floor((later - earlier) / timedelta(days=1))


def select_tier(invoice: Invoice, now: datetime) -> InvoiceReminderTier | None:
    """Return the tier due for this invoice right now, if any."""
    days_until_due = _days_between(invoice.due_date, now)
    days_overdue = _days_between(now, invoice.due_date)

    if days_overdue >= 1 and invoice.overdue_reminder_sent_at is None:
        return InvoiceReminderTier.OVERDUE

    if days_overdue >= 7 and invoice.overdue_reminder_sent_at is not None:
        last = invoice.last_weekly_reminder_at or invoice.overdue_reminder_sent_at
        if now - last >= WEEKLY_INTERVAL:
            return InvoiceReminderTier.WEEKLY_OVERDUE

    if (
        0 < days_until_due <= settings.INVOICE_DUE_SOON_DAYS
        and invoice.due_soon_reminder_sent_at is None
    ):
        return InvoiceReminderTier.DUE_SOON

    return None


def _mark(invoice: Invoice, tier: InvoiceReminderTier, now: datetime) -> None:
    if tier == InvoiceReminderTier.DUE_SOON:
        invoice.due_soon_reminder_sent_at = now
    elif tier == InvoiceReminderTier.OVERDUE:
        invoice.overdue_reminder_sent_at = now
        if invoice.status == InvoiceStatus.PENDING.value:
            invoice.status = InvoiceStatus.OVERDUE.value
    else:
        invoice.last_weekly_reminder_at = now
        invoice.weekly_reminder_count = (invoice.weekly_reminder_count or 0) + 1
    invoice.last_reminder_tier = tier.value
    invoice.last_reminder_sent_at = now


async def _send_tier(db: Session, invoice: Invoice, tier: InvoiceReminderTier, now: datetime) -> int:
    """In-app + email to every org user. Returns emails accepted by the API."""
    recipients = notification_service.get_org_users(db, invoice.organization_id)
    amount = format_money(invoice.balance, invoice.currency)
    days_overdue = max(_days_between(now, invoice.due_date), 0)

    if tier == InvoiceReminderTier.DUE_SOON:
        notification_type = NotificationType.INVOICE_DUE
        title = "Invoice due soon"
        message = f"Invoice {invoice.invoice_number} ({amount}) is due soon."
    else:
        notification_type = NotificationType.INVOICE_OVERDUE
        title = "Invoice overdue"
        message = f"Invoice {invoice.invoice_number} ({amount}) is {days_overdue} days overdue."

    dedupe_key = f"invoice_reminder:{invoice.id}:{tier.value}:{now.date().isoformat()}"
    for user in recipients:
        notification_service.create_notification(
            db,
            recipient_id=user.id,
            type=notification_type,
            title=title,
            message=message,
            org_id=invoice.organization_id,
            link="/invoices",
            dedupe_key=dedupe_key,
            commit=False,
        )
    db.commit()

    sent = 0
    for user in recipients:
        if tier == InvoiceReminderTier.DUE_SOON:
            result = await notification_dispatcher.send_to_user(
                db,
                EmailEvent.INVOICE_DUE_SOON,
                user,
                invoice_number=invoice.invoice_number,
                amount=amount,
                due_date=invoice.due_date,
            )
        else:
            result = await notification_dispatcher.send_to_user(
                db,
                EmailEvent.INVOICE_OVERDUE,
                user,
                invoice_number=invoice.invoice_number,
                amount=amount,
                days_overdue=days_overdue,
                due_date=invoice.due_date,
            )
        if result.get("success"):
            sent += 1
        elif result.get("error"):
            logger.warning(
                "Invoice reminder email failed: invoice=%s user=%s error=%s",
                invoice.invoice_number,
                user.id,
                result["error"],
            )
    return sent


async def process_invoice_reminders(db: Session, now: datetime | None = None) -> dict:
    """
    Entry point for the daily invoice reminder cron.

    Returns {"processed", "reminders_sent", "emails_sent", "errors"}.
    """
    now = now or utcnow()
    invoices = (
        db.query(Invoice)
        .filter(Invoice.status.in_([s.value for s in REMINDABLE_INVOICE_STATUSES]))
        .order_by(Invoice.due_date)
        .all()
    )

    reminders_sent = 0
    emails_sent = 0
    errors = []

    for invoice in invoices:
        invoice_number = invoice.invoice_number
        try:
            tier = select_tier(invoice, now)
            if tier is None:
                continue
            _mark(invoice, tier, now)
            db.commit()
            reminders_sent += 1
            emails_sent += await _send_tier(db, invoice, tier, now)
        except Exception as e:
            db.rollback()
            logger.exception("Invoice reminder failed for %s", invoice_number)
            errors.append({"invoice": invoice_number, "error": str(e)})

    logger.info(
        "Invoice reminders: processed=%d reminders=%d emails=%d errors=%d",
        len(invoices),
        reminders_sent,
        emails_sent,
        len(errors),
    )
    return {
        "processed": len(invoices),
        "reminders_sent": reminders_sent,
        "emails_sent": emails_sent,
        "errors": errors,
    }
