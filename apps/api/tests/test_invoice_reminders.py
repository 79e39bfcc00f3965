"""Tests for the daily invoice reminder job (tier selection and markers)."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from portal.db.enums import InvoiceReminderTier, InvoiceStatus, NotificationType
from portal.db.models import Invoice, Notification
from portal.db.types import utcnow
from portal.services import invoice_reminder_service, invoice_service
from portal.services import resend_email_service


DUE = datetime(2026, 3, 10, tzinfo=timezone.utc)


def make_invoice(db, org, due_date=DUE, status=InvoiceStatus.PENDING, amount=150000):
    invoice = Invoice(
        organization_id=org.id,
        invoice_number=f"INV-2026-{uuid.uuid4().hex[:4].upper()}",
        description="Monthly bookkeeping",
        line_items=[{"description": "Bookkeeping", "quantity": 1, "unit_price": amount, "amount": amount}],
        amount=amount,
        status=status.value,
        due_date=due_date,
        issued_at=due_date - timedelta(days=30),
    )
    db.add(invoice)
    db.commit()
    db.refresh(invoice)
    return invoice


async def run(db, when):
    return await invoice_reminder_service.process_invoice_reminders(db, now=when)


@pytest.mark.asyncio
async def test_tiers_fire_in_order_once_each(db, test_org, test_client, outbox):
    invoice = make_invoice(db, test_org)

    # Two days before due
    result = await run(db, DUE - timedelta(days=2))
    assert result["reminders_sent"] == 1
    assert result["emails_sent"] == 1
    db.refresh(invoice)
    assert invoice.last_reminder_tier == InvoiceReminderTier.DUE_SOON.value
    assert invoice.due_soon_reminder_sent_at == DUE - timedelta(days=2)
    assert outbox[0]["subject"].startswith("Invoice Due Soon")

    # Later the same day: nothing new
    result = await run(db, DUE - timedelta(days=1, hours=18))
    assert result["reminders_sent"] == 0
    assert len(outbox) == 1

    # One day overdue: overdue tier, pending becomes overdue
    overdue_at = DUE + timedelta(days=1, hours=1)
    result = await run(db, overdue_at)
    assert result["reminders_sent"] == 1
    db.refresh(invoice)
    assert invoice.status == InvoiceStatus.OVERDUE.value
    assert invoice.overdue_reminder_sent_at == overdue_at
    assert invoice.last_reminder_tier == InvoiceReminderTier.OVERDUE.value
    assert outbox[-1]["subject"].startswith("Invoice Overdue")

    # Seven days overdue but only six since the overdue reminder
    result = await run(db, DUE + timedelta(days=7, hours=1))
    assert result["reminders_sent"] == 0

    # Weekly reminder once a full week has passed, then every 7 days
    first_weekly = overdue_at + timedelta(days=7)
    result = await run(db, first_weekly)
    assert result["reminders_sent"] == 1
    db.refresh(invoice)
    assert invoice.weekly_reminder_count == 1
    assert invoice.last_reminder_tier == InvoiceReminderTier.WEEKLY_OVERDUE.value

    result = await run(db, first_weekly + timedelta(hours=8))
    assert result["reminders_sent"] == 0

    result = await run(db, first_weekly + timedelta(days=7))
    assert result["reminders_sent"] == 1
    db.refresh(invoice)
    assert invoice.weekly_reminder_count == 2
    assert len(outbox) == 4


@pytest.mark.asyncio
async def test_same_day_rerun_sends_no_duplicate_notifications(db, test_org, test_client, outbox):
    make_invoice(db, test_org)
    when = DUE + timedelta(days=2)

    await run(db, when)
    await run(db, when + timedelta(minutes=5))

    notifications = (
        db.query(Notification)
        .filter(Notification.type == NotificationType.INVOICE_OVERDUE.value)
        .all()
    )
    assert len(notifications) == 1
    assert len(outbox) == 1


@pytest.mark.asyncio
async def test_due_soon_window_boundaries(db, test_org, test_client, outbox):
    invoice = make_invoice(db, test_org)

    # More than INVOICE_DUE_SOON_DAYS out
    assert invoice_reminder_service.select_tier(invoice, DUE - timedelta(days=4)) is None
    # Due today is neither due soon nor overdue
    assert invoice_reminder_service.select_tier(invoice, DUE + timedelta(hours=3)) is None
    assert (
        invoice_reminder_service.select_tier(invoice, DUE - timedelta(days=3))
        == InvoiceReminderTier.DUE_SOON
    )


@pytest.mark.asyncio
async def test_late_first_run_goes_straight_to_overdue(db, test_org, test_client, outbox):
    invoice = make_invoice(db, test_org)

    await run(db, DUE + timedelta(days=10))

    db.refresh(invoice)
    assert invoice.due_soon_reminder_sent_at is None
    assert invoice.overdue_reminder_sent_at is not None
    assert invoice.weekly_reminder_count == 0


@pytest.mark.asyncio
async def test_draft_paid_and_cancelled_invoices_are_skipped(db, test_org, test_client, outbox):
    for status in (InvoiceStatus.DRAFT, InvoiceStatus.PAID, InvoiceStatus.CANCELLED):
        make_invoice(db, test_org, status=status)

    result = await run(db, DUE + timedelta(days=2))

    assert result["processed"] == 0
    assert outbox == []


@pytest.mark.asyncio
async def test_failed_send_does_not_rearm_tier(db, test_org, test_client, monkeypatch):
    attempts = []

    async def failing_send(*, to_email, subject, html, text=None):
        attempts.append(subject)
        return {"success": False, "error": "Resend API error: 500"}

    monkeypatch.setattr(resend_email_service, "send_email", failing_send)
    invoice = make_invoice(db, test_org)

    result = await run(db, DUE + timedelta(days=2))
    assert result["reminders_sent"] == 1
    assert result["emails_sent"] == 0

    await run(db, DUE + timedelta(days=3))

    db.refresh(invoice)
    assert invoice.overdue_reminder_sent_at == DUE + timedelta(days=2)
    assert len(attempts) == 1


@pytest.mark.asyncio
async def test_preference_opt_out_keeps_marker(db, test_org, test_client, outbox):
    from portal.services import email_preference_service

    email_preference_service.update_email_preferences(db, test_client.id, {"invoices": False})
    invoice = make_invoice(db, test_org)

    result = await run(db, DUE - timedelta(days=1))

    db.refresh(invoice)
    assert result["reminders_sent"] == 1
    assert invoice.due_soon_reminder_sent_at is not None
    assert outbox == []


@pytest.mark.asyncio
async def test_markers_survive_due_date_change(db, test_org, test_client, test_staff, outbox):
    now = utcnow()
    invoice = make_invoice(db, test_org, due_date=now + timedelta(days=2))

    await run(db, now)
    assert len(outbox) == 1

    invoice_service.change_due_date(db, invoice.id, test_staff, now + timedelta(days=20))

    # Inside the new due-soon window: already sent, stays quiet
    result = await run(db, now + timedelta(days=18))
    assert result["reminders_sent"] == 0

    result = await run(db, now + timedelta(days=21, hours=1))
    assert result["reminders_sent"] == 1
    db.refresh(invoice)
    assert invoice.last_reminder_tier == InvoiceReminderTier.OVERDUE.value


def test_overdue_invoice_returns_to_pending_when_due_date_moves_out(db, test_org, test_staff):
    invoice = make_invoice(
        db, test_org, due_date=utcnow() - timedelta(days=5), status=InvoiceStatus.OVERDUE
    )
    invoice.overdue_reminder_sent_at = utcnow() - timedelta(days=4)
    db.commit()

    updated = invoice_service.change_due_date(
        db, invoice.id, test_staff, utcnow() + timedelta(days=14)
    )

    assert updated.status == InvoiceStatus.PENDING.value
    assert updated.overdue_reminder_sent_at is not None
