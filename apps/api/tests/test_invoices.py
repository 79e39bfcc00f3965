"""Tests for invoices: validation, numbering, lifecycle, payments and summary."""

from datetime import datetime, timedelta, timezone

import pytest

from portal.core.org_access import OrganizationAccessError
from portal.db.enums import EmailEvent, InvoiceStatus, PaymentMethod
from portal.db.models import Invoice, Job, Payment
from portal.db.types import utcnow
from portal.schemas.invoice import InvoiceCreate, InvoiceUpdate, LineItem, PaymentCreate
from portal.services import invoice_service


def item(description="Bookkeeping", quantity=1, unit_price=50000, amount=None):
    if amount is None:
        amount = round(quantity * unit_price)
    return LineItem(description=description, quantity=quantity, unit_price=unit_price, amount=amount)


def create(db, actor, org, items=None, publish=True, due_in_days=30):
    return invoice_service.create_invoice(
        db,
        actor,
        InvoiceCreate(
            organization_id=org.id,
            description="Services for March",
            line_items=items or [item()],
            due_date=utcnow() + timedelta(days=due_in_days),
            publish=publish,
        ),
    )


# =============================================================================
# Validation
# =============================================================================

def test_line_item_total():
    total = invoice_service.validate_line_items([
        item(quantity=2, unit_price=12550),
        item(description="Filing fee", quantity=1.5, unit_price=333),
    ])
    # 1.5 * 333 = 499.5 rounds half up to 500
    assert total == 25100 + 500


@pytest.mark.parametrize(
    "items, message",
    [
        ([], "At least one line item is required"),
        ([item(description="  ")], "Line item 1: Description is required"),
        ([item(), item(quantity=0, amount=0)], "Line item 2: Quantity must be positive"),
        ([item(unit_price=-1, amount=-1)], "Line item 1: Unit price cannot be negative"),
        ([item(unit_price=100_000_001)], "Line item 1: Unit price too large"),
        ([item(quantity=2_000_000, unit_price=1)], "Line item 1: Quantity too large"),
        ([item(amount=49000)], "Line item 1: Amount mismatch (expected 50000, got 49000)"),
    ],
)
def test_line_item_validation_errors(items, message):
    with pytest.raises(ValueError) as exc:
        invoice_service.validate_line_items(items)
    assert str(exc.value) == message


def test_one_cent_rounding_tolerance_accepted():
    assert invoice_service.validate_line_items([item(amount=50001)]) == 50001


# =============================================================================
# Numbering & lifecycle
# =============================================================================

def test_invoice_numbers_are_sequential_per_year(db, test_staff, test_org):
    first = create(db, test_staff, test_org)
    second = create(db, test_staff, test_org, publish=False)
    year = utcnow().year

    assert first.invoice_number == f"INV-{year}-0001"
    assert second.invoice_number == f"INV-{year}-0002"
    assert invoice_service.next_invoice_number(db, 2099) == "INV-2099-0001"


def test_client_cannot_create_invoice(db, test_client, test_org):
    with pytest.raises(OrganizationAccessError):
        create(db, test_client, test_org)


def test_draft_then_publish_queues_invoice_email(db, test_staff, test_client, test_org):
    draft = create(db, test_staff, test_org, publish=False)
    assert draft.status == InvoiceStatus.DRAFT.value
    assert draft.issued_at is None
    assert db.query(Job).count() == 0

    updated = invoice_service.update_invoice(
        db, draft.id, test_staff, InvoiceUpdate(line_items=[item(quantity=3, unit_price=10000)])
    )
    assert updated.amount == 30000

    published = invoice_service.publish_invoice(db, draft.id, test_staff)
    assert published.status == InvoiceStatus.PENDING.value
    assert published.issued_at is not None

    job = db.query(Job).one()
    assert job.payload["event"] == EmailEvent.INVOICE_CREATED.value
    assert job.payload["recipient_id"] == str(test_client.id)
    assert job.payload["context"]["amount"] == "RM300.00"

    with pytest.raises(ValueError, match="Only draft invoices can be edited"):
        invoice_service.update_invoice(db, draft.id, test_staff, InvoiceUpdate(description="x"))


def test_client_sees_only_issued_invoices_of_own_org(
    db, test_staff, test_client, test_org, other_org
):
    issued = create(db, test_staff, test_org)
    draft = create(db, test_staff, test_org, publish=False)
    create(db, test_staff, other_org)

    visible = invoice_service.list_invoices(db, test_client)

    assert [inv.id for inv in visible] == [issued.id]
    with pytest.raises(invoice_service.InvoiceNotFoundError):
        invoice_service.get_invoice(db, draft.id, test_client)


def test_cancel_rules(db, test_staff, test_org):
    invoice = create(db, test_staff, test_org)
    invoice_service.cancel_invoice(db, invoice.id, test_staff)

    with pytest.raises(ValueError, match="already cancelled"):
        invoice_service.cancel_invoice(db, invoice.id, test_staff)
    with pytest.raises(ValueError, match="cancelled"):
        invoice_service.change_due_date(db, invoice.id, test_staff, utcnow())


# =============================================================================
# Payments
# =============================================================================

def test_partial_then_full_payment(db, test_staff, test_org):
    invoice = create(db, test_staff, test_org, items=[item(unit_price=100000)])

    invoice_service.record_payment(
        db, invoice.id, test_staff, PaymentCreate(amount=40000, method=PaymentMethod.CASH)
    )
    db.refresh(invoice)
    assert invoice.status == InvoiceStatus.PENDING.value
    assert invoice.balance == 60000

    with pytest.raises(ValueError, match="Payment would exceed invoice amount"):
        invoice_service.record_payment(db, invoice.id, test_staff, PaymentCreate(amount=60001))

    invoice_service.record_payment(db, invoice.id, test_staff, PaymentCreate(amount=60000))
    db.refresh(invoice)
    assert invoice.status == InvoiceStatus.PAID.value
    assert invoice.paid_at is not None
    assert invoice.balance == 0
    assert db.query(Payment).filter(Payment.invoice_id == invoice.id).count() == 2

    with pytest.raises(ValueError, match="already paid"):
        invoice_service.record_payment(db, invoice.id, test_staff, PaymentCreate(amount=1))


def test_payment_rejected_for_draft_and_non_positive(db, test_staff, test_org):
    draft = create(db, test_staff, test_org, publish=False)
    with pytest.raises(ValueError, match="draft"):
        invoice_service.record_payment(db, draft.id, test_staff, PaymentCreate(amount=100))

    issued = create(db, test_staff, test_org)
    with pytest.raises(ValueError, match="must be positive"):
        invoice_service.record_payment(db, issued.id, test_staff, PaymentCreate(amount=0))


# =============================================================================
# Financial summary
# =============================================================================

def test_financial_summary_aging_and_totals(db, test_staff, test_org):
    now = datetime(2026, 6, 15, 12, tzinfo=timezone.utc)

    def add(number, amount, status, due_days_ago, issued, paid_amount=0, paid_at=None):
        invoice = Invoice(
            organization_id=test_org.id,
            invoice_number=number,
            description="x",
            line_items=[],
            amount=amount,
            paid_amount=paid_amount,
            status=status.value,
            due_date=now - timedelta(days=due_days_ago),
            issued_at=issued,
            paid_at=paid_at,
        )
        db.add(invoice)
        return invoice

    add("INV-2026-0101", 10000, InvoiceStatus.PENDING, -5, datetime(2026, 6, 1, tzinfo=timezone.utc))
    add("INV-2026-0102", 20000, InvoiceStatus.OVERDUE, 10, datetime(2026, 5, 5, tzinfo=timezone.utc))
    add("INV-2026-0103", 30000, InvoiceStatus.OVERDUE, 100, datetime(2026, 2, 1, tzinfo=timezone.utc))
    paid = add(
        "INV-2026-0104",
        5000,
        InvoiceStatus.PAID,
        20,
        datetime(2026, 5, 1, tzinfo=timezone.utc),
        paid_amount=5000,
        paid_at=datetime(2026, 5, 11, tzinfo=timezone.utc),
    )
    add("INV-2026-0105", 99999, InvoiceStatus.DRAFT, -30, None)
    db.flush()
    db.add(Payment(
        invoice_id=paid.id,
        organization_id=test_org.id,
        amount=5000,
        method=PaymentMethod.BANK_TRANSFER.value,
        paid_at=datetime(2026, 5, 11, tzinfo=timezone.utc),
    ))
    db.commit()

    summary = invoice_service.get_financial_summary(db, test_staff, now=now)

    assert summary.current_month.invoiced == 10000
    assert summary.last_month.invoiced == 25000
    assert summary.last_month.paid == 5000
    assert summary.ytd.invoiced == 65000
    assert summary.outstanding.total == 60000
    assert summary.outstanding.aging.current == 10000
    assert summary.outstanding.aging.days_1_30 == 20000
    assert summary.outstanding.aging.days_over_90 == 30000
    assert summary.avg_days_to_payment == 10
    assert [p.month for p in summary.monthly_trend] == ["Jan", "Feb", "Mar", "Apr", "May", "Jun"]


def test_financial_summary_empty(db, test_client):
    summary = invoice_service.get_financial_summary(db, test_client)

    assert summary.outstanding.total == 0
    assert summary.avg_days_to_payment == 0
    assert len(summary.monthly_trend) == 6
