"""Tests for CSV export formatting and the export endpoints."""

from datetime import datetime, timedelta, timezone

import pytest

from portal.db.enums import InvoiceStatus
from portal.db.models import ActivityLog, Invoice, Task
from portal.services import export_service


@pytest.mark.parametrize(
    "cents, expected",
    [(10050, "100.50"), (5, "0.05"), (0, "0.00"), (-250, "-2.50"), (123456789, "1234567.89"), (None, "")],
)
def test_format_currency_for_export(cents, expected):
    assert export_service.format_currency_for_export(cents) == expected


def test_format_dates_use_utc():
    value = datetime(2026, 3, 1, 7, 30, tzinfo=timezone(timedelta(hours=8)))

    assert export_service.format_date_for_export(value) == "2026-02-28"
    assert export_service.format_datetime_for_export(value) == "2026-02-28 23:30:00"
    assert export_service.format_date_for_export(None) == ""


@pytest.mark.parametrize(
    "value, expected",
    [
        ("=SUM(A1:A2)", "'=SUM(A1:A2)"),
        ("+60123456789", "'+60123456789"),
        ("@cmd", "'@cmd"),
        ("-2.50", "-2.50"),
        ("Normal text", "Normal text"),
    ],
)
def test_formula_injection_escaped(value, expected):
    assert export_service._csv_safe(value) == expected


def test_invoice_csv_rows(db, test_org):
    db.add(Invoice(
        organization_id=test_org.id,
        invoice_number="INV-2026-0007",
        description="=HYPERLINK(\"x\")",
        line_items=[],
        amount=10050,
        paid_amount=0,
        status=InvoiceStatus.PENDING.value,
        due_date=datetime(2026, 4, 1, tzinfo=timezone.utc),
        issued_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
    ))
    db.commit()

    lines = "".join(export_service.stream_invoices_csv(db)).splitlines()

    assert lines[0].startswith('"Invoice Number","Client"')
    assert lines[1] == (
        '"INV-2026-0007","Syarikat Ujian Sdn Bhd","\'=HYPERLINK(""x"")","100.50","0.00",'
        '"pending","2026-03-01","2026-04-01",""'
    )


@pytest.mark.asyncio
async def test_export_endpoint_streams_csv(admin_client, db, test_org):
    db.add(Task(organization_id=test_org.id, title="Quarterly SST"))
    db.commit()

    response = await admin_client.get("/exports/tasks")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "tasks_export_" in response.headers["content-disposition"]
    assert "Quarterly SST" in response.text
    assert db.query(ActivityLog).filter(ActivityLog.action == "export").count() == 1


@pytest.mark.asyncio
async def test_export_requires_staff(client_user_client):
    response = await client_user_client.get("/exports/invoices")
    assert response.status_code == 403
