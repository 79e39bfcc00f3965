"""CSV exports for the admin screens (invoices, tasks, signature requests)."""

from __future__ import annotations

import csv
import io
import re
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from portal.db.models import Document, Invoice, Organization, SignatureRequest, Task


CSV_DANGEROUS_PREFIXES = ("=", "+", "-", "@")
_NUMERIC_RE = re.compile(r"^-?\d+(\.\d+)?$")


# =============================================================================
# Formatting
# =============================================================================

def format_date_for_export(value: datetime | None) -> str:
    """UTC calendar date (YYYY-MM-DD), or "" when unset."""
    if not value:
        return ""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%d")


def format_datetime_for_export(value: datetime | None) -> str:
    """UTC "YYYY-MM-DD HH:MM:SS", or "" when unset."""
    if not value:
        return ""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%d %H:%M:%S")


def format_currency_for_export(cents: int | None) -> str:
    """Cents to a plain two-decimal amount: 10050 -> "100.50"."""
    if cents is None:
        return ""
    sign = "-" if cents < 0 else ""
    whole, fraction = divmod(abs(cents), 100)
    return f"{sign}{whole}.{fraction:02d}"


def _csv_safe(value: str) -> str:
    # Negative amounts are data, not formulas
    if value and value.startswith(CSV_DANGEROUS_PREFIXES) and not _NUMERIC_RE.match(value):
        return f"'{value}"
    return value


def _serialize_csv_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return format_datetime_for_export(value)
    return str(value)


def _write_csv_row(values: Sequence[Any]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL)
    writer.writerow([_csv_safe(_serialize_csv_value(value)) for value in values])
    return output.getvalue()


def _stream(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> Iterator[str]:
    yield _write_csv_row(headers)
    for row in rows:
        yield _write_csv_row(row)


def _org_names(db: Session) -> dict[UUID, str]:
    return {org_id: name for org_id, name in db.query(Organization.id, Organization.name)}


# =============================================================================
# Exports
# =============================================================================

def stream_invoices_csv(db: Session, org_id: UUID | None = None) -> Iterator[str]:
    headers = [
        "Invoice Number",
        "Client",
        "Description",
        "Amount (RM)",
        "Paid (RM)",
        "Status",
        "Issued Date",
        "Due Date",
        "Paid Date",
    ]
    orgs = _org_names(db)
    query = db.query(Invoice)
    if org_id:
        query = query.filter(Invoice.organization_id == org_id)

    rows = [
        [
            inv.invoice_number,
            orgs.get(inv.organization_id, "Unknown"),
            inv.description,
            format_currency_for_export(inv.amount),
            format_currency_for_export(inv.paid_amount),
            inv.status,
            format_date_for_export(inv.issued_at),
            format_date_for_export(inv.due_date),
            format_date_for_export(inv.paid_at),
        ]
        for inv in query.order_by(Invoice.created_at.desc())
    ]
    return _stream(headers, rows)


def stream_tasks_csv(db: Session, org_id: UUID | None = None) -> Iterator[str]:
    headers = ["Title", "Description", "Status", "Priority", "Organization", "Due Date", "Created"]
    orgs = _org_names(db)
    query = db.query(Task)
    if org_id:
        query = query.filter(Task.organization_id == org_id)

    rows = [
        [
            task.title,
            task.description,
            task.status,
            task.priority,
            orgs.get(task.organization_id, "Unknown"),
            format_date_for_export(task.due_date),
            format_date_for_export(task.created_at),
        ]
        for task in query.order_by(Task.created_at.desc())
    ]
    return _stream(headers, rows)


def stream_signatures_csv(db: Session, org_id: UUID | None = None) -> Iterator[str]:
    headers = ["Title", "Document", "Status", "Organization", "Requested", "Signed", "Due"]
    orgs = _org_names(db)
    query = db.query(SignatureRequest, Document.name).join(
        Document, Document.id == SignatureRequest.document_id
    )
    if org_id:
        query = query.filter(SignatureRequest.organization_id == org_id)

    rows = [
        [
            request.title,
            document_name,
            request.status,
            orgs.get(request.organization_id, "Unknown"),
            format_date_for_export(request.created_at),
            format_date_for_export(request.signed_at),
            format_date_for_export(request.due_date),
        ]
        for request, document_name in query.order_by(SignatureRequest.created_at.desc())
    ]
    return _stream(headers, rows)
