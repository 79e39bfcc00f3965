"""Dashboard service - firm-wide counts for the staff overview."""

from datetime import datetime

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from portal.core.org_access import check_staff
from portal.db.enums import InvoiceStatus, Role, STAFF_ROLES, TaskStatus
from portal.db.models import (
    ActivityLog,
    Announcement,
    Document,
    Invoice,
    Organization,
    Task,
    User,
)
from portal.db.types import utcnow


RECENT_ACTIVITY_LIMIT = 10
OPEN_INVOICE_STATUSES = (InvoiceStatus.PENDING.value, InvoiceStatus.OVERDUE.value)
CLOSED_TASK_STATUSES = (TaskStatus.COMPLETED.value, TaskStatus.CANCELLED.value)


def _count(db: Session, *criteria, model) -> int:
    return db.query(func.count(model.id)).filter(*criteria).scalar() or 0


def _recent_activity(db: Session) -> list[dict]:
    rows = (
        db.query(ActivityLog, User.name, User.email)
        .outerjoin(User, User.id == ActivityLog.user_id)
        .order_by(ActivityLog.created_at.desc())
        .limit(RECENT_ACTIVITY_LIMIT)
        .all()
    )
    return [
        {
            "id": entry.id,
            "action": entry.action,
            "resource_type": entry.resource_type,
            "resource_name": entry.resource_name,
            "organization_id": entry.organization_id,
            "user_name": name or email or "Unknown User",
            "created_at": entry.created_at,
        }
        for entry, name, email in rows
    ]


def get_dashboard_stats(db: Session, actor: User, now: datetime | None = None) -> dict:
    """
    Counts across all organizations.

    Invoice totals exclude drafts and cancelled invoices; an open invoice
    past its due date counts as overdue even before the reminder job has
    flipped its status. Outstanding is the unpaid balance.
    """
    check_staff(actor)
    now = now or utcnow()

    staff_values = [role.value for role in STAFF_ROLES]
    open_invoice = Invoice.status.in_(OPEN_INVOICE_STATUSES)
    past_due = Invoice.due_date < now

    open_count = _count(db, open_invoice, model=Invoice)
    overdue_count = _count(db, open_invoice, past_due, model=Invoice)
    revenue, outstanding = db.query(
        func.coalesce(
            func.sum(Invoice.amount).filter(Invoice.status == InvoiceStatus.PAID.value), 0
        ),
        func.coalesce(
            func.sum(Invoice.amount - Invoice.paid_amount).filter(open_invoice), 0
        ),
    ).one()

    return {
        "organizations": {"total": _count(db, model=Organization)},
        "users": {
            "total": _count(db, model=User),
            "clients": _count(db, User.role == Role.CLIENT.value, model=User),
            "staff": _count(db, User.role.in_(staff_values), model=User),
        },
        "documents": {"total": _count(db, Document.is_deleted.is_(False), model=Document)},
        "tasks": {
            "total": _count(db, model=Task),
            "pending": _count(db, Task.status == TaskStatus.PENDING.value, model=Task),
            "in_progress": _count(db, Task.status == TaskStatus.IN_PROGRESS.value, model=Task),
            "completed": _count(db, Task.status == TaskStatus.COMPLETED.value, model=Task),
            "overdue": _count(
                db,
                Task.status.not_in(CLOSED_TASK_STATUSES),
                Task.due_date.is_not(None),
                Task.due_date < now,
                model=Task,
            ),
        },
        "invoices": {
            "total": _count(
                db,
                Invoice.status.not_in([InvoiceStatus.DRAFT.value, InvoiceStatus.CANCELLED.value]),
                model=Invoice,
            ),
            "pending": open_count - overdue_count,
            "overdue": overdue_count,
            "paid": _count(db, Invoice.status == InvoiceStatus.PAID.value, model=Invoice),
            "total_revenue": revenue,
            "outstanding_amount": outstanding,
        },
        "announcements": {
            "total": _count(db, model=Announcement),
            "active": _count(
                db,
                Announcement.is_published.is_(True),
                Announcement.published_at <= now,
                or_(Announcement.expires_at.is_(None), Announcement.expires_at > now),
                model=Announcement,
            ),
        },
        "recent_activity": _recent_activity(db),
    }
