"""
Notification Dispatcher - transactional email per business event.

Every send_* operation:
1. Consults the email preference gate (admin-facing mail skips it)
2. Returns {"success": False, "reason": "user_preference_disabled"} if suppressed
3. Renders the branded template and calls the email API once
4. Returns the email API result unchanged

Nothing here raises on delivery problems; the business mutation has already
committed by the time we run, so email is strictly best-effort.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Awaitable, Callable
from uuid import UUID

from sqlalchemy.orm import Session

from portal.db.enums import EmailCategory, EmailEvent, JobType
from portal.db.models import Job, User
from portal.services import email_preference_service, email_templates, job_service
from portal.services import resend_email_service
from portal.types import JsonObject

logger = logging.getLogger(__name__)

USER_PREFERENCE_DISABLED = "user_preference_disabled"

Renderer = Callable[[], tuple[str, str]]


async def _deliver(
    db: Session,
    *,
    recipient_id: UUID,
    recipient_email: str,
    category: EmailCategory | None,
    render: Renderer,
) -> JsonObject:
    """Gate (when category is set), render, send."""
    if category is not None and not email_preference_service.should_send_email(
        db, recipient_id, category
    ):
        logger.info(
            "Email suppressed by preference: user=%s category=%s", recipient_id, category.value
        )
        return {"success": False, "reason": USER_PREFERENCE_DISABLED}

    subject, html = render()
    return await resend_email_service.send_email(
        to_email=recipient_email, subject=subject, html=html
    )


# =============================================================================
# Documents
# =============================================================================

async def send_document_requested_email(
    db: Session,
    *,
    recipient_id: UUID,
    recipient_email: str,
    recipient_name: str,
    document_title: str,
    description: str | None = None,
    due_date: datetime | None = None,
) -> JsonObject:
    return await _deliver(
        db,
        recipient_id=recipient_id,
        recipient_email=recipient_email,
        category=EmailCategory.DOCUMENT_REQUESTS,
        render=lambda: email_templates.document_requested(
            recipient_name, document_title, description, due_date
        ),
    )


async def send_document_uploaded_email(
    db: Session,
    *,
    recipient_id: UUID,
    recipient_email: str,
    recipient_name: str,
    client_name: str,
    document_title: str,
) -> JsonObject:
    """Admin-facing: always sent (no preference gate)."""
    return await _deliver(
        db,
        recipient_id=recipient_id,
        recipient_email=recipient_email,
        category=None,
        render=lambda: email_templates.document_uploaded(client_name, document_title),
    )


async def send_document_approved_email(
    db: Session,
    *,
    recipient_id: UUID,
    recipient_email: str,
    recipient_name: str,
    document_title: str,
) -> JsonObject:
    return await _deliver(
        db,
        recipient_id=recipient_id,
        recipient_email=recipient_email,
        category=EmailCategory.DOCUMENT_REQUESTS,
        render=lambda: email_templates.document_approved(recipient_name, document_title),
    )


async def send_document_rejected_email(
    db: Session,
    *,
    recipient_id: UUID,
    recipient_email: str,
    recipient_name: str,
    document_title: str,
    reason: str | None = None,
) -> JsonObject:
    return await _deliver(
        db,
        recipient_id=recipient_id,
        recipient_email=recipient_email,
        category=EmailCategory.DOCUMENT_REQUESTS,
        render=lambda: email_templates.document_rejected(recipient_name, document_title, reason),
    )


# =============================================================================
# Tasks
# =============================================================================

async def send_task_assigned_email(
    db: Session,
    *,
    recipient_id: UUID,
    recipient_email: str,
    recipient_name: str,
    task_title: str,
    description: str | None = None,
    due_date: datetime | None = None,
) -> JsonObject:
    return await _deliver(
        db,
        recipient_id=recipient_id,
        recipient_email=recipient_email,
        category=EmailCategory.TASK_ASSIGNMENTS,
        render=lambda: email_templates.task_assigned(
            recipient_name, task_title, description, due_date
        ),
    )


async def send_task_comment_email(
    db: Session,
    *,
    recipient_id: UUID,
    recipient_email: str,
    recipient_name: str,
    commenter_name: str,
    task_title: str,
    comment: str,
) -> JsonObject:
    return await _deliver(
        db,
        recipient_id=recipient_id,
        recipient_email=recipient_email,
        category=EmailCategory.TASK_COMMENTS,
        render=lambda: email_templates.task_comment(
            recipient_name, commenter_name, task_title, comment
        ),
    )


async def send_task_due_email(
    db: Session,
    *,
    recipient_id: UUID,
    recipient_email: str,
    recipient_name: str,
    task_title: str,
    due_date: datetime | None = None,
) -> JsonObject:
    return await _deliver(
        db,
        recipient_id=recipient_id,
        recipient_email=recipient_email,
        category=EmailCategory.TASK_ASSIGNMENTS,
        render=lambda: email_templates.task_due(recipient_name, task_title, due_date),
    )


# =============================================================================
# Invoices
# =============================================================================

async def send_invoice_created_email(
    db: Session,
    *,
    recipient_id: UUID,
    recipient_email: str,
    recipient_name: str,
    invoice_number: str,
    amount: str,
    due_date: datetime | None = None,
) -> JsonObject:
    return await _deliver(
        db,
        recipient_id=recipient_id,
        recipient_email=recipient_email,
        category=EmailCategory.INVOICES,
        render=lambda: email_templates.invoice_created(
            recipient_name, invoice_number, amount, due_date
        ),
    )


async def send_invoice_due_soon_email(
    db: Session,
    *,
    recipient_id: UUID,
    recipient_email: str,
    recipient_name: str,
    invoice_number: str,
    amount: str,
    due_date: datetime | None = None,
) -> JsonObject:
    return await _deliver(
        db,
        recipient_id=recipient_id,
        recipient_email=recipient_email,
        category=EmailCategory.INVOICES,
        render=lambda: email_templates.invoice_due_soon(
            recipient_name, invoice_number, amount, due_date
        ),
    )


async def send_invoice_overdue_email(
    db: Session,
    *,
    recipient_id: UUID,
    recipient_email: str,
    recipient_name: str,
    invoice_number: str,
    amount: str,
    days_overdue: int,
    due_date: datetime | None = None,
) -> JsonObject:
    return await _deliver(
        db,
        recipient_id=recipient_id,
        recipient_email=recipient_email,
        category=EmailCategory.INVOICES,
        render=lambda: email_templates.invoice_overdue(
            recipient_name, invoice_number, amount, due_date, days_overdue
        ),
    )


# =============================================================================
# Signatures & announcements
# =============================================================================

async def send_signature_request_email(
    db: Session,
    *,
    recipient_id: UUID,
    recipient_email: str,
    recipient_name: str,
    document_title: str,
    requested_by: str,
) -> JsonObject:
    return await _deliver(
        db,
        recipient_id=recipient_id,
        recipient_email=recipient_email,
        category=EmailCategory.SIGNATURES,
        render=lambda: email_templates.signature_request(
            recipient_name, document_title, requested_by
        ),
    )


async def send_announcement_email(
    db: Session,
    *,
    recipient_id: UUID,
    recipient_email: str,
    recipient_name: str,
    title: str,
    preview: str,
) -> JsonObject:
    return await _deliver(
        db,
        recipient_id=recipient_id,
        recipient_email=recipient_email,
        category=EmailCategory.ANNOUNCEMENTS,
        render=lambda: email_templates.new_announcement(recipient_name, title, preview),
    )


# =============================================================================
# Queueing (request path) + dispatch (worker path)
# =============================================================================

EVENT_SENDERS: dict[EmailEvent, Callable[..., Awaitable[JsonObject]]] = {
    EmailEvent.DOCUMENT_REQUESTED: send_document_requested_email,
    EmailEvent.DOCUMENT_UPLOADED: send_document_uploaded_email,
    EmailEvent.DOCUMENT_APPROVED: send_document_approved_email,
    EmailEvent.DOCUMENT_REJECTED: send_document_rejected_email,
    EmailEvent.TASK_ASSIGNED: send_task_assigned_email,
    EmailEvent.TASK_COMMENT: send_task_comment_email,
    EmailEvent.TASK_DUE: send_task_due_email,
    EmailEvent.INVOICE_CREATED: send_invoice_created_email,
    EmailEvent.INVOICE_DUE_SOON: send_invoice_due_soon_email,
    EmailEvent.INVOICE_OVERDUE: send_invoice_overdue_email,
    EmailEvent.SIGNATURE_REQUESTED: send_signature_request_email,
    EmailEvent.ANNOUNCEMENT_PUBLISHED: send_announcement_email,
}

# Context keys carried as ISO strings through the job payload
_DATETIME_KEYS = {"due_date"}


def _serialize_context(context: dict) -> dict:
    return {
        key: value.isoformat() if isinstance(value, datetime) else value
        for key, value in context.items()
    }


def _deserialize_context(context: dict) -> dict:
    result = dict(context)
    for key in _DATETIME_KEYS:
        raw = result.get(key)
        if isinstance(raw, str) and raw:
            result[key] = datetime.fromisoformat(raw)
    return result


def queue_email(
    db: Session,
    *,
    event: EmailEvent,
    recipient_id: UUID,
    org_id: UUID | None = None,
    **context,
) -> Job:
    """
    Queue a notification email for the worker.

    Call after the primary mutation has committed.
    """
    payload = {
        "event": event.value,
        "recipient_id": str(recipient_id),
        "context": _serialize_context(context),
    }
    return job_service.schedule_job(
        db,
        org_id=org_id,
        job_type=JobType.NOTIFICATION_EMAIL,
        payload=payload,
    )


def queue_email_to_users(
    db: Session,
    *,
    event: EmailEvent,
    recipients: list[User],
    org_id: UUID | None = None,
    **context,
) -> int:
    """Queue the same event for several recipients. Returns jobs queued."""
    for user in recipients:
        queue_email(db, event=event, recipient_id=user.id, org_id=org_id, **context)
    return len(recipients)


async def send_to_user(
    db: Session,
    event: EmailEvent,
    user: User,
    **context,
) -> JsonObject:
    """Send an event directly (scheduled jobs) to a loaded user."""
    sender = EVENT_SENDERS[event]
    return await sender(
        db,
        recipient_id=user.id,
        recipient_email=user.email,
        recipient_name=user.display_name,
        **context,
    )


async def dispatch_event(db: Session, event: str, payload: dict) -> JsonObject:
    """
    Resolve a queued payload to its send_* operation.

    Raises:
        ValueError: Unknown event or malformed recipient id
    """
    try:
        email_event = EmailEvent(event)
    except ValueError:
        raise ValueError(f"Unknown email event: {event}") from None

    recipient_id = UUID(str(payload.get("recipient_id")))
    user = db.query(User).filter(User.id == recipient_id).first()
    if not user or not user.is_active:
        logger.info("Skipping %s email: recipient %s not found/inactive", event, recipient_id)
        return {"success": False, "error": "Recipient not found"}

    context = _deserialize_context(payload.get("context") or {})
    return await send_to_user(db, email_event, user, **context)
