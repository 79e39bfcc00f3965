"""
Document request service - firm asks a client for a file, client fulfils it.

Status flow: pending -> uploaded -> reviewed | rejected, and rejected -> uploaded
when the client re-uploads.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from portal.core.org_access import check_org_access, check_staff
from portal.db.enums import (
    DocumentCategory,
    DocumentRequestStatus,
    EmailEvent,
    NotificationType,
)
from portal.db.models import Document, DocumentRequest, User
from portal.db.types import utcnow
from portal.services import (
    activity_service,
    document_service,
    notification_dispatcher,
    notification_service,
)

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
FULFILLABLE_STATUSES = (DocumentRequestStatus.PENDING.value, DocumentRequestStatus.REJECTED.value)


class DocumentRequestServiceError(Exception):
    """Base exception for document request errors."""

    pass


class DocumentRequestNotFoundError(DocumentRequestServiceError):
    """Document request not found."""

    pass


def get_request(db: Session, request_id: UUID, actor: User) -> DocumentRequest:
    """
    Raises:
        DocumentRequestNotFoundError, OrganizationAccessError
    """
    request = db.query(DocumentRequest).filter(DocumentRequest.id == request_id).first()
    if not request:
        raise DocumentRequestNotFoundError(f"Document request {request_id} not found")
    check_org_access(actor, request.organization_id)
    return request


def list_requests(
    db: Session,
    actor: User,
    org_id: UUID,
    status: DocumentRequestStatus | None = None,
) -> list[DocumentRequest]:
    check_org_access(actor, org_id)
    query = db.query(DocumentRequest).filter(DocumentRequest.organization_id == org_id)
    if status:
        query = query.filter(DocumentRequest.status == status.value)
    return query.order_by(DocumentRequest.created_at.desc()).all()


def create_request(
    db: Session,
    actor: User,
    org_id: UUID,
    title: str,
    description: str | None = None,
    category: DocumentCategory = DocumentCategory.OTHER,
    due_date: datetime | None = None,
) -> DocumentRequest:
    """
    Staff: ask an organization for a document. Notifies and emails its users.

    Raises:
        OrganizationAccessError: Actor is not staff
        ValueError: Invalid title
    """
    check_staff(actor)
    title = (title or "").strip()
    if not title:
        raise ValueError("Title is required")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValueError(f"Title too long (max {MAX_TITLE_LENGTH} characters)")

    request = DocumentRequest(
        organization_id=org_id,
        title=title,
        description=description,
        category=category.value,
        due_date=due_date,
        requested_by_id=actor.id,
    )
    db.add(request)
    db.flush()
    activity_service.log_activity(
        db,
        action="requested",
        resource_type="document_request",
        user_id=actor.id,
        organization_id=org_id,
        resource_id=request.id,
        resource_name=title,
    )
    db.commit()
    db.refresh(request)

    recipients = notification_service.get_org_users(db, org_id)
    notification_service.notify_users(
        db,
        recipients,
        type=NotificationType.DOCUMENT_REQUEST,
        title="Document requested",
        message=f"Please upload: {title}",
        org_id=org_id,
        link="/documents",
    )
    notification_dispatcher.queue_email_to_users(
        db,
        event=EmailEvent.DOCUMENT_REQUESTED,
        recipients=recipients,
        org_id=org_id,
        document_title=title,
        description=description,
        due_date=due_date,
    )
    return request


def fulfil_request(
    db: Session,
    request_id: UUID,
    actor: User,
    name: str,
    storage_key: str,
    size: int,
    mime_type: str | None = None,
) -> Document:
    """
    Upload the requested document. Moves the request to uploaded.

    Raises:
        DocumentRequestNotFoundError, OrganizationAccessError
        ValueError: Request not awaiting an upload, or invalid file
    """
    request = get_request(db, request_id, actor)
    if request.status not in FULFILLABLE_STATUSES:
        raise ValueError(f"Request is {request.status}; no upload expected")

    document = document_service.create_document(
        db,
        actor=actor,
        org_id=request.organization_id,
        name=name,
        storage_key=storage_key,
        size=size,
        mime_type=mime_type,
        category=DocumentCategory(request.category),
        document_request_id=request.id,
        commit=False,
    )
    request.document_id = document.id
    request.status = DocumentRequestStatus.UPLOADED.value
    request.review_note = None
    request.reviewed_by_id = None
    request.reviewed_at = None
    db.commit()
    db.refresh(document)

    document_service.announce_upload(db, document, actor)
    return document


def _review(
    db: Session,
    request_id: UUID,
    actor: User,
    status: DocumentRequestStatus,
    note: str | None,
) -> DocumentRequest:
    check_staff(actor)
    request = get_request(db, request_id, actor)
    if request.status != DocumentRequestStatus.UPLOADED.value:
        raise ValueError("Only uploaded requests can be reviewed")

    request.status = status.value
    request.review_note = note
    request.reviewed_by_id = actor.id
    request.reviewed_at = utcnow()
    activity_service.log_activity(
        db,
        action=status.value,
        resource_type="document_request",
        user_id=actor.id,
        organization_id=request.organization_id,
        resource_id=request.id,
        resource_name=request.title,
        details={"note": note} if note else None,
    )
    db.commit()
    db.refresh(request)
    return request


def _review_recipients(db: Session, request: DocumentRequest) -> list[User]:
    """Whoever uploaded the file, else everyone in the org."""
    if request.document_id:
        document = db.get(Document, request.document_id)
        if document and document.uploaded_by_id:
            uploader = db.get(User, document.uploaded_by_id)
            if uploader and uploader.is_active:
                return [uploader]
    return notification_service.get_org_users(db, request.organization_id)


def approve_request(
    db: Session,
    request_id: UUID,
    actor: User,
    note: str | None = None,
) -> DocumentRequest:
    """Staff: accept the uploaded document."""
    request = _review(db, request_id, actor, DocumentRequestStatus.REVIEWED, note)
    recipients = _review_recipients(db, request)
    notification_service.notify_users(
        db,
        recipients,
        type=NotificationType.DOCUMENT_REVIEWED,
        title="Document approved",
        message=f"{request.title} has been approved",
        org_id=request.organization_id,
        link="/documents",
    )
    notification_dispatcher.queue_email_to_users(
        db,
        event=EmailEvent.DOCUMENT_APPROVED,
        recipients=recipients,
        org_id=request.organization_id,
        document_title=request.title,
    )
    return request


def reject_request(
    db: Session,
    request_id: UUID,
    actor: User,
    reason: str,
) -> DocumentRequest:
    """
    Staff: send the document back with a reason.

    Raises:
        ValueError: Missing reason or request not uploaded
    """
    reason = (reason or "").strip()
    if not reason:
        raise ValueError("A reason is required when rejecting a document")

    request = _review(db, request_id, actor, DocumentRequestStatus.REJECTED, reason)
    recipients = _review_recipients(db, request)
    notification_service.notify_users(
        db,
        recipients,
        type=NotificationType.DOCUMENT_REVIEWED,
        title="Document needs resubmission",
        message=f"{request.title}: {reason}",
        org_id=request.organization_id,
        link="/documents",
    )
    notification_dispatcher.queue_email_to_users(
        db,
        event=EmailEvent.DOCUMENT_REJECTED,
        recipients=recipients,
        org_id=request.organization_id,
        document_title=request.title,
        reason=reason,
    )
    return request
