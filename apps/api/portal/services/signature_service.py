"""Signature request service - e-signature requests on client documents."""

import re
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from portal.core.org_access import check_org_access, check_staff, is_staff
from portal.db.enums import EmailEvent, NotificationType, SignatureStatus
from portal.db.models import Document, SignatureRequest, User
from portal.db.types import utcnow
from portal.services import activity_service, notification_dispatcher, notification_service


MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 1000
MAX_LEGAL_NAME_LENGTH = 200
MAX_TYPED_SIGNATURE_LENGTH = 200
MAX_IMAGE_SIGNATURE_LENGTH = 500 * 1024
SIGNATURE_TYPES = {"draw", "type", "upload"}
_IMAGE_DATA_URL = re.compile(r"^data:image/(png|jpeg|jpg|gif|svg\+xml);base64,[A-Za-z0-9+/]+=*$")


class SignatureServiceError(Exception):
    """Base exception for signature service errors."""

    pass


class SignatureRequestNotFoundError(SignatureServiceError):
    """Signature request not found."""

    pass


class NotSignerError(SignatureServiceError):
    """Only the designated signer may act on the request."""

    pass


def validate_signature_data(signature_type: str, signature_data: str | None) -> tuple[bool, str | None]:
    """
    Validate signature payload.

    Drawn/uploaded signatures are base64 image data URLs (max 500KB);
    typed signatures are 2-200 characters.

    Returns (is_valid, error_message)
    """
    if signature_type not in SIGNATURE_TYPES:
        return False, "Invalid signature type"
    if not signature_data:
        return False, "Signature data is required"

    if signature_type in ("draw", "upload"):
        if not signature_data.startswith("data:image/"):
            return False, "Invalid signature image format"
        if not _IMAGE_DATA_URL.match(signature_data):
            return False, "Invalid signature image encoding"
        if len(signature_data) > MAX_IMAGE_SIGNATURE_LENGTH:
            return False, "Signature image too large (max 500KB)"
    else:
        if len(signature_data) > MAX_TYPED_SIGNATURE_LENGTH:
            return False, f"Typed signature too long (max {MAX_TYPED_SIGNATURE_LENGTH} characters)"
        if len(signature_data.strip()) < 2:
            return False, "Typed signature too short"

    return True, None


def get_request(db: Session, request_id: UUID, actor: User) -> SignatureRequest:
    request = db.query(SignatureRequest).filter(SignatureRequest.id == request_id).first()
    if not request:
        raise SignatureRequestNotFoundError(f"Signature request {request_id} not found")
    check_org_access(actor, request.organization_id)
    return request


def list_requests(
    db: Session,
    actor: User,
    org_id: UUID | None = None,
    status: SignatureStatus | None = None,
) -> list[SignatureRequest]:
    """Staff see any org (or all); clients see their own org."""
    query = db.query(SignatureRequest)
    target = org_id if is_staff(actor.role) else (org_id or actor.organization_id)
    if target or not is_staff(actor.role):
        check_org_access(actor, target)
        query = query.filter(SignatureRequest.organization_id == target)
    if status:
        query = query.filter(SignatureRequest.status == status.value)
    return query.order_by(SignatureRequest.created_at.desc()).all()


def create_request(
    db: Session,
    actor: User,
    org_id: UUID,
    document_id: UUID,
    signer_id: UUID,
    title: str,
    description: str | None = None,
    due_date: datetime | None = None,
) -> SignatureRequest:
    """
    Staff: ask a client user to sign a document. Emails the signer.

    Raises:
        OrganizationAccessError: Actor is not staff
        ValueError: Invalid input, or a pending request already exists
    """
    check_staff(actor)
    title = (title or "").strip()
    if not title:
        raise ValueError("Title is required")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValueError(f"Title too long (max {MAX_TITLE_LENGTH} characters)")
    if description and len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValueError(f"Description too long (max {MAX_DESCRIPTION_LENGTH} characters)")

    document = db.get(Document, document_id)
    if not document or document.is_deleted:
        raise ValueError("Document not found")
    if document.organization_id != org_id:
        raise ValueError("Document does not belong to this organization")

    signer = db.get(User, signer_id)
    if not signer or not signer.is_active or signer.organization_id != org_id:
        raise ValueError("Signer must be an active member of the organization")

    existing = db.query(SignatureRequest).filter(
        SignatureRequest.document_id == document_id,
        SignatureRequest.status == SignatureStatus.PENDING.value,
    ).first()
    if existing:
        raise ValueError("A pending signature request already exists for this document")

    request = SignatureRequest(
        organization_id=org_id,
        document_id=document_id,
        title=title,
        description=description.strip() if description else None,
        requested_by_id=actor.id,
        signer_id=signer.id,
        due_date=due_date,
    )
    db.add(request)
    db.flush()
    activity_service.log_activity(
        db,
        action="requested_signature",
        resource_type="signature_request",
        user_id=actor.id,
        organization_id=org_id,
        resource_id=request.id,
        resource_name=title,
    )
    db.commit()
    db.refresh(request)

    notification_service.create_notification(
        db,
        recipient_id=signer.id,
        type=NotificationType.SIGNATURE_REQUEST,
        title="Signature required",
        message=f'Please sign: "{title}"',
        org_id=org_id,
        link="/signatures",
    )
    notification_dispatcher.queue_email(
        db,
        event=EmailEvent.SIGNATURE_REQUESTED,
        recipient_id=signer.id,
        org_id=org_id,
        document_title=title,
        requested_by=actor.display_name,
    )
    return request


def _require_pending_for_signer(db: Session, request_id: UUID, actor: User) -> SignatureRequest:
    request = get_request(db, request_id, actor)
    if request.signer_id != actor.id:
        raise NotSignerError("Only the requested signer can respond to this request")
    if request.status != SignatureStatus.PENDING.value:
        raise ValueError(f"This signature request is {request.status}, not pending")
    return request


def sign(
    db: Session,
    request_id: UUID,
    actor: User,
    signature_type: str,
    signature_data: str,
    legal_name: str,
    agreed_to_terms: bool,
) -> SignatureRequest:
    """
    Signer: sign a pending request.

    Raises:
        SignatureRequestNotFoundError, NotSignerError, OrganizationAccessError
        ValueError: Not pending, or invalid signature input
    """
    request = _require_pending_for_signer(db, request_id, actor)

    legal_name = (legal_name or "").strip()
    if not legal_name:
        raise ValueError("Legal name is required")
    if len(legal_name) > MAX_LEGAL_NAME_LENGTH:
        raise ValueError(f"Legal name too long (max {MAX_LEGAL_NAME_LENGTH} characters)")
    if not agreed_to_terms:
        raise ValueError("You must agree to the terms")
    ok, error = validate_signature_data(signature_type, signature_data)
    if not ok:
        raise ValueError(error)

    request.status = SignatureStatus.SIGNED.value
    request.signature_type = signature_type
    request.signature_data = signature_data
    request.legal_name = legal_name
    request.signed_at = utcnow()
    activity_service.log_activity(
        db,
        action="signed_document",
        resource_type="signature_request",
        user_id=actor.id,
        organization_id=request.organization_id,
        resource_id=request.id,
        resource_name=request.title,
    )
    db.commit()
    db.refresh(request)

    notification_service.notify_users(
        db,
        notification_service.get_admins(db),
        type=NotificationType.SIGNATURE_REQUEST,
        title="Document signed",
        message=f'{actor.display_name} signed "{request.title}"',
        org_id=request.organization_id,
        link="/admin/signatures",
    )
    return request


def decline(
    db: Session,
    request_id: UUID,
    actor: User,
    reason: str | None = None,
) -> SignatureRequest:
    """Signer: decline a pending request."""
    request = _require_pending_for_signer(db, request_id, actor)
    request.status = SignatureStatus.DECLINED.value
    request.decline_reason = reason.strip() if reason else None
    activity_service.log_activity(
        db,
        action="declined_signature",
        resource_type="signature_request",
        user_id=actor.id,
        organization_id=request.organization_id,
        resource_id=request.id,
        resource_name=request.title,
        details={"reason": reason} if reason else None,
    )
    db.commit()
    db.refresh(request)

    notification_service.notify_users(
        db,
        notification_service.get_admins(db),
        type=NotificationType.SIGNATURE_REQUEST,
        title="Signature declined",
        message=f'{actor.display_name} declined to sign "{request.title}"',
        org_id=request.organization_id,
        link="/admin/signatures",
    )
    return request


def cancel(db: Session, request_id: UUID, actor: User) -> SignatureRequest:
    """Staff: withdraw a pending request."""
    check_staff(actor)
    request = get_request(db, request_id, actor)
    if request.status != SignatureStatus.PENDING.value:
        raise ValueError("Only pending requests can be cancelled")
    request.status = SignatureStatus.CANCELLED.value
    activity_service.log_activity(
        db,
        action="cancelled_signature",
        resource_type="signature_request",
        user_id=actor.id,
        organization_id=request.organization_id,
        resource_id=request.id,
        resource_name=request.title,
    )
    db.commit()
    db.refresh(request)
    return request
