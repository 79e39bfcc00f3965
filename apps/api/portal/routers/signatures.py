"""Signature requests router."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from portal.core.deps import get_current_user, get_db, require_csrf_header, require_staff
from portal.db.enums import SignatureStatus
from portal.db.models import User
from portal.schemas.document import (
    SignatureDecline,
    SignatureRequestCreate,
    SignatureRequestRead,
    SignatureSubmit,
)
from portal.services import signature_service

router = APIRouter()


@router.get("", response_model=list[SignatureRequestRead])
def list_signature_requests(
    organization_id: UUID | None = None,
    status: SignatureStatus | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return signature_service.list_requests(db, user, org_id=organization_id, status=status)


@router.post(
    "",
    response_model=SignatureRequestRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_signature_request(
    data: SignatureRequestCreate,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    try:
        return signature_service.create_request(
            db,
            user,
            org_id=data.organization_id,
            document_id=data.document_id,
            signer_id=data.signer_id,
            title=data.title,
            description=data.description,
            due_date=data.due_date,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{request_id}", response_model=SignatureRequestRead)
def get_signature_request(
    request_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return signature_service.get_request(db, request_id, user)


@router.post(
    "/{request_id}/sign",
    response_model=SignatureRequestRead,
    dependencies=[Depends(require_csrf_header)],
)
def sign_request(
    request_id: UUID,
    data: SignatureSubmit,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Only the named signer can sign, and only while pending."""
    try:
        return signature_service.sign(
            db,
            request_id,
            user,
            signature_type=data.signature_type,
            signature_data=data.signature_data,
            legal_name=data.legal_name,
            agreed_to_terms=data.agreed_to_terms,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post(
    "/{request_id}/decline",
    response_model=SignatureRequestRead,
    dependencies=[Depends(require_csrf_header)],
)
def decline_request(
    request_id: UUID,
    data: SignatureDecline,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return signature_service.decline(db, request_id, user, reason=data.reason)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post(
    "/{request_id}/cancel",
    response_model=SignatureRequestRead,
    dependencies=[Depends(require_csrf_header)],
)
def cancel_request(
    request_id: UUID,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    try:
        return signature_service.cancel(db, request_id, user)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
