"""Documents, version history, downloads and document requests."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from portal.core.deps import get_current_user, get_db, require_csrf_header, require_staff
from portal.core.rate_limit import limiter, upload_limit
from portal.db.enums import DocumentCategory, DocumentRequestStatus
from portal.db.models import User
from portal.schemas.document import (
    DocumentCreate,
    DocumentMove,
    DocumentRead,
    DocumentRequestApprove,
    DocumentRequestCreate,
    DocumentRequestFulfil,
    DocumentRequestRead,
    DocumentRequestReject,
    DocumentVersionCreate,
    DocumentVersionRead,
    DownloadUrlResponse,
    UploadUrlRequest,
    UploadUrlResponse,
)
from portal.services import document_request_service, document_service

router = APIRouter()


def _org_or_own(user: User, org_id: UUID | None) -> UUID:
    target = org_id or user.organization_id
    if not target:
        raise HTTPException(status_code=400, detail="organization_id is required")
    return target


@router.post("/upload-url", response_model=UploadUrlResponse)
@limiter.limit(upload_limit)
def create_upload_url(
    request: Request,
    data: UploadUrlRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    _csrf: None = Depends(require_csrf_header),
):
    """Validate the file and issue a presigned PUT URL."""
    try:
        return document_service.create_upload_url(
            db, user, data.organization_id, data.filename, data.content_type, data.size
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("", response_model=list[DocumentRead])
def list_documents(
    organization_id: UUID | None = None,
    category: DocumentCategory | None = None,
    folder_id: UUID | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return document_service.list_documents(
        db, user, _org_or_own(user, organization_id), category=category, folder_id=folder_id
    )


@router.post("", response_model=DocumentRead, status_code=201)
def create_document(
    data: DocumentCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    _csrf: None = Depends(require_csrf_header),
):
    """Register an uploaded file as a new document (version 1)."""
    try:
        return document_service.create_document(
            db,
            user,
            data.organization_id,
            name=data.name,
            storage_key=data.storage_key,
            size=data.size,
            mime_type=data.mime_type,
            category=data.category,
            folder_id=data.folder_id,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{document_id}", response_model=DocumentRead)
def get_document(
    document_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return document_service.get_document(db, document_id, actor=user)


@router.put(
    "/{document_id}/folder",
    response_model=DocumentRead,
    dependencies=[Depends(require_csrf_header)],
)
def move_document(
    document_id: UUID,
    data: DocumentMove,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return document_service.move_document(db, document_id, user, data.folder_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{document_id}", status_code=204, dependencies=[Depends(require_csrf_header)])
def delete_document(
    document_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    document_service.delete_document(db, document_id, user)


@router.get("/{document_id}/download", response_model=DownloadUrlResponse)
def download_document(
    document_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return DownloadUrlResponse(
        url=document_service.get_document_download_url(db, document_id, user)
    )


# =============================================================================
# Versions
# =============================================================================

@router.get("/{document_id}/versions", response_model=list[DocumentVersionRead])
def list_versions(
    document_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return document_service.get_version_history(db, document_id, actor=user)


@router.post("/{document_id}/versions", response_model=DocumentVersionRead, status_code=201)
@limiter.limit(upload_limit)
def upload_version(
    request: Request,
    document_id: UUID,
    data: DocumentVersionCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    _csrf: None = Depends(require_csrf_header),
):
    try:
        version_id = document_service.upload_new_version(
            db,
            document_id,
            storage_key=data.storage_key,
            size=data.size,
            uploaded_by=user,
            change_note=data.change_note,
            name=data.name,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    versions = document_service.get_version_history(db, document_id, actor=user)
    return next(v for v in versions if v.id == version_id)


@router.get("/versions/{version_id}/download", response_model=DownloadUrlResponse)
def download_version(
    version_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return DownloadUrlResponse(
        url=document_service.get_version_download_url(db, version_id, actor=user)
    )


# =============================================================================
# Document requests
# =============================================================================

requests_router = APIRouter()


@requests_router.get("", response_model=list[DocumentRequestRead])
def list_document_requests(
    organization_id: UUID | None = None,
    status: DocumentRequestStatus | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return document_request_service.list_requests(
        db, user, _org_or_own(user, organization_id), status=status
    )


@requests_router.post(
    "",
    response_model=DocumentRequestRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_document_request(
    data: DocumentRequestCreate,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    try:
        return document_request_service.create_request(
            db,
            user,
            data.organization_id,
            title=data.title,
            description=data.description,
            category=data.category,
            due_date=data.due_date,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@requests_router.get("/{request_id}", response_model=DocumentRequestRead)
def get_document_request(
    request_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return document_request_service.get_request(db, request_id, user)


@requests_router.post(
    "/{request_id}/fulfil",
    response_model=DocumentRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def fulfil_document_request(
    request_id: UUID,
    data: DocumentRequestFulfil,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Upload the requested document."""
    try:
        return document_request_service.fulfil_request(
            db,
            request_id,
            user,
            name=data.name,
            storage_key=data.storage_key,
            size=data.size,
            mime_type=data.mime_type,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@requests_router.post(
    "/{request_id}/approve",
    response_model=DocumentRequestRead,
    dependencies=[Depends(require_csrf_header)],
)
def approve_document_request(
    request_id: UUID,
    data: DocumentRequestApprove,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    try:
        return document_request_service.approve_request(db, request_id, user, note=data.note)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@requests_router.post(
    "/{request_id}/reject",
    response_model=DocumentRequestRead,
    dependencies=[Depends(require_csrf_header)],
)
def reject_document_request(
    request_id: UUID,
    data: DocumentRequestReject,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    try:
        return document_request_service.reject_request(db, request_id, user, reason=data.reason)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
