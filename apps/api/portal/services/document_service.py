"""
Document service - uploads and the per-document version chain.

Each Document is the aggregate root for its DocumentVersion rows:
- version numbers run 1..N per document with no gaps
- versions are never renumbered or deleted
- current_version_id always points at the highest version, and is moved in
  the same transaction that inserts the new version
"""

import logging
from uuid import UUID

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy import func
from sqlalchemy.orm import Session

from portal.core.org_access import OrganizationAccessError, check_org_access, is_staff
from portal.db.enums import DocumentCategory, EmailEvent, NotificationType
from portal.db.models import Document, DocumentVersion, Folder, Organization, User
from portal.db.types import utcnow
from portal.services import (
    activity_service,
    folder_service,
    notification_dispatcher,
    notification_service,
    storage_client,
)
from portal.utils.file_upload import (
    build_storage_key,
    validate_file,
    validate_file_size,
    validate_filename,
)

logger = logging.getLogger(__name__)


class DocumentServiceError(Exception):
    """Base exception for document service errors."""

    pass


class DocumentNotFoundError(DocumentServiceError):
    """Document not found (or soft-deleted)."""

    pass


class VersionNotFoundError(DocumentServiceError):
    """Version not found, or its storage object was never finalized."""

    pass


# =============================================================================
# Upload URL
# =============================================================================

def create_upload_url(
    db: Session,
    actor: User,
    org_id: UUID,
    filename: str,
    content_type: str,
    size: int,
) -> dict:
    """
    Validate an upload and issue a presigned PUT URL.

    Returns {"upload_url", "storage_key", "filename"}.

    Raises:
        OrganizationAccessError: Actor can't write to org
        ValueError: Invalid filename, type or size
    """
    check_org_access(actor, org_id)

    ok, error, safe_name = validate_filename(filename)
    if not ok:
        raise ValueError(error)
    ok, error = validate_file(content_type, size)
    if not ok:
        raise ValueError(error)

    storage_key = build_storage_key(org_id, safe_name)
    return {
        "upload_url": storage_client.generate_upload_url(storage_key, content_type),
        "storage_key": storage_key,
        "filename": safe_name,
    }


def _storage_present(storage_key: str) -> bool:
    """Best-effort existence check; unreachable storage counts as not finalized."""
    try:
        return storage_client.object_exists(storage_key)
    except (BotoCoreError, ClientError) as exc:
        logger.warning("Storage check failed for %s: %s", storage_key, exc)
        return False


def _check_storage_key(org_id: UUID, storage_key: str) -> None:
    if not storage_key.startswith(f"documents/{org_id}/"):
        raise ValueError("Storage key does not belong to this organization")


def _check_size(size: int) -> None:
    ok, error = validate_file_size(size)
    if not ok:
        raise ValueError(error)


def _check_folder(db: Session, org_id: UUID, folder_id: UUID | None) -> Folder | None:
    if folder_id is None:
        return None
    folder = folder_service.get_folder(db, folder_id)
    if folder.organization_id != org_id:
        raise ValueError("Folder belongs to a different organization")
    return folder


# =============================================================================
# Documents
# =============================================================================

def get_document(db: Session, document_id: UUID, actor: User | None = None) -> Document:
    """
    Raises:
        DocumentNotFoundError: Missing or soft-deleted
        OrganizationAccessError: Actor can't see the org
    """
    document = db.query(Document).filter(
        Document.id == document_id,
        Document.is_deleted.is_(False),
    ).first()
    if not document:
        raise DocumentNotFoundError(f"Document {document_id} not found")
    if actor is not None:
        check_org_access(actor, document.organization_id)
    return document


def list_documents(
    db: Session,
    actor: User,
    org_id: UUID,
    category: DocumentCategory | None = None,
    folder_id: UUID | None = None,
) -> list[Document]:
    """List live documents for an organization, newest first."""
    check_org_access(actor, org_id)
    query = db.query(Document).filter(
        Document.organization_id == org_id,
        Document.is_deleted.is_(False),
    )
    if category:
        query = query.filter(Document.category == category.value)
    if folder_id:
        query = query.filter(Document.folder_id == folder_id)
    return query.order_by(Document.created_at.desc()).all()


def create_document(
    db: Session,
    actor: User,
    org_id: UUID,
    name: str,
    storage_key: str,
    size: int,
    mime_type: str | None = None,
    category: DocumentCategory = DocumentCategory.OTHER,
    document_request_id: UUID | None = None,
    folder_id: UUID | None = None,
    commit: bool = True,
) -> Document:
    """
    Record an uploaded file as a new document with version 1.

    Raises:
        OrganizationAccessError: Actor can't write to org
        ValueError: Invalid metadata
    """
    check_org_access(actor, org_id)
    ok, error, safe_name = validate_filename(name)
    if not ok:
        raise ValueError(error)
    if mime_type:
        ok, error = validate_file(mime_type, size)
        if not ok:
            raise ValueError(error)
    _check_size(size)
    _check_storage_key(org_id, storage_key)
    _check_folder(db, org_id, folder_id)

    document = Document(
        organization_id=org_id,
        name=safe_name,
        category=category.value,
        mime_type=mime_type,
        size=size,
        storage_key=storage_key,
        document_request_id=document_request_id,
        folder_id=folder_id,
        uploaded_by_id=actor.id,
    )
    db.add(document)
    db.flush()

    version = DocumentVersion(
        document_id=document.id,
        version=1,
        name=safe_name,
        size=size,
        storage_key=storage_key,
        storage_finalized=_storage_present(storage_key),
        uploaded_by_id=actor.id,
    )
    db.add(version)
    db.flush()
    document.current_version_id = version.id

    activity_service.log_activity(
        db,
        action="uploaded",
        resource_type="document",
        user_id=actor.id,
        organization_id=org_id,
        resource_id=document.id,
        resource_name=document.name,
        details={"version": 1, "size": size},
    )
    if not commit:
        db.flush()
        return document

    db.commit()
    db.refresh(document)
    announce_upload(db, document, actor)
    return document


def upload_new_version(
    db: Session,
    document_id: UUID,
    storage_key: str,
    size: int,
    uploaded_by: User,
    change_note: str | None = None,
    name: str | None = None,
) -> UUID:
    """
    Append a version to the document's chain and move the current pointer.

    The version row and the pointer/metadata update commit together.

    Returns:
        The new version's id

    Raises:
        DocumentNotFoundError: Missing or soft-deleted document
        OrganizationAccessError: Uploader can't write to the org
        ValueError: Invalid size/name/storage key
    """
    document = get_document(db, document_id, actor=uploaded_by)
    _check_size(size)
    _check_storage_key(document.organization_id, storage_key)

    version_name = document.name
    if name:
        ok, error, version_name = validate_filename(name)
        if not ok:
            raise ValueError(error)

    current = None
    if document.current_version_id:
        current = db.get(DocumentVersion, document.current_version_id)
    new_number = (current.version if current else 0) + 1

    version = DocumentVersion(
        document_id=document.id,
        version=new_number,
        name=version_name,
        size=size,
        storage_key=storage_key,
        storage_finalized=_storage_present(storage_key),
        uploaded_by_id=uploaded_by.id,
        change_note=change_note,
    )
    db.add(version)
    db.flush()

    document.current_version_id = version.id
    document.name = version_name
    document.size = size
    document.storage_key = storage_key

    activity_service.log_activity(
        db,
        action="version_uploaded",
        resource_type="document",
        user_id=uploaded_by.id,
        organization_id=document.organization_id,
        resource_id=document.id,
        resource_name=document.name,
        details={"version": new_number, "size": size},
    )
    db.commit()
    db.refresh(document)

    announce_upload(db, document, uploaded_by, version_number=new_number)
    return version.id


def announce_upload(
    db: Session,
    document: Document,
    actor: User,
    version_number: int = 1,
) -> None:
    """Tell the other side about an upload (runs after commit)."""
    title = document.name if version_number == 1 else f"{document.name} (v{version_number})"

    if is_staff(actor.role):
        notification_service.notify_users(
            db,
            notification_service.get_org_users(db, document.organization_id),
            type=NotificationType.NEW_DOCUMENT,
            title="New document",
            message=f"{actor.display_name} shared {title}",
            org_id=document.organization_id,
            link="/documents",
        )
        return

    org = db.get(Organization, document.organization_id)
    client_name = org.name if org else actor.display_name
    admins = notification_service.get_admins(db)
    notification_service.notify_users(
        db,
        admins,
        type=NotificationType.NEW_DOCUMENT,
        title="Document uploaded",
        message=f"{client_name} uploaded {title}",
        org_id=document.organization_id,
        link="/admin/documents",
    )
    notification_dispatcher.queue_email_to_users(
        db,
        event=EmailEvent.DOCUMENT_UPLOADED,
        recipients=admins,
        org_id=document.organization_id,
        client_name=client_name,
        document_title=title,
    )


def move_document(
    db: Session,
    document_id: UUID,
    actor: User,
    folder_id: UUID | None,
) -> Document:
    """Place a document in a folder of its organization (None for the root)."""
    document = get_document(db, document_id, actor=actor)
    folder = _check_folder(db, document.organization_id, folder_id)

    document.folder_id = folder_id
    activity_service.log_activity(
        db,
        action="moved",
        resource_type="document",
        user_id=actor.id,
        organization_id=document.organization_id,
        resource_id=document.id,
        resource_name=document.name,
        details={"folder": folder.name if folder else None},
    )
    db.commit()
    db.refresh(document)
    return document


def delete_document(db: Session, document_id: UUID, actor: User) -> Document:
    """
    Soft-delete a document. Versions are kept.

    Raises:
        DocumentNotFoundError, OrganizationAccessError
    """
    document = get_document(db, document_id, actor=actor)
    if not is_staff(actor.role) and document.uploaded_by_id != actor.id:
        raise OrganizationAccessError("Only the uploader or staff can delete this document")

    document.is_deleted = True
    document.deleted_at = utcnow()
    activity_service.log_activity(
        db,
        action="deleted",
        resource_type="document",
        user_id=actor.id,
        organization_id=document.organization_id,
        resource_id=document.id,
        resource_name=document.name,
    )
    db.commit()
    db.refresh(document)
    return document


# =============================================================================
# Versions
# =============================================================================

def get_version_history(
    db: Session,
    document_id: UUID,
    actor: User | None = None,
) -> list[DocumentVersion]:
    """All versions, newest first (point-in-time snapshot)."""
    document = get_document(db, document_id, actor=actor)
    return (
        db.query(DocumentVersion)
        .filter(DocumentVersion.document_id == document.id)
        .order_by(DocumentVersion.version.desc())
        .all()
    )


def get_max_version(db: Session, document_id: UUID) -> int:
    return db.query(func.max(DocumentVersion.version)).filter(
        DocumentVersion.document_id == document_id
    ).scalar() or 0


def finalize_version_storage(db: Session, version_id: UUID) -> bool:
    """
    Confirm a version's object exists in storage and mark it finalized.

    Returns True if the version is (now) finalized.
    """
    version = db.get(DocumentVersion, version_id)
    if not version:
        raise VersionNotFoundError(f"Version {version_id} not found")
    if version.storage_finalized:
        return True
    if not _storage_present(version.storage_key):
        return False
    version.storage_finalized = True
    db.commit()
    return True


def get_version_download_url(
    db: Session,
    version_id: UUID,
    actor: User | None = None,
) -> str:
    """
    Presigned download URL for one version.

    Raises:
        VersionNotFoundError: Unknown version, or upload never finalized
        OrganizationAccessError: Actor can't see the org
    """
    version = db.get(DocumentVersion, version_id)
    if not version:
        raise VersionNotFoundError(f"Version {version_id} not found")

    document = db.get(Document, version.document_id)
    if not document or document.is_deleted:
        raise VersionNotFoundError(f"Version {version_id} not found")
    if actor is not None:
        check_org_access(actor, document.organization_id)

    if not finalize_version_storage(db, version.id):
        raise VersionNotFoundError("File for this version was never uploaded")

    return storage_client.generate_download_url(version.storage_key, filename=version.name)


def get_document_download_url(db: Session, document_id: UUID, actor: User) -> str:
    """Download URL for the document's current version."""
    document = get_document(db, document_id, actor=actor)
    if not document.current_version_id:
        raise VersionNotFoundError("Document has no versions")
    return get_version_download_url(db, document.current_version_id, actor=actor)
