"""Pydantic schemas for documents, versions, document requests and signatures."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from portal.db.enums import DocumentCategory, DocumentRequestStatus, SignatureStatus


class UploadUrlRequest(BaseModel):
    organization_id: UUID
    filename: str = Field(..., min_length=1, max_length=255)
    content_type: str = Field(..., max_length=100)
    size: int = Field(..., gt=0)


class UploadUrlResponse(BaseModel):
    upload_url: str
    storage_key: str
    filename: str


class DocumentCreate(BaseModel):
    """Register a file already PUT to storage_key."""
    organization_id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    storage_key: str = Field(..., max_length=1024)
    size: int = Field(..., gt=0)
    mime_type: str | None = Field(None, max_length=100)
    category: DocumentCategory = DocumentCategory.OTHER
    folder_id: UUID | None = None


class DocumentVersionCreate(BaseModel):
    storage_key: str = Field(..., max_length=1024)
    size: int = Field(..., gt=0)
    name: str | None = Field(None, min_length=1, max_length=255)
    change_note: str | None = Field(None, max_length=1000)


class DocumentRead(BaseModel):
    id: UUID
    organization_id: UUID
    name: str
    category: DocumentCategory
    mime_type: str | None
    size: int
    current_version_id: UUID | None
    document_request_id: UUID | None
    folder_id: UUID | None
    uploaded_by_id: UUID | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DocumentVersionRead(BaseModel):
    id: UUID
    document_id: UUID
    version: int
    name: str
    size: int
    storage_finalized: bool
    uploaded_by_id: UUID | None
    change_note: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class DownloadUrlResponse(BaseModel):
    url: str


class DocumentMove(BaseModel):
    folder_id: UUID | None = None


# =============================================================================
# Folders
# =============================================================================

class FolderCreate(BaseModel):
    organization_id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    parent_id: UUID | None = None
    description: str | None = Field(None, max_length=1000)
    color: str | None = Field(None, max_length=20)


class FolderUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=1000)
    color: str | None = Field(None, max_length=20)


class FolderMove(BaseModel):
    parent_id: UUID | None = None


class FolderRead(BaseModel):
    id: UUID
    organization_id: UUID
    parent_id: UUID | None
    name: str
    description: str | None
    color: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class FolderListItem(FolderRead):
    document_count: int = 0


class FolderTreeNode(FolderListItem):
    children: list["FolderTreeNode"] = []


# =============================================================================
# Document requests
# =============================================================================

class DocumentRequestCreate(BaseModel):
    organization_id: UUID
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    category: DocumentCategory = DocumentCategory.OTHER
    due_date: datetime | None = None


class DocumentRequestFulfil(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    storage_key: str = Field(..., max_length=1024)
    size: int = Field(..., gt=0)
    mime_type: str | None = Field(None, max_length=100)


class DocumentRequestApprove(BaseModel):
    note: str | None = Field(None, max_length=2000)


class DocumentRequestReject(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


class DocumentRequestRead(BaseModel):
    id: UUID
    organization_id: UUID
    title: str
    description: str | None
    category: DocumentCategory
    due_date: datetime | None
    status: DocumentRequestStatus
    requested_by_id: UUID | None
    document_id: UUID | None
    review_note: str | None
    reviewed_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


# =============================================================================
# Signatures
# =============================================================================

class SignatureRequestCreate(BaseModel):
    organization_id: UUID
    document_id: UUID
    signer_id: UUID
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=1000)
    due_date: datetime | None = None


class SignatureSubmit(BaseModel):
    signature_type: str = Field(..., pattern="^(draw|type|upload)$")
    signature_data: str
    legal_name: str = Field(..., min_length=1, max_length=200)
    agreed_to_terms: bool


class SignatureDecline(BaseModel):
    reason: str | None = Field(None, max_length=1000)


class SignatureRequestRead(BaseModel):
    id: UUID
    organization_id: UUID
    document_id: UUID
    title: str
    description: str | None
    requested_by_id: UUID | None
    signer_id: UUID
    status: SignatureStatus
    due_date: datetime | None
    signature_type: str | None
    legal_name: str | None
    signed_at: datetime | None
    decline_reason: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
