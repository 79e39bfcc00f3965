"""Document folders: listing, tree, breadcrumb and management."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from portal.core.deps import get_current_user, get_db, require_csrf_header, require_staff
from portal.db.models import Folder, User
from portal.schemas.document import (
    FolderCreate,
    FolderListItem,
    FolderMove,
    FolderRead,
    FolderTreeNode,
    FolderUpdate,
)
from portal.services import folder_service

router = APIRouter()


def _org_or_own(user: User, org_id: UUID | None) -> UUID:
    target = org_id or user.organization_id
    if not target:
        raise HTTPException(status_code=400, detail="organization_id is required")
    return target


def _tree(nodes: list[dict]) -> list[FolderTreeNode]:
    return [
        FolderTreeNode(
            **FolderRead.model_validate(node["folder"]).model_dump(),
            document_count=node["document_count"],
            children=_tree(node["children"]),
        )
        for node in nodes
    ]


def _with_counts(db: Session, folders: list[Folder]) -> list[FolderListItem]:
    counts = folder_service.document_counts(db, [f.id for f in folders])
    return [
        FolderListItem(
            **FolderRead.model_validate(folder).model_dump(),
            document_count=counts.get(folder.id, 0),
        )
        for folder in folders
    ]


@router.get("", response_model=list[FolderListItem])
def list_folders(
    organization_id: UUID | None = None,
    parent_id: UUID | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Folders directly under parent_id, or root folders."""
    folders = folder_service.list_folders(
        db, user, _org_or_own(user, organization_id), parent_id=parent_id
    )
    return _with_counts(db, folders)


@router.get("/tree", response_model=list[FolderTreeNode])
def get_folder_tree(
    organization_id: UUID | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _tree(folder_service.get_hierarchy(db, user, _org_or_own(user, organization_id)))


@router.post(
    "",
    response_model=FolderRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_folder(
    data: FolderCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return folder_service.create_folder(
            db,
            user,
            data.organization_id,
            name=data.name,
            parent_id=data.parent_id,
            description=data.description,
            color=data.color,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{folder_id}", response_model=FolderListItem)
def get_folder(
    folder_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    folder = folder_service.get_folder(db, folder_id, actor=user)
    return _with_counts(db, [folder])[0]


@router.get("/{folder_id}/breadcrumb", response_model=list[FolderRead])
def get_breadcrumb(
    folder_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return folder_service.get_breadcrumb(db, folder_id, user)


@router.patch(
    "/{folder_id}",
    response_model=FolderRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_folder(
    folder_id: UUID,
    data: FolderUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return folder_service.update_folder(
            db, folder_id, user, data.model_dump(exclude_unset=True)
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post(
    "/{folder_id}/move",
    response_model=FolderRead,
    dependencies=[Depends(require_csrf_header)],
)
def move_folder(
    folder_id: UUID,
    data: FolderMove,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    try:
        return folder_service.move_folder(db, folder_id, user, data.parent_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{folder_id}", status_code=204, dependencies=[Depends(require_csrf_header)])
def delete_folder(
    folder_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        folder_service.remove_folder(db, folder_id, user)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
