"""
Folder service - per-organization folder tree for documents.

Folders nest at most two levels (folder -> subfolder). A folder can only be
removed once it holds no live documents and no subfolders.
"""

from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from portal.core.org_access import check_org_access, check_staff
from portal.db.models import Document, Folder, User
from portal.services import activity_service, org_service


MAX_FOLDER_NAME_LENGTH = 100


class FolderServiceError(Exception):
    """Base exception for folder service errors."""

    pass


class FolderNotFoundError(FolderServiceError):
    """Folder not found."""

    pass


def _clean_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValueError("Folder name is required")
    if len(cleaned) > MAX_FOLDER_NAME_LENGTH:
        raise ValueError("Folder name too long")
    return cleaned


def _check_unique_name(
    db: Session,
    org_id: UUID,
    parent_id: UUID | None,
    name: str,
    exclude_id: UUID | None = None,
) -> None:
    query = db.query(Folder.id).filter(
        Folder.organization_id == org_id,
        func.lower(Folder.name) == name.lower(),
    )
    if parent_id is None:
        query = query.filter(Folder.parent_id.is_(None))
    else:
        query = query.filter(Folder.parent_id == parent_id)
    if exclude_id:
        query = query.filter(Folder.id != exclude_id)
    if query.first():
        raise ValueError("A folder with this name already exists in this location")


def get_folder(db: Session, folder_id: UUID, actor: User | None = None) -> Folder:
    """
    Raises:
        FolderNotFoundError: Unknown folder
        OrganizationAccessError: Actor can't see the org
    """
    folder = db.get(Folder, folder_id)
    if not folder:
        raise FolderNotFoundError(f"Folder {folder_id} not found")
    if actor is not None:
        check_org_access(actor, folder.organization_id)
    return folder


def document_counts(db: Session, folder_ids: list[UUID]) -> dict[UUID, int]:
    """Live (not soft-deleted) document count per folder."""
    if not folder_ids:
        return {}
    rows = (
        db.query(Document.folder_id, func.count(Document.id))
        .filter(Document.folder_id.in_(folder_ids), Document.is_deleted.is_(False))
        .group_by(Document.folder_id)
        .all()
    )
    return {folder_id: count for folder_id, count in rows}


def _has_subfolders(db: Session, folder_id: UUID) -> bool:
    return db.query(Folder.id).filter(Folder.parent_id == folder_id).first() is not None


def list_folders(
    db: Session,
    actor: User,
    org_id: UUID,
    parent_id: UUID | None = None,
) -> list[Folder]:
    """Folders directly under parent_id (root folders when None), by name."""
    check_org_access(actor, org_id)
    query = db.query(Folder).filter(Folder.organization_id == org_id)
    if parent_id is None:
        query = query.filter(Folder.parent_id.is_(None))
    else:
        query = query.filter(Folder.parent_id == parent_id)
    return query.order_by(func.lower(Folder.name)).all()


def get_hierarchy(db: Session, actor: User, org_id: UUID) -> list[dict]:
    """
    The organization's folder tree.

    Each node is {"folder", "document_count", "children"}; siblings sorted by
    name.
    """
    check_org_access(actor, org_id)
    folders = (
        db.query(Folder)
        .filter(Folder.organization_id == org_id)
        .order_by(func.lower(Folder.name))
        .all()
    )
    counts = document_counts(db, [f.id for f in folders])

    def build(parent_id: UUID | None) -> list[dict]:
        return [
            {
                "folder": folder,
                "document_count": counts.get(folder.id, 0),
                "children": build(folder.id),
            }
            for folder in folders
            if folder.parent_id == parent_id
        ]

    return build(None)


def get_breadcrumb(db: Session, folder_id: UUID, actor: User) -> list[Folder]:
    """Path from the root folder down to folder_id."""
    folder = get_folder(db, folder_id, actor=actor)
    path = [folder]
    while path[0].parent_id:
        parent = db.get(Folder, path[0].parent_id)
        if not parent:
            break
        path.insert(0, parent)
    return path


def create_folder(
    db: Session,
    actor: User,
    org_id: UUID,
    name: str,
    parent_id: UUID | None = None,
    description: str | None = None,
    color: str | None = None,
) -> Folder:
    """
    Create a folder, optionally under a root folder.

    Raises:
        OrgNotFoundError: Unknown organization
        OrganizationAccessError: Actor can't write to org
        FolderNotFoundError: Unknown parent
        ValueError: Invalid name, duplicate, or too deep
    """
    org_service.require_org(db, org_id)
    check_org_access(actor, org_id)

    if parent_id:
        parent = get_folder(db, parent_id)
        if parent.organization_id != org_id:
            raise ValueError("Parent folder belongs to a different organization")
        if parent.parent_id:
            raise ValueError("Nested subfolders are not allowed. Maximum folder depth is 2 levels.")

    cleaned = _clean_name(name)
    _check_unique_name(db, org_id, parent_id, cleaned)

    folder = Folder(
        organization_id=org_id,
        parent_id=parent_id,
        name=cleaned,
        description=description.strip() if description else None,
        color=color,
        created_by_id=actor.id,
    )
    db.add(folder)
    db.flush()
    activity_service.log_activity(
        db,
        action="created_folder",
        resource_type="folder",
        user_id=actor.id,
        organization_id=org_id,
        resource_id=folder.id,
        resource_name=folder.name,
    )
    db.commit()
    db.refresh(folder)
    return folder


def update_folder(db: Session, folder_id: UUID, actor: User, updates: dict) -> Folder:
    """Rename or restyle a folder (only keys present in updates)."""
    folder = get_folder(db, folder_id, actor=actor)

    if "name" in updates:
        cleaned = _clean_name(updates["name"])
        _check_unique_name(
            db, folder.organization_id, folder.parent_id, cleaned, exclude_id=folder.id
        )
        folder.name = cleaned
    if "description" in updates:
        description = updates["description"]
        folder.description = description.strip() if description else None
    if "color" in updates:
        folder.color = updates["color"]

    activity_service.log_activity(
        db,
        action="updated_folder",
        resource_type="folder",
        user_id=actor.id,
        organization_id=folder.organization_id,
        resource_id=folder.id,
        resource_name=folder.name,
    )
    db.commit()
    db.refresh(folder)
    return folder


def move_folder(
    db: Session,
    folder_id: UUID,
    actor: User,
    new_parent_id: UUID | None,
) -> Folder:
    """
    Staff: move a folder under another root folder, or back to the root.

    Raises:
        ValueError: Cross-organization move, self-parenting, or a move that
            would exceed two levels
    """
    check_staff(actor)
    folder = get_folder(db, folder_id)

    if new_parent_id:
        if new_parent_id == folder.id:
            raise ValueError("Cannot move folder into itself")
        new_parent = get_folder(db, new_parent_id)
        if new_parent.organization_id != folder.organization_id:
            raise ValueError("Cannot move folder to a different organization")
        if new_parent.parent_id:
            raise ValueError("Cannot create nested subfolders. Maximum depth is 2 levels.")
        if _has_subfolders(db, folder.id):
            raise ValueError("A folder with subfolders can only live at the root")

    _check_unique_name(
        db, folder.organization_id, new_parent_id, folder.name, exclude_id=folder.id
    )
    folder.parent_id = new_parent_id
    activity_service.log_activity(
        db,
        action="moved_folder",
        resource_type="folder",
        user_id=actor.id,
        organization_id=folder.organization_id,
        resource_id=folder.id,
        resource_name=folder.name,
        details={"parent_id": str(new_parent_id) if new_parent_id else None},
    )
    db.commit()
    db.refresh(folder)
    return folder


def remove_folder(db: Session, folder_id: UUID, actor: User) -> None:
    """
    Delete an empty folder.

    Raises:
        ValueError: Folder still holds live documents or subfolders
    """
    folder = get_folder(db, folder_id, actor=actor)

    if document_counts(db, [folder.id]).get(folder.id):
        raise ValueError(
            "Cannot delete folder that contains documents. "
            "Please move or delete documents first."
        )
    if _has_subfolders(db, folder.id):
        raise ValueError(
            "Cannot delete folder that contains subfolders. Please delete subfolders first."
        )

    # Soft-deleted documents keep their history but lose the placement
    db.query(Document).filter(Document.folder_id == folder.id).update(
        {Document.folder_id: None}, synchronize_session=False
    )
    activity_service.log_activity(
        db,
        action="deleted_folder",
        resource_type="folder",
        user_id=actor.id,
        organization_id=folder.organization_id,
        resource_id=folder.id,
        resource_name=folder.name,
    )
    db.delete(folder)
    db.commit()
