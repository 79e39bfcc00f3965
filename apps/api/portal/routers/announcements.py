"""Announcements router."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from portal.core.deps import get_current_user, get_db, require_csrf_header, require_staff
from portal.db.enums import AnnouncementType
from portal.db.models import User
from portal.schemas.announcement import (
    AnnouncementCreate,
    AnnouncementRead,
    AnnouncementUpdate,
    UnreadCount,
)
from portal.services import announcement_service

router = APIRouter()


def _to_read(announcement, is_read: bool = False) -> AnnouncementRead:
    result = AnnouncementRead.model_validate(announcement)
    result.is_read = is_read
    return result


@router.get("", response_model=list[AnnouncementRead])
def list_announcements(
    type: AnnouncementType | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Published, unexpired announcements for the user. Pinned first."""
    return [
        _to_read(a, is_read)
        for a, is_read in announcement_service.list_visible(db, user, type=type)
    ]


@router.get("/all", response_model=list[AnnouncementRead])
def list_all_announcements(
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    """Staff: including scheduled and expired."""
    return [_to_read(a) for a in announcement_service.list_all(db, user)]


@router.get("/unread-count", response_model=UnreadCount)
def unread_count(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return UnreadCount(count=announcement_service.get_unread_count(db, user))


@router.post(
    "",
    response_model=AnnouncementRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_announcement(
    data: AnnouncementCreate,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    try:
        return _to_read(announcement_service.create_announcement(db, user, data))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.patch(
    "/{announcement_id}",
    response_model=AnnouncementRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_announcement(
    announcement_id: UUID,
    data: AnnouncementUpdate,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    try:
        return _to_read(announcement_service.update_announcement(db, announcement_id, user, data))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post(
    "/{announcement_id}/publish",
    response_model=AnnouncementRead,
    dependencies=[Depends(require_csrf_header)],
)
def publish_announcement(
    announcement_id: UUID,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    try:
        return _to_read(announcement_service.publish_now(db, announcement_id, user))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{announcement_id}/read", status_code=204, dependencies=[Depends(require_csrf_header)])
def mark_announcement_read(
    announcement_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    announcement_service.mark_read(db, announcement_id, user)


@router.delete("/{announcement_id}", status_code=204, dependencies=[Depends(require_csrf_header)])
def delete_announcement(
    announcement_id: UUID,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    announcement_service.remove_announcement(db, announcement_id, user)
