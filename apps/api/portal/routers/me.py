"""Current user: profile, onboarding, email preferences and notifications."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from portal.core.deps import get_current_user, get_db, require_csrf_header
from portal.db.models import User
from portal.schemas.auth import (
    EmailPreferencesRead,
    EmailPreferencesUpdate,
    ProfileUpdate,
    UserRead,
)
from portal.schemas.notification import NotificationList, NotificationRead
from portal.services import email_preference_service, notification_service, user_service

router = APIRouter()


@router.get("", response_model=UserRead)
def get_me(user: User = Depends(get_current_user)):
    return user


@router.patch("", response_model=UserRead, dependencies=[Depends(require_csrf_header)])
def update_me(
    data: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return user_service.update_profile(db, user, name=data.name, phone=data.phone)


@router.post("/onboarding", response_model=UserRead, dependencies=[Depends(require_csrf_header)])
def complete_onboarding(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return user_service.complete_onboarding(db, user)
    except user_service.MissingOrganizationError as e:
        raise HTTPException(status_code=400, detail=str(e))


# =============================================================================
# Email preferences
# =============================================================================

@router.get("/email-preferences", response_model=EmailPreferencesRead, response_model_by_alias=True)
def get_email_preferences(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return email_preference_service.get_email_preferences(db, user.id)


@router.patch(
    "/email-preferences",
    response_model=EmailPreferencesRead,
    response_model_by_alias=True,
    dependencies=[Depends(require_csrf_header)],
)
def update_email_preferences(
    data: EmailPreferencesUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return email_preference_service.update_email_preferences(
            db, user.id, data.model_dump(exclude_none=True)
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# =============================================================================
# Notifications
# =============================================================================

@router.get("/notifications", response_model=NotificationList)
def list_notifications(
    unread_only: bool = False,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items = notification_service.get_notifications(
        db, user.id, unread_only=unread_only, limit=limit, offset=offset
    )
    return NotificationList(
        items=[NotificationRead.model_validate(n) for n in items],
        unread_count=notification_service.get_unread_count(db, user.id),
    )


@router.post(
    "/notifications/{notification_id}/read",
    response_model=NotificationRead,
    dependencies=[Depends(require_csrf_header)],
)
def mark_notification_read(
    notification_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    notification = notification_service.mark_read(db, notification_id, user.id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification


@router.post("/notifications/read-all", dependencies=[Depends(require_csrf_header)])
def mark_all_notifications_read(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return {"updated": notification_service.mark_all_read(db, user.id)}
