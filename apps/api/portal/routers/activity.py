"""Activity feed router."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from portal.core.deps import get_current_user, get_db
from portal.core.org_access import check_org_access, is_staff
from portal.db.models import User
from portal.schemas.notification import ActivityRead
from portal.services import activity_service

router = APIRouter()


@router.get("", response_model=list[ActivityRead])
def list_activity(
    organization_id: UUID | None = None,
    user_id: UUID | None = None,
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Recent activity, newest first.

    Staff may filter by any org or user. Clients always get their own org.
    """
    if not is_staff(user.role):
        organization_id = organization_id or user.organization_id
        check_org_access(user, organization_id)
        user_id = None
    return activity_service.list_activity(
        db, organization_id=organization_id, user_id=user_id, limit=limit
    )
