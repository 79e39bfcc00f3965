"""Recurring task templates and organization subscriptions (staff)."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from portal.core.deps import get_current_user, get_db, require_csrf_header, require_staff
from portal.db.models import User
from portal.schemas.task import (
    SubscriptionCreate,
    SubscriptionRead,
    TaskTemplateCreate,
    TaskTemplateRead,
    TaskTemplateUpdate,
)
from portal.services import task_template_service

router = APIRouter()


class SubscriptionToggle(BaseModel):
    is_active: bool


@router.get("", response_model=list[TaskTemplateRead])
def list_templates(
    include_inactive: bool = False,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return task_template_service.list_templates(db, include_inactive=include_inactive)


@router.post(
    "",
    response_model=TaskTemplateRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_template(
    data: TaskTemplateCreate,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    try:
        return task_template_service.create_template(db, user, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/seed", dependencies=[Depends(require_csrf_header)])
def seed_templates(
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    """Insert the built-in templates that don't exist yet."""
    return {"created": task_template_service.seed_builtin_templates(db, created_by_id=user.id)}


@router.get("/subscriptions", response_model=list[SubscriptionRead])
def list_subscriptions(
    organization_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return task_template_service.list_subscriptions(db, user, organization_id)


@router.post(
    "/subscriptions",
    response_model=SubscriptionRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def subscribe(
    data: SubscriptionCreate,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    try:
        return task_template_service.subscribe(db, user, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.patch(
    "/subscriptions/{subscription_id}",
    response_model=SubscriptionRead,
    dependencies=[Depends(require_csrf_header)],
)
def toggle_subscription(
    subscription_id: UUID,
    data: SubscriptionToggle,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return task_template_service.toggle_subscription(db, subscription_id, user, data.is_active)


@router.delete(
    "/subscriptions/{subscription_id}",
    status_code=204,
    dependencies=[Depends(require_csrf_header)],
)
def unsubscribe(
    subscription_id: UUID,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    task_template_service.unsubscribe(db, subscription_id, user)


@router.get("/{template_id}", response_model=TaskTemplateRead)
def get_template(
    template_id: UUID,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return task_template_service.get_template(db, template_id)


@router.patch(
    "/{template_id}",
    response_model=TaskTemplateRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_template(
    template_id: UUID,
    data: TaskTemplateUpdate,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    try:
        return task_template_service.update_template(db, template_id, user, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
