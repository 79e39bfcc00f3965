"""Tasks router - client tasks and their comment threads."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from portal.core.deps import get_current_user, get_db, require_csrf_header, require_staff
from portal.db.enums import TaskStatus
from portal.db.models import User
from portal.schemas.task import (
    TaskCommentCreate,
    TaskCommentRead,
    TaskCreate,
    TaskRead,
    TaskStatusUpdate,
    TaskUpdate,
)
from portal.services import task_service

router = APIRouter()


@router.get("", response_model=list[TaskRead])
def list_tasks(
    organization_id: UUID | None = None,
    status: TaskStatus | None = None,
    my_tasks: bool = False,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    List tasks.

    - Clients see their organization's tasks
    - my_tasks=true: only tasks assigned to the current user
    """
    return task_service.list_tasks(
        db, user, org_id=organization_id, status=status, assigned_to_me=my_tasks
    )


@router.post("", response_model=TaskRead, status_code=201, dependencies=[Depends(require_csrf_header)])
def create_task(
    data: TaskCreate,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    try:
        return task_service.create_task(db, user, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{task_id}", response_model=TaskRead)
def get_task(
    task_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return task_service.get_task(db, task_id, actor=user)


@router.patch("/{task_id}", response_model=TaskRead, dependencies=[Depends(require_csrf_header)])
def update_task(
    task_id: UUID,
    data: TaskUpdate,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    try:
        return task_service.update_task(db, task_id, user, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{task_id}/status", response_model=TaskRead, dependencies=[Depends(require_csrf_header)])
def update_task_status(
    task_id: UUID,
    data: TaskStatusUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return task_service.update_status(db, task_id, user, data.status)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{task_id}/cancel", response_model=TaskRead, dependencies=[Depends(require_csrf_header)])
def cancel_task(
    task_id: UUID,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    try:
        return task_service.cancel_task(db, task_id, user)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# =============================================================================
# Comments
# =============================================================================

@router.get("/{task_id}/comments", response_model=list[TaskCommentRead])
def list_comments(
    task_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return task_service.list_comments(db, task_id, user)


@router.post(
    "/{task_id}/comments",
    response_model=TaskCommentRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def add_comment(
    task_id: UUID,
    data: TaskCommentCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return task_service.add_comment(db, task_id, user, data.content)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.patch(
    "/comments/{comment_id}",
    response_model=TaskCommentRead,
    dependencies=[Depends(require_csrf_header)],
)
def edit_comment(
    comment_id: UUID,
    data: TaskCommentCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return task_service.edit_comment(db, comment_id, user, data.content)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
