"""Task service - business logic for client tasks and comment threads."""

from uuid import UUID

from sqlalchemy.orm import Session

from portal.core.org_access import check_org_access, check_staff, is_staff
from portal.db.enums import EmailEvent, NotificationType, TaskStatus
from portal.db.models import Task, TaskComment, User
from portal.db.types import utcnow
from portal.schemas.task import TaskCreate, TaskUpdate
from portal.services import activity_service, notification_dispatcher, notification_service


class TaskServiceError(Exception):
    """Base exception for task service errors."""

    pass


class TaskNotFoundError(TaskServiceError):
    """Task not found."""

    pass


class CommentNotFoundError(TaskServiceError):
    """Comment not found."""

    pass


class NotCommentAuthorError(TaskServiceError):
    """Only the author may edit a comment."""

    pass


def _validate_assignee(db: Session, org_id: UUID, assignee_id: UUID | None) -> User | None:
    if assignee_id is None:
        return None
    assignee = db.get(User, assignee_id)
    if not assignee or not assignee.is_active:
        raise ValueError("Assignee not found")
    if not is_staff(assignee.role) and assignee.organization_id != org_id:
        raise ValueError("Assignee must belong to the task's organization")
    return assignee


def get_task(db: Session, task_id: UUID, actor: User | None = None) -> Task:
    """
    Raises:
        TaskNotFoundError, OrganizationAccessError
    """
    task = db.query(Task).filter(Task.id == task_id).first()
    if not task:
        raise TaskNotFoundError(f"Task {task_id} not found")
    if actor is not None:
        check_org_access(actor, task.organization_id)
    return task


def list_tasks(
    db: Session,
    actor: User,
    org_id: UUID | None = None,
    status: TaskStatus | None = None,
    assigned_to_me: bool = False,
) -> list[Task]:
    """Tasks visible to the actor, soonest due first."""
    query = db.query(Task)
    if is_staff(actor.role):
        if org_id:
            query = query.filter(Task.organization_id == org_id)
    else:
        target = org_id or actor.organization_id
        check_org_access(actor, target)
        query = query.filter(Task.organization_id == target)

    if status:
        query = query.filter(Task.status == status.value)
    if assigned_to_me:
        query = query.filter(Task.assigned_to_id == actor.id)
    return query.order_by(Task.due_date.is_(None), Task.due_date, Task.created_at.desc()).all()


def notify_task_assigned(db: Session, task: Task, actor_name: str) -> None:
    """In-app + email for the assignee, or every org user when unassigned."""
    if task.assigned_to_id:
        assignee = db.get(User, task.assigned_to_id)
        recipients = [assignee] if assignee and assignee.is_active else []
    else:
        recipients = notification_service.get_org_users(db, task.organization_id)

    notification_service.notify_users(
        db,
        recipients,
        type=NotificationType.NEW_TASK,
        title="New task",
        message=f"{actor_name} assigned: {task.title}",
        org_id=task.organization_id,
        link="/tasks",
    )
    notification_dispatcher.queue_email_to_users(
        db,
        event=EmailEvent.TASK_ASSIGNED,
        recipients=recipients,
        org_id=task.organization_id,
        task_title=task.title,
        description=task.description,
        due_date=task.due_date,
    )


def create_task(db: Session, actor: User, data: TaskCreate) -> Task:
    """
    Staff: create a task for an organization and notify the assignee.

    Raises:
        OrganizationAccessError: Actor is not staff
        ValueError: Invalid assignee
    """
    check_staff(actor)
    _validate_assignee(db, data.organization_id, data.assigned_to_id)

    task = Task(
        organization_id=data.organization_id,
        title=data.title.strip(),
        description=data.description,
        priority=data.priority.value,
        due_date=data.due_date,
        assigned_to_id=data.assigned_to_id,
        created_by_id=actor.id,
    )
    db.add(task)
    db.flush()
    activity_service.log_activity(
        db,
        action="created",
        resource_type="task",
        user_id=actor.id,
        organization_id=task.organization_id,
        resource_id=task.id,
        resource_name=task.title,
    )
    db.commit()
    db.refresh(task)

    notify_task_assigned(db, task, actor.display_name)
    return task


def update_task(db: Session, task_id: UUID, actor: User, data: TaskUpdate) -> Task:
    """
    Staff: partial update. Only explicitly provided fields are applied;
    due_date/description/assigned_to_id may be cleared with null.
    """
    check_staff(actor)
    task = get_task(db, task_id, actor)
    update_data = data.model_dump(exclude_unset=True)

    old_assignee_id = task.assigned_to_id
    if "assigned_to_id" in update_data:
        _validate_assignee(db, task.organization_id, update_data["assigned_to_id"])

    clearable_fields = {"due_date", "description", "assigned_to_id"}
    for field, value in update_data.items():
        if value is None and field not in clearable_fields:
            continue
        if field == "priority":
            value = value.value
        setattr(task, field, value)

    activity_service.log_activity(
        db,
        action="updated",
        resource_type="task",
        user_id=actor.id,
        organization_id=task.organization_id,
        resource_id=task.id,
        resource_name=task.title,
        details={"fields": sorted(update_data.keys())},
    )
    db.commit()
    db.refresh(task)

    if task.assigned_to_id and task.assigned_to_id != old_assignee_id:
        notify_task_assigned(db, task, actor.display_name)
    return task


def update_status(db: Session, task_id: UUID, actor: User, status: TaskStatus) -> Task:
    """
    Change task status. completed_at is set iff the task is completed.

    Raises:
        TaskNotFoundError, OrganizationAccessError
        ValueError: Cancelled tasks are closed; only staff can cancel
    """
    task = get_task(db, task_id, actor)
    if status == TaskStatus.CANCELLED:
        return cancel_task(db, task_id, actor)
    if task.status == TaskStatus.CANCELLED.value:
        raise ValueError("Task has been cancelled")

    old_status = task.status
    if old_status == status.value:
        return task

    task.status = status.value
    if status == TaskStatus.COMPLETED:
        task.completed_at = utcnow()
        task.completed_by_id = actor.id
    else:
        task.completed_at = None
        task.completed_by_id = None

    activity_service.log_activity(
        db,
        action="status_changed",
        resource_type="task",
        user_id=actor.id,
        organization_id=task.organization_id,
        resource_id=task.id,
        resource_name=task.title,
        details={"from": old_status, "to": status.value},
    )
    db.commit()
    db.refresh(task)

    if not is_staff(actor.role):
        notification_service.notify_users(
            db,
            notification_service.get_admins(db),
            type=NotificationType.TASK_STATUS,
            title="Task updated",
            message=f"{actor.display_name} marked {task.title} as {status.value.replace('_', ' ')}",
            org_id=task.organization_id,
            link="/admin/tasks",
        )
    return task


def cancel_task(db: Session, task_id: UUID, actor: User) -> Task:
    """Staff: tasks are never deleted, they are cancelled."""
    check_staff(actor)
    task = get_task(db, task_id, actor)
    if task.status == TaskStatus.COMPLETED.value:
        raise ValueError("Completed tasks cannot be cancelled")
    task.status = TaskStatus.CANCELLED.value
    task.completed_at = None
    task.completed_by_id = None
    activity_service.log_activity(
        db,
        action="cancelled",
        resource_type="task",
        user_id=actor.id,
        organization_id=task.organization_id,
        resource_id=task.id,
        resource_name=task.title,
    )
    db.commit()
    db.refresh(task)
    return task


# =============================================================================
# Comments
# =============================================================================

def list_comments(db: Session, task_id: UUID, actor: User) -> list[TaskComment]:
    """Comment thread, oldest first."""
    task = get_task(db, task_id, actor)
    return (
        db.query(TaskComment)
        .filter(TaskComment.task_id == task.id)
        .order_by(TaskComment.created_at, TaskComment.id)
        .all()
    )


def _comment_recipients(db: Session, task: Task, author: User) -> list[User]:
    """Staff comments go to the client side, client comments to the firm."""
    if is_staff(author.role):
        if task.assigned_to_id:
            assignee = db.get(User, task.assigned_to_id)
            recipients = [assignee] if assignee and assignee.is_active else []
        else:
            recipients = notification_service.get_org_users(db, task.organization_id)
    else:
        creator = db.get(User, task.created_by_id) if task.created_by_id else None
        if creator and creator.is_active:
            recipients = [creator]
        else:
            recipients = notification_service.get_admins(db)
    return [user for user in recipients if user.id != author.id]


def add_comment(db: Session, task_id: UUID, actor: User, content: str) -> TaskComment:
    """Append a comment and notify the other party."""
    task = get_task(db, task_id, actor)
    content = (content or "").strip()
    if not content:
        raise ValueError("Comment cannot be empty")

    comment = TaskComment(task_id=task.id, author_id=actor.id, content=content)
    db.add(comment)
    db.flush()
    activity_service.log_activity(
        db,
        action="commented",
        resource_type="task",
        user_id=actor.id,
        organization_id=task.organization_id,
        resource_id=task.id,
        resource_name=task.title,
    )
    db.commit()
    db.refresh(comment)

    recipients = _comment_recipients(db, task, actor)
    notification_service.notify_users(
        db,
        recipients,
        type=NotificationType.TASK_COMMENT,
        title="New comment",
        message=f"{actor.display_name} commented on {task.title}",
        org_id=task.organization_id,
        link="/tasks",
    )
    notification_dispatcher.queue_email_to_users(
        db,
        event=EmailEvent.TASK_COMMENT,
        recipients=recipients,
        org_id=task.organization_id,
        commenter_name=actor.display_name,
        task_title=task.title,
        comment=content,
    )
    return comment


def edit_comment(db: Session, comment_id: UUID, actor: User, content: str) -> TaskComment:
    """
    Edit own comment. Position in the thread (created_at) is unchanged.

    Raises:
        CommentNotFoundError, NotCommentAuthorError, ValueError
    """
    comment = db.query(TaskComment).filter(TaskComment.id == comment_id).first()
    if not comment:
        raise CommentNotFoundError(f"Comment {comment_id} not found")
    get_task(db, comment.task_id, actor)
    if comment.author_id != actor.id:
        raise NotCommentAuthorError("Only the author can edit this comment")

    content = (content or "").strip()
    if not content:
        raise ValueError("Comment cannot be empty")
    comment.content = content
    comment.edited_at = utcnow()
    db.commit()
    db.refresh(comment)
    return comment
