"""Service layer for daily task due-date reminders."""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.db.enums import OPEN_TASK_STATUSES, EmailEvent, NotificationType
from portal.db.models import Task, User
from portal.db.types import utcnow
from portal.services import notification_dispatcher, notification_service

logger = logging.getLogger(__name__)


def _reminded_today(task: Task, now: datetime) -> bool:
    if task.last_reminded_at is None:
        return False
    last = task.last_reminded_at.astimezone(timezone.utc)
    return last.date() == now.astimezone(timezone.utc).date()


def get_tasks_due_soon(db: Session, now: datetime) -> list[Task]:
    """Open, assigned tasks due between now and the lookahead horizon."""
    horizon = now + timedelta(days=settings.TASK_REMINDER_LOOKAHEAD_DAYS)
    return (
        db.query(Task)
        .filter(
            Task.status.in_([s.value for s in OPEN_TASK_STATUSES]),
            Task.assigned_to_id.is_not(None),
            Task.due_date.is_not(None),
            Task.due_date >= now,
            Task.due_date <= horizon,
        )
        .order_by(Task.due_date)
        .all()
    )


async def process_task_reminders(db: Session, now: datetime | None = None) -> dict:
    """
    Remind assignees about tasks due soon. At most one reminder per task per
    UTC day.

    Returns {"processed", "reminders_sent", "errors"}.
    """
    now = now or utcnow()
    tasks = get_tasks_due_soon(db, now)

    reminders_sent = 0
    errors = []

    for task in tasks:
        task_id = task.id
        try:
            if _reminded_today(task, now):
                continue
            assignee = db.get(User, task.assigned_to_id)
            if not assignee or not assignee.is_active:
                continue

            notification_service.create_notification(
                db,
                recipient_id=assignee.id,
                type=NotificationType.TASK_DUE,
                title="Task due soon",
                message=f"{task.title} is due soon",
                org_id=task.organization_id,
                link="/tasks",
                dedupe_key=f"task_due:{task.id}:{now.date().isoformat()}",
                commit=False,
            )
            task.last_reminded_at = now
            db.commit()

            result = await notification_dispatcher.send_to_user(
                db,
                EmailEvent.TASK_DUE,
                assignee,
                task_title=task.title,
                due_date=task.due_date,
            )
            if result.get("error"):
                logger.warning("Task reminder email failed for %s: %s", task_id, result["error"])
            reminders_sent += 1
        except Exception as e:
            db.rollback()
            logger.exception("Task reminder failed for %s", task_id)
            errors.append({"task_id": str(task_id), "error": str(e)})

    logger.info(
        "Task reminders: processed=%d sent=%d errors=%d", len(tasks), reminders_sent, len(errors)
    )
    return {"processed": len(tasks), "reminders_sent": reminders_sent, "errors": errors}
