"""
Scheduled (cron) jobs.

External cron POSTs to /internal/scheduled/<path> at these times (UTC).
Clients are in Malaysia (UTC+8), so 01:00 UTC is 09:00 local.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.services import (
    announcement_service,
    invoice_reminder_service,
    notification_service,
    task_reminder_service,
    task_template_service,
)

logger = logging.getLogger(__name__)


def cleanup_notifications(db: Session, now: datetime | None = None) -> dict:
    deleted = notification_service.delete_old_notifications(
        db, older_than_days=settings.NOTIFICATION_RETENTION_DAYS
    )
    return {"deleted": deleted}


@dataclass(frozen=True)
class ScheduledJob:
    name: str
    cron: str
    path: str
    runner: Callable[..., object]
    description: str


CRON_SCHEDULE: tuple[ScheduledJob, ...] = (
    ScheduledJob(
        name="task-reminders",
        cron="0 1 * * *",
        path="task-reminders",
        runner=task_reminder_service.process_task_reminders,
        description="Remind assignees about tasks due soon",
    ),
    ScheduledJob(
        name="recurring-tasks",
        cron="0 16 * * *",
        path="recurring-tasks",
        runner=task_template_service.generate_recurring_tasks,
        description="Generate tasks from template subscriptions (00:00 MYT)",
    ),
    ScheduledJob(
        name="announcements",
        cron="0 * * * *",
        path="announcements",
        runner=announcement_service.publish_scheduled_announcements,
        description="Publish scheduled announcements",
    ),
    ScheduledJob(
        name="invoice-reminders",
        cron="0 2 * * *",
        path="invoice-reminders",
        runner=invoice_reminder_service.process_invoice_reminders,
        description="Due-soon, overdue and weekly invoice reminders",
    ),
    ScheduledJob(
        name="notifications-cleanup",
        cron="0 3 * * *",
        path="notifications-cleanup",
        runner=cleanup_notifications,
        description="Delete read notifications past the retention window",
    ),
)


def get_scheduled_job(name: str) -> ScheduledJob:
    for job in CRON_SCHEDULE:
        if job.name == name:
            return job
    raise ValueError(f"Unknown scheduled job: {name}")


async def run_scheduled_job(db: Session, name: str, now: datetime | None = None) -> dict:
    """Run one scheduled job by name (sync or async runner)."""
    job = get_scheduled_job(name)
    logger.info("Running scheduled job %s", job.name)
    result = job.runner(db, now=now)
    if inspect.isawaitable(result):
        result = await result
    return result


def render_crontab(base_url: str, secret_env: str = "INTERNAL_SECRET") -> str:
    """Crontab lines that POST to the internal endpoints."""
    lines = []
    for job in CRON_SCHEDULE:
        lines.append(f"# {job.description}")
        lines.append(
            f'{job.cron} curl -fsS -X POST -H "X-Internal-Secret: ${secret_env}" '
            f"{base_url.rstrip('/')}/internal/scheduled/{job.path}"
        )
    return "\n".join(lines) + "\n"
