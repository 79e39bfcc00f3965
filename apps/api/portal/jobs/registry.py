"""Job handler registry."""

from __future__ import annotations

from typing import Awaitable, Callable, Mapping

from portal.db.enums import JobType
from portal.jobs.handlers import email

JobHandler = Callable[[object, object], Awaitable[None]]

JOB_HANDLERS: Mapping[str, JobHandler] = {
    JobType.NOTIFICATION_EMAIL.value: email.process_notification_email,
}


def resolve_job_handler(job_type: str) -> JobHandler:
    handler = JOB_HANDLERS.get(job_type)
    if not handler:
        raise ValueError(f"Unknown job type: {job_type}")
    return handler
