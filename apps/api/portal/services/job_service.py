"""
Notification job queue.

Request handlers queue emails here once their mutation has committed and
portal.worker drains the queue. Every job runs once: delivery problems come
back from the email handler as results, and anything the handler raises (a
malformed payload, an unknown job type) fails the job for good. The next
cron run or user action is the only retry.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from portal.db.enums import JobStatus, JobType
from portal.db.models import Job
from portal.db.types import utcnow


def schedule_job(
    db: Session,
    org_id: UUID | None,
    job_type: JobType,
    payload: dict,
    run_at: datetime | None = None,
) -> Job:
    """Queue a job; without run_at it is due on the worker's next poll."""
    job = Job(
        organization_id=org_id,
        job_type=job_type.value,
        payload=payload,
        run_at=run_at or utcnow(),
        status=JobStatus.PENDING.value,
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def due_jobs(db: Session, limit: int = 10, now: datetime | None = None) -> list[Job]:
    """Pending jobs whose run_at has passed, oldest first."""
    return (
        db.query(Job)
        .filter(
            Job.status == JobStatus.PENDING.value,
            Job.run_at <= (now or utcnow()),
        )
        .order_by(Job.run_at)
        .limit(limit)
        .all()
    )


def start_job(db: Session, job: Job) -> Job:
    """Claim a job so later polls skip it."""
    job.status = JobStatus.RUNNING.value
    job.attempts += 1
    db.commit()
    db.refresh(job)
    return job


def finish_job(db: Session, job: Job, error: str | None = None) -> Job:
    """Settle a running job as completed, or as failed with error. Never requeued."""
    if error:
        job.status = JobStatus.FAILED.value
        job.last_error = error
    else:
        job.status = JobStatus.COMPLETED.value
        job.completed_at = utcnow()
        job.last_error = None
    db.commit()
    db.refresh(job)
    return job
