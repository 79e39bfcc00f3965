"""Job-related enums."""

from enum import Enum


class JobType(str, Enum):
    """Types of background jobs."""

    NOTIFICATION_EMAIL = "notification_email"  # Best-effort email after a committed mutation


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


DEFAULT_JOB_STATUS = JobStatus.PENDING
