"""Task-related enums."""

from enum import Enum


class TaskStatus(str, Enum):
    """
    Task status.

    completed_at is set iff status == COMPLETED.
    Tasks are never deleted; CANCELLED is the terminal "removed" state.
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


OPEN_TASK_STATUSES = (TaskStatus.PENDING, TaskStatus.IN_PROGRESS)


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RecurrenceFrequency(str, Enum):
    """Recurrence rule for task templates."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
