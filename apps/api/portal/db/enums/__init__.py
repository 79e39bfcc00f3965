"""Enum definitions for application constants."""

from portal.db.enums.announcements import AnnouncementType
from portal.db.enums.auth import STAFF_ROLES, Role
from portal.db.enums.documents import (
    DocumentCategory,
    DocumentRequestStatus,
    SignatureStatus,
)
from portal.db.enums.invoices import (
    REMINDABLE_INVOICE_STATUSES,
    InvoiceReminderTier,
    InvoiceStatus,
    PaymentMethod,
)
from portal.db.enums.jobs import DEFAULT_JOB_STATUS, JobStatus, JobType
from portal.db.enums.notifications import EmailCategory, EmailEvent, NotificationType
from portal.db.enums.tasks import (
    OPEN_TASK_STATUSES,
    RecurrenceFrequency,
    TaskPriority,
    TaskStatus,
)

__all__ = [
    "AnnouncementType",
    "DEFAULT_JOB_STATUS",
    "DocumentCategory",
    "DocumentRequestStatus",
    "EmailCategory",
    "EmailEvent",
    "InvoiceReminderTier",
    "InvoiceStatus",
    "JobStatus",
    "JobType",
    "NotificationType",
    "OPEN_TASK_STATUSES",
    "PaymentMethod",
    "REMINDABLE_INVOICE_STATUSES",
    "RecurrenceFrequency",
    "Role",
    "STAFF_ROLES",
    "SignatureStatus",
    "TaskPriority",
    "TaskStatus",
]
