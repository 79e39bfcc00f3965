"""SQLAlchemy ORM models."""

from portal.db.models.announcements import Announcement, AnnouncementRead
from portal.db.models.auth import EmailPreferences, Organization, User
from portal.db.models.documents import (
    Document,
    DocumentRequest,
    DocumentVersion,
    Folder,
    SignatureRequest,
)
from portal.db.models.invoices import Invoice, InvoiceSequence, Payment
from portal.db.models.jobs import Job
from portal.db.models.notifications import ActivityLog, Notification
from portal.db.models.tasks import Task, TaskComment, TaskTemplate, TemplateSubscription

__all__ = [
    "ActivityLog",
    "Announcement",
    "AnnouncementRead",
    "Document",
    "DocumentRequest",
    "DocumentVersion",
    "EmailPreferences",
    "Folder",
    "Invoice",
    "InvoiceSequence",
    "Job",
    "Notification",
    "Organization",
    "Payment",
    "SignatureRequest",
    "Task",
    "TaskComment",
    "TaskTemplate",
    "TemplateSubscription",
    "User",
]
