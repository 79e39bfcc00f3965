"""Notification-related enums."""

from enum import Enum


class NotificationType(str, Enum):
    """In-app notification types."""

    NEW_DOCUMENT = "new_document"
    DOCUMENT_REQUEST = "document_request"
    DOCUMENT_REVIEWED = "document_reviewed"
    NEW_TASK = "new_task"
    TASK_DUE = "task_due"
    TASK_COMMENT = "task_comment"
    TASK_STATUS = "task_status"
    INVOICE_DUE = "invoice_due"
    INVOICE_OVERDUE = "invoice_overdue"
    SIGNATURE_REQUEST = "signature_request"
    NEW_ANNOUNCEMENT = "new_announcement"


class EmailCategory(str, Enum):
    """
    User-toggleable email categories.

    Settings UI names are the camelCase forms (documentRequests, ...).
    """

    DOCUMENT_REQUESTS = "document_requests"
    TASK_ASSIGNMENTS = "task_assignments"
    TASK_COMMENTS = "task_comments"
    INVOICES = "invoices"
    SIGNATURES = "signatures"
    ANNOUNCEMENTS = "announcements"


class EmailEvent(str, Enum):
    """Business events the notification dispatcher can send."""

    DOCUMENT_REQUESTED = "document_requested"
    DOCUMENT_UPLOADED = "document_uploaded"
    DOCUMENT_APPROVED = "document_approved"
    DOCUMENT_REJECTED = "document_rejected"
    TASK_ASSIGNED = "task_assigned"
    TASK_COMMENT = "task_comment"
    TASK_DUE = "task_due"
    INVOICE_CREATED = "invoice_created"
    INVOICE_DUE_SOON = "invoice_due_soon"
    INVOICE_OVERDUE = "invoice_overdue"
    SIGNATURE_REQUESTED = "signature_requested"
    ANNOUNCEMENT_PUBLISHED = "announcement_published"
