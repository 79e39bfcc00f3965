"""Invoice-related enums."""

from enum import Enum


class InvoiceStatus(str, Enum):
    """
    Invoice status.

    draft -> pending -> overdue -> paid
    draft/pending/overdue -> cancelled
    """

    DRAFT = "draft"
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


# Statuses the reminder scan considers (issued and unsettled)
REMINDABLE_INVOICE_STATUSES = (InvoiceStatus.PENDING, InvoiceStatus.OVERDUE)


class InvoiceReminderTier(str, Enum):
    """Reminder stages, in firing order."""

    DUE_SOON = "due_soon"
    OVERDUE = "overdue"
    WEEKLY_OVERDUE = "weekly_overdue"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    CARD = "card"
    CASH = "cash"
    CHEQUE = "cheque"
    OTHER = "other"
