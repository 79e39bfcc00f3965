"""Document-related enums."""

from enum import Enum


class DocumentCategory(str, Enum):
    TAX_RETURN = "tax_return"
    FINANCIAL_STATEMENT = "financial_statement"
    INVOICE = "invoice"
    AGREEMENT = "agreement"
    RECEIPT = "receipt"
    OTHER = "other"


class DocumentRequestStatus(str, Enum):
    """
    Lifecycle of a document request.

    pending -> uploaded -> reviewed | rejected
    rejected -> uploaded (client re-uploads)
    """

    PENDING = "pending"
    UPLOADED = "uploaded"
    REVIEWED = "reviewed"
    REJECTED = "rejected"


class SignatureStatus(str, Enum):
    PENDING = "pending"
    SIGNED = "signed"
    DECLINED = "declined"
    CANCELLED = "cancelled"
