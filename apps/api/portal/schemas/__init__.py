"""Pydantic schemas for API request/response models."""

from portal.schemas.auth import OrganizationRead, UserRead
from portal.schemas.invoice import InvoiceRead, PaymentRead
from portal.schemas.task import TaskRead
