"""Pydantic schemas for invoices and payments."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from portal.db.enums import InvoiceStatus, PaymentMethod


class LineItem(BaseModel):
    """Amounts in cents; amount must equal quantity x unit_price (within 1 cent)."""
    description: str = Field(..., max_length=500)
    quantity: float
    unit_price: int
    amount: int


class InvoiceCreate(BaseModel):
    organization_id: UUID
    description: str = Field(..., max_length=1000)
    line_items: list[LineItem]
    due_date: datetime
    currency: str = Field("MYR", min_length=3, max_length=3)
    publish: bool = Field(False, description="Issue immediately instead of saving a draft")


class InvoiceUpdate(BaseModel):
    """Draft-only partial update."""
    description: str | None = Field(None, max_length=1000)
    line_items: list[LineItem] | None = None
    due_date: datetime | None = None


class InvoiceDueDateUpdate(BaseModel):
    due_date: datetime


class InvoiceRead(BaseModel):
    id: UUID
    organization_id: UUID
    invoice_number: str
    description: str | None
    line_items: list[LineItem]
    amount: int
    paid_amount: int
    balance: int
    currency: str
    status: InvoiceStatus
    due_date: datetime
    issued_at: datetime | None
    paid_at: datetime | None
    last_reminder_tier: str | None
    last_reminder_sent_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class PaymentCreate(BaseModel):
    amount: int = Field(..., description="Cents")
    method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    reference: str | None = Field(None, max_length=100)
    notes: str | None = Field(None, max_length=5000)
    paid_at: datetime | None = None


class PaymentRead(BaseModel):
    id: UUID
    invoice_id: UUID
    amount: int
    method: PaymentMethod
    reference: str | None
    notes: str | None
    paid_at: datetime

    model_config = {"from_attributes": True}


class PeriodTotals(BaseModel):
    invoiced: int = 0
    paid: int = 0


class AgingBuckets(BaseModel):
    """Outstanding balance by days past due."""
    current: int = 0
    days_1_30: int = 0
    days_31_60: int = 0
    days_61_90: int = 0
    days_over_90: int = 0


class OutstandingSummary(BaseModel):
    total: int = 0
    aging: AgingBuckets = Field(default_factory=AgingBuckets)


class MonthlyTrendPoint(BaseModel):
    month: str
    year: int
    invoiced: int
    paid: int


class FinancialSummary(BaseModel):
    current_month: PeriodTotals
    last_month: PeriodTotals
    ytd: PeriodTotals
    outstanding: OutstandingSummary
    avg_days_to_payment: int
    monthly_trend: list[MonthlyTrendPoint]
