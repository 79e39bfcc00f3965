"""Invoices router - invoices, payments and the financial summary."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from portal.core.deps import get_current_user, get_db, require_csrf_header, require_staff
from portal.db.enums import InvoiceStatus
from portal.db.models import User
from portal.schemas.invoice import (
    FinancialSummary,
    InvoiceCreate,
    InvoiceDueDateUpdate,
    InvoiceRead,
    InvoiceUpdate,
    PaymentCreate,
    PaymentRead,
)
from portal.services import invoice_service

router = APIRouter()


@router.get("", response_model=list[InvoiceRead])
def list_invoices(
    organization_id: UUID | None = None,
    status: InvoiceStatus | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Clients never see drafts."""
    return invoice_service.list_invoices(db, user, org_id=organization_id, status=status)


@router.get("/summary", response_model=FinancialSummary)
def get_financial_summary(
    organization_id: UUID | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return invoice_service.get_financial_summary(db, user, org_id=organization_id)


@router.post("", response_model=InvoiceRead, status_code=201, dependencies=[Depends(require_csrf_header)])
def create_invoice(
    data: InvoiceCreate,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    try:
        return invoice_service.create_invoice(db, user, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{invoice_id}", response_model=InvoiceRead)
def get_invoice(
    invoice_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return invoice_service.get_invoice(db, invoice_id, actor=user)


@router.patch("/{invoice_id}", response_model=InvoiceRead, dependencies=[Depends(require_csrf_header)])
def update_invoice(
    invoice_id: UUID,
    data: InvoiceUpdate,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    try:
        return invoice_service.update_invoice(db, invoice_id, user, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post(
    "/{invoice_id}/due-date",
    response_model=InvoiceRead,
    dependencies=[Depends(require_csrf_header)],
)
def change_due_date(
    invoice_id: UUID,
    data: InvoiceDueDateUpdate,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    try:
        return invoice_service.change_due_date(db, invoice_id, user, data.due_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{invoice_id}/publish", response_model=InvoiceRead, dependencies=[Depends(require_csrf_header)])
def publish_invoice(
    invoice_id: UUID,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    try:
        return invoice_service.publish_invoice(db, invoice_id, user)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{invoice_id}/cancel", response_model=InvoiceRead, dependencies=[Depends(require_csrf_header)])
def cancel_invoice(
    invoice_id: UUID,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    try:
        return invoice_service.cancel_invoice(db, invoice_id, user)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# =============================================================================
# Payments
# =============================================================================

@router.get("/{invoice_id}/payments", response_model=list[PaymentRead])
def list_payments(
    invoice_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return invoice_service.list_payments(db, invoice_id, user)


@router.post(
    "/{invoice_id}/payments",
    response_model=PaymentRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def record_payment(
    invoice_id: UUID,
    data: PaymentCreate,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    try:
        return invoice_service.record_payment(db, invoice_id, user, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
