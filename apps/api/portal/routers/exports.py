"""Staff CSV exports for invoices, tasks and signature requests."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from portal.core.deps import get_db, require_staff
from portal.core.rate_limit import limiter
from portal.db.models import User
from portal.db.types import utcnow
from portal.services import activity_service, export_service

router = APIRouter()

EXPORTERS = {
    "invoices": export_service.stream_invoices_csv,
    "tasks": export_service.stream_tasks_csv,
    "signatures": export_service.stream_signatures_csv,
}


def _export(db: Session, user: User, kind: str, org_id: UUID | None) -> StreamingResponse:
    activity_service.log_activity(
        db,
        action="export",
        resource_type=kind,
        user_id=user.id,
        organization_id=org_id,
        details={"export": f"{kind}_csv"},
    )
    db.commit()

    filename = f"{kind}_export_{utcnow().strftime('%Y%m%d_%H%M%S')}.csv"
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return StreamingResponse(
        EXPORTERS[kind](db, org_id=org_id),
        media_type="text/csv",
        headers=headers,
    )


@router.get("/invoices", response_class=StreamingResponse)
@limiter.limit("5/minute")
def export_invoices(
    request: Request,
    organization_id: UUID | None = None,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
) -> StreamingResponse:
    """Export invoices (CSV)."""
    return _export(db, user, "invoices", organization_id)


@router.get("/tasks", response_class=StreamingResponse)
@limiter.limit("5/minute")
def export_tasks(
    request: Request,
    organization_id: UUID | None = None,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
) -> StreamingResponse:
    """Export tasks (CSV)."""
    return _export(db, user, "tasks", organization_id)


@router.get("/signatures", response_class=StreamingResponse)
@limiter.limit("5/minute")
def export_signatures(
    request: Request,
    organization_id: UUID | None = None,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
) -> StreamingResponse:
    """Export signature requests (CSV)."""
    return _export(db, user, "signatures", organization_id)
