"""Dashboard router - staff overview counts."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from portal.core.deps import get_db, require_staff
from portal.db.models import User
from portal.services import dashboard_service

router = APIRouter()


# =============================================================================
# Schemas
# =============================================================================


class OrganizationStats(BaseModel):
    total: int


class UserStats(BaseModel):
    total: int
    clients: int
    staff: int


class DocumentStats(BaseModel):
    total: int


class TaskStats(BaseModel):
    total: int
    pending: int
    in_progress: int
    completed: int
    overdue: int


class InvoiceStats(BaseModel):
    total: int
    pending: int
    overdue: int
    paid: int
    total_revenue: int  # cents
    outstanding_amount: int  # cents


class AnnouncementStats(BaseModel):
    total: int
    active: int


class RecentActivity(BaseModel):
    id: UUID
    action: str
    resource_type: str
    resource_name: str | None
    organization_id: UUID | None
    user_name: str
    created_at: datetime


class DashboardStats(BaseModel):
    organizations: OrganizationStats
    users: UserStats
    documents: DocumentStats
    tasks: TaskStats
    invoices: InvoiceStats
    announcements: AnnouncementStats
    recent_activity: list[RecentActivity]


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/stats", response_model=DashboardStats)
def get_stats(
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return dashboard_service.get_dashboard_stats(db, user)
