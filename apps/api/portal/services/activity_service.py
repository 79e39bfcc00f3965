"""Activity logging service - centralized user action tracking."""

from uuid import UUID

from sqlalchemy.orm import Session

from portal.db.models import ActivityLog


def log_activity(
    db: Session,
    action: str,
    resource_type: str,
    user_id: UUID | None = None,
    organization_id: UUID | None = None,
    resource_id: UUID | str | None = None,
    resource_name: str | None = None,
    details: dict | None = None,
) -> ActivityLog:
    """
    Log a user action.

    Args:
        db: Database session
        action: Verb, e.g. "uploaded", "created", "status_changed"
        resource_type: "document", "task", "invoice", ...
        user_id: Actor (None for system/cron)
        organization_id: Tenant the resource belongs to
        details: Action-specific details as JSON

    Returns:
        The created activity log entry
    """
    entry = ActivityLog(
        organization_id=organization_id,
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id else None,
        resource_name=resource_name,
        details=details,
    )
    db.add(entry)
    db.flush()  # Don't commit - let caller control transaction
    return entry


def list_activity(
    db: Session,
    organization_id: UUID | None = None,
    user_id: UUID | None = None,
    limit: int = 50,
) -> list[ActivityLog]:
    """Recent activity, newest first, filtered by org and/or actor."""
    query = db.query(ActivityLog)
    if organization_id:
        query = query.filter(ActivityLog.organization_id == organization_id)
    if user_id:
        query = query.filter(ActivityLog.user_id == user_id)
    return query.order_by(ActivityLog.created_at.desc()).limit(limit).all()
