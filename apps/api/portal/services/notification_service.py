"""
Notification Service - in-app notifications.

Provides CRUD for notifications plus recipient lookups shared by the
business services (org members, firm admins).
"""

from datetime import timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from portal.db.enums import NotificationType, Role, STAFF_ROLES
from portal.db.models import Notification, User
from portal.db.types import utcnow


# =============================================================================
# Recipients
# =============================================================================


def get_org_users(db: Session, org_id: UUID) -> list[User]:
    """Active users belonging to a client organization."""
    return (
        db.query(User)
        .filter(User.organization_id == org_id, User.is_active.is_(True))
        .order_by(User.created_at)
        .all()
    )


def get_admins(db: Session) -> list[User]:
    """Active firm staff/admins (recipients of admin-facing notices)."""
    return (
        db.query(User)
        .filter(
            User.role.in_([role.value for role in STAFF_ROLES]),
            User.is_active.is_(True),
        )
        .order_by(User.created_at)
        .all()
    )


def get_client_users(db: Session, org_ids: list[UUID] | None = None) -> list[User]:
    """Active client users, optionally limited to some organizations."""
    query = db.query(User).filter(
        User.role == Role.CLIENT.value,
        User.is_active.is_(True),
        User.organization_id.is_not(None),
    )
    if org_ids:
        query = query.filter(User.organization_id.in_(org_ids))
    return query.order_by(User.created_at).all()


# =============================================================================
# Notification CRUD
# =============================================================================


def create_notification(
    db: Session,
    recipient_id: UUID,
    type: NotificationType,
    title: str,
    message: str,
    org_id: Optional[UUID] = None,
    link: Optional[str] = None,
    dedupe_key: Optional[str] = None,
    commit: bool = True,
) -> Optional[Notification]:
    """
    Create a notification.

    If dedupe_key is set and the recipient already has a notification with
    that key, nothing is created and None is returned.
    """
    if dedupe_key:
        existing = db.query(Notification).filter(
            Notification.recipient_id == recipient_id,
            Notification.dedupe_key == dedupe_key,
        ).first()
        if existing:
            return None

    notification = Notification(
        recipient_id=recipient_id,
        organization_id=org_id,
        type=type.value,
        title=title,
        message=message,
        link=link,
        dedupe_key=dedupe_key,
    )
    db.add(notification)
    if commit:
        db.commit()
        db.refresh(notification)
    else:
        db.flush()
    return notification


def notify_users(
    db: Session,
    users: list[User],
    type: NotificationType,
    title: str,
    message: str,
    org_id: Optional[UUID] = None,
    link: Optional[str] = None,
    exclude_user_id: Optional[UUID] = None,
) -> int:
    """Fan out one notification per user (single commit). Returns count created."""
    created = 0
    for user in users:
        if exclude_user_id and user.id == exclude_user_id:
            continue
        create_notification(
            db=db,
            recipient_id=user.id,
            type=type,
            title=title,
            message=message,
            org_id=org_id,
            link=link,
            commit=False,
        )
        created += 1
    db.commit()
    return created


def get_notifications(
    db: Session,
    user_id: UUID,
    unread_only: bool = False,
    limit: int = 20,
    offset: int = 0,
) -> list[Notification]:
    """Get notifications for user, newest first."""
    query = db.query(Notification).filter(Notification.recipient_id == user_id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    return query.order_by(Notification.created_at.desc()).offset(offset).limit(limit).all()


def get_unread_count(db: Session, user_id: UUID) -> int:
    """Get count of unread notifications."""
    return db.query(Notification).filter(
        Notification.recipient_id == user_id,
        Notification.is_read.is_(False),
    ).count()


def mark_read(
    db: Session,
    notification_id: UUID,
    user_id: UUID,
) -> Optional[Notification]:
    """Mark a notification as read (scoped to its recipient). Read stays read."""
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.recipient_id == user_id,
    ).first()

    if notification and not notification.is_read:
        notification.is_read = True
        notification.read_at = utcnow()
        db.commit()
        db.refresh(notification)

    return notification


def mark_all_read(db: Session, user_id: UUID) -> int:
    """Mark all notifications as read. Returns count updated."""
    count = db.query(Notification).filter(
        Notification.recipient_id == user_id,
        Notification.is_read.is_(False),
    ).update({"is_read": True, "read_at": utcnow()}, synchronize_session=False)
    db.commit()
    return count


def delete_old_notifications(db: Session, older_than_days: int) -> int:
    """Delete read notifications older than the retention window."""
    cutoff = utcnow() - timedelta(days=older_than_days)
    count = db.query(Notification).filter(
        Notification.is_read.is_(True),
        Notification.created_at < cutoff,
    ).delete(synchronize_session=False)
    db.commit()
    return count
