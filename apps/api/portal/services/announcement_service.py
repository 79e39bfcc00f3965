"""
Announcement service - firm-wide and targeted announcements.

Publishing happens exactly once per announcement: at creation when it is not
scheduled, through publish_now, or through the hourly scheduled job.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from portal.core.org_access import check_staff, is_staff
from portal.db.enums import AnnouncementType, EmailEvent, NotificationType
from portal.db.models import Announcement, AnnouncementRead, Organization, User
from portal.db.types import utcnow
from portal.schemas.announcement import AnnouncementCreate, AnnouncementUpdate
from portal.services import activity_service, notification_dispatcher, notification_service

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 200


class AnnouncementServiceError(Exception):
    """Base exception for announcement service errors."""

    pass


class AnnouncementNotFoundError(AnnouncementServiceError):
    """Announcement not found (or not visible)."""

    pass


# =============================================================================
# Visibility
# =============================================================================

def _target_ids(announcement: Announcement) -> list[UUID]:
    return [UUID(str(org_id)) for org_id in (announcement.target_organization_ids or [])]


def is_visible_to(announcement: Announcement, user: User, now: datetime | None = None) -> bool:
    """Published, not expired, and targeted at the user's organization."""
    if is_staff(user.role):
        return True
    now = now or utcnow()
    if not announcement.is_published:
        return False
    if announcement.expires_at and announcement.expires_at <= now:
        return False
    targets = _target_ids(announcement)
    if not targets:
        return True
    return user.organization_id is not None and user.organization_id in targets


def get_announcement(db: Session, announcement_id: UUID, actor: User | None = None) -> Announcement:
    announcement = db.query(Announcement).filter(Announcement.id == announcement_id).first()
    if not announcement or (actor is not None and not is_visible_to(announcement, actor)):
        raise AnnouncementNotFoundError(f"Announcement {announcement_id} not found")
    return announcement


def _read_ids(db: Session, user_id: UUID) -> set[UUID]:
    rows = db.query(AnnouncementRead.announcement_id).filter(AnnouncementRead.user_id == user_id)
    return {row[0] for row in rows}


def list_visible(
    db: Session,
    user: User,
    type: AnnouncementType | None = None,
    now: datetime | None = None,
) -> list[tuple[Announcement, bool]]:
    """
    Announcements the user can see, pinned first then newest first.

    Staff see only published, unexpired ones here too; the admin listing
    is list_all.
    """
    now = now or utcnow()
    query = db.query(Announcement).filter(Announcement.is_published.is_(True))
    if type:
        query = query.filter(Announcement.type == type.value)

    visible = []
    for announcement in query.all():
        if announcement.expires_at and announcement.expires_at <= now:
            continue
        targets = _target_ids(announcement)
        if targets and not is_staff(user.role) and user.organization_id not in targets:
            continue
        visible.append(announcement)

    visible.sort(key=lambda a: a.published_at or a.created_at, reverse=True)
    visible.sort(key=lambda a: not a.is_pinned)

    read_ids = _read_ids(db, user.id)
    return [(a, a.id in read_ids) for a in visible]


def list_all(db: Session, actor: User) -> list[Announcement]:
    """Staff: every announcement including scheduled and expired ones."""
    check_staff(actor)
    return db.query(Announcement).order_by(Announcement.created_at.desc()).all()


def get_unread_count(db: Session, user: User, now: datetime | None = None) -> int:
    return sum(1 for _, is_read in list_visible(db, user, now=now) if not is_read)


def mark_read(db: Session, announcement_id: UUID, user: User) -> None:
    """Idempotent read receipt."""
    announcement = get_announcement(db, announcement_id, user)
    existing = (
        db.query(AnnouncementRead)
        .filter(
            AnnouncementRead.announcement_id == announcement.id,
            AnnouncementRead.user_id == user.id,
        )
        .first()
    )
    if existing:
        return
    db.add(AnnouncementRead(announcement_id=announcement.id, user_id=user.id))
    db.commit()


# =============================================================================
# Mutations
# =============================================================================

def _validate_targets(db: Session, org_ids: list[UUID]) -> list[str]:
    for org_id in org_ids:
        if not db.get(Organization, org_id):
            raise ValueError(f"Organization {org_id} not found")
    return [str(org_id) for org_id in org_ids]


def _clean_text(value: str, field: str, max_length: int | None = None) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValueError(f"{field} is required")
    if max_length and len(cleaned) > max_length:
        raise ValueError(f"{field} too long")
    return cleaned


def _target_users(db: Session, announcement: Announcement) -> list[User]:
    return notification_service.get_client_users(db, _target_ids(announcement) or None)


def _mark_published(announcement: Announcement, published_at: datetime) -> None:
    announcement.is_published = True
    announcement.published_at = published_at


def _notify_in_app(db: Session, announcement: Announcement, users: list[User]) -> int:
    return notification_service.notify_users(
        db,
        users,
        type=NotificationType.NEW_ANNOUNCEMENT,
        title="New Announcement",
        message=announcement.title,
        link="/announcements",
    )


def _announce(db: Session, announcement: Announcement) -> int:
    """Request path: in-app now, emails through the job queue."""
    users = _target_users(db, announcement)
    created = _notify_in_app(db, announcement, users)
    notification_dispatcher.queue_email_to_users(
        db,
        event=EmailEvent.ANNOUNCEMENT_PUBLISHED,
        recipients=users,
        title=announcement.title,
        preview=announcement.content[:PREVIEW_LENGTH],
    )
    return created


def create_announcement(db: Session, actor: User, data: AnnouncementCreate) -> Announcement:
    """
    Staff: create an announcement. Unscheduled (or past-scheduled) ones are
    published immediately.
    """
    check_staff(actor)
    now = utcnow()
    announcement = Announcement(
        title=_clean_text(data.title, "Title", 200),
        content=_clean_text(data.content, "Content"),
        type=data.type.value,
        target_organization_ids=_validate_targets(db, data.target_organization_ids),
        is_pinned=data.is_pinned,
        scheduled_for=data.scheduled_for,
        expires_at=data.expires_at,
        created_by_id=actor.id,
    )
    publish = data.scheduled_for is None or data.scheduled_for <= now
    if publish:
        _mark_published(announcement, now)
    db.add(announcement)
    db.flush()
    activity_service.log_activity(
        db,
        action="created_announcement",
        resource_type="announcement",
        user_id=actor.id,
        resource_id=announcement.id,
        resource_name=announcement.title,
        details={"scheduled_for": data.scheduled_for.isoformat()} if not publish else None,
    )
    db.commit()
    db.refresh(announcement)

    if publish:
        _announce(db, announcement)
    return announcement


def update_announcement(
    db: Session, announcement_id: UUID, actor: User, data: AnnouncementUpdate
) -> Announcement:
    check_staff(actor)
    announcement = get_announcement(db, announcement_id)
    update_data = data.model_dump(exclude_unset=True)
    if "scheduled_for" in update_data:
        if announcement.is_published:
            raise ValueError("Announcement is already published")
        # Unpublished rows must keep a schedule for the cron to publish them
        if data.scheduled_for is None:
            raise ValueError("Scheduled time is required; use publish to send it now")

    if "title" in update_data:
        announcement.title = _clean_text(data.title, "Title", 200)
    if "content" in update_data:
        announcement.content = _clean_text(data.content, "Content")
    if data.type is not None:
        announcement.type = data.type.value
    if data.target_organization_ids is not None:
        announcement.target_organization_ids = _validate_targets(db, data.target_organization_ids)
    if data.is_pinned is not None:
        announcement.is_pinned = data.is_pinned
    if "expires_at" in update_data:
        announcement.expires_at = data.expires_at
    if "scheduled_for" in update_data:
        announcement.scheduled_for = data.scheduled_for

    db.commit()
    db.refresh(announcement)
    return announcement


def publish_now(db: Session, announcement_id: UUID, actor: User) -> Announcement:
    """Staff: publish a scheduled announcement immediately."""
    check_staff(actor)
    announcement = get_announcement(db, announcement_id)
    if announcement.is_published:
        raise ValueError("Announcement is already published")
    _mark_published(announcement, utcnow())
    db.commit()
    db.refresh(announcement)

    _announce(db, announcement)
    return announcement


def remove_announcement(db: Session, announcement_id: UUID, actor: User) -> None:
    check_staff(actor)
    announcement = get_announcement(db, announcement_id)
    db.query(AnnouncementRead).filter(
        AnnouncementRead.announcement_id == announcement.id
    ).delete(synchronize_session=False)
    activity_service.log_activity(
        db,
        action="deleted_announcement",
        resource_type="announcement",
        user_id=actor.id,
        resource_id=announcement.id,
        resource_name=announcement.title,
    )
    db.delete(announcement)
    db.commit()


# =============================================================================
# Scheduled publishing (hourly cron)
# =============================================================================

async def publish_scheduled_announcements(db: Session, now: datetime | None = None) -> dict:
    """
    Publish every unpublished announcement whose scheduled time has passed.

    Each is flagged and committed before fan-out, so a second run finds
    nothing to do. Returns {"published", "notifications_created",
    "emails_sent", "errors"}.
    """
    now = now or utcnow()
    due = (
        db.query(Announcement)
        .filter(
            Announcement.is_published.is_(False),
            Announcement.scheduled_for.is_not(None),
            Announcement.scheduled_for <= now,
        )
        .order_by(Announcement.scheduled_for)
        .all()
    )

    published = 0
    notifications_created = 0
    emails_sent = 0
    errors = []

    for announcement in due:
        announcement_id = announcement.id
        try:
            _mark_published(announcement, announcement.scheduled_for)
            db.commit()
            published += 1

            users = _target_users(db, announcement)
            notifications_created += _notify_in_app(db, announcement, users)
            for user in users:
                result = await notification_dispatcher.send_to_user(
                    db,
                    EmailEvent.ANNOUNCEMENT_PUBLISHED,
                    user,
                    title=announcement.title,
                    preview=announcement.content[:PREVIEW_LENGTH],
                )
                if result.get("success"):
                    emails_sent += 1
        except Exception as e:
            db.rollback()
            logger.exception("Publishing announcement %s failed", announcement_id)
            errors.append({"announcement_id": str(announcement_id), "error": str(e)})

    logger.info(
        "Scheduled announcements: published=%d notifications=%d emails=%d",
        published,
        notifications_created,
        emails_sent,
    )
    return {
        "published": published,
        "notifications_created": notifications_created,
        "emails_sent": emails_sent,
        "errors": errors,
    }
