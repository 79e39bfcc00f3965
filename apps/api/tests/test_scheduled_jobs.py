"""Tests for the task reminder and scheduled announcement jobs, and the cron table."""

from datetime import datetime, timedelta, timezone

import pytest

from portal.db.enums import NotificationType, Role, TaskStatus
from portal.db.models import Announcement, Notification, Task
from portal.db.types import utcnow
from portal.jobs import schedule
from portal.schemas.announcement import AnnouncementCreate, AnnouncementUpdate
from portal.services import announcement_service, task_reminder_service


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


# =============================================================================
# Task reminders
# =============================================================================

def make_task(db, org, assignee=None, due_date=None, status=TaskStatus.PENDING):
    task = Task(
        organization_id=org.id,
        title="Upload March bank statement",
        status=status.value,
        due_date=due_date,
        assigned_to_id=assignee.id if assignee else None,
    )
    db.add(task)
    db.commit()
    db.refresh(task)
    return task


@pytest.mark.asyncio
async def test_task_reminder_at_most_once_per_utc_day(db, test_org, test_client, outbox):
    task = make_task(db, test_org, test_client, due_date=utc(2026, 3, 11, 12))

    first = await task_reminder_service.process_task_reminders(db, now=utc(2026, 3, 10, 13))
    assert first["reminders_sent"] == 1
    db.refresh(task)
    assert task.last_reminded_at == utc(2026, 3, 10, 13)

    same_day = await task_reminder_service.process_task_reminders(db, now=utc(2026, 3, 10, 20))
    assert same_day["reminders_sent"] == 0

    next_day = await task_reminder_service.process_task_reminders(db, now=utc(2026, 3, 11, 1))
    assert next_day["reminders_sent"] == 1

    assert len(outbox) == 2
    assert all(mail["to"] == test_client.email for mail in outbox)
    notifications = db.query(Notification).filter(
        Notification.type == NotificationType.TASK_DUE.value
    ).count()
    assert notifications == 2


@pytest.mark.asyncio
async def test_task_reminder_skips_closed_unassigned_and_far_tasks(
    db, test_org, test_client, outbox
):
    now = utc(2026, 3, 10, 9)
    make_task(db, test_org, None, due_date=now + timedelta(hours=4))
    make_task(db, test_org, test_client, due_date=now + timedelta(hours=4), status=TaskStatus.COMPLETED)
    make_task(db, test_org, test_client, due_date=now + timedelta(days=5))
    make_task(db, test_org, test_client, due_date=now - timedelta(hours=1))

    result = await task_reminder_service.process_task_reminders(db, now=now)

    assert result == {"processed": 0, "reminders_sent": 0, "errors": []}
    assert outbox == []


# =============================================================================
# Scheduled announcements
# =============================================================================

@pytest.mark.asyncio
async def test_scheduled_announcement_publishes_once(db, test_admin, test_client, outbox):
    scheduled_for = utcnow() + timedelta(hours=1)
    announcement = announcement_service.create_announcement(
        db,
        test_admin,
        AnnouncementCreate(
            title="SST deadline",
            content="Please submit your SST documents by the 15th.",
            scheduled_for=scheduled_for,
        ),
    )
    assert announcement.is_published is False
    assert announcement.published_at is None

    early = await announcement_service.publish_scheduled_announcements(db, now=utcnow())
    assert early["published"] == 0

    run_at = scheduled_for + timedelta(minutes=5)
    result = await announcement_service.publish_scheduled_announcements(db, now=run_at)
    assert result["published"] == 1
    assert result["notifications_created"] == 1
    assert result["emails_sent"] == 1

    db.refresh(announcement)
    assert announcement.is_published is True
    assert announcement.published_at == announcement.scheduled_for
    assert outbox[0]["to"] == test_client.email

    again = await announcement_service.publish_scheduled_announcements(db, now=run_at)
    assert again["published"] == 0
    assert len(outbox) == 1


@pytest.mark.asyncio
async def test_targeted_announcement_reaches_only_target_orgs(
    db, test_admin, test_client, other_org, outbox, user_factory
):
    other_client = user_factory(Role.CLIENT, organization=other_org)
    db.add(Announcement(
        title="Office move",
        content="We are moving to Bangsar South.",
        target_organization_ids=[str(other_org.id)],
        scheduled_for=utc(2026, 1, 1),
    ))
    db.commit()

    result = await announcement_service.publish_scheduled_announcements(db, now=utc(2026, 1, 1, 1))

    assert result["emails_sent"] == 1
    assert [mail["to"] for mail in outbox] == [other_client.email]


def test_unscheduled_announcement_publishes_immediately(db, test_admin, test_client):
    announcement = announcement_service.create_announcement(
        db, test_admin, AnnouncementCreate(title="Welcome", content="Portal is live.")
    )

    assert announcement.is_published is True
    assert announcement.published_at is not None
    assert announcement_service.get_unread_count(db, test_client) == 1

    announcement_service.mark_read(db, announcement.id, test_client)
    announcement_service.mark_read(db, announcement.id, test_client)
    assert announcement_service.get_unread_count(db, test_client) == 0


def test_client_cannot_see_unpublished_announcement(db, test_admin, test_client):
    announcement = announcement_service.create_announcement(
        db,
        test_admin,
        AnnouncementCreate(
            title="Draft", content="Not yet", scheduled_for=utcnow() + timedelta(days=1)
        ),
    )

    with pytest.raises(announcement_service.AnnouncementNotFoundError):
        announcement_service.get_announcement(db, announcement.id, test_client)
    assert announcement_service.list_visible(db, test_client) == []


@pytest.mark.asyncio
async def test_rescheduling_keeps_announcement_due(db, test_admin, test_client, outbox):
    announcement = announcement_service.create_announcement(
        db,
        test_admin,
        AnnouncementCreate(
            title="Year-end closing",
            content="Office closed.",
            scheduled_for=utcnow() + timedelta(days=1),
        ),
    )

    with pytest.raises(ValueError, match="Scheduled time is required"):
        announcement_service.update_announcement(
            db,
            announcement.id,
            test_admin,
            AnnouncementUpdate(title="Renamed", scheduled_for=None),
        )
    db.rollback()
    db.refresh(announcement)
    assert announcement.title == "Year-end closing"
    assert announcement.scheduled_for is not None

    new_time = utcnow() + timedelta(days=2)
    announcement_service.update_announcement(
        db, announcement.id, test_admin, AnnouncementUpdate(scheduled_for=new_time)
    )
    result = await announcement_service.publish_scheduled_announcements(
        db, now=new_time + timedelta(minutes=1)
    )
    assert result["published"] == 1


def test_published_announcement_cannot_be_rescheduled(db, test_admin):
    announcement = announcement_service.create_announcement(
        db, test_admin, AnnouncementCreate(title="Live", content="Already out.")
    )

    with pytest.raises(ValueError, match="already published"):
        announcement_service.update_announcement(
            db,
            announcement.id,
            test_admin,
            AnnouncementUpdate(scheduled_for=utcnow() + timedelta(days=1)),
        )


# =============================================================================
# Cron table
# =============================================================================

def test_cron_schedule_covers_all_jobs():
    names = {job.name for job in schedule.CRON_SCHEDULE}
    assert {"task-reminders", "recurring-tasks", "announcements", "invoice-reminders"} <= names


def test_unknown_scheduled_job_rejected():
    with pytest.raises(ValueError, match="Unknown scheduled job"):
        schedule.get_scheduled_job("payroll")


def test_render_crontab_lines():
    output = schedule.render_crontab("https://api.portal.test/")

    assert (
        '0 2 * * * curl -fsS -X POST -H "X-Internal-Secret: $INTERNAL_SECRET" '
        "https://api.portal.test/internal/scheduled/invoice-reminders"
    ) in output


@pytest.mark.asyncio
async def test_run_scheduled_job_handles_sync_runner(db):
    result = await schedule.run_scheduled_job(db, "recurring-tasks", now=utcnow())
    assert result == {"processed": 0, "tasks_created": 0, "errors": []}


@pytest.mark.asyncio
async def test_run_scheduled_job_handles_async_runner(db):
    result = await schedule.run_scheduled_job(db, "announcements", now=utcnow())
    assert result["published"] == 0

