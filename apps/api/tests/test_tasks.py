"""Tests for task service: status transitions, comments and assignee checks."""

from datetime import timedelta

import pytest

from portal.core.org_access import OrganizationAccessError
from portal.db.enums import EmailEvent, NotificationType, Role, TaskStatus
from portal.db.models import Job, Notification
from portal.db.types import utcnow
from portal.schemas.task import TaskCreate, TaskUpdate
from portal.services import task_service


def create(db, actor, org, **fields):
    return task_service.create_task(
        db,
        actor,
        TaskCreate(organization_id=org.id, title=fields.pop("title", "Submit payroll"), **fields),
    )


def test_create_task_notifies_assignee(db, test_staff, test_client, test_org):
    task = create(db, test_staff, test_org, assigned_to_id=test_client.id)

    assert task.status == TaskStatus.PENDING.value
    assert task.created_by_id == test_staff.id
    notification = db.query(Notification).one()
    assert notification.recipient_id == test_client.id
    assert notification.type == NotificationType.NEW_TASK.value
    job = db.query(Job).one()
    assert job.payload["event"] == EmailEvent.TASK_ASSIGNED.value
    assert job.payload["context"]["task_title"] == "Submit payroll"


def test_assignee_from_other_org_rejected(db, test_staff, test_org, other_org, user_factory):
    outsider = user_factory(Role.CLIENT, organization=other_org)

    with pytest.raises(ValueError, match="Assignee must belong"):
        create(db, test_staff, test_org, assigned_to_id=outsider.id)


def test_completed_at_tracks_completed_status(db, test_staff, test_client, test_org):
    task = create(db, test_staff, test_org)

    done = task_service.update_status(db, task.id, test_client, TaskStatus.COMPLETED)
    assert done.completed_at is not None
    assert done.completed_by_id == test_client.id

    reopened = task_service.update_status(db, task.id, test_client, TaskStatus.IN_PROGRESS)
    assert reopened.completed_at is None
    assert reopened.completed_by_id is None


def test_client_status_change_notifies_firm(db, test_staff, test_admin, test_client, test_org):
    task = create(db, test_staff, test_org)

    task_service.update_status(db, task.id, test_client, TaskStatus.IN_PROGRESS)

    recipients = {
        n.recipient_id
        for n in db.query(Notification).filter(
            Notification.type == NotificationType.TASK_STATUS.value
        )
    }
    assert recipients == {test_staff.id, test_admin.id}


def test_only_staff_cancel_and_cancelled_is_terminal(db, test_staff, test_client, test_org):
    task = create(db, test_staff, test_org)

    with pytest.raises(OrganizationAccessError):
        task_service.update_status(db, task.id, test_client, TaskStatus.CANCELLED)

    cancelled = task_service.update_status(db, task.id, test_staff, TaskStatus.CANCELLED)
    assert cancelled.status == TaskStatus.CANCELLED.value

    with pytest.raises(ValueError, match="cancelled"):
        task_service.update_status(db, task.id, test_client, TaskStatus.COMPLETED)


def test_update_task_clears_due_date(db, test_staff, test_org):
    task = create(db, test_staff, test_org, due_date=utcnow() + timedelta(days=3))

    updated = task_service.update_task(db, task.id, test_staff, TaskUpdate(due_date=None))
    assert updated.due_date is None

    # Unset fields stay untouched
    updated = task_service.update_task(db, task.id, test_staff, TaskUpdate(title="Renamed"))
    assert updated.title == "Renamed"


def test_list_tasks_scoped_to_client_org(db, test_staff, test_client, test_org, other_org):
    mine = create(db, test_staff, test_org)
    create(db, test_staff, other_org)

    assert [t.id for t in task_service.list_tasks(db, test_client)] == [mine.id]
    assert len(task_service.list_tasks(db, test_staff)) == 2
    with pytest.raises(OrganizationAccessError):
        task_service.list_tasks(db, test_client, org_id=other_org.id)


def test_comment_thread_and_notifications(db, test_staff, test_client, test_org):
    task = create(db, test_staff, test_org, assigned_to_id=test_client.id)
    db.query(Job).delete()
    db.commit()

    task_service.add_comment(db, task.id, test_client, "Uploaded the statements")
    task_service.add_comment(db, task.id, test_staff, "  Thanks, received  ")

    thread = task_service.list_comments(db, task.id, test_client)
    assert [c.content for c in thread] == ["Uploaded the statements", "Thanks, received"]

    # Client comment goes to the creator, staff comment to the assignee
    emails = [
        (job.payload["recipient_id"], job.payload["context"]["comment"])
        for job in db.query(Job).order_by(Job.created_at)
    ]
    assert emails == [
        (str(test_staff.id), "Uploaded the statements"),
        (str(test_client.id), "Thanks, received"),
    ]


def test_empty_comment_rejected(db, test_staff, test_org):
    task = create(db, test_staff, test_org)

    with pytest.raises(ValueError, match="empty"):
        task_service.add_comment(db, task.id, test_staff, "   ")


def test_only_author_edits_comment(db, test_staff, test_client, test_org):
    task = create(db, test_staff, test_org)
    comment = task_service.add_comment(db, task.id, test_client, "first draft")

    with pytest.raises(task_service.NotCommentAuthorError):
        task_service.edit_comment(db, comment.id, test_staff, "hijack")

    edited = task_service.edit_comment(db, comment.id, test_client, "final")
    assert edited.content == "final"
    assert edited.edited_at is not None
    assert edited.created_at == comment.created_at
