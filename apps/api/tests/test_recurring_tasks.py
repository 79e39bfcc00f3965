"""Tests for recurring task templates and the daily generation job."""

from datetime import datetime, timedelta, timezone

import pytest

from portal.db.enums import RecurrenceFrequency, TaskStatus
from portal.db.models import Task, TaskTemplate, TemplateSubscription
from portal.db.types import utcnow
from portal.schemas.task import SubscriptionCreate
from portal.services import task_template_service


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def make_template(db, frequency=RecurrenceFrequency.MONTHLY, **fields):
    template = TaskTemplate(
        name=fields.pop("name", f"{frequency.value} template"),
        frequency=frequency.value,
        task_title=fields.pop("task_title", "Submit documents"),
        due_days_after_generation=fields.pop("due_days_after_generation", 14),
        **fields,
    )
    db.add(template)
    db.commit()
    db.refresh(template)
    return template


@pytest.mark.parametrize(
    "fields, after, expected",
    [
        ({"frequency": "monthly", "day_of_month": 1}, utc(2026, 1, 15), utc(2026, 2, 1)),
        # A boundary equal to "after" is not in the future
        ({"frequency": "monthly", "day_of_month": 1}, utc(2026, 2, 1), utc(2026, 3, 1)),
        ({"frequency": "monthly", "day_of_month": 20}, utc(2026, 12, 25), utc(2027, 1, 20)),
        (
            {"frequency": "quarterly", "quarter_month": 1, "day_of_month": 1},
            utc(2026, 2, 10),
            utc(2026, 4, 1),
        ),
        (
            {"frequency": "quarterly", "quarter_month": 2, "day_of_month": 1},
            utc(2026, 2, 10),
            utc(2026, 5, 1),
        ),
        (
            {"frequency": "yearly", "month_of_year": 12, "day_of_month": 1},
            utc(2026, 12, 15),
            utc(2027, 12, 1),
        ),
        # 2026-10-18 is a Sunday
        ({"frequency": "weekly", "day_of_week": 0}, utc(2026, 10, 18, 10), utc(2026, 10, 19)),
        ({"frequency": "weekly", "day_of_week": 0}, utc(2026, 10, 19), utc(2026, 10, 26)),
    ],
)
def test_calculate_next_generation_date(fields, after, expected):
    template = TaskTemplate(**fields)
    assert task_template_service.calculate_next_generation_date(template, after) == expected


def test_naive_after_is_treated_as_utc():
    template = TaskTemplate(frequency="monthly", day_of_month=5)
    result = task_template_service.calculate_next_generation_date(
        template, datetime(2026, 3, 1)
    )
    assert result == utc(2026, 3, 5)


def test_outage_catch_up_creates_single_task(db, test_org, test_client):
    template = make_template(db, RecurrenceFrequency.WEEKLY, day_of_week=0)
    subscription = TemplateSubscription(
        organization_id=test_org.id,
        template_id=template.id,
        assign_to_id=test_client.id,
        # Three Mondays were missed
        next_generation_at=utc(2026, 9, 28),
    )
    db.add(subscription)
    db.commit()

    now = utc(2026, 10, 18, 10)
    result = task_template_service.generate_recurring_tasks(db, now=now)

    assert result == {"processed": 1, "tasks_created": 1, "errors": []}
    db.refresh(subscription)
    assert subscription.next_generation_at == utc(2026, 10, 19)
    assert subscription.next_generation_at > now
    assert subscription.last_generated_at == now

    task = db.query(Task).one()
    assert task.title == "Submit documents"
    assert task.status == TaskStatus.PENDING.value
    assert task.assigned_to_id == test_client.id
    assert task.template_id == template.id
    assert task.due_date == now + timedelta(days=14)

    # Same run repeated: nothing due any more
    again = task_template_service.generate_recurring_tasks(db, now=now)
    assert again["tasks_created"] == 0
    assert db.query(Task).count() == 1


def test_custom_title_and_paused_subscriptions(db, test_org, other_org):
    template = make_template(db, day_of_month=1)
    db.add_all([
        TemplateSubscription(
            organization_id=test_org.id,
            template_id=template.id,
            custom_title="Monthly docs for Ujian",
            next_generation_at=utc(2026, 3, 1),
        ),
        TemplateSubscription(
            organization_id=other_org.id,
            template_id=template.id,
            is_active=False,
            next_generation_at=utc(2026, 3, 1),
        ),
    ])
    db.commit()

    result = task_template_service.generate_recurring_tasks(db, now=utc(2026, 3, 1, 16))

    assert result["tasks_created"] == 1
    task = db.query(Task).one()
    assert task.organization_id == test_org.id
    assert task.title == "Monthly docs for Ujian"


def test_inactive_template_generates_nothing(db, test_org):
    template = make_template(db, day_of_month=1, is_active=False)
    db.add(TemplateSubscription(
        organization_id=test_org.id,
        template_id=template.id,
        next_generation_at=utc(2026, 3, 1),
    ))
    db.commit()

    result = task_template_service.generate_recurring_tasks(db, now=utc(2026, 3, 2))

    assert result["processed"] == 0
    assert db.query(Task).count() == 0


def test_subscribe_schedules_next_boundary(db, test_org, test_staff):
    template = make_template(db, day_of_month=1)

    subscription = task_template_service.subscribe(
        db, test_staff, SubscriptionCreate(organization_id=test_org.id, template_id=template.id)
    )

    assert subscription.next_generation_at > utcnow()
    assert subscription.next_generation_at.day == 1

    with pytest.raises(ValueError, match="already subscribed"):
        task_template_service.subscribe(
            db,
            test_staff,
            SubscriptionCreate(organization_id=test_org.id, template_id=template.id),
        )


def test_seed_builtin_templates_is_idempotent(db):
    first = task_template_service.seed_builtin_templates(db)
    second = task_template_service.seed_builtin_templates(db)

    assert first == len(task_template_service.BUILT_IN_TEMPLATES)
    assert second == 0
