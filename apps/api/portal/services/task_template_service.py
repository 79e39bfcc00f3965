"""
Recurring task templates and per-organization subscriptions.

Occurrence boundaries are 00:00 UTC on the template's recurrence day:
- weekly: day_of_week (0=Monday)
- monthly: day_of_month
- quarterly: day_of_month in the quarter_month-th month of each quarter
- yearly: day_of_month of month_of_year

The daily generation job creates at most one task per subscription per run
and always moves next_generation_at past "now", so long outages never
produce a backlog of tasks.
"""

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.org_access import check_org_access, check_staff
from portal.db.enums import RecurrenceFrequency, TaskPriority, TaskStatus
from portal.db.models import Organization, Task, TaskTemplate, TemplateSubscription, User
from portal.db.types import utcnow
from portal.schemas.task import SubscriptionCreate, TaskTemplateCreate, TaskTemplateUpdate
from portal.services import activity_service, task_service

logger = logging.getLogger(__name__)


class TaskTemplateServiceError(Exception):
    """Base exception for template service errors."""

    pass


class TemplateNotFoundError(TaskTemplateServiceError):
    pass


class SubscriptionNotFoundError(TaskTemplateServiceError):
    pass


BUILT_IN_TEMPLATES = [
    {
        "name": "Monthly Bookkeeping",
        "description": "Regular monthly bookkeeping document collection",
        "category": "bookkeeping",
        "frequency": RecurrenceFrequency.MONTHLY,
        "day_of_month": 1,
        "task_title": "Submit Monthly Bookkeeping Documents",
        "task_description": (
            "Please upload your bank statements, receipts, and invoices for the previous month."
        ),
        "priority": TaskPriority.MEDIUM,
        "due_days_after_generation": 14,
    },
    {
        "name": "Quarterly SST Preparation",
        "description": "Quarterly sales and service tax return preparation",
        "category": "tax",
        "frequency": RecurrenceFrequency.QUARTERLY,
        "quarter_month": 1,
        "day_of_month": 1,
        "task_title": "Quarterly SST Preparation",
        "task_description": (
            "Prepare documents for the quarterly SST return. Please ensure all invoices "
            "and receipts are up to date."
        ),
        "priority": TaskPriority.HIGH,
        "due_days_after_generation": 21,
    },
    {
        "name": "Annual Tax Return Documents",
        "description": "Yearly tax return document collection",
        "category": "tax",
        "frequency": RecurrenceFrequency.YEARLY,
        "month_of_year": 1,
        "day_of_month": 1,
        "task_title": "Annual Tax Return - Document Collection",
        "task_description": (
            "Please gather all documents needed for your annual tax return including income "
            "statements, deductions, and investment records."
        ),
        "priority": TaskPriority.HIGH,
        "due_days_after_generation": 30,
    },
    {
        "name": "Year-End Financial Close",
        "description": "Annual financial year-end close procedures",
        "category": "compliance",
        "frequency": RecurrenceFrequency.YEARLY,
        "month_of_year": 12,
        "day_of_month": 1,
        "task_title": "Year-End Financial Close",
        "task_description": (
            "Review and finalize your annual accounts. Please confirm all transactions are "
            "recorded and provide any missing documentation."
        ),
        "priority": TaskPriority.HIGH,
        "due_days_after_generation": 45,
    },
    {
        "name": "Quarterly EPF Contribution Review",
        "description": "Quarterly employee provident fund contribution verification",
        "category": "compliance",
        "frequency": RecurrenceFrequency.QUARTERLY,
        "quarter_month": 2,
        "day_of_month": 1,
        "task_title": "EPF Contribution Review",
        "task_description": (
            "Verify that EPF contributions are up to date and correctly allocated for all employees."
        ),
        "priority": TaskPriority.MEDIUM,
        "due_days_after_generation": 14,
    },
]


# =============================================================================
# Recurrence
# =============================================================================

_MONTH_STEP = {
    RecurrenceFrequency.MONTHLY: 1,
    RecurrenceFrequency.QUARTERLY: 3,
    RecurrenceFrequency.YEARLY: 12,
}


def _month_matches(template: TaskTemplate, frequency: RecurrenceFrequency, month: int) -> bool:
    if frequency == RecurrenceFrequency.MONTHLY:
        return True
    if frequency == RecurrenceFrequency.QUARTERLY:
        return (month - 1) % 3 == (template.quarter_month or 1) - 1
    return month == (template.month_of_year or 1)


def calculate_next_generation_date(template: TaskTemplate, after: datetime) -> datetime:
    """First occurrence boundary strictly after `after` (aware UTC)."""
    if after.tzinfo is None:
        after = after.replace(tzinfo=timezone.utc)
    after = after.astimezone(timezone.utc)
    frequency = RecurrenceFrequency(template.frequency)

    if frequency == RecurrenceFrequency.WEEKLY:
        target = template.day_of_week or 0
        midnight = datetime(after.year, after.month, after.day, tzinfo=timezone.utc)
        candidate = midnight + timedelta(days=(target - after.weekday()) % 7)
        if candidate <= after:
            candidate += timedelta(days=7)
        return candidate

    day = template.day_of_month or 1
    year, month = after.year, after.month
    # Yearly needs at most 13 months to find the next boundary
    for _ in range(_MONTH_STEP[frequency] + 13):
        if _month_matches(template, frequency, month):
            candidate = datetime(year, month, day, tzinfo=timezone.utc)
            if candidate > after:
                return candidate
        month += 1
        if month > 12:
            month = 1
            year += 1
    raise ValueError(f"Could not compute next occurrence for template {template.id}")


# =============================================================================
# Templates
# =============================================================================

def get_template(db: Session, template_id: UUID) -> TaskTemplate:
    template = db.query(TaskTemplate).filter(TaskTemplate.id == template_id).first()
    if not template:
        raise TemplateNotFoundError(f"Template {template_id} not found")
    return template


def list_templates(db: Session, include_inactive: bool = False) -> list[TaskTemplate]:
    query = db.query(TaskTemplate)
    if not include_inactive:
        query = query.filter(TaskTemplate.is_active.is_(True))
    return query.order_by(TaskTemplate.name).all()


def create_template(db: Session, actor: User, data: TaskTemplateCreate) -> TaskTemplate:
    check_staff(actor)
    values = data.model_dump()
    values["frequency"] = data.frequency.value
    values["priority"] = data.priority.value
    values["name"] = data.name.strip()
    template = TaskTemplate(**values, created_by_id=actor.id)
    db.add(template)
    db.commit()
    db.refresh(template)
    return template


def update_template(
    db: Session,
    template_id: UUID,
    actor: User,
    data: TaskTemplateUpdate,
) -> TaskTemplate:
    """Partial update. Schedules of existing subscriptions are recomputed."""
    check_staff(actor)
    template = get_template(db, template_id)
    update_data = data.model_dump(exclude_unset=True)

    schedule_fields = {"frequency", "day_of_week", "day_of_month", "quarter_month", "month_of_year"}
    for field, value in update_data.items():
        if value is None and field in {"name", "frequency", "priority", "is_active", "due_days_after_generation"}:
            continue
        if hasattr(value, "value"):
            value = value.value
        setattr(template, field, value)

    if schedule_fields & update_data.keys():
        now = utcnow()
        for subscription in template.subscriptions:
            if subscription.is_active:
                subscription.next_generation_at = calculate_next_generation_date(template, now)

    db.commit()
    db.refresh(template)
    return template


def seed_builtin_templates(db: Session, created_by_id: UUID | None = None) -> int:
    """Insert built-in templates missing by name. Returns count created."""
    existing = {name for (name,) in db.query(TaskTemplate.name).all()}
    created = 0
    for seed in BUILT_IN_TEMPLATES:
        if seed["name"] in existing:
            continue
        values = dict(seed)
        values["frequency"] = seed["frequency"].value
        values["priority"] = seed["priority"].value
        db.add(TaskTemplate(**values, created_by_id=created_by_id))
        created += 1
    db.commit()
    return created


# =============================================================================
# Subscriptions
# =============================================================================

def get_subscription(db: Session, subscription_id: UUID) -> TemplateSubscription:
    subscription = db.query(TemplateSubscription).filter(
        TemplateSubscription.id == subscription_id
    ).first()
    if not subscription:
        raise SubscriptionNotFoundError(f"Subscription {subscription_id} not found")
    return subscription


def list_subscriptions(db: Session, actor: User, org_id: UUID) -> list[TemplateSubscription]:
    check_org_access(actor, org_id)
    return (
        db.query(TemplateSubscription)
        .filter(TemplateSubscription.organization_id == org_id)
        .order_by(TemplateSubscription.created_at)
        .all()
    )


def subscribe(db: Session, actor: User, data: SubscriptionCreate) -> TemplateSubscription:
    """
    Staff: subscribe an organization to a template.

    Raises:
        TemplateNotFoundError
        ValueError: Unknown org, inactive template or duplicate subscription
    """
    check_staff(actor)
    template = get_template(db, data.template_id)
    if not template.is_active:
        raise ValueError("Template is not active")
    org = db.get(Organization, data.organization_id)
    if not org:
        raise ValueError("Organization not found")

    existing = db.query(TemplateSubscription).filter(
        TemplateSubscription.organization_id == org.id,
        TemplateSubscription.template_id == template.id,
    ).first()
    if existing:
        raise ValueError("Organization is already subscribed to this template")

    if data.assign_to_id:
        assignee = db.get(User, data.assign_to_id)
        if not assignee or assignee.organization_id != org.id:
            raise ValueError("Assignee must belong to the organization")

    subscription = TemplateSubscription(
        organization_id=org.id,
        template_id=template.id,
        custom_title=data.custom_title,
        custom_description=data.custom_description,
        assign_to_id=data.assign_to_id,
        next_generation_at=calculate_next_generation_date(template, utcnow()),
    )
    db.add(subscription)
    db.flush()
    activity_service.log_activity(
        db,
        action="subscribed",
        resource_type="task_template",
        user_id=actor.id,
        organization_id=org.id,
        resource_id=template.id,
        resource_name=template.name,
    )
    db.commit()
    db.refresh(subscription)
    return subscription


def unsubscribe(db: Session, subscription_id: UUID, actor: User) -> None:
    check_staff(actor)
    subscription = get_subscription(db, subscription_id)
    db.delete(subscription)
    db.commit()


def toggle_subscription(
    db: Session,
    subscription_id: UUID,
    actor: User,
    is_active: bool,
) -> TemplateSubscription:
    """Pause/resume. Resuming schedules from now (no catch-up for the pause)."""
    check_staff(actor)
    subscription = get_subscription(db, subscription_id)
    if is_active and not subscription.is_active:
        subscription.next_generation_at = calculate_next_generation_date(
            subscription.template, utcnow()
        )
    subscription.is_active = is_active
    db.commit()
    db.refresh(subscription)
    return subscription


# =============================================================================
# Daily generation job
# =============================================================================

def generate_recurring_tasks(db: Session, now: datetime | None = None) -> dict:
    """
    Create one task per due subscription and advance its schedule.

    Returns stats: {processed, tasks_created, errors}
    """
    now = now or utcnow()
    subscriptions = (
        db.query(TemplateSubscription)
        .join(TaskTemplate, TemplateSubscription.template_id == TaskTemplate.id)
        .filter(
            TemplateSubscription.is_active.is_(True),
            TaskTemplate.is_active.is_(True),
            TemplateSubscription.next_generation_at.is_not(None),
            TemplateSubscription.next_generation_at <= now,
        )
        .all()
    )

    tasks_created = 0
    errors = []
    for subscription in subscriptions:
        subscription_id = subscription.id
        template = subscription.template
        try:
            task = Task(
                organization_id=subscription.organization_id,
                title=subscription.custom_title or template.task_title or template.name,
                description=(
                    subscription.custom_description
                    or template.task_description
                    or template.description
                ),
                status=TaskStatus.PENDING.value,
                priority=template.priority,
                due_date=now + timedelta(days=template.due_days_after_generation),
                assigned_to_id=subscription.assign_to_id,
                created_by_id=template.created_by_id,
                template_id=template.id,
            )
            db.add(task)
            subscription.last_generated_at = now
            subscription.next_generation_at = calculate_next_generation_date(template, now)
            db.commit()
            db.refresh(task)
            tasks_created += 1

            task_service.notify_task_assigned(db, task, settings.BRAND_NAME)
        except Exception as e:
            db.rollback()
            logger.exception("Recurring task generation failed for subscription %s", subscription_id)
            errors.append({"subscription_id": str(subscription_id), "error": str(e)})

    logger.info(
        "Recurring tasks: processed=%d created=%d errors=%d",
        len(subscriptions),
        tasks_created,
        len(errors),
    )
    return {
        "processed": len(subscriptions),
        "tasks_created": tasks_created,
        "errors": errors,
    }
