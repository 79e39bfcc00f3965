"""
Email preference gate.

Per-user, per-category switches that suppress outbound notification email.
A missing row means every category is enabled (opt-out, not opt-in).
"""

import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal.db.enums import EmailCategory
from portal.db.models import EmailPreferences

logger = logging.getLogger(__name__)


# Default policy per category when the user has no stored preference.
DEFAULT_EMAIL_PREFERENCES: dict[EmailCategory, bool] = {
    EmailCategory.DOCUMENT_REQUESTS: True,
    EmailCategory.TASK_ASSIGNMENTS: True,
    EmailCategory.TASK_COMMENTS: True,
    EmailCategory.INVOICES: True,
    EmailCategory.SIGNATURES: True,
    EmailCategory.ANNOUNCEMENTS: True,
}


def _defaults() -> dict[str, bool]:
    return {category.value: enabled for category, enabled in DEFAULT_EMAIL_PREFERENCES.items()}


def _to_dict(prefs: EmailPreferences) -> dict[str, bool]:
    return {category.value: getattr(prefs, category.value) for category in EmailCategory}


def get_email_preferences(db: Session, user_id: UUID) -> dict[str, bool]:
    """
    Get a user's email preferences.

    Returns the default policy if no row exists.
    """
    prefs = db.query(EmailPreferences).filter(EmailPreferences.user_id == user_id).first()
    if not prefs:
        return _defaults()
    return _to_dict(prefs)


def update_email_preferences(
    db: Session,
    user_id: UUID,
    updates: dict[str, bool],
) -> dict[str, bool]:
    """
    Merge updates into a user's preferences.

    Creates the row (seeded from the default policy) on first change.
    Unknown categories are rejected before any write.
    """
    valid = {category.value for category in EmailCategory}
    unknown = sorted(set(updates) - valid)
    if unknown:
        raise ValueError(f"Unknown email categories: {', '.join(unknown)}")

    prefs = db.query(EmailPreferences).filter(EmailPreferences.user_id == user_id).first()
    if not prefs:
        prefs = EmailPreferences(user_id=user_id, **_defaults())
        db.add(prefs)

    for key, value in updates.items():
        if value is not None:
            setattr(prefs, key, bool(value))

    db.commit()
    db.refresh(prefs)
    return _to_dict(prefs)


def should_send_email(db: Session, user_id: UUID, category: EmailCategory) -> bool:
    """
    Check whether a user accepts email for a category.

    Fails open: if the lookup itself errors, log and send anyway so a
    store outage degrades to "always send" rather than dropping mail.
    """
    try:
        prefs = (
            db.query(EmailPreferences).filter(EmailPreferences.user_id == user_id).first()
        )
    except SQLAlchemyError:
        logger.warning(
            "Email preference lookup failed for user %s (%s); defaulting to send",
            user_id,
            category.value,
            exc_info=True,
        )
        return True

    if not prefs:
        return DEFAULT_EMAIL_PREFERENCES.get(category, True)
    return bool(getattr(prefs, category.value, DEFAULT_EMAIL_PREFERENCES.get(category, True)))
