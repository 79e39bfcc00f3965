"""Email-related job handlers."""

from __future__ import annotations

import logging

from portal.services import notification_dispatcher

logger = logging.getLogger(__name__)


async def process_notification_email(db, job) -> None:
    """
    Process a NOTIFICATION_EMAIL job queued by a request handler.

    Delivery problems come back as a result dict and are logged, not
    raised, so a bad address or provider outage never retries.
    """
    payload = job.payload or {}
    event = payload.get("event")
    if not event or not payload.get("recipient_id"):
        raise ValueError("Missing event or recipient_id in job payload")

    result = await notification_dispatcher.dispatch_event(db, event, payload)
    if result.get("success"):
        logger.info("Notification email sent: job=%s event=%s id=%s", job.id, event, result.get("id"))
    elif result.get("reason"):
        logger.info("Notification email skipped: job=%s event=%s reason=%s", job.id, event, result["reason"])
    else:
        logger.warning("Notification email failed: job=%s event=%s error=%s", job.id, event, result.get("error"))
