"""Resend transactional email client.

Single POST per call, no automatic retries: the next scheduled job run
(or the user's next action) is the retry path. Every failure comes back
as a structured result instead of an exception.
"""

from __future__ import annotations

import html as html_module
import logging
import re

import httpx

from portal.core.config import settings
from portal.types import JsonObject

logger = logging.getLogger(__name__)

RESEND_SEND_URL = "https://api.resend.com/emails"
EMAIL_NOT_CONFIGURED = "Email not configured"


def _html_to_text(content: str) -> str:
    """Convert HTML into readable text (deliverability + inbox previews)."""
    text = re.sub(r"<(script|style)[^>]*>.*?</\1>", "", content, flags=re.DOTALL | re.I)
    text = re.sub(r"<[^>]+>", " ", text)
    text = re.sub(r"\s+", " ", text).strip()
    return html_module.unescape(text)


def email_configured() -> bool:
    return bool(settings.RESEND_API_KEY)


async def send_email(
    *,
    to_email: str,
    subject: str,
    html: str,
    text: str | None = None,
) -> JsonObject:
    """
    Send one email via the Resend API.

    Returns:
        {"success": True, "id": <message id>} or {"success": False, "error": <reason>}
    """
    api_key = settings.RESEND_API_KEY
    if not api_key:
        logger.warning("RESEND_API_KEY not set; skipping email '%s'", subject)
        return {"success": False, "error": EMAIL_NOT_CONFIGURED}

    payload: dict[str, object] = {
        "from": settings.EMAIL_FROM,
        "to": [to_email],
        "subject": subject,
        "html": html,
    }
    plain = text or _html_to_text(html)
    if plain:
        payload["text"] = plain

    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }

    try:
        async with httpx.AsyncClient(timeout=settings.RESEND_TIMEOUT_SECONDS) as client:
            response = await client.post(RESEND_SEND_URL, headers=headers, json=payload)
    except httpx.TimeoutException:
        logger.warning("Resend timeout sending '%s'", subject)
        return {"success": False, "error": "Connection timeout"}
    except httpx.HTTPError as exc:
        logger.warning("Resend connection error sending '%s': %s", subject, exc)
        return {"success": False, "error": f"Connection error: {exc.__class__.__name__}"}

    if 200 <= response.status_code < 300:
        message_id = None
        try:
            data = response.json()
            if isinstance(data, dict):
                message_id = data.get("id")
        except ValueError:
            message_id = None
        logger.info("Email sent: subject='%s' message_id=%s", subject, message_id)
        return {"success": True, "id": message_id}

    # Best-effort parse of error response
    detail = None
    try:
        data = response.json()
        if isinstance(data, dict):
            detail = data.get("message") or data.get("error")
    except ValueError:
        detail = response.text or None

    error = f"Resend API error: {response.status_code}"
    if detail:
        error = f"{error} ({detail})"
    logger.warning("Email send failed: subject='%s' error=%s", subject, error)
    return {"success": False, "error": error}
