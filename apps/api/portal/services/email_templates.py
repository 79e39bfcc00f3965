"""
Brand-consistent HTML email templates for portal notifications.

Each builder returns (subject, html). User-supplied text is escaped before
interpolation; the shared wrapper adds the firm header and footer.
"""

from __future__ import annotations

from datetime import datetime, timezone
from html import escape

from portal.core.config import settings


PREFERENCES_NOTE = "To manage your email preferences, visit Settings in your portal."
PREVIEW_LIMIT = 200


# =============================================================================
# Formatting helpers
# =============================================================================

def truncate(text: str, limit: int = PREVIEW_LIMIT) -> str:
    return text if len(text) <= limit else f"{text[:limit]}..."


def format_email_date(value: datetime | None) -> str:
    """'15 January 2026' (day month year, no leading zero)."""
    if value is None:
        return ""
    return f"{value.day} {value.strftime('%B %Y')}"


def format_money(amount_cents: int, currency: str = "MYR") -> str:
    amount = amount_cents / 100
    if currency == "MYR":
        return f"RM{amount:,.2f}"
    return f"{currency} {amount:,.2f}"


def _link(path: str) -> str:
    return f"{settings.portal_url}{path}"


def base_template(content: str, unsubscribe_note: str | None = None) -> str:
    """Wrap content in the branded layout."""
    year = datetime.now(timezone.utc).year
    brand = escape(settings.BRAND_NAME)
    note = ""
    if unsubscribe_note:
        note = (
            '<p style="margin: 16px 0 0 0; font-size: 11px; color: #999999; text-align: center;">'
            f"{escape(unsubscribe_note)}</p>"
        )
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{brand}</title>
</head>
<body style="margin: 0; padding: 0; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif; background-color: #f5f5f5;">
  <table role="presentation" width="100%" cellpadding="0" cellspacing="0" style="background-color: #f5f5f5; padding: 40px 20px;">
    <tr>
      <td align="center">
        <table role="presentation" width="600" cellpadding="0" cellspacing="0" style="background-color: #ffffff; border-radius: 8px; overflow: hidden;">
          <tr>
            <td style="background-color: #090516; padding: 24px 32px; text-align: center;">
              <span style="font-family: Georgia, serif; font-size: 24px; color: #ffffff;">{brand}</span>
            </td>
          </tr>
          <tr>
            <td style="padding: 32px;">
              {content}
            </td>
          </tr>
          <tr>
            <td style="background-color: #f8f8f8; padding: 24px 32px; border-top: 1px solid #ebebeb;">
              <p style="margin: 0 0 8px 0; font-size: 12px; color: #737373; text-align: center;">
                &copy; {year} {escape(settings.BRAND_LEGAL_NAME)}
              </p>
              <p style="margin: 0; font-size: 12px; color: #737373; text-align: center;">
                {escape(settings.BRAND_TAGLINE)}
              </p>
              {note}
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>"""


def email_button(text: str, url: str) -> str:
    return (
        f'<a href="{escape(url, quote=True)}" style="display: inline-block; background-color: #253FF6; '
        "color: #ffffff; padding: 12px 24px; text-decoration: none; border-radius: 6px; "
        f'font-weight: 500; font-size: 14px;">{escape(text)}</a>'
    )


def _heading(text: str) -> str:
    return (
        '<h1 style="margin: 0 0 16px 0; font-size: 20px; font-weight: 600; color: #090516;">'
        f"{escape(text)}</h1>"
    )


def _paragraph(html_text: str) -> str:
    return (
        '<p style="margin: 0 0 16px 0; font-size: 14px; line-height: 1.6; color: #404040;">'
        f"{html_text}</p>"
    )


def _greeting(name: str) -> str:
    return _paragraph(f"Hi {escape(name)},")


def _panel(title: str, lines: list[str], background: str = "#f8f8f8", color: str = "#090516") -> str:
    body = "".join(
        f'<p style="margin: 8px 0 0 0; font-size: 14px; color: #737373;">{line}</p>' for line in lines
    )
    return (
        f'<div style="background-color: {background}; border-radius: 6px; padding: 16px; margin-bottom: 24px;">'
        f'<p style="margin: 0; font-size: 16px; font-weight: 600; color: {color};">{escape(title)}</p>'
        f"{body}</div>"
    )


def _due_line(due_date: datetime | None) -> list[str]:
    if not due_date:
        return []
    return [f'<strong style="color: #ef4444;">Due:</strong> {format_email_date(due_date)}']


def _action(text: str, path: str) -> str:
    return f'<p style="margin: 0 0 24px 0;">{email_button(text, _link(path))}</p>'


# =============================================================================
# Documents
# =============================================================================

def document_requested(
    recipient_name: str,
    document_title: str,
    description: str | None = None,
    due_date: datetime | None = None,
) -> tuple[str, str]:
    lines = [escape(description)] if description else []
    content = (
        _heading("Document Requested")
        + _greeting(recipient_name)
        + _paragraph("We need you to upload the following document to your client portal:")
        + _panel(document_title, lines + _due_line(due_date))
        + _action("Upload Document", "/documents")
        + _paragraph("If you have any questions, please contact us.")
    )
    return f"Document Requested: {document_title}", base_template(content, PREFERENCES_NOTE)


def document_uploaded(client_name: str, document_title: str) -> tuple[str, str]:
    content = (
        _heading("Document Uploaded")
        + _paragraph(f"{escape(client_name)} has uploaded a document that requires your review:")
        + _panel(document_title, [], background="#dbeafe", color="#1e40af")
        + _action("Review Document", "/admin/documents")
    )
    return f"Document Uploaded: {document_title}", base_template(content)


def document_approved(recipient_name: str, document_title: str) -> tuple[str, str]:
    content = (
        _heading("Document Approved")
        + _greeting(recipient_name)
        + _paragraph("Great news! Your document has been reviewed and approved:")
        + _panel(document_title, [], background="#dcfce7", color="#166534")
        + _paragraph("No further action is required.")
    )
    return f"Document Approved: {document_title}", base_template(content, PREFERENCES_NOTE)


def document_rejected(
    recipient_name: str,
    document_title: str,
    reason: str | None = None,
) -> tuple[str, str]:
    lines = [f"<strong>Reason:</strong> {escape(reason)}"] if reason else []
    content = (
        _heading("Document Needs Resubmission")
        + _greeting(recipient_name)
        + _paragraph("Your document needs to be re-uploaded:")
        + _panel(document_title, lines, background="#fef2f2", color="#991b1b")
        + _action("Re-upload Document", "/documents")
    )
    return f"Action Required: {document_title}", base_template(content, PREFERENCES_NOTE)


# =============================================================================
# Tasks
# =============================================================================

def task_assigned(
    recipient_name: str,
    task_title: str,
    description: str | None = None,
    due_date: datetime | None = None,
) -> tuple[str, str]:
    lines = [escape(description)] if description else []
    content = (
        _heading("New Task Assigned")
        + _greeting(recipient_name)
        + _paragraph("A new task has been assigned to you:")
        + _panel(task_title, lines + _due_line(due_date))
        + _action("View Task", "/tasks")
    )
    return f"New Task: {task_title}", base_template(content, PREFERENCES_NOTE)


def task_comment(
    recipient_name: str,
    commenter_name: str,
    task_title: str,
    comment: str,
) -> tuple[str, str]:
    quote = (
        '<div style="background-color: #f8f8f8; border-left: 4px solid #253FF6; padding: 16px; margin-bottom: 24px;">'
        '<p style="margin: 0; font-size: 14px; color: #404040; font-style: italic;">'
        f"&quot;{escape(truncate(comment))}&quot;</p></div>"
    )
    content = (
        _heading("New Comment")
        + _greeting(recipient_name)
        + _paragraph(
            f"{escape(commenter_name)} commented on <strong>{escape(task_title)}</strong>:"
        )
        + quote
        + _action("Reply", "/tasks")
    )
    return f"New comment on: {task_title}", base_template(content, PREFERENCES_NOTE)


def task_due(
    recipient_name: str,
    task_title: str,
    due_date: datetime | None,
) -> tuple[str, str]:
    content = (
        _heading("Task Due Soon")
        + _greeting(recipient_name)
        + _paragraph("This is a reminder that the following task is due soon:")
        + _panel(task_title, _due_line(due_date))
        + _action("View Task", "/tasks")
    )
    return f"Task Due Soon: {task_title}", base_template(content, PREFERENCES_NOTE)


# =============================================================================
# Invoices
# =============================================================================

def _invoice_table(invoice_number: str, amount: str, due_date: datetime | None) -> str:
    rows = [
        ("Invoice Number", escape(invoice_number)),
        ("Amount Due", escape(amount)),
    ]
    if due_date:
        rows.append(("Due Date", format_email_date(due_date)))
    cells = "".join(
        "<tr>"
        f'<td style="padding: 8px 0; font-size: 14px; color: #737373;">{label}</td>'
        f'<td style="padding: 8px 0; font-size: 14px; font-weight: 600; color: #090516; text-align: right;">{value}</td>'
        "</tr>"
        for label, value in rows
    )
    return (
        '<div style="background-color: #f8f8f8; border-radius: 6px; padding: 16px; margin-bottom: 24px;">'
        f'<table role="presentation" width="100%" cellpadding="0" cellspacing="0">{cells}</table></div>'
    )


def invoice_created(
    recipient_name: str,
    invoice_number: str,
    amount: str,
    due_date: datetime | None = None,
) -> tuple[str, str]:
    content = (
        _heading("New Invoice")
        + _greeting(recipient_name)
        + _paragraph("A new invoice has been issued to your account:")
        + _invoice_table(invoice_number, amount, due_date)
        + _action("View Invoice", "/invoices")
    )
    subject = f"Invoice {invoice_number} from {settings.BRAND_NAME}"
    return subject, base_template(content, PREFERENCES_NOTE)


def invoice_due_soon(
    recipient_name: str,
    invoice_number: str,
    amount: str,
    due_date: datetime | None,
) -> tuple[str, str]:
    content = (
        _heading("Invoice Due Soon")
        + _greeting(recipient_name)
        + _paragraph("This is a friendly reminder that the following invoice is due soon:")
        + _invoice_table(invoice_number, amount, due_date)
        + _action("View Invoice", "/invoices")
    )
    return f"Invoice Due Soon: {invoice_number}", base_template(content, PREFERENCES_NOTE)


def invoice_overdue(
    recipient_name: str,
    invoice_number: str,
    amount: str,
    due_date: datetime | None,
    days_overdue: int,
) -> tuple[str, str]:
    unit = "day" if days_overdue == 1 else "days"
    content = (
        _heading("Invoice Overdue")
        + _greeting(recipient_name)
        + _paragraph(
            f"The following invoice is now <strong>{days_overdue} {unit} overdue</strong>. "
            "Please arrange payment at your earliest convenience."
        )
        + _invoice_table(invoice_number, amount, due_date)
        + _action("Pay Invoice", "/invoices")
        + _paragraph("If you have already made payment, please disregard this reminder.")
    )
    return f"Invoice Overdue: {invoice_number}", base_template(content, PREFERENCES_NOTE)


# =============================================================================
# Signatures & announcements
# =============================================================================

def signature_request(
    recipient_name: str,
    document_title: str,
    requested_by: str,
) -> tuple[str, str]:
    content = (
        _heading("Signature Required")
        + _greeting(recipient_name)
        + _paragraph(
            f"{escape(requested_by)} has requested your signature on the following document:"
        )
        + _panel(document_title, [], background="#fef3c7", color="#92400e")
        + _action("Review & Sign", "/signatures")
        + _paragraph("Please review the document carefully before signing.")
    )
    return f"Signature Required: {document_title}", base_template(content, PREFERENCES_NOTE)


def new_announcement(recipient_name: str, title: str, preview: str) -> tuple[str, str]:
    content = (
        _heading("New Announcement")
        + _greeting(recipient_name)
        + _panel(title, [escape(truncate(preview))])
        + _action("Read More", "/announcements")
    )
    return f"Announcement: {title}", base_template(content, PREFERENCES_NOTE)
