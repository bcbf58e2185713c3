"""Notification text formatters."""

from html import escape

from duebell.db.models import Contact, Reminder
from duebell.utils.constants import DEFAULT_PUSH_BODY
from duebell.utils.time_utils import format_relative_time, from_utc

PRIORITY_EMOJI = {
    "Low": "🔔",
    "Medium": "🔔",
    "High": "🚨",
    "Urgent": "🔥",
}


def push_body(reminder: Reminder) -> str:
    """Body of a push notification."""
    return reminder.description or DEFAULT_PUSH_BODY


def _due_line(reminder: Reminder, contact: Contact | None) -> str:
    tz = contact.timezone if contact else "UTC"
    due_local = from_utc(reminder.schedule.date_time, tz)
    relative = format_relative_time(reminder.schedule.date_time)
    return f"{due_local.strftime('%b %d, %Y at %I:%M %p')} ({relative})"


def format_push_message(title: str, body: str, priority: str) -> str:
    """Format a push notification as a Telegram HTML message."""
    emoji = PRIORITY_EMOJI.get(priority, "🔔")
    return f"{emoji} <b>{escape(title)}</b>\n\n{escape(body)}"


def email_subject(reminder: Reminder) -> str:
    """Subject line of a reminder email."""
    return f"Reminder: {reminder.title}"


def render_email_text(reminder: Reminder, contact: Contact | None = None) -> str:
    """Plain-text body of a reminder email."""
    lines = [reminder.title, ""]
    if reminder.description:
        lines.extend([reminder.description, ""])
    lines.append(f"Due: {_due_line(reminder, contact)}")
    lines.append(f"Category: {reminder.type}")
    lines.append(f"Priority: {reminder.priority}")
    if reminder.document_id:
        lines.append(f"Related record: {reminder.document_id}")
    return "\n".join(lines)


def render_email_html(reminder: Reminder, contact: Contact | None = None) -> str:
    """HTML body of a reminder email."""
    rows = [
        ("Due", _due_line(reminder, contact)),
        ("Category", reminder.type),
        ("Priority", reminder.priority),
    ]
    if reminder.document_id:
        rows.append(("Related record", reminder.document_id))

    table = "\n".join(
        f'<tr><td style="padding:4px 12px 4px 0;color:#666">{escape(label)}</td>'
        f"<td>{escape(value)}</td></tr>"
        for label, value in rows
    )
    intro = (
        f"<p>{escape(reminder.description)}</p>"
        if reminder.description
        else f"<p>{escape(DEFAULT_PUSH_BODY)}</p>"
    )
    return (
        '<div style="font-family:sans-serif;max-width:560px">'
        f"<h2>{escape(reminder.title)}</h2>"
        f"{intro}"
        f"<table>{table}</table>"
        "</div>"
    )


def format_whatsapp_message(reminder: Reminder, contact: Contact | None = None) -> str:
    """Plain text for a WhatsApp message (WhatsApp uses *bold* markup)."""
    emoji = PRIORITY_EMOJI.get(reminder.priority, "🔔")
    lines = [f"{emoji} *{reminder.title}*"]
    if reminder.description:
        lines.append("")
        lines.append(reminder.description)
    lines.append("")
    lines.append(f"📅 {_due_line(reminder, contact)}")
    if reminder.priority in ("High", "Urgent"):
        lines.append(f"⚠️ Priority: {reminder.priority}")
    return "\n".join(lines)
