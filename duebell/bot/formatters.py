"""Bot reply formatters."""

from html import escape
from typing import List

from duebell.db.models import Contact, Reminder
from duebell.utils.time_utils import format_relative_time, from_utc


def format_reminder(reminder: Reminder, contact: Contact, show_id: bool = True) -> str:
    """Format a reminder as a message."""
    lines = []

    if show_id:
        lines.append(f"<b>{escape(reminder.title)}</b> (ID: <code>{reminder.id}</code>)")
    else:
        lines.append(f"<b>{escape(reminder.title)}</b>")

    due_local = from_utc(reminder.schedule.date_time, contact.timezone)
    due_str = due_local.strftime("%b %d, %Y at %I:%M %p")
    relative = format_relative_time(reminder.schedule.date_time)
    lines.append(f"📅 {due_str} ({relative})")
    lines.append(f"📣 {', '.join(reminder.channel)} · {reminder.priority} · {reminder.type}")

    if reminder.description:
        lines.append(f"\n{escape(reminder.description)}")

    return "\n".join(lines)


def format_reminder_list(reminders: List[Reminder], contact: Contact) -> str:
    """Format the scheduled reminders of a user."""
    if not reminders:
        return "No scheduled reminders. 🎉"

    header = f"<b>Scheduled reminders ({len(reminders)})</b>\n\n"
    return header + "\n\n".join(format_reminder(r, contact) for r in reminders)


def format_settings(contact: Contact) -> str:
    """Format a user's notification settings."""
    push = "on" if contact.push_enabled and contact.telegram_chat_id else "off"
    return (
        "<b>Notification settings</b>\n\n"
        f"👤 User: <code>{escape(contact.user_id)}</code>\n"
        f"🔔 Push: {push}\n"
        f"✉️ Email: {escape(contact.email or 'not set')}\n"
        f"💬 WhatsApp: {escape(contact.phone or 'not set')}\n"
        f"🌍 Timezone: {escape(contact.timezone)}"
    )


def format_welcome_message(user_id: str) -> str:
    """Format the welcome message for /start."""
    return f"""
<b>Welcome to duebell!</b> 🔔

This chat is now linked to <code>{escape(user_id)}</code>. Reminders from your dashboard will show up here when they are due.

• /email &lt;address&gt; - Also get reminders by email
• /phone &lt;number&gt; - Also get reminders on WhatsApp
• /list - See your scheduled reminders
• /help - Full command list
""".strip()


def format_help_message() -> str:
    """Format the help message."""
    return """
<b>duebell commands 🔔</b>

<b>Reminders:</b>
/list - Scheduled reminders
/cancel &lt;id&gt; - Cancel a reminder
/check - Deliver anything due right now
/test - Send a test notification on every channel

<b>Delivery:</b>
/mute - Stop push notifications in this chat
/unmute - Resume push notifications
/email &lt;address&gt; - Set (or /email off to clear) your email
/phone &lt;number&gt; - Set (or /phone off to clear) your WhatsApp number
/timezone &lt;tz&gt; - Set timezone (e.g., Asia/Kolkata)
/settings - Show delivery settings

<b>Tips:</b>
• High and Urgent reminders keep a ✓ button until you tap it
• Each reminder is delivered once, on every channel it asks for
""".strip()
