"""Tests for notification and bot message formatting."""

from conftest import make_reminder

from duebell.bot.formatters import format_reminder_list, format_settings
from duebell.db.models import Contact
from duebell.dispatch.formatters import (
    email_subject,
    format_push_message,
    format_whatsapp_message,
    render_email_html,
)
from duebell.errors import InvalidTransition, ReminderNotFound, StoreError, ValidationError
from duebell.utils.error_handler import describe_error


def test_push_message_escapes_html():
    text = format_push_message("Rent & <bills>", "Due <today>", "Urgent")
    assert text.startswith("🔥 <b>Rent &amp; &lt;bills&gt;</b>")
    assert "Due &lt;today&gt;" in text


def test_email_html_escapes_user_text():
    reminder = make_reminder(title="<script>", description="a & b", document_id="fin-1")
    html = render_email_html(reminder)
    assert "<script>" not in html
    assert "a &amp; b" in html
    assert "fin-1" in html
    assert email_subject(reminder) == "Reminder: <script>"


def test_whatsapp_message_priority_line():
    assert "Priority" not in format_whatsapp_message(make_reminder(priority="Low"))
    assert "⚠️ Priority: High" in format_whatsapp_message(make_reminder(priority="High"))


def test_reminder_list():
    contact = Contact(user_id="user-1", timezone="Asia/Kolkata")
    assert format_reminder_list([], contact) == "No scheduled reminders. 🎉"

    text = format_reminder_list(
        [make_reminder(id="a"), make_reminder(id="b", channel=("email", "whatsapp"))], contact
    )
    assert "Scheduled reminders (2)" in text
    assert "<code>b</code>" in text
    assert "email, whatsapp" in text


def test_settings_shows_push_off_without_chat():
    text = format_settings(Contact(user_id="user-1", email="a@example.com"))
    assert "Push: off" in text
    assert "a@example.com" in text
    assert "WhatsApp: not set" in text


def test_describe_error():
    assert describe_error(ValidationError("title is required")).endswith("title is required")
    assert describe_error(ReminderNotFound("x")) == "❌ Reminder not found."
    assert "already sent" in describe_error(InvalidTransition("x", "sent", "cancelled"))
    assert "Storage" in describe_error(StoreError("locked"))
    assert "Oops" in describe_error(RuntimeError("boom"))
