"""Command handlers."""

import logging
import re
from dataclasses import replace
from html import escape
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from telegram import Update
from telegram.ext import ContextTypes

from duebell.bot.formatters import (
    format_help_message,
    format_reminder_list,
    format_settings,
    format_welcome_message,
)
from duebell.db.models import Contact, Reminder, Schedule
from duebell.db.repository import ReminderStore
from duebell.dispatch.gateway import NotificationGateway
from duebell.engine.coordinator import CoordinatorGroup
from duebell.engine.lifecycle import LifecycleController
from duebell.utils.constants import STATUS_SCHEDULED
from duebell.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_RE = re.compile(r"^\+?\d{7,15}$")


async def _current_contact(update: Update, context: ContextTypes.DEFAULT_TYPE) -> Contact | None:
    """Contact linked to this chat, or None after telling the user to /start."""
    store: ReminderStore = context.bot_data["store"]
    contact = await store.get_contact_by_chat(update.effective_chat.id)  # type: ignore[union-attr]
    if contact is None and update.message:
        await update.message.reply_text("Please /start the bot first.")
    return contact


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start [user_id] - link this chat to a dashboard user.

    The dashboard opens t.me/<bot>?start=<user_id>, which arrives here as
    the command argument. Without one the Telegram user id is used.
    """
    if not update.effective_user or not update.effective_chat or not update.message:
        return

    store: ReminderStore = context.bot_data["store"]
    coordinators: CoordinatorGroup = context.bot_data["coordinators"]

    user_id = context.args[0] if context.args else str(update.effective_user.id)
    chat_id = update.effective_chat.id

    contact = await store.get_contact(user_id)
    if contact is None:
        contact = Contact(user_id=user_id, telegram_chat_id=chat_id)
        logger.info(f"New contact registered: {user_id}")
    elif contact.telegram_chat_id is not None and contact.telegram_chat_id != chat_id:
        logger.warning(
            f"Chat {chat_id} tried to link user {user_id}, "
            f"already linked to chat {contact.telegram_chat_id}"
        )
        await update.message.reply_text(
            "That account is already linked to another chat. "
            "Send /start from that chat, or ask for it to be unlinked."
        )
        return
    else:
        contact = replace(contact, telegram_chat_id=chat_id, push_enabled=True)
    await store.upsert_contact(contact)

    await coordinators.ensure(user_id)
    await update.message.reply_html(format_welcome_message(user_id))


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help command."""
    if not update.message:
        return

    await update.message.reply_html(format_help_message())


async def list_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /list command - show scheduled reminders."""
    if not update.message:
        return

    contact = await _current_contact(update, context)
    if not contact:
        return

    store: ReminderStore = context.bot_data["store"]
    reminders = await store.list_by_user(contact.user_id, status=STATUS_SCHEDULED)
    await update.message.reply_html(format_reminder_list(reminders, contact))


async def cancel_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /cancel <id> command."""
    if not update.message:
        return

    if not context.args or len(context.args) != 1:
        await update.message.reply_text("Usage: /cancel <reminder_id>")
        return

    contact = await _current_contact(update, context)
    if not contact:
        return

    store: ReminderStore = context.bot_data["store"]
    controller: LifecycleController = context.bot_data["controller"]

    reminder = await store.get(context.args[0])
    if not reminder or reminder.user_id != contact.user_id:
        await update.message.reply_text("Reminder not found.")
        return

    if await controller.cancel(reminder.id):
        await update.message.reply_html(f"✗ Cancelled: <b>{escape(reminder.title)}</b>")
    else:
        await update.message.reply_text("That reminder was already cancelled.")


async def mute_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /mute - withdraw push permission."""
    await _set_push(update, context, enabled=False)


async def unmute_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /unmute - grant push permission again."""
    await _set_push(update, context, enabled=True)


async def _set_push(update: Update, context: ContextTypes.DEFAULT_TYPE, enabled: bool) -> None:
    if not update.message:
        return

    contact = await _current_contact(update, context)
    if not contact:
        return

    store: ReminderStore = context.bot_data["store"]
    await store.upsert_contact(replace(contact, push_enabled=enabled))

    if enabled:
        await update.message.reply_text("🔔 Push notifications are on.")
    else:
        await update.message.reply_text(
            "🔕 Push notifications are off. Email and WhatsApp still apply."
        )


async def email_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /email <address|off>."""
    if not update.message:
        return

    if not context.args or len(context.args) != 1:
        await update.message.reply_text("Usage: /email <address> or /email off")
        return

    value = context.args[0].strip()
    if value.lower() != "off" and not EMAIL_RE.match(value):
        await update.message.reply_text("That doesn't look like an email address.")
        return

    contact = await _current_contact(update, context)
    if not contact:
        return

    store: ReminderStore = context.bot_data["store"]
    email = None if value.lower() == "off" else value
    await store.upsert_contact(replace(contact, email=email))
    await update.message.reply_text(f"✉️ Email set to {email}" if email else "✉️ Email cleared")


async def phone_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /phone <number|off>."""
    if not update.message:
        return

    if not context.args or len(context.args) != 1:
        await update.message.reply_text("Usage: /phone <number> or /phone off")
        return

    value = context.args[0].strip().replace(" ", "").replace("-", "")
    if value.lower() != "off" and not PHONE_RE.match(value):
        await update.message.reply_text(
            "Use the international format, e.g. +919876543210"
        )
        return

    contact = await _current_contact(update, context)
    if not contact:
        return

    store: ReminderStore = context.bot_data["store"]
    # WhatsApp Cloud API expects digits only
    phone = None if value.lower() == "off" else value.lstrip("+")
    await store.upsert_contact(replace(contact, phone=phone))
    await update.message.reply_text(
        f"💬 WhatsApp number set to +{phone}" if phone else "💬 WhatsApp number cleared"
    )


async def timezone_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /timezone <tz>."""
    if not update.message:
        return

    if not context.args or len(context.args) != 1:
        await update.message.reply_text("Usage: /timezone <tz>  (e.g., Asia/Kolkata)")
        return

    tz = context.args[0]
    try:
        ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        await update.message.reply_text(f"Unknown timezone: {tz}")
        return

    contact = await _current_contact(update, context)
    if not contact:
        return

    store: ReminderStore = context.bot_data["store"]
    await store.upsert_contact(replace(contact, timezone=tz))
    await update.message.reply_text(f"🌍 Timezone set to {tz}")


async def settings_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /settings."""
    if not update.message:
        return

    contact = await _current_contact(update, context)
    if not contact:
        return

    await update.message.reply_html(format_settings(contact))


async def check_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /check - run a poll for this user right now."""
    if not update.message:
        return

    contact = await _current_contact(update, context)
    if not contact:
        return

    coordinators: CoordinatorGroup = context.bot_data["coordinators"]
    coordinator = await coordinators.ensure(contact.user_id)
    report = await coordinator.poll_once()

    if report is None:
        await update.message.reply_text("💾 Couldn't reach the reminder store. Try again soon.")
    elif not report.results and not report.errors:
        await update.message.reply_text("Nothing due right now.")
    else:
        await update.message.reply_text(
            f"Processed {len(report.results)} reminder(s), "
            f"{len(report.errors)} error(s)."
        )


async def test_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /test - send a test notification on every channel of this user."""
    if not update.message:
        return

    contact = await _current_contact(update, context)
    if not contact:
        return

    gateway: NotificationGateway = context.bot_data["controller"].gateway
    reminder = Reminder(
        id="test",
        user_id=contact.user_id,
        title="Hello",
        description="This is a test notification!",
        schedule=Schedule(utcnow()),
        channel=tuple(gateway.channels),
        status=STATUS_SCHEDULED,
    )
    result = await gateway.dispatch(reminder)

    lines = [f"{'✓' if o.delivered else '✗'} {c}: {o}" for c, o in result.outcomes.items()]
    await update.message.reply_text("\n".join(lines))
