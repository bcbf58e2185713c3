"""Callback query handlers for inline buttons."""

import logging

from telegram import Update
from telegram.ext import ContextTypes

logger = logging.getLogger(__name__)


async def handle_ack_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, reminder_id: str
) -> None:
    """Dismiss an interactive notification by removing its button."""
    query = update.callback_query
    if not query:
        return

    if query.message:
        await query.edit_message_reply_markup(reply_markup=None)
    await query.answer("✓ Acknowledged")
    logger.info(f"Reminder {reminder_id} acknowledged")


async def callback_router(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Route callback queries to handlers."""
    query = update.callback_query
    if not query or not query.data:
        return

    action, _, reminder_id = query.data.partition(":")

    if action == "ack":
        await handle_ack_callback(update, context, reminder_id)
    else:
        logger.warning(f"Unknown callback action: {query.data}")
        await query.answer()
