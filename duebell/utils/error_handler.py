"""Global error handler for the bot."""

import logging
import traceback

from telegram import Update
from telegram.ext import ContextTypes

from duebell.errors import InvalidTransition, ReminderNotFound, StoreError, ValidationError

logger = logging.getLogger(__name__)


def describe_error(error: BaseException | None) -> str:
    """User-facing text for an error raised while handling an update."""
    if isinstance(error, ValidationError):
        return f"❌ Invalid reminder: {error}"
    if isinstance(error, ReminderNotFound):
        return "❌ Reminder not found."
    if isinstance(error, InvalidTransition):
        return f"❌ Can't do that: the reminder is already {error.current}."
    if isinstance(error, StoreError):
        return "💾 Storage is unavailable right now. Please try again in a moment."
    if "Timeout" in str(error):
        return "⏱️ Request timed out.\n\nPlease try again in a moment."
    if "Network" in str(error):
        return "🌐 Network error.\n\nPlease check your connection and try again."
    return (
        "😅 Oops! Something went wrong.\n\n"
        "The error has been logged. Please try again or use /help for assistance."
    )


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle errors in the bot."""
    logger.error("Exception while handling an update:", exc_info=context.error)

    error = context.error
    if error is not None:
        tb_string = "".join(traceback.format_exception(None, error, error.__traceback__))
        logger.debug(f"Traceback:\n{tb_string}")

    if isinstance(update, Update) and update.effective_message:
        try:
            await update.effective_message.reply_text(describe_error(error))
        except Exception as e:
            logger.error(f"Failed to send error message to user: {e}")
