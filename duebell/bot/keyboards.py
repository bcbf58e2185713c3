"""Inline keyboard builders."""

from telegram import InlineKeyboardButton, InlineKeyboardMarkup


def acknowledge_keyboard(reminder_id: str) -> InlineKeyboardMarkup:
    """Keyboard for interactive notifications: stays until acknowledged."""
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton("✓ Got it", callback_data=f"ack:{reminder_id}")]]
    )
