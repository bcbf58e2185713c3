"""Push notifications, delivered through a Telegram bot."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Protocol

from telegram import Bot
from telegram.error import Forbidden, TelegramError

from duebell.bot.keyboards import acknowledge_keyboard
from duebell.db.models import Contact, Reminder
from duebell.dispatch.formatters import format_push_message, push_body
from duebell.dispatch.gateway import Channel
from duebell.errors import PermissionDenied, TransportError, Unsupported
from duebell.utils.constants import CHANNEL_PUSH, INTERACTIVE_PRIORITIES

logger = logging.getLogger(__name__)

Permission = Literal["granted", "denied", "unsupported"]


@dataclass
class PushPayload:
    """What a push notification shows. `tag` is the reminder id."""

    title: str
    body: str
    tag: str
    require_interaction: bool
    data: Dict[str, Any] = field(default_factory=dict)
    priority: str = "Medium"


def build_payload(reminder: Reminder) -> PushPayload:
    """Build the push payload for a reminder."""
    return PushPayload(
        title=reminder.title,
        body=push_body(reminder),
        tag=reminder.id,
        require_interaction=reminder.priority in INTERACTIVE_PRIORITIES,
        data={
            "reminderId": reminder.id,
            "type": reminder.type,
            "documentId": reminder.document_id,
            "priority": reminder.priority,
        },
        priority=reminder.priority,
    )


class PushProvider(Protocol):
    async def request_permission(self, contact: Contact | None) -> Permission: ...

    async def show(self, contact: Contact, payload: PushPayload) -> None: ...


class TelegramPushProvider:
    """Shows notifications as Telegram messages.

    A user grants permission by starting the bot (which records their chat)
    and can withdraw it with /mute. Interactive notifications carry an
    acknowledge button that stays until the user presses it.
    """

    def __init__(self, bot: Bot | None):
        self.bot = bot

    async def request_permission(self, contact: Contact | None) -> Permission:
        if self.bot is None:
            return "unsupported"
        if contact is None or contact.telegram_chat_id is None or not contact.push_enabled:
            return "denied"
        return "granted"

    async def show(self, contact: Contact, payload: PushPayload) -> None:
        try:
            await self.bot.send_message(  # type: ignore[union-attr]
                chat_id=contact.telegram_chat_id,
                text=format_push_message(payload.title, payload.body, payload.priority),
                parse_mode="HTML",
                reply_markup=acknowledge_keyboard(payload.tag)
                if payload.require_interaction
                else None,
            )
        except Forbidden as e:
            # User blocked the bot
            raise PermissionDenied(f"chat {contact.telegram_chat_id} blocked the bot") from e
        except TelegramError as e:
            raise TransportError(f"Telegram error: {e}") from e


class PushChannel(Channel):
    name = CHANNEL_PUSH

    def __init__(self, provider: PushProvider):
        self.provider = provider

    async def prepare(self, contact: Contact | None) -> str | None:
        return await self.provider.request_permission(contact)

    async def send(self, reminder: Reminder, contact: Contact | None) -> None:
        permission = await self.provider.request_permission(contact)
        if permission == "unsupported":
            raise Unsupported("no notification capability")
        if permission != "granted":
            raise PermissionDenied(f"user {reminder.user_id} has not granted push permission")

        await self.provider.show(contact, build_payload(reminder))  # type: ignore[arg-type]
