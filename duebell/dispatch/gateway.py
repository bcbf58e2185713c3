"""Notification dispatch gateway - fans a reminder out to its channels."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Protocol

from duebell.db.models import Contact, DeliveryOutcome, DispatchResult, Reminder
from duebell.errors import ChannelError, DispatchTimeout, StoreError, Unsupported

logger = logging.getLogger(__name__)

DEFAULT_DISPATCH_TIMEOUT = 5.0  # seconds, per channel


class ContactDirectory(Protocol):
    async def get_contact(self, user_id: str) -> Contact | None: ...


class Channel(ABC):
    """One delivery mechanism. `send` raises ChannelError on failure."""

    name: str

    @abstractmethod
    async def send(self, reminder: Reminder, contact: Contact | None) -> None:
        ...

    async def prepare(self, contact: Contact | None) -> str | None:
        """Optional readiness check; returns a state string for logging."""
        return None


class NotificationGateway:
    """Deliver a reminder on several channels, best-effort per channel.

    Every requested channel is attempted, concurrently, and each attempt is
    bounded by `timeout`. Failures are reported in the returned
    DispatchResult and never raised.
    """

    def __init__(
        self,
        channels: Iterable[Channel],
        contacts: ContactDirectory,
        timeout: float = DEFAULT_DISPATCH_TIMEOUT,
    ):
        self.channels: Dict[str, Channel] = {c.name: c for c in channels}
        self.contacts = contacts
        self.timeout = timeout

    async def dispatch(
        self, reminder: Reminder, channels: Iterable[str] | None = None
    ) -> DispatchResult:
        """Attempt every requested channel and aggregate the outcomes."""
        requested = tuple(dict.fromkeys(reminder.channel if channels is None else channels))
        result = DispatchResult(reminder_id=reminder.id)

        try:
            contact = await self.contacts.get_contact(reminder.user_id)
        except StoreError as e:
            logger.error(f"Contact lookup failed for reminder {reminder.id}: {e}")
            result.outcomes = {name: DeliveryOutcome.failed(e) for name in requested}
            return result

        outcomes = await asyncio.gather(
            *(self._attempt(name, reminder, contact) for name in requested)
        )
        result.outcomes = dict(zip(requested, outcomes))
        return result

    async def prepare(self, user_id: str) -> Dict[str, str | None]:
        """Run each channel's readiness check for a user (e.g. push permission)."""
        contact = await self.contacts.get_contact(user_id)
        states = {}
        for name, channel in self.channels.items():
            try:
                states[name] = await channel.prepare(contact)
            except ChannelError as e:
                states[name] = type(e).__name__
        logger.info(f"Channel readiness for user {user_id}: {states}")
        return states

    async def _attempt(
        self, name: str, reminder: Reminder, contact: Contact | None
    ) -> DeliveryOutcome:
        channel = self.channels.get(name)
        try:
            if channel is None:
                raise Unsupported(f"no {name} channel configured")
            await asyncio.wait_for(channel.send(reminder, contact), timeout=self.timeout)
        except asyncio.TimeoutError:
            error = DispatchTimeout(f"{name} did not finish within {self.timeout}s")
            logger.warning(f"Reminder {reminder.id}: {error}")
            return DeliveryOutcome.failed(error)
        except ChannelError as e:
            logger.warning(f"Reminder {reminder.id}: {name} failed ({type(e).__name__}: {e})")
            return DeliveryOutcome.failed(e)
        except Exception as e:
            logger.exception(f"Reminder {reminder.id}: unexpected error on {name}")
            return DeliveryOutcome.failed(e)

        logger.debug(f"Reminder {reminder.id}: delivered via {name}")
        return DeliveryOutcome.ok()
