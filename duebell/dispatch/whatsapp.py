"""WhatsApp delivery through the WhatsApp Business Cloud API."""

import logging

import httpx

from duebell.db.models import Contact, Reminder
from duebell.dispatch.formatters import format_whatsapp_message
from duebell.dispatch.gateway import Channel
from duebell.errors import TransportError
from duebell.utils.constants import CHANNEL_WHATSAPP

logger = logging.getLogger(__name__)

GRAPH_API_BASE_URL = "https://graph.facebook.com"
REQUEST_TIMEOUT = 10  # seconds


class WhatsAppCloudTransport:
    """Posts text messages from a verified business phone number."""

    def __init__(
        self,
        access_token: str,
        phone_number_id: str,
        api_version: str = "v20.0",
        client: httpx.AsyncClient | None = None,
    ):
        self.access_token = access_token
        self.phone_number_id = phone_number_id
        self.api_version = api_version
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(REQUEST_TIMEOUT))

    @property
    def url(self) -> str:
        return f"{GRAPH_API_BASE_URL}/{self.api_version}/{self.phone_number_id}/messages"

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def send(self, to: str, text: str) -> None:
        """Send a text message. Raises TransportError on any failure."""
        try:
            response = await self._client.post(
                self.url,
                headers={
                    "Authorization": f"Bearer {self.access_token}",
                    "Content-Type": "application/json",
                },
                json={
                    "messaging_product": "whatsapp",
                    "to": to,
                    "type": "text",
                    "text": {"body": text},
                },
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"WhatsApp API returned {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"WhatsApp request failed: {e}") from e

        logger.info(f"WhatsApp message sent to {to}")


class WhatsAppChannel(Channel):
    name = CHANNEL_WHATSAPP

    def __init__(self, transport: WhatsAppCloudTransport):
        self.transport = transport

    async def send(self, reminder: Reminder, contact: Contact | None) -> None:
        if contact is None or not contact.phone:
            raise TransportError(f"no WhatsApp number for user {reminder.user_id}")

        await self.transport.send(contact.phone, format_whatsapp_message(reminder, contact))
