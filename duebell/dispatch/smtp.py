"""Email delivery over SMTP."""

import logging
from email.message import EmailMessage

import aiosmtplib

from duebell.db.models import Contact, Reminder
from duebell.dispatch.formatters import email_subject, render_email_html, render_email_text
from duebell.dispatch.gateway import Channel
from duebell.errors import TransportError
from duebell.utils.constants import CHANNEL_EMAIL

logger = logging.getLogger(__name__)


class SmtpEmailTransport:
    """Sends mail through an SMTP relay (e.g. Gmail with an app password)."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        sender: str | None = None,
        use_tls: bool = True,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender or username
        self.use_tls = use_tls
        self.timeout = timeout

    def build_message(self, to: str, subject: str, html: str, text: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text)
        message.add_alternative(html, subtype="html")
        return message

    async def send(self, to: str, subject: str, html: str, text: str) -> None:
        """Send one message. Raises TransportError on any failure."""
        message = self.build_message(to, subject, html, text)
        try:
            await aiosmtplib.send(
                message,
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                start_tls=self.use_tls,
                timeout=self.timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            raise TransportError(f"SMTP delivery to {to} failed: {e}") from e

        logger.info(f"Email sent to {to}: {subject}")


class EmailChannel(Channel):
    name = CHANNEL_EMAIL

    def __init__(self, transport: SmtpEmailTransport):
        self.transport = transport

    async def send(self, reminder: Reminder, contact: Contact | None) -> None:
        if contact is None or not contact.email:
            raise TransportError(f"no email address for user {reminder.user_id}")

        await self.transport.send(
            contact.email,
            email_subject(reminder),
            render_email_html(reminder, contact),
            render_email_text(reminder, contact),
        )
