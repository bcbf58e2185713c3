"""Main entry point for the duebell reminder service."""

import logging
import sys

from telegram.ext import Application, CallbackQueryHandler, CommandHandler

from duebell.bot.callbacks import callback_router
from duebell.bot.handlers import (
    cancel_command,
    check_command,
    email_command,
    help_command,
    list_command,
    mute_command,
    phone_command,
    settings_command,
    start_command,
    test_command,
    timezone_command,
    unmute_command,
)
from duebell.config import Config
from duebell.db.migrations import run_migrations
from duebell.db.repository import ReminderStore
from duebell.dispatch.gateway import Channel, NotificationGateway
from duebell.dispatch.push import PushChannel, TelegramPushProvider
from duebell.dispatch.smtp import EmailChannel, SmtpEmailTransport
from duebell.dispatch.whatsapp import WhatsAppChannel, WhatsAppCloudTransport
from duebell.engine.coordinator import CoordinatorGroup
from duebell.engine.lifecycle import LifecycleController
from duebell.utils.error_handler import error_handler

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
    stream=sys.stdout,
)
# httpx logs every request at INFO
logging.getLogger("httpx").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def build_channels(application: Application) -> list[Channel]:
    """Create a channel for every configured transport."""
    channels: list[Channel] = [PushChannel(TelegramPushProvider(application.bot))]

    if Config.email_enabled():
        channels.append(
            EmailChannel(
                SmtpEmailTransport(
                    host=Config.SMTP_HOST,
                    port=Config.SMTP_PORT,
                    username=Config.SMTP_USERNAME or None,
                    password=Config.SMTP_PASSWORD or None,
                    sender=Config.EMAIL_FROM or None,
                    use_tls=Config.SMTP_USE_TLS,
                )
            )
        )
    else:
        logger.warning("SMTP_HOST not set, email reminders will fail as Unsupported")

    if Config.whatsapp_enabled():
        channels.append(
            WhatsAppChannel(
                WhatsAppCloudTransport(
                    access_token=Config.WHATSAPP_ACCESS_TOKEN,
                    phone_number_id=Config.WHATSAPP_PHONE_NUMBER_ID,
                    api_version=Config.WHATSAPP_API_VERSION,
                )
            )
        )
    else:
        logger.warning("WhatsApp not configured, WhatsApp reminders will fail as Unsupported")

    return channels


async def post_init(application: Application) -> None:
    """Initialize resources after application is created."""
    await run_migrations(Config.DATABASE_PATH)

    store = ReminderStore(Config.DATABASE_PATH)
    await store.connect()

    channels = build_channels(application)
    gateway = NotificationGateway(channels, store, timeout=Config.DISPATCH_TIMEOUT)
    controller = LifecycleController(
        store, gateway, retire_on_attempt=Config.RETIRE_ON_ATTEMPT
    )
    coordinators = CoordinatorGroup(store, controller, poll_interval=Config.POLL_INTERVAL)

    application.bot_data["store"] = store
    application.bot_data["channels"] = channels
    application.bot_data["controller"] = controller
    application.bot_data["coordinators"] = coordinators

    # Resume delivery for everyone who linked a chat before the restart
    for contact in await store.list_contacts():
        await coordinators.ensure(contact.user_id)

    logger.info(
        f"duebell initialized ({len(coordinators.coordinators)} user(s), "
        f"retire on attempt: {Config.RETIRE_ON_ATTEMPT})"
    )


async def post_shutdown(application: Application) -> None:
    """Cleanup resources on shutdown."""
    coordinators: CoordinatorGroup | None = application.bot_data.get("coordinators")
    if coordinators:
        await coordinators.stop_all()

    for channel in application.bot_data.get("channels", []):
        if isinstance(channel, WhatsAppChannel):
            await channel.transport.close()

    store: ReminderStore | None = application.bot_data.get("store")
    if store:
        await store.close()

    logger.info("duebell shut down")


def main() -> None:
    """Start the service."""
    try:
        Config.validate()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    application = (
        Application.builder()
        .token(Config.TELEGRAM_BOT_TOKEN)
        .post_init(post_init)
        .post_shutdown(post_shutdown)
        .build()
    )

    application.add_handler(CommandHandler("start", start_command))
    application.add_handler(CommandHandler("help", help_command))
    application.add_handler(CommandHandler("list", list_command))
    application.add_handler(CommandHandler("cancel", cancel_command))
    application.add_handler(CommandHandler("mute", mute_command))
    application.add_handler(CommandHandler("unmute", unmute_command))
    application.add_handler(CommandHandler("email", email_command))
    application.add_handler(CommandHandler("phone", phone_command))
    application.add_handler(CommandHandler("timezone", timezone_command))
    application.add_handler(CommandHandler("settings", settings_command))
    application.add_handler(CommandHandler("check", check_command))
    application.add_handler(CommandHandler("test", test_command))

    application.add_handler(CallbackQueryHandler(callback_router))

    application.add_error_handler(error_handler)

    logger.info("Starting duebell...")
    application.run_polling(allowed_updates=["message", "callback_query"])


if __name__ == "__main__":
    main()
