"""Configuration management from environment variables."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration loaded from environment variables."""

    # Telegram (push notifications and bot commands)
    TELEGRAM_BOT_TOKEN: str = os.getenv("TELEGRAM_BOT_TOKEN", "")

    # Database
    DATABASE_PATH: Path = Path(os.getenv("DATABASE_PATH", "./data/duebell.db"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Engine
    POLL_INTERVAL: float = float(os.getenv("POLL_INTERVAL", "30"))
    DISPATCH_TIMEOUT: float = float(os.getenv("DISPATCH_TIMEOUT", "5"))
    RETIRE_ON_ATTEMPT: bool = _flag("RETIRE_ON_ATTEMPT", "true")

    # Email (SMTP)
    SMTP_HOST: str = os.getenv("SMTP_HOST", "")
    SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME: str = os.getenv("SMTP_USERNAME", "")
    SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
    SMTP_USE_TLS: bool = _flag("SMTP_USE_TLS", "true")
    EMAIL_FROM: str = os.getenv("EMAIL_FROM", "")

    # WhatsApp Business Cloud API
    WHATSAPP_ACCESS_TOKEN: str = os.getenv("WHATSAPP_ACCESS_TOKEN", "")
    WHATSAPP_PHONE_NUMBER_ID: str = os.getenv("WHATSAPP_PHONE_NUMBER_ID", "")
    WHATSAPP_API_VERSION: str = os.getenv("WHATSAPP_API_VERSION", "v20.0")

    @classmethod
    def email_enabled(cls) -> bool:
        return bool(cls.SMTP_HOST)

    @classmethod
    def whatsapp_enabled(cls) -> bool:
        return bool(cls.WHATSAPP_ACCESS_TOKEN and cls.WHATSAPP_PHONE_NUMBER_ID)

    @classmethod
    def validate(cls) -> None:
        """Validate required configuration."""
        if not cls.TELEGRAM_BOT_TOKEN:
            raise ValueError("TELEGRAM_BOT_TOKEN environment variable is required")

        if cls.POLL_INTERVAL <= 0:
            raise ValueError("POLL_INTERVAL must be positive")

        if cls.DISPATCH_TIMEOUT <= 0:
            raise ValueError("DISPATCH_TIMEOUT must be positive")

        if cls.SMTP_HOST and not (cls.EMAIL_FROM or cls.SMTP_USERNAME):
            raise ValueError("EMAIL_FROM or SMTP_USERNAME required when SMTP_HOST is set")

        if bool(cls.WHATSAPP_ACCESS_TOKEN) != bool(cls.WHATSAPP_PHONE_NUMBER_ID):
            raise ValueError(
                "WHATSAPP_ACCESS_TOKEN and WHATSAPP_PHONE_NUMBER_ID must be set together"
            )

        # Ensure database directory exists
        cls.DATABASE_PATH.parent.mkdir(parents=True, exist_ok=True)
