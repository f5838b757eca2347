"""Credential types for channel delivery."""

from enum import StrEnum


class CredentialType(StrEnum):
    """Supported credential types, one per delivery channel."""

    WHATSAPP_API = "whatsapp_api"
    TELEGRAM_BOT = "telegram_bot"
