"""Webhook command handlers."""

from app.commands.webhooks.telegram_command import TelegramWebhookCommand
from app.commands.webhooks.whatsapp_command import WhatsAppWebhookCommand

__all__ = ["TelegramWebhookCommand", "WhatsAppWebhookCommand"]
