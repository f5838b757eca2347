"""Pydantic schemas for channel delivery credentials."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


# Pydantic models for validation per credential type
class WhatsAppApiModel(BaseModel):
    """11za-style WhatsApp API fields."""

    auth_token: str
    origin: str


class TelegramBotModel(BaseModel):
    """Telegram bot token."""

    bot_token: str


class ChannelBindingCreate(BaseModel):
    """Request schema for binding a channel endpoint."""

    channel: str
    endpoint: str
    intent: Optional[str] = None
    system_prompt: Optional[str] = None
    credentials: Optional[dict[str, str]] = None
