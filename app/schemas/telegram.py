"""
Telegram webhook payload schemas.

Matches the structure Telegram sends to webhook endpoints (message updates).
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class TelegramUser(BaseModel):
    """Telegram user (message.from)."""

    id: int
    is_bot: bool
    first_name: str
    last_name: Optional[str] = None
    language_code: Optional[str] = None


class TelegramChat(BaseModel):
    """Telegram chat (message.chat)."""

    id: int
    type: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class TelegramVoice(BaseModel):
    """Telegram voice note (message.voice)."""

    file_id: str
    file_unique_id: Optional[str] = None
    duration: Optional[int] = None


class TelegramMessage(BaseModel):
    """Telegram message (update.message)."""

    message_id: int
    from_: Optional[TelegramUser] = Field(default=None, alias="from")
    chat: TelegramChat
    date: int
    text: Optional[str] = None
    voice: Optional[TelegramVoice] = None

    model_config = {"populate_by_name": True}


class TelegramWebhookUpdate(BaseModel):
    """Telegram webhook update payload (root object)."""

    update_id: int
    message: Optional[TelegramMessage] = None
