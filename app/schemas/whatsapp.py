"""
WhatsApp (11za-style) webhook payload schemas.

Matches the JSON the provider POSTs for each message event.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

USER_MESSAGE_EVENT = "MoMessage"
VOICE_MEDIA_TYPES = ("voice", "audio")


class WhatsAppMedia(BaseModel):
    url: Optional[str] = None
    type: Optional[str] = None
    mime_type: Optional[str] = Field(default=None, alias="mimeType")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class WhatsAppContent(BaseModel):
    content_type: str = Field(default="text", alias="contentType")
    text: Optional[str] = None
    media: Optional[WhatsAppMedia] = None

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class WhatsAppSender(BaseModel):
    sender_name: Optional[str] = Field(default=None, alias="senderName")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class WhatsAppWebhookPayload(BaseModel):
    """Root webhook payload. from is the user number, to is the business number."""

    message_id: str = Field(alias="messageId", min_length=1)
    from_: str = Field(alias="from", min_length=1)
    to: str = Field(min_length=1)
    event: str = USER_MESSAGE_EVENT
    received_at: Optional[datetime] = Field(default=None, alias="receivedAt")
    content: WhatsAppContent = Field(default_factory=WhatsAppContent)
    whatsapp: Optional[WhatsAppSender] = None

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @property
    def is_user_message(self) -> bool:
        return self.event == USER_MESSAGE_EVENT

    @property
    def voice_url(self) -> Optional[str]:
        media = self.content.media
        if self.content.content_type != "media" or media is None or not media.url:
            return None
        if (media.type or "").lower() not in VOICE_MEDIA_TYPES:
            return None
        return media.url

    def raw(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
