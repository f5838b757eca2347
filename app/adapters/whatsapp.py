"""
WhatsApp platform adapter for an 11za-style HTTP API.

Parses the provider's webhook JSON and sends text replies over httpx.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from app.adapters.base import BasePlatformAdapter
from app.infra.logging_config import get_logger
from app.schemas.events import (
    Channel,
    ConversationKey,
    EventKind,
    EventOrigin,
    InboundEvent,
    OutboundSendResult,
)
from app.schemas.whatsapp import WhatsAppWebhookPayload

logger = get_logger("adapters.whatsapp")


class WhatsAppAdapter(BasePlatformAdapter):
    """WhatsApp adapter: endpoint is the business number, user is the sender number."""

    def __init__(
        self,
        api_url: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_url = api_url
        self._timeout = timeout
        self._transport = transport

    def parse_webhook(self, raw_payload: dict[str, Any]) -> InboundEvent:
        """Parse WhatsApp webhook payload into a normalized inbound event."""
        try:
            payload = WhatsAppWebhookPayload.model_validate(raw_payload)
        except ValidationError as e:
            raise ValueError(f"Invalid WhatsApp payload: {e}") from e

        voice_url = payload.voice_url
        sender = payload.whatsapp.sender_name if payload.whatsapp else None
        return InboundEvent(
            id=payload.message_id,
            conversation_key=ConversationKey(
                channel=Channel.WHATSAPP, endpoint=payload.to, user=payload.from_
            ),
            occurred_at=payload.received_at or datetime.now(timezone.utc),
            kind=EventKind.AUDIO if voice_url else EventKind.TEXT,
            origin=EventOrigin.USER if payload.is_user_message else EventOrigin.ECHO,
            raw_text=payload.content.text,
            media_ref=voice_url,
            sender_display_name=sender,
            raw=payload.raw(),
        )

    async def send(
        self,
        destination: ConversationKey,
        text: str,
        credentials: dict[str, Any],
    ) -> OutboundSendResult:
        """POST the reply to the provider. Failures are returned, not raised."""
        body = {
            "sendto": destination.user,
            "authToken": credentials.get("auth_token"),
            "originWebsite": credentials.get("origin"),
            "contentType": "text",
            "text": text,
        }
        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            try:
                response = await client.post(self._api_url, json=body)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.warning(
                    "WhatsApp send failed for %s: HTTP %s",
                    destination,
                    e.response.status_code,
                )
                return OutboundSendResult(
                    success=False, error=f"HTTP {e.response.status_code}"
                )
            except httpx.HTTPError as e:
                logger.warning("WhatsApp send failed for %s: %s", destination, e)
                return OutboundSendResult(success=False, error=str(e))

        message_id = None
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            message_id = data.get("messageId") or data.get("id")
        return OutboundSendResult(
            success=True,
            platform_message_id=str(message_id) if message_id else None,
        )
