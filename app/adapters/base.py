"""
Platform adapter interface.

Adapters encapsulate platform-specific logic: they turn a webhook payload into
a normalized InboundEvent and deliver reply text back to the user.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from app.schemas.events import ConversationKey, InboundEvent, OutboundSendResult


class BasePlatformAdapter(ABC):
    """Contract for platform adapters. New platforms implement this interface."""

    @abstractmethod
    def parse_webhook(self, raw_payload: dict[str, Any]) -> InboundEvent:
        """Parse raw webhook payload into a normalized inbound event. Raise ValueError if invalid."""
        ...

    @abstractmethod
    async def send(
        self,
        destination: ConversationKey,
        text: str,
        credentials: dict[str, Any],
    ) -> OutboundSendResult:
        """Send reply text to the user of a conversation. Never raises for provider errors."""
        ...

    async def resolve_media_url(self, media_ref: str) -> str:
        """Turn a media reference from the payload into a downloadable URL."""
        return media_ref

    def verify_webhook(
        self, secret: Optional[str], request_headers: Optional[dict[str, str]] = None
    ) -> bool:
        """
        Verify webhook request (e.g. secret token). Override if platform supports it.
        Return True if valid or verification not required; False to reject.
        """
        return True
