"""
Telegram platform adapter.

Uses python-telegram-bot for parsing webhook payloads, resolving voice files
and sending messages. The conversation endpoint is the configured account id;
the user is the chat id.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from telegram import Bot, Update
from telegram.error import TelegramError

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

logger = get_logger("adapters.telegram")


class TelegramAdapter(BasePlatformAdapter):
    """Telegram adapter: parse webhook updates, send messages via Bot API."""

    TELEGRAM_SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"

    def __init__(
        self,
        bot_token: str,
        webhook_secret: Optional[str] = None,
        account_id: str = "default",
    ) -> None:
        self._bot_token = bot_token
        self._webhook_secret = webhook_secret
        self._account_id = account_id
        self._bot: Optional[Bot] = None

    def _get_bot(self) -> Bot:
        if self._bot is None:
            self._bot = Bot(token=self._bot_token)
        return self._bot

    def verify_webhook(
        self, secret: Optional[str], request_headers: Optional[dict[str, str]] = None
    ) -> bool:
        """Validate X-Telegram-Bot-Api-Secret-Token if webhook secret is configured."""
        expected = secret or self._webhook_secret
        if not expected:
            return True
        request_headers = request_headers or {}
        header_lower = self.TELEGRAM_SECRET_HEADER.lower()
        actual = None
        for key, value in request_headers.items():
            if key.lower() == header_lower:
                actual = value
                break
        return actual == expected

    def parse_webhook(self, raw_payload: dict[str, Any]) -> InboundEvent:
        """Parse Telegram webhook payload into a normalized inbound event."""
        update = Update.de_json(raw_payload, self._get_bot())
        if update is None:
            raise ValueError("Invalid Telegram update: de_json returned None")
        if not update.message:
            raise ValueError("Telegram update has no message")
        msg = update.message
        from_user = msg.from_user
        chat_id = (
            str(msg.chat_id)
            if msg.chat_id
            else (str(from_user.id) if from_user else "")
        )
        if not chat_id:
            raise ValueError("Telegram update has no chat")
        ts = msg.date
        if ts:
            ts_utc = ts.replace(tzinfo=timezone.utc) if ts.tzinfo is None else ts
        else:
            ts_utc = datetime.now(timezone.utc)

        sender = None
        if from_user:
            sender = " ".join(p for p in (from_user.first_name, from_user.last_name) if p)

        return InboundEvent(
            # message_id is only unique per chat
            id=f"{chat_id}:{msg.message_id}",
            conversation_key=ConversationKey(
                channel=Channel.TELEGRAM, endpoint=self._account_id, user=chat_id
            ),
            occurred_at=ts_utc,
            kind=EventKind.AUDIO if msg.voice else EventKind.TEXT,
            origin=(
                EventOrigin.ECHO
                if from_user is not None and from_user.is_bot
                else EventOrigin.USER
            ),
            raw_text=msg.text,
            media_ref=msg.voice.file_id if msg.voice else None,
            sender_display_name=sender or None,
            raw=raw_payload,
        )

    async def resolve_media_url(self, media_ref: str) -> str:
        """Turn a voice file_id into a download URL via getFile."""
        tg_file = await self._get_bot().get_file(media_ref)
        if not tg_file.file_path:
            raise ValueError(f"Telegram file {media_ref} has no path")
        if tg_file.file_path.startswith("http"):
            return tg_file.file_path
        return f"https://api.telegram.org/file/bot{self._bot_token}/{tg_file.file_path}"

    async def send(
        self,
        destination: ConversationKey,
        text: str,
        credentials: dict[str, Any],
    ) -> OutboundSendResult:
        """Send message via Telegram Bot API. chat_id is the conversation user."""
        if destination.channel != Channel.TELEGRAM:
            return OutboundSendResult(success=False, error="wrong channel")
        try:
            sent = await self._get_bot().send_message(chat_id=destination.user, text=text)
        except TelegramError as e:
            logger.warning("Telegram send failed for %s: %s", destination, e)
            return OutboundSendResult(success=False, error=str(e))
        return OutboundSendResult(
            success=True,
            platform_message_id=(
                str(sent.message_id) if sent and sent.message_id else None
            ),
        )
