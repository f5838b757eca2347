"""Tests for TelegramAdapter."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from telegram.error import TelegramError

from app.adapters.telegram import TelegramAdapter
from app.schemas.events import (
    Channel,
    ConversationKey,
    EventKind,
    EventOrigin,
    OutboundSendResult,
)


def minimal_telegram_update():
    """Minimal valid Telegram webhook update (message with text)."""
    return {
        "update_id": 123,
        "message": {
            "message_id": 456,
            "from": {
                "id": 789,
                "is_bot": False,
                "first_name": "Test",
                "last_name": "User",
                "language_code": "en",
            },
            "chat": {
                "id": 789,
                "type": "private",
                "first_name": "Test",
                "last_name": "User",
            },
            "date": 1609459200,  # Unix timestamp
            "text": "hello",
        },
    }


# Token format: digits:rest (e.g. 123456:ABC). Used only for parse tests; no real API calls.
FAKE_TOKEN = "123456:AAHdqTcvCH1vGWJxfSeofSAs0K5P"


@pytest.fixture
def telegram_adapter():
    return TelegramAdapter(bot_token=FAKE_TOKEN, webhook_secret=None)


def test_verify_webhook_no_secret(telegram_adapter):
    assert telegram_adapter.verify_webhook(None, {}) is True
    assert (
        telegram_adapter.verify_webhook(None, {"X-Telegram-Bot-Api-Secret-Token": "x"})
        is True
    )


def test_verify_webhook_with_secret():
    adapter = TelegramAdapter(bot_token=FAKE_TOKEN, webhook_secret="secret")
    assert (
        adapter.verify_webhook("secret", {"X-Telegram-Bot-Api-Secret-Token": "secret"})
        is True
    )
    assert (
        adapter.verify_webhook("secret", {"X-Telegram-Bot-Api-Secret-Token": "wrong"})
        is False
    )


def test_verify_webhook_case_insensitive_header():
    """Headers are case-insensitive; Starlette/FastAPI lowercases them."""
    adapter = TelegramAdapter(bot_token=FAKE_TOKEN, webhook_secret="my-secret")
    assert (
        adapter.verify_webhook(
            "my-secret", {"x-telegram-bot-api-secret-token": "my-secret"}
        )
        is True
    )
    assert (
        adapter.verify_webhook(
            "my-secret", {"X-TELEGRAM-BOT-API-SECRET-TOKEN": "my-secret"}
        )
        is True
    )


def test_parse_webhook(telegram_adapter):
    payload = minimal_telegram_update()
    event = telegram_adapter.parse_webhook(payload)
    assert event.id == "789:456"
    assert event.conversation_key == ConversationKey(
        channel=Channel.TELEGRAM, endpoint="default", user="789"
    )
    assert event.kind == EventKind.TEXT
    assert event.origin == EventOrigin.USER
    assert event.raw_text == "hello"
    assert event.sender_display_name == "Test User"
    assert event.occurred_at == datetime(2021, 1, 1, tzinfo=timezone.utc)
    assert event.raw == payload


def test_parse_webhook_voice(telegram_adapter):
    payload = minimal_telegram_update()
    del payload["message"]["text"]
    payload["message"]["voice"] = {
        "file_id": "voice-file-1",
        "file_unique_id": "u1",
        "duration": 3,
    }
    event = telegram_adapter.parse_webhook(payload)
    assert event.kind == EventKind.AUDIO
    assert event.media_ref == "voice-file-1"
    assert event.raw_text is None


def test_parse_webhook_bot_message_is_echo(telegram_adapter):
    payload = minimal_telegram_update()
    payload["message"]["from"]["is_bot"] = True
    assert telegram_adapter.parse_webhook(payload).origin == EventOrigin.ECHO


def test_parse_webhook_uses_account_id():
    adapter = TelegramAdapter(bot_token=FAKE_TOKEN, account_id="support-bot")
    event = adapter.parse_webhook(minimal_telegram_update())
    assert str(event.conversation_key) == "telegram:support-bot:789"


def test_parse_webhook_no_message_raises(telegram_adapter):
    payload = {"update_id": 123}
    with pytest.raises(ValueError, match="no message"):
        telegram_adapter.parse_webhook(payload)


@pytest.mark.asyncio
async def test_send_returns_result():
    """Send returns OutboundSendResult; mocks Bot API to avoid real calls."""
    adapter = TelegramAdapter(bot_token=FAKE_TOKEN)
    destination = ConversationKey(channel=Channel.TELEGRAM, endpoint="default", user="123")
    mock_msg = MagicMock()
    mock_msg.message_id = 42
    mock_bot = MagicMock()
    mock_bot.send_message = AsyncMock(return_value=mock_msg)

    with patch.object(adapter, "_get_bot", return_value=mock_bot):
        result = await adapter.send(destination, "hi", {})

    assert isinstance(result, OutboundSendResult)
    assert result.success is True
    assert result.platform_message_id == "42"
    mock_bot.send_message.assert_awaited_once_with(chat_id="123", text="hi")


@pytest.mark.asyncio
async def test_send_failure_is_returned():
    adapter = TelegramAdapter(bot_token=FAKE_TOKEN)
    destination = ConversationKey(channel=Channel.TELEGRAM, endpoint="default", user="123")
    mock_bot = MagicMock()
    mock_bot.send_message = AsyncMock(side_effect=TelegramError("Forbidden: bot was blocked"))

    with patch.object(adapter, "_get_bot", return_value=mock_bot):
        result = await adapter.send(destination, "hi", {})

    assert result.success is False
    assert "blocked" in result.error


@pytest.mark.asyncio
async def test_resolve_media_url():
    adapter = TelegramAdapter(bot_token=FAKE_TOKEN)
    tg_file = MagicMock()
    tg_file.file_path = "voice/file_1.oga"
    mock_bot = MagicMock()
    mock_bot.get_file = AsyncMock(return_value=tg_file)

    with patch.object(adapter, "_get_bot", return_value=mock_bot):
        url = await adapter.resolve_media_url("voice-file-1")

    assert url == f"https://api.telegram.org/file/bot{FAKE_TOKEN}/voice/file_1.oga"
