"""
Command to handle Telegram webhook updates.

Validates the secret header, parses the update and runs one orchestration pass.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request

from app.config import get_settings
from app.core.orchestrator import Orchestrator
from app.schemas.events import Channel
from app.schemas.telegram import TelegramWebhookUpdate


class TelegramWebhookCommand:
    """
    Command to handle Telegram webhook updates.
    Validates X-Telegram-Bot-Api-Secret-Token, parses update, hands it to the orchestrator.
    """

    def __init__(self, orchestrator: Orchestrator) -> None:
        self.orchestrator = orchestrator
        self.settings = get_settings()
        self.logger = logging.getLogger(__name__)

    async def execute(
        self, request: Request, body: TelegramWebhookUpdate
    ) -> dict[str, Any]:
        """
        Execute the Telegram webhook: validate secret, parse body, orchestrate.

        Args:
            request: The incoming webhook request (headers for secret validation).
            body: Validated Telegram webhook update payload.

        Returns:
            dict: {"status": "ok", "duplicate": bool, "outcome": str}.

        Raises:
            HTTPException: 503 if Telegram not configured, 403 on invalid secret,
                400 on invalid Telegram update.
        """
        adapter = self.orchestrator.adapters.get(Channel.TELEGRAM)
        if adapter is None:
            raise HTTPException(
                status_code=503,
                detail="Telegram integration is not configured or disabled",
            )
        headers = dict(request.headers) if request.headers else {}
        if not adapter.verify_webhook(self.settings.telegram_webhook_secret, headers):
            raise HTTPException(status_code=403, detail="Invalid webhook secret")
        try:
            event = adapter.parse_webhook(body.model_dump(by_alias=True, exclude_none=True))
        except (ValueError, KeyError, TypeError) as e:
            self.logger.warning("Telegram webhook parse error: %s", e)
            raise HTTPException(
                status_code=400, detail="Invalid Telegram update"
            ) from e

        handled = await self.orchestrator.handle(event)
        return {
            "status": "ok",
            "duplicate": handled.duplicate,
            "outcome": handled.outcome.value,
        }
