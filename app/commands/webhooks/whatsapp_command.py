"""
Command to handle WhatsApp webhook events.

Parses the provider payload into an InboundEvent and hands it to the
orchestrator. Duplicates and non-user events are acknowledged, never errors.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException

from app.core.orchestrator import Orchestrator
from app.schemas.events import Channel


class WhatsAppWebhookCommand:
    """Validate the payload, run one orchestration pass, report the outcome."""

    def __init__(self, orchestrator: Orchestrator) -> None:
        self.orchestrator = orchestrator
        self.logger = logging.getLogger(__name__)

    async def execute(self, body: Any) -> dict[str, Any]:
        """
        Execute the WhatsApp webhook.

        Returns:
            dict: {"status": "ok", "duplicate": bool, "outcome": str}.

        Raises:
            HTTPException: 503 if WhatsApp is disabled, 400 on invalid payload.
        """
        adapter = self.orchestrator.adapters.get(Channel.WHATSAPP)
        if adapter is None:
            raise HTTPException(
                status_code=503,
                detail="WhatsApp integration is not configured or disabled",
            )
        if not isinstance(body, dict):
            raise HTTPException(status_code=400, detail="Body must be a JSON object")
        try:
            event = adapter.parse_webhook(body)
        except ValueError as e:
            self.logger.warning("WhatsApp webhook parse error: %s", e)
            raise HTTPException(status_code=400, detail="Invalid WhatsApp payload") from e

        handled = await self.orchestrator.handle(event)
        return {
            "status": "ok",
            "duplicate": handled.duplicate,
            "outcome": handled.outcome.value,
        }
