"""
Webhook routes for inbound chat platform updates.

Platforms POST raw updates here; each one becomes a single orchestration pass.
A re-delivered event is answered 200 with duplicate=true.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request

from app.commands.webhooks import TelegramWebhookCommand, WhatsAppWebhookCommand
from app.core.orchestrator import Orchestrator
from app.routers.utils.dependencies import get_orchestrator
from app.schemas.telegram import TelegramWebhookUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/whatsapp")
async def whatsapp_webhook(
    request: Request,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Receive WhatsApp message events. Invalid payloads get 400."""
    try:
        body = await request.json()
    except ValueError as e:
        logger.warning("WhatsApp webhook invalid JSON: %s", e)
        raise HTTPException(status_code=400, detail="Invalid JSON body") from e
    return await WhatsAppWebhookCommand(orchestrator).execute(body)


@router.post("/telegram")
async def telegram_webhook(
    request: Request,
    body: TelegramWebhookUpdate,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """
    Receive Telegram webhook updates.
    Validate X-Telegram-Bot-Api-Secret-Token if TELEGRAM_WEBHOOK_SECRET is set.
    """
    return await TelegramWebhookCommand(orchestrator).execute(request, body)
