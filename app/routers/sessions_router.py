"""Sessions API: get, reset, retry delivery of a pending reply."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from app.core.orchestrator import Orchestrator
from app.models.session import Session as ConversationSession
from app.routers.utils.dependencies import (
    get_conversation_key,
    get_orchestrator,
    get_session_by_key,
)
from app.schemas.session import SessionRead

sessions_router = APIRouter(prefix="/sessions", tags=["Session"])


@sessions_router.get("/{conversation_key}", response_model=SessionRead)
def get_session(
    session: ConversationSession = Depends(get_session_by_key),
) -> SessionRead:
    """Get a session by conversation key (channel:endpoint:user)."""
    return SessionRead.model_validate(session)


@sessions_router.post("/{conversation_key}/reset", response_model=dict[str, Any])
async def reset_session(
    conversation_key: str = Depends(get_conversation_key),
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Reset a session to INIT. Message history is kept."""
    state = await orchestrator.reset(conversation_key)
    if state is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return {"data": state.model_dump(mode="json")}


@sessions_router.post(
    "/{conversation_key}/retry-delivery", response_model=dict[str, Any]
)
async def retry_delivery(
    conversation_key: str = Depends(get_conversation_key),
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Re-send a reply whose delivery failed earlier."""
    handled = await orchestrator.retry_delivery(conversation_key)
    return {"data": handled.model_dump(mode="json")}
