"""Chat preview: stream the reply a conversation would get, without side effects."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from app.core.orchestrator import Orchestrator
from app.routers.utils.dependencies import get_orchestrator
from app.schemas.events import ConversationKey

router = APIRouter(prefix="/chat", tags=["chat"])


class ChatStreamRequest(BaseModel):
    conversation_key: str
    message: str = Field(min_length=1)


@router.post("/stream")
async def chat_stream(
    body: ChatStreamRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    """Plain-text chunked stream; the response ends when generation ends."""
    try:
        key = str(ConversationKey.parse(body.conversation_key))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return StreamingResponse(
        orchestrator.preview_stream(key, body.message),
        media_type="text/plain; charset=utf-8",
    )
