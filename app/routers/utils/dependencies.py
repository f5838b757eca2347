from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.orchestrator import Orchestrator
from app.db import get_db
from app.models.session import Session as ConversationSession
from app.schemas.events import ConversationKey
from app.services.session_service import SessionService


def get_orchestrator(request: Request) -> Orchestrator:
    """FastAPI dependency returning the process-wide orchestrator."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Orchestrator is not ready")
    return orchestrator


def get_conversation_key(conversation_key: str) -> str:
    """FastAPI dependency validating a channel:endpoint:user path parameter."""
    try:
        return str(ConversationKey.parse(conversation_key))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


def get_session_by_key(
    conversation_key: str = Depends(get_conversation_key),
    db: Session = Depends(get_db),
) -> ConversationSession:
    """FastAPI dependency to get a session by conversation key."""
    session = SessionService(db).get_session_by_key(conversation_key)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session
