"""Pydantic schemas for the session state snapshot and session API responses."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class Stage(str, Enum):
    INIT = "INIT"
    COLLECTING = "COLLECTING"
    CONFIRMING = "CONFIRMING"
    STOPPED = "STOPPED"


def derive_stage(
    subject: Optional[str], pending_fields: list[str], stopped: bool = False
) -> Stage:
    """Stage as a function of (subject, pending_fields) plus the STOPPED override."""
    if stopped:
        return Stage.STOPPED
    if subject is None:
        return Stage.INIT
    if pending_fields:
        return Stage.COLLECTING
    return Stage.CONFIRMING


class SessionState(BaseModel):
    """
    Immutable snapshot the state machine reads and returns.

    The ORM row is the durable copy; the orchestrator converts between them.
    """

    model_config = {"frozen": True}

    conversation_key: str
    stage: Stage = Stage.INIT
    subject: Optional[str] = None
    slots: dict[str, Any] = Field(default_factory=dict)
    pending_fields: list[str] = Field(default_factory=list)
    last_user_text: Optional[str] = None

    @property
    def is_stopped(self) -> bool:
        return self.stage == Stage.STOPPED

    def reset(self) -> "SessionState":
        return SessionState(
            conversation_key=self.conversation_key,
            last_user_text=self.last_user_text,
        )


# -----------------------------------------------------------------------------
# API schemas
# -----------------------------------------------------------------------------


class SessionRead(BaseModel):
    """Session for API responses."""

    id: UUID
    conversation_key: str
    channel: str
    endpoint: str
    user_ref: str
    stage: Stage
    subject: Optional[str] = None
    slots: dict[str, Any] = Field(default_factory=dict)
    pending_fields: list[str] = Field(default_factory=list)
    last_user_text: Optional[str] = None
    pending_reply: Optional[str] = None
    last_message_at: datetime
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
