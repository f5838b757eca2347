"""
Normalized event contracts for the orchestrator.

Channel adapters convert platform payloads into InboundEvent; the orchestrator
answers every event with a HandledOutcome. Independent of any platform wire format.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Channel(str, Enum):
    """Supported chat channels."""

    WHATSAPP = "whatsapp"
    TELEGRAM = "telegram"


class EventKind(str, Enum):
    TEXT = "text"
    AUDIO = "audio"


class EventOrigin(str, Enum):
    """USER for messages typed/spoken by the user; ECHO for delivery receipts and our own echoes."""

    USER = "user"
    ECHO = "echo"


class ConversationKey(BaseModel):
    """Channel + business endpoint + user. Serialized as channel:endpoint:user."""

    model_config = ConfigDict(frozen=True)

    channel: Channel
    endpoint: str
    user: str

    def __str__(self) -> str:
        return f"{self.channel.value}:{self.endpoint}:{self.user}"

    @classmethod
    def parse(cls, value: str) -> "ConversationKey":
        parts = value.split(":", 2)
        if len(parts) != 3 or not all(parts):
            raise ValueError(f"Invalid conversation key: {value!r}")
        return cls(channel=Channel(parts[0]), endpoint=parts[1], user=parts[2])


class InboundEvent(BaseModel):
    """One received message, immutable. id is the provider-assigned message id."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    conversation_key: ConversationKey
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    kind: EventKind = EventKind.TEXT
    origin: EventOrigin = EventOrigin.USER
    raw_text: Optional[str] = None
    media_ref: Optional[str] = None
    sender_display_name: Optional[str] = None
    raw: dict[str, Any] = Field(default_factory=dict)


class OutboundSendResult(BaseModel):
    """Result of sending an outbound message (success + optional message_id)."""

    success: bool
    platform_message_id: Optional[str] = None
    error: Optional[str] = None


class Transcription(BaseModel):
    text: str
    language: Optional[str] = None


class RetrievalMatch(BaseModel):
    chunk_text: str
    score: float
    source_id: str


class Outcome(str, Enum):
    REPLIED = "replied"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    SUPPRESSED = "suppressed"
    TRANSCRIPTION_FAILED = "transcription_failed"
    DELIVERY_FAILED = "delivery_failed"
    CONFIGURATION_MISSING = "configuration_missing"
    NOTHING_PENDING = "nothing_pending"
    FAILED = "failed"


class HandledOutcome(BaseModel):
    """What one orchestration pass did."""

    outcome: Outcome
    event_id: Optional[str] = None
    conversation_key: str
    stage: Optional[str] = None
    reply_text: Optional[str] = None
    delivered: bool = False
    detail: Optional[str] = None

    @property
    def duplicate(self) -> bool:
        return self.outcome == Outcome.DUPLICATE
