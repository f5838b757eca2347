"""
ConversationEvent model: the event store for inbound and outbound chat messages.

Insert-only. event_id carries the provider message id and is unique, so a
redelivered webhook fails at the storage layer instead of being processed twice.
Only responded/responded_at and the one-time transcript are written after insert.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, DateTime, Index, String, Text, Uuid

from app.db import Base
from app.models.column_types import JSONType
from app.models.mixins import TimestampMixin


class ConversationEvent(Base, TimestampMixin):
    """Single message in a conversation (inbound or outbound)."""

    __tablename__ = "conversation_events"

    __table_args__ = (
        Index(
            "ix_conversation_events_conversation_created",
            "conversation_key",
            "created_at",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    event_id = Column(String(255), unique=True, nullable=False)
    conversation_key = Column(String(512), nullable=False)
    channel = Column(String(32), nullable=False)
    direction = Column(String(16), nullable=False)  # 'inbound' | 'outbound'
    content_kind = Column(String(16), nullable=False, default="text")
    text = Column(Text, nullable=True)
    transcript = Column(Text, nullable=True)
    media_url = Column(Text, nullable=True)
    sender_name = Column(String(255), nullable=True)
    responded = Column(Boolean, nullable=False, default=False)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    platform_message_id = Column(String(255), nullable=True)
    metadata_ = Column("metadata", JSONType, nullable=True, default=dict)

    @property
    def content(self) -> str:
        """Text as the conversation saw it: typed text or the voice transcript."""
        return (self.text or self.transcript or "").strip()
