"""Session model: one row per conversation key holding the state machine snapshot."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, String, Text, Uuid

from app.db import Base
from app.models.column_types import JSONType
from app.models.mixins import TimestampMixin, utcnow


class Session(Base, TimestampMixin):
    """Per-conversation state. Never hard-deleted; resets clear subject, slots and pending fields."""

    __tablename__ = "sessions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    conversation_key = Column(String(512), unique=True, nullable=False, index=True)
    channel = Column(String(32), nullable=False)
    endpoint = Column(String(255), nullable=False)
    user_ref = Column(String(255), nullable=False)
    stage = Column(String(16), nullable=False, default="INIT")
    subject = Column(String(64), nullable=True)
    slots = Column(JSONType, nullable=False, default=dict)
    pending_fields = Column(JSONType, nullable=False, default=list)
    last_user_text = Column(Text, nullable=True)
    pending_reply = Column(Text, nullable=True)
    pending_reply_event_id = Column(String(255), nullable=True)
    last_message_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
