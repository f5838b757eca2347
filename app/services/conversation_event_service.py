"""
Service for persisting conversation events (inbound/outbound).

Events are insert-only. The unique event_id makes the insert the idempotency
check for the whole pipeline: a second insert of the same id raises
DuplicateEventError and nothing else happens.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import DuplicateEventError
from app.models.conversation_event import ConversationEvent
from app.schemas.events import InboundEvent


class ConversationEventService:
    """Create and read conversation events. Only responded/transcript change after insert."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def record_inbound(self, event: InboundEvent) -> ConversationEvent:
        """Persist an inbound event. Raises DuplicateEventError if its id is already stored."""
        row = ConversationEvent(
            event_id=event.id,
            conversation_key=str(event.conversation_key),
            channel=event.conversation_key.channel.value,
            direction="inbound",
            content_kind=event.kind.value,
            text=(event.raw_text or "").strip() or None,
            media_url=event.media_ref,
            sender_name=event.sender_display_name,
            responded=False,
            metadata_={
                "origin": event.origin.value,
                "occurred_at": event.occurred_at.isoformat(),
                "raw": event.raw,
            },
        )
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateEventError(event.id) from e
        self.db.refresh(row)
        return row

    def record_outbound(
        self,
        conversation_key: str,
        channel: str,
        text: str,
        reply_to_event_id: str,
        platform_message_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> ConversationEvent:
        """Persist a delivered reply. Its event_id is derived from the inbound it answers."""
        row = ConversationEvent(
            event_id=f"reply:{reply_to_event_id}",
            conversation_key=conversation_key,
            channel=channel,
            direction="outbound",
            content_kind="text",
            text=text,
            responded=True,
            platform_message_id=platform_message_id,
            metadata_={"reply_to": reply_to_event_id, **(metadata or {})},
        )
        self.db.add(row)
        self.db.flush()
        return row

    def mark_responded(self, event_id: str) -> bool:
        """Set the responded flag on an inbound event. Returns False if not found."""
        row = self.get_by_event_id(event_id)
        if row is None:
            return False
        row.responded = True
        row.responded_at = datetime.now(timezone.utc)
        self.db.flush()
        return True

    def set_transcript(self, event_id: str, transcript: str) -> None:
        """Store the transcript of a voice event. Written once."""
        row = self.get_by_event_id(event_id)
        if row is None or row.transcript:
            return
        row.transcript = transcript
        self.db.commit()

    def get_by_event_id(self, event_id: str) -> Optional[ConversationEvent]:
        """Fetch a single conversation event by provider event id."""
        return (
            self.db.query(ConversationEvent)
            .filter(ConversationEvent.event_id == event_id)
            .first()
        )

    def count_events(self, event_id: str) -> int:
        return (
            self.db.query(ConversationEvent)
            .filter(ConversationEvent.event_id == event_id)
            .count()
        )

    def get_recent_messages(
        self,
        conversation_key: str,
        limit: int = 10,
        exclude_event_id: Optional[str] = None,
    ) -> List[ConversationEvent]:
        """Last `limit` messages of a conversation with content, oldest first."""
        if limit <= 0:
            return []
        q = self.db.query(ConversationEvent).filter(
            ConversationEvent.conversation_key == conversation_key
        )
        if exclude_event_id is not None:
            q = q.filter(ConversationEvent.event_id != exclude_event_id)
        rows = (
            q.filter(
                or_(
                    ConversationEvent.text.isnot(None),
                    ConversationEvent.transcript.isnot(None),
                )
            )
            .order_by(ConversationEvent.created_at.desc())
            .limit(limit)
            .all()
        )
        return list(reversed(rows))

    def get_conversation_events(
        self,
        conversation_key: str,
        skip: int = 0,
        limit: int = 100,
    ) -> List[ConversationEvent]:
        """All events of a conversation, ordered by created_at."""
        return (
            self.db.query(ConversationEvent)
            .filter(ConversationEvent.conversation_key == conversation_key)
            .order_by(ConversationEvent.created_at.asc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def has_delivered_reply(self, conversation_key: str) -> bool:
        """True once any outbound reply was delivered in this conversation."""
        return (
            self.db.query(ConversationEvent.id)
            .filter(
                ConversationEvent.conversation_key == conversation_key,
                ConversationEvent.direction == "outbound",
            )
            .first()
            is not None
        )
