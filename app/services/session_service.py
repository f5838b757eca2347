"""Session store: get_or_create by conversation key, snapshot load/save, reset."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from app.models.session import Session
from app.schemas.events import ConversationKey
from app.schemas.session import SessionState, Stage


class SessionService:
    def __init__(self, db: DBSession) -> None:
        self.db = db

    def get_session_by_key(
        self, conversation_key: str, for_update: bool = False
    ) -> Optional[Session]:
        """Fetch a session. for_update row-locks it until the transaction ends (PostgreSQL)."""
        q = self.db.query(Session).filter(Session.conversation_key == conversation_key)
        if for_update:
            q = q.with_for_update()
        return q.first()

    def get_or_create_by_key(
        self, key: ConversationKey, for_update: bool = False
    ) -> Tuple[Session, bool]:
        """
        Get existing session by key or create one. Returns (session, created).
        A concurrent creator on another worker wins the unique key; we then read its row.
        With for_update the returned row is locked, so passes on other workers wait.
        """
        session = self.get_session_by_key(str(key), for_update=for_update)
        if session is not None:
            return session, False
        session = Session(
            conversation_key=str(key),
            channel=key.channel.value,
            endpoint=key.endpoint,
            user_ref=key.user,
            stage=Stage.INIT.value,
            slots={},
            pending_fields=[],
        )
        self.db.add(session)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.get_session_by_key(str(key), for_update=for_update)
            if existing is None:
                raise
            return existing, False
        if for_update:
            return self.get_session_by_key(str(key), for_update=True), True
        self.db.refresh(session)
        return session, True

    @staticmethod
    def to_state(session: Session) -> SessionState:
        return SessionState(
            conversation_key=session.conversation_key,
            stage=Stage(session.stage),
            subject=session.subject,
            slots=dict(session.slots or {}),
            pending_fields=list(session.pending_fields or []),
            last_user_text=session.last_user_text,
        )

    def apply_state(self, session: Session, state: SessionState) -> Session:
        """Copy a snapshot onto the row and commit."""
        session.stage = state.stage.value
        session.subject = state.subject
        # New containers so the JSON columns are seen as changed
        session.slots = dict(state.slots)
        session.pending_fields = list(state.pending_fields)
        session.last_user_text = state.last_user_text
        session.last_message_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(session)
        return session

    def set_pending_reply(
        self, session: Session, text: Optional[str], event_id: Optional[str]
    ) -> None:
        """Remember (or clear, with None) a reply that still has to be delivered."""
        session.pending_reply = text
        session.pending_reply_event_id = event_id
        self.db.flush()

    def reset_session(self, conversation_key: str) -> Optional[Session]:
        """Logical reset: back to INIT with no subject, slots or pending fields. History is kept."""
        session = self.get_session_by_key(conversation_key)
        if session is None:
            return None
        state = self.to_state(session).reset()
        session.pending_reply = None
        session.pending_reply_event_id = None
        return self.apply_state(session, state)
