"""
Orchestrator: the single entry point for inbound events.

One pass per event, serialized per conversation key:
dedup insert -> credentials -> transcription -> state machine -> dispatch
-> persist session -> deliver -> record outbound and mark responded.
Collaborator failures map to outcomes; nothing escapes handle().
"""

from __future__ import annotations

import asyncio
from typing import (
    Any,
    AsyncIterator,
    Callable,
    ContextManager,
    Dict,
    Optional,
    Protocol,
)

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from app.adapters.base import BasePlatformAdapter
from app.config import Settings
from app.core.dispatch import DispatchPolicy
from app.core.errors import (
    ConfigurationMissingError,
    DeliveryError,
    DuplicateEventError,
    TranscriptionError,
)
from app.core.locks import KeyedLock
from app.core.retrieval import Embedder, RetrievalAssembler
from app.core.state_machine import SessionStateMachine
from app.infra.logging_config import get_logger
from app.models.session import Session
from app.schemas.events import (
    Channel,
    ConversationKey,
    EventKind,
    EventOrigin,
    HandledOutcome,
    InboundEvent,
    Outcome,
    Transcription,
)
from app.schemas.session import SessionState
from app.services.channel_binding_service import ChannelBindingService
from app.services.conversation_event_service import ConversationEventService
from app.services.session_service import SessionService

logger = get_logger("core.orchestrator")


class Transcriber(Protocol):
    async def transcribe(self, media_url: str) -> Transcription: ...


SessionFactory = Callable[[], ContextManager[DBSession]]


class Orchestrator:
    def __init__(
        self,
        session_factory: SessionFactory,
        state_machine: SessionStateMachine,
        policy: DispatchPolicy,
        embedder: Embedder,
        transcriber: Transcriber,
        adapters: Dict[Channel, BasePlatformAdapter],
        settings: Settings,
        locks: Optional[KeyedLock] = None,
    ) -> None:
        self.session_factory = session_factory
        self.state_machine = state_machine
        self.policy = policy
        self.embedder = embedder
        self.transcriber = transcriber
        self.adapters = adapters
        self.settings = settings
        self.locks = locks or KeyedLock()

    async def handle(self, event: InboundEvent) -> HandledOutcome:
        key = str(event.conversation_key)
        try:
            async with self.locks.hold(key):
                outcome = await self._handle(event)
        except Exception as e:
            logger.exception("Unexpected failure handling event %s", event.id)
            outcome = HandledOutcome(
                outcome=Outcome.FAILED,
                event_id=event.id,
                conversation_key=key,
                detail=repr(e),
            )
        logger.info(
            "Event %s on %s: %s", event.id, key, outcome.outcome.value
        )
        return outcome

    async def _handle(self, event: InboundEvent) -> HandledOutcome:
        destination = event.conversation_key
        key = str(destination)

        def result(outcome: Outcome, **kwargs: Any) -> HandledOutcome:
            return HandledOutcome(
                outcome=outcome, event_id=event.id, conversation_key=key, **kwargs
            )

        with self.session_factory() as db:
            events = ConversationEventService(db)
            try:
                events.record_inbound(event)
            except DuplicateEventError:
                return result(Outcome.DUPLICATE)

            if event.origin != EventOrigin.USER:
                return result(Outcome.IGNORED, detail="not user-originated")

            try:
                adapter, credentials = self._delivery_target(db, destination)
            except ConfigurationMissingError as e:
                logger.error("Cannot answer %s: %s", key, e)
                return result(Outcome.CONFIGURATION_MISSING, detail=str(e))

            text = event.raw_text
            if event.kind == EventKind.AUDIO:
                try:
                    transcription = await self._transcribe(adapter, event)
                except TranscriptionError as e:
                    logger.warning("Transcription failed for %s: %s", event.id, e)
                    return result(Outcome.TRANSCRIPTION_FAILED, detail=str(e))
                events.set_transcript(event.id, transcription.text)
                text = transcription.text

            text = (text or "").strip()
            if not text:
                return result(Outcome.IGNORED, detail="empty message")

            sessions = SessionService(db)
            row, _ = sessions.get_or_create_by_key(destination, for_update=True)
            state, action = self.state_machine.transition(sessions.to_state(row), text)

            context = None
            if self.policy.needs_context(action):
                context = await RetrievalAssembler(
                    db, self.embedder, self.settings
                ).assemble(text, destination, state, exclude_event_id=event.id)
            reply = await self.policy.decide(
                state,
                context,
                action,
                user_text=text,
                sender_name=event.sender_display_name,
            )

            # State is durable before anything leaves the process
            sessions.apply_state(row, state)
            if reply is None:
                return result(Outcome.SUPPRESSED, stage=state.stage.value)

            delivered = await self._deliver(
                db, adapter, credentials, row, reply.text, event.id
            )
            return result(
                Outcome.REPLIED if delivered else Outcome.DELIVERY_FAILED,
                stage=state.stage.value,
                reply_text=reply.text,
                delivered=delivered,
            )

    async def retry_delivery(self, conversation_key: str) -> HandledOutcome:
        """Re-send the reply stored on the session after a failed delivery."""
        destination = ConversationKey.parse(conversation_key)
        key = str(destination)
        async with self.locks.hold(key):
            with self.session_factory() as db:
                row = SessionService(db).get_session_by_key(key, for_update=True)
                if row is None or not row.pending_reply:
                    return HandledOutcome(
                        outcome=Outcome.NOTHING_PENDING, conversation_key=key
                    )
                event_id = row.pending_reply_event_id
                text = row.pending_reply
                try:
                    adapter, credentials = self._delivery_target(db, destination)
                except ConfigurationMissingError as e:
                    logger.error("Cannot retry delivery for %s: %s", key, e)
                    return HandledOutcome(
                        outcome=Outcome.CONFIGURATION_MISSING,
                        event_id=event_id,
                        conversation_key=key,
                        detail=str(e),
                    )
                delivered = await self._deliver(
                    db, adapter, credentials, row, text, event_id
                )
                return HandledOutcome(
                    outcome=Outcome.REPLIED if delivered else Outcome.DELIVERY_FAILED,
                    event_id=event_id,
                    conversation_key=key,
                    stage=row.stage,
                    reply_text=text,
                    delivered=delivered,
                )

    async def reset(self, conversation_key: str) -> Optional[SessionState]:
        """Explicit reset. Returns the new state, or None if the conversation has no session."""
        key = str(ConversationKey.parse(conversation_key))
        async with self.locks.hold(key):
            with self.session_factory() as db:
                sessions = SessionService(db)
                row = sessions.reset_session(key)
                if row is None:
                    return None
                logger.info("Session %s reset", key)
                return sessions.to_state(row)

    async def preview_stream(self, conversation_key: str, text: str) -> AsyncIterator[str]:
        """
        Stream the reply the conversation would get for text. Read-only: the
        session is not advanced and nothing is recorded or delivered.
        """
        destination = ConversationKey.parse(conversation_key)
        key = str(destination)
        with self.session_factory() as db:
            row = SessionService(db).get_session_by_key(key)
            state = (
                SessionService.to_state(row)
                if row is not None
                else SessionState(conversation_key=key)
            )
            state, action = self.state_machine.transition(state, text)
            context = None
            if self.policy.needs_context(action):
                context = await RetrievalAssembler(
                    db, self.embedder, self.settings
                ).assemble(text, destination, state)

        async for fragment in self.policy.stream(state, context, action, text):
            yield fragment

    def _delivery_target(
        self, db: DBSession, destination: ConversationKey
    ) -> tuple[BasePlatformAdapter, dict[str, Any]]:
        adapter = self.adapters.get(destination.channel)
        if adapter is None:
            raise ConfigurationMissingError(
                f"Channel {destination.channel.value} is not enabled"
            )
        credentials = ChannelBindingService(db, self.settings).resolve_credentials(
            destination.channel.value, destination.endpoint
        )
        return adapter, credentials

    async def _transcribe(
        self, adapter: BasePlatformAdapter, event: InboundEvent
    ) -> Transcription:
        if not event.media_ref:
            raise TranscriptionError("Voice event has no media")
        try:
            media_url = await adapter.resolve_media_url(event.media_ref)
            transcription = await asyncio.wait_for(
                self.transcriber.transcribe(media_url),
                timeout=self.settings.transcription_timeout_seconds,
            )
        except TranscriptionError:
            raise
        except asyncio.TimeoutError as e:
            raise TranscriptionError("Transcription timed out") from e
        except Exception as e:
            raise TranscriptionError(repr(e)) from e
        if not transcription.text or not transcription.text.strip():
            raise TranscriptionError("Transcription is empty")
        return transcription

    async def _send(
        self,
        adapter: BasePlatformAdapter,
        destination: ConversationKey,
        text: str,
        credentials: dict[str, Any],
    ) -> Optional[str]:
        """Deliver text; returns the platform message id. Raises DeliveryError."""
        try:
            sent = await asyncio.wait_for(
                adapter.send(destination, text, credentials),
                timeout=self.settings.delivery_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise DeliveryError("Delivery timed out") from e
        if not sent.success:
            raise DeliveryError(sent.error or "Delivery rejected")
        return sent.platform_message_id

    async def _deliver(
        self,
        db: DBSession,
        adapter: BasePlatformAdapter,
        credentials: dict[str, Any],
        row: Session,
        text: str,
        event_id: Optional[str],
    ) -> bool:
        destination = ConversationKey.parse(row.conversation_key)
        sessions = SessionService(db)
        events = ConversationEventService(db)
        try:
            message_id = await self._send(adapter, destination, text, credentials)
        except DeliveryError as e:
            logger.warning("Delivery to %s failed: %s", destination, e)
            sessions.set_pending_reply(row, text, event_id)
            db.commit()
            return False

        try:
            if event_id is not None:
                events.record_outbound(
                    conversation_key=row.conversation_key,
                    channel=destination.channel.value,
                    text=text,
                    reply_to_event_id=event_id,
                    platform_message_id=message_id,
                )
                events.mark_responded(event_id)
            sessions.set_pending_reply(row, None, None)
            db.commit()
        except SQLAlchemyError:
            # The user already has the reply; make sure it is never sent twice.
            db.rollback()
            logger.exception(
                "Recording the reply to %s failed after delivery", event_id
            )
            try:
                if event_id is not None:
                    events.mark_responded(event_id)
                sessions.set_pending_reply(row, None, None)
                db.commit()
            except SQLAlchemyError:
                db.rollback()
                logger.exception(
                    "Could not mark %s responded after delivery", event_id
                )
        return True
