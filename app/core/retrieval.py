"""
Retrieval assembler: utterance -> ConversationContext.

Combines the bounded message history, the top-K knowledge chunks visible to
the conversation's endpoint, and the channel persona. Embedding failures
degrade to an empty context; they never fail the pass.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from sqlalchemy.orm import Session

from app.config import Settings
from app.constants.default_system_prompt import DEFAULT_REPLY_LANGUAGE, DefaultSystemPrompt
from app.infra.logging_config import get_logger
from app.schemas.events import ConversationKey, RetrievalMatch
from app.schemas.session import SessionState
from app.services.channel_binding_service import ChannelBindingService
from app.services.conversation_event_service import ConversationEventService
from app.services.knowledge_service import KnowledgeService

logger = get_logger("core.retrieval")


class Embedder(Protocol):
    async def embed(self, text: str) -> List[float]: ...


_DEVANAGARI = re.compile(r"[\u0900-\u097F]")
_GUJARATI = re.compile(r"[\u0A80-\u0AFF]")
_HINGLISH_MARKERS = frozenset(
    """
    hai hain kya kab kaise kitna kitne kitni nahi nahin mujhe humein hum aap
    aapka aapki chahiye karna karni karo kar ho tha thi mein mera meri apna
    log logo baje kal aaj parso subah shaam raat kuch bhi toh accha acha theek
    haan ji bhai yaar wala wali
    """.split()
)
_WORD = re.compile(r"[a-z']+")


def detect_language(text: Optional[str]) -> str:
    """One of hinglish, english, hindi, gujarati. Script first, then Roman-Hindi markers."""
    if not text or not text.strip():
        return DEFAULT_REPLY_LANGUAGE
    if _GUJARATI.search(text):
        return "gujarati"
    if _DEVANAGARI.search(text):
        return "hindi"
    words = _WORD.findall(text.lower())
    if not words:
        return DEFAULT_REPLY_LANGUAGE
    if any(w in _HINGLISH_MARKERS for w in words):
        return "hinglish"
    return "english"


@dataclass
class ConversationContext:
    """Everything the dispatch policy needs for one generated reply."""

    history: List[dict[str, str]] = field(default_factory=list)
    context_block: str = ""
    matches: List[RetrievalMatch] = field(default_factory=list)
    session: Optional[SessionState] = None
    no_knowledge: bool = True
    has_prior_reply: bool = False
    language: str = DEFAULT_REPLY_LANGUAGE
    system_prompt: str = DefaultSystemPrompt.CONTENT


class RetrievalAssembler:
    def __init__(
        self,
        db: Session,
        embedder: Embedder,
        settings: Settings,
    ) -> None:
        self.db = db
        self.embedder = embedder
        self.settings = settings
        self.events = ConversationEventService(db)
        self.knowledge = KnowledgeService(db)
        self.bindings = ChannelBindingService(db, settings)

    async def assemble(
        self,
        utterance_text: str,
        conversation_key: ConversationKey,
        session: Optional[SessionState] = None,
        exclude_event_id: Optional[str] = None,
    ) -> ConversationContext:
        key = str(conversation_key)
        channel = conversation_key.channel.value
        matches = await self._retrieve(utterance_text, channel, conversation_key.endpoint)
        history = [
            {
                "role": "user" if row.direction == "inbound" else "assistant",
                "content": row.content,
            }
            for row in self.events.get_recent_messages(
                key,
                limit=self.settings.history_window,
                exclude_event_id=exclude_event_id,
            )
            if row.content
        ]
        persona = self.bindings.get_system_prompt(channel, conversation_key.endpoint)
        return ConversationContext(
            history=history,
            context_block="\n\n".join(m.chunk_text for m in matches),
            matches=matches,
            session=session,
            no_knowledge=not matches,
            has_prior_reply=self.events.has_delivered_reply(key),
            language=detect_language(utterance_text),
            system_prompt=persona or DefaultSystemPrompt.CONTENT,
        )

    async def _retrieve(
        self, utterance_text: str, channel: str, endpoint: str
    ) -> List[RetrievalMatch]:
        scope = self.knowledge.resolve_scope(channel, endpoint)
        if not scope:
            return []
        try:
            vector = await asyncio.wait_for(
                self.embedder.embed(utterance_text),
                timeout=self.settings.embedding_timeout_seconds,
            )
        except Exception as e:
            logger.warning(
                "Embedding failed for %s:%s, answering without knowledge: %r",
                channel,
                endpoint,
                e,
            )
            return []
        return self.knowledge.query(vector, scope, k=self.settings.retrieval_top_k)
