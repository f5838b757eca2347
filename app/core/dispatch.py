"""
Dispatch policy: turns a RequiredAction into the reply text to deliver.

Canned text is sent verbatim. Generated replies get one generation call under
a timeout; any failure, empty output or leaked internal wording is replaced by
the fallback sentence in the user's language.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional, Protocol

from app.config import Settings
from app.constants.default_system_prompt import (
    DEFAULT_REPLY_LANGUAGE,
    FALLBACK_REPLIES,
    INTERNAL_VOCABULARY,
    ReplyPolicy,
)
from app.constants.domain import DomainConfig
from app.core.retrieval import ConversationContext
from app.core.state_machine import (
    GenerateReply,
    ReplyMode,
    RequiredAction,
    SendCanned,
    Suppress,
    field_labels,
)
from app.infra.logging_config import get_logger
from app.schemas.session import SessionState

logger = get_logger("core.dispatch")

NO_INFORMATION = "NO_INFORMATION_AVAILABLE"

SOURCE_CANNED = "canned"
SOURCE_GENERATED = "generated"
SOURCE_FALLBACK = "fallback"


class TextGenerator(Protocol):
    async def complete(
        self, system_instruction: str, history: List[dict[str, str]], user_text: str
    ) -> str: ...

    def stream(
        self, system_instruction: str, history: List[dict[str, str]], user_text: str
    ) -> AsyncIterator[str]: ...


@dataclass(frozen=True)
class Reply:
    text: str
    source: str
    greeted: bool = False


_NAME_CHARS = re.compile(r"[^\w\s]|_")


def clean_display_name(name: Optional[str]) -> str:
    """Keep letters, digits and whitespace only."""
    if not name:
        return ""
    return " ".join(_NAME_CHARS.sub("", name).split())


def fallback_text(language: Optional[str]) -> str:
    return FALLBACK_REPLIES.get(language or "", FALLBACK_REPLIES[DEFAULT_REPLY_LANGUAGE])


def leaks_internal_vocabulary(text: str) -> bool:
    lowered = text.lower()
    return any(word in lowered for word in INTERNAL_VOCABULARY)


class DispatchPolicy:
    """Decides and produces the reply for one turn."""

    def __init__(
        self,
        llm: TextGenerator,
        domain: DomainConfig,
        settings: Settings,
    ) -> None:
        self.llm = llm
        self.domain = domain
        self.settings = settings

    def needs_context(self, action: RequiredAction) -> bool:
        return isinstance(action, GenerateReply)

    def _no_knowledge_reply(self, context: ConversationContext) -> Optional[Reply]:
        """The fixed reply used instead of generation when canned mode finds no knowledge."""
        if context.no_knowledge and self.settings.no_knowledge_mode == "canned":
            return Reply(text=fallback_text(context.language), source=SOURCE_CANNED)
        return None

    async def decide(
        self,
        session: SessionState,
        context: Optional[ConversationContext],
        action: RequiredAction,
        user_text: str = "",
        sender_name: Optional[str] = None,
    ) -> Optional[Reply]:
        """None means stay silent."""
        if isinstance(action, Suppress):
            return None
        if isinstance(action, SendCanned):
            return Reply(text=action.text, source=SOURCE_CANNED)

        context = context or ConversationContext(session=session)
        canned = self._no_knowledge_reply(context)
        if canned is not None:
            return canned

        instruction = self.build_instruction(session, context, action)
        try:
            output = await asyncio.wait_for(
                self.llm.complete(instruction, context.history, user_text),
                timeout=self.settings.generation_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Generation timed out for %s", session.conversation_key)
            return Reply(text=fallback_text(context.language), source=SOURCE_FALLBACK)
        except Exception as e:
            logger.warning(
                "Generation failed for %s: %r", session.conversation_key, e
            )
            return Reply(text=fallback_text(context.language), source=SOURCE_FALLBACK)

        text = (output or "").strip()
        if not text:
            return Reply(text=fallback_text(context.language), source=SOURCE_FALLBACK)
        if leaks_internal_vocabulary(text):
            logger.warning(
                "Generated reply for %s mentioned internal wording; using fallback",
                session.conversation_key,
            )
            return Reply(text=fallback_text(context.language), source=SOURCE_FALLBACK)

        name = clean_display_name(sender_name)
        if self.settings.greeting_enabled and name and not context.has_prior_reply:
            return Reply(text=f"Hi {name} 😊\n{text}", source=SOURCE_GENERATED, greeted=True)
        return Reply(text=text, source=SOURCE_GENERATED)

    async def stream(
        self,
        session: SessionState,
        context: Optional[ConversationContext],
        action: RequiredAction,
        user_text: str,
    ) -> AsyncIterator[str]:
        """
        Stream the reply decide() would give. Canned and no-knowledge replies are
        yielded whole; generation is bounded by the generation timeout as a whole
        and falls back to the fixed sentence if nothing was produced.
        """
        if isinstance(action, Suppress):
            return
        if isinstance(action, SendCanned):
            yield action.text
            return

        context = context or ConversationContext(session=session)
        canned = self._no_knowledge_reply(context)
        if canned is not None:
            yield canned.text
            return

        instruction = self.build_instruction(session, context, action)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.settings.generation_timeout_seconds
        fragments = self.llm.stream(instruction, context.history, user_text).__aiter__()
        produced = False
        try:
            while True:
                try:
                    fragment = await asyncio.wait_for(
                        fragments.__anext__(), timeout=max(deadline - loop.time(), 0)
                    )
                except StopAsyncIteration:
                    break
                produced = True
                yield fragment
        except asyncio.TimeoutError:
            logger.warning(
                "Streaming generation timed out for %s", session.conversation_key
            )
        except Exception as e:
            logger.warning(
                "Streaming generation failed for %s: %r", session.conversation_key, e
            )
        finally:
            aclose = getattr(fragments, "aclose", None)
            if aclose is not None:
                await aclose()
        if not produced:
            yield fallback_text(context.language)

    def build_instruction(
        self,
        session: SessionState,
        context: ConversationContext,
        action: GenerateReply,
    ) -> str:
        """Persona, behaviour rules, slot guidance and the INFORMATION section."""
        parts = [
            context.system_prompt.strip(),
            ReplyPolicy.CONTENT.format(fallback=fallback_text(context.language)).strip(),
        ]
        guidance = self._collection_guidance(session, action)
        if guidance:
            parts.append(guidance)
        information = context.context_block.strip() or NO_INFORMATION
        parts.append(f"INFORMATION:\n{information}")
        return "\n\n".join(parts)

    def _collection_guidance(self, session: SessionState, action: GenerateReply) -> str:
        if action.mode == ReplyMode.FREE:
            return ""
        subject = self.domain.subject(session.subject) if session.subject else None
        subject_label = subject.label if subject else session.subject
        captured = ", ".join(
            f"{self.domain.field(name).label}: {value}"
            for name, value in action.captured.items()
        )
        lines = [f"The user is booking: {subject_label}."]
        if captured:
            lines.append(f"Already known: {captured}.")
        if action.mode == ReplyMode.COLLECT:
            pending = ", ".join(field_labels(self.domain, action.pending_fields))
            lines.append(f"Ask ONLY for: {pending}.")
            lines.append(
                "Do NOT ask again for anything already known. Do NOT send a generic welcome."
            )
        else:
            lines.append(
                "All details are collected. Summarize them and ask the user to confirm."
            )
        return "BOOKING STATUS:\n" + "\n".join(lines)
