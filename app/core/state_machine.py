"""
Session state machine: (SessionState, utterance) -> (SessionState, RequiredAction).

Pure and synchronous. All domain knowledge (subjects, slots, lexicons) comes
from a DomainConfig table, so tests can drive it without a database.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple, Union

from app.constants.domain import DomainConfig, SubjectSpec
from app.core.matchers import MATCHERS, Lexicon, consume, normalize
from app.schemas.session import SessionState, Stage, derive_stage


class ReplyMode(str, Enum):
    FREE = "free"  # no subject chosen yet
    COLLECT = "collect"  # ask only for the remaining pending fields
    CONFIRM = "confirm"  # everything captured, confirm the booking


@dataclass(frozen=True)
class SendCanned:
    text: str


@dataclass(frozen=True)
class GenerateReply:
    mode: ReplyMode
    pending_fields: Tuple[str, ...] = ()
    captured: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Suppress:
    reason: str


RequiredAction = Union[SendCanned, GenerateReply, Suppress]


class SessionStateMachine:
    """Applies one utterance to a session snapshot using the declarative domain table."""

    def __init__(self, domain: DomainConfig) -> None:
        self.domain = domain
        self._reset = Lexicon(domain.reset_keywords, whole_words=False)
        self._reject = Lexicon(domain.reject_keywords, whole_words=True)
        self._subjects = [
            (subject, Lexicon(subject.keywords, whole_words=True))
            for subject in domain.subjects
        ]

    def is_reset(self, text: str) -> bool:
        return self._reset.matches(text)

    def is_reject(self, text: str) -> bool:
        return self._reject.matches(text)

    def transition(
        self, session: SessionState, utterance_text: str
    ) -> Tuple[SessionState, RequiredAction]:
        text = normalize(utterance_text)
        session = session.model_copy(update={"last_user_text": utterance_text})

        # Reject wins over reset when both match.
        if self.is_reject(text):
            if session.is_stopped:
                return session, Suppress(reason="stopped")
            stopped = session.model_copy(update={"stage": Stage.STOPPED})
            return stopped, SendCanned(text=self.domain.close_message)

        if self.is_reset(text):
            session = session.reset()
        elif session.is_stopped:
            return session, Suppress(reason="stopped")

        if session.subject is None:
            subject = self._find_subject(text)
            if subject is None:
                return session, GenerateReply(mode=ReplyMode.FREE)
            session = session.model_copy(
                update={
                    "subject": subject.name,
                    "pending_fields": list(subject.fields),
                    "stage": Stage.COLLECTING,
                }
            )
            return self._capture(session, text, utterance_text, subject_utterance=True)

        return self._capture(session, text, utterance_text, subject_utterance=False)

    def _find_subject(self, text: str) -> Optional[SubjectSpec]:
        for subject, lexicon in self._subjects:
            if lexicon.matches(text):
                return subject
        return None

    def _capture(
        self,
        session: SessionState,
        text: str,
        utterance_text: str,
        subject_utterance: bool,
    ) -> Tuple[SessionState, RequiredAction]:
        slots = dict(session.slots)
        pending = [name for name in session.pending_fields if name not in slots]
        remaining = text
        captured_now = False

        for name in list(pending):
            spec = self.domain.field(name)
            if spec.matcher == "free_text":
                continue
            capture = MATCHERS[spec.matcher](remaining)
            if capture is None:
                continue
            slots[name] = capture.value
            pending.remove(name)
            remaining = consume(remaining, capture)
            captured_now = True

        # Free text is only taken as the answer when it is the one thing left to ask.
        # Nothing was consumed, so the original casing can be kept.
        if not subject_utterance and not captured_now and len(pending) == 1:
            spec = self.domain.field(pending[0])
            if spec.matcher == "free_text":
                capture = MATCHERS["free_text"](" ".join(utterance_text.split()))
                if capture is not None:
                    slots[spec.name] = capture.value
                    pending = []

        stage = derive_stage(session.subject, pending)
        session = session.model_copy(
            update={"slots": slots, "pending_fields": pending, "stage": stage}
        )
        if stage == Stage.CONFIRMING:
            return session, GenerateReply(mode=ReplyMode.CONFIRM, captured=slots)
        return session, GenerateReply(
            mode=ReplyMode.COLLECT,
            pending_fields=tuple(pending),
            captured=slots,
        )


def field_labels(domain: DomainConfig, names: Optional[Tuple[str, ...]]) -> list[str]:
    """Human labels for field names, in order."""
    return [domain.field(name).label for name in names or ()]
