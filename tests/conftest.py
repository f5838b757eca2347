import os

from cryptography.fernet import Fernet

os.environ["ENV"] = "test"
os.environ.setdefault("CREDENTIAL_MASTER_KEY", Fernet.generate_key().decode())
os.environ.setdefault("LITELLM_API_KEY", "test-key")

import contextlib  # noqa: E402
from typing import Any, AsyncIterator, List, Optional  # noqa: E402

import pytest  # noqa: E402

from app.adapters.whatsapp import WhatsAppAdapter  # noqa: E402
from app.config import get_settings  # noqa: E402
from app.constants.domain import DEFAULT_DOMAIN  # noqa: E402
from app.core.dispatch import DispatchPolicy  # noqa: E402
from app.core.errors import EmbeddingError, TranscriptionError  # noqa: E402
from app.core.orchestrator import Orchestrator  # noqa: E402
from app.core.state_machine import SessionStateMachine  # noqa: E402
from app.db import Base, SessionLocal, engine  # noqa: E402
from app.schemas.events import (  # noqa: E402
    Channel,
    ConversationKey,
    OutboundSendResult,
    Transcription,
)
import app.models  # noqa: E402,F401

pytest_plugins = [
    "tests.fixtures.channel_fixtures",
    "tests.fixtures.event_fixtures",
]


@pytest.fixture(scope="function")
def db():
    """Fresh schema per test on the shared in-memory SQLite connection."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(db):
    """Orchestrator session factory that hands out the test session without closing it."""

    @contextlib.contextmanager
    def factory():
        yield db

    return factory


@pytest.fixture
def settings():
    return get_settings().model_copy(
        update={
            "generation_timeout_seconds": 1.0,
            "embedding_timeout_seconds": 1.0,
            "transcription_timeout_seconds": 1.0,
            "delivery_timeout_seconds": 1.0,
            "no_knowledge_mode": "generate",
            "greeting_enabled": True,
        }
    )


class FakeLLM:
    def __init__(self, reply: str = "Sure, happy to help.") -> None:
        self.reply = reply
        self.error: Optional[Exception] = None
        self.calls: List[dict[str, Any]] = []

    async def complete(self, system_instruction, history, user_text) -> str:
        self.calls.append(
            {"system": system_instruction, "history": list(history), "user": user_text}
        )
        if self.error is not None:
            raise self.error
        return self.reply

    async def stream(self, system_instruction, history, user_text) -> AsyncIterator[str]:
        self.calls.append(
            {"system": system_instruction, "history": list(history), "user": user_text}
        )
        if self.error is not None:
            raise self.error
        for word in self.reply.split(" "):
            yield word + " "


class FakeEmbedder:
    """Maps texts to vectors by keyword; unknown text gets a neutral vector."""

    def __init__(self) -> None:
        self.vectors: dict[str, List[float]] = {}
        self.fail = False
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail:
            raise EmbeddingError("embedding service down")
        for keyword, vector in self.vectors.items():
            if keyword in text.lower():
                return vector
        return [1.0, 0.0, 0.0]


class FakeTranscriber:
    def __init__(self, text: str = "kal 5pm") -> None:
        self.text = text
        self.fail = False
        self.calls: List[str] = []

    async def transcribe(self, media_url: str) -> Transcription:
        self.calls.append(media_url)
        if self.fail:
            raise TranscriptionError("could not decode audio")
        return Transcription(text=self.text, language=None)


class RecordingWhatsAppAdapter(WhatsAppAdapter):
    """Real payload parsing; delivery is recorded instead of sent."""

    def __init__(self) -> None:
        super().__init__(api_url="http://whatsapp.test/send")
        self.sent: List[tuple[ConversationKey, str, dict[str, Any]]] = []
        self.fail = False

    async def send(self, destination, text, credentials) -> OutboundSendResult:
        if self.fail:
            return OutboundSendResult(success=False, error="HTTP 502")
        self.sent.append((destination, text, credentials))
        return OutboundSendResult(
            success=True, platform_message_id=f"wamid-{len(self.sent)}"
        )


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def fake_transcriber():
    return FakeTranscriber()


@pytest.fixture
def whatsapp_adapter():
    return RecordingWhatsAppAdapter()


@pytest.fixture
def orchestrator(
    session_factory, settings, fake_llm, fake_embedder, fake_transcriber, whatsapp_adapter
):
    return Orchestrator(
        session_factory=session_factory,
        state_machine=SessionStateMachine(DEFAULT_DOMAIN),
        policy=DispatchPolicy(fake_llm, DEFAULT_DOMAIN, settings),
        embedder=fake_embedder,
        transcriber=fake_transcriber,
        adapters={Channel.WHATSAPP: whatsapp_adapter},
        settings=settings,
    )
