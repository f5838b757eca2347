from __future__ import annotations

from typing import Any, AsyncIterator, List, Optional

import httpx
from openai import AsyncOpenAI, OpenAIError
from pydantic_ai import Agent
from pydantic_ai.messages import (
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    UserPromptPart,
)
from pydantic_ai.models import Model
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.litellm import LiteLLMProvider
from pydantic_ai.settings import ModelSettings

from app.config import Settings, get_settings
from app.core.errors import EmbeddingError, TranscriptionError
from app.infra.logging_config import get_logger
from app.schemas.events import Transcription

logger = get_logger("workers.llm")


def _history_to_message_list(history: List[dict[str, str]]) -> List[Any]:
    """Convert list of {role, content} to pydantic_ai ModelMessage list for message_history."""
    out: List[Any] = []
    for item in history:
        role = item.get("role", "user")
        content = (item.get("content") or "").strip()
        if not content:
            continue
        if role == "user":
            out.append(ModelRequest(parts=[UserPromptPart(content=content)]))
        elif role == "assistant":
            out.append(ModelResponse(parts=[TextPart(content=content)]))
        elif role == "system":
            out.append(ModelRequest(parts=[SystemPromptPart(content=content)]))
    return out


def _message_list_with_system_prompt(
    system_prompt: str,
    history: List[dict[str, str]],
) -> List[Any]:
    """Build message_history with system prompt always first, then conversation history."""

    # https://github.com/pydantic/pydantic-ai/issues/4039
    # https://ai.pydantic.dev/agent/#system-prompts
    system_message = ModelRequest(parts=[SystemPromptPart(content=system_prompt)])
    rest = _history_to_message_list(history)
    return [system_message] + rest


class LLMRunner:
    """Text generation through a pydantic-ai Agent. model overrides the LiteLLM-backed default."""

    def __init__(
        self,
        model_name: str,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        model: Optional[Model] = None,
        temperature: float = 0.2,
        max_tokens: int = 500,
    ) -> None:
        if model is None:
            provider = LiteLLMProvider(api_key=api_key, api_base=api_base)
            model = OpenAIChatModel(model_name, provider=provider)
        logger.info(f"Initializing LLM runner with model {model_name}")
        self._agent = Agent(model)
        self._model_settings = ModelSettings(
            temperature=temperature, max_tokens=max_tokens
        )

    async def complete(
        self,
        system_instruction: str,
        history: Optional[List[dict[str, str]]],
        user_text: str,
    ) -> str:
        message_history = _message_list_with_system_prompt(
            system_instruction, history or []
        )
        result = await self._agent.run(
            user_text,
            message_history=message_history,
            model_settings=self._model_settings,
        )
        return str(result.output)

    async def stream(
        self,
        system_instruction: str,
        history: Optional[List[dict[str, str]]],
        user_text: str,
    ) -> AsyncIterator[str]:
        """Yield reply text as it is produced."""
        message_history = _message_list_with_system_prompt(
            system_instruction, history or []
        )
        async with self._agent.run_stream(
            user_text,
            message_history=message_history,
            model_settings=self._model_settings,
        ) as result:
            async for delta in result.stream_text(delta=True):
                if delta:
                    yield delta


class OpenAIEmbedder:
    """Query vectors from an OpenAI-compatible embeddings endpoint."""

    def __init__(self, client: AsyncOpenAI, model: str) -> None:
        self._client = client
        self._model = model

    async def embed(self, text: str) -> List[float]:
        try:
            response = await self._client.embeddings.create(
                model=self._model, input=text
            )
        except OpenAIError as e:
            raise EmbeddingError(str(e)) from e
        if not response.data:
            raise EmbeddingError("Embedding response has no data")
        return list(response.data[0].embedding)


class WhisperTranscriber:
    """Downloads a voice note and transcribes it with a Whisper-style endpoint."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = client
        self._model = model
        self._timeout = timeout
        self._transport = transport

    async def _download(self, media_url: str) -> bytes:
        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport, follow_redirects=True
        ) as client:
            try:
                response = await client.get(media_url)
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise TranscriptionError(f"Audio download failed: {e}") from e
        if not response.content:
            raise TranscriptionError("Audio download returned no data")
        return response.content

    async def transcribe(self, media_url: str) -> Transcription:
        audio = await self._download(media_url)
        try:
            result = await self._client.audio.transcriptions.create(
                model=self._model,
                file=("voice.ogg", audio),
                response_format="verbose_json",
            )
        except OpenAIError as e:
            raise TranscriptionError(str(e)) from e
        text = (getattr(result, "text", None) or "").strip()
        if not text:
            raise TranscriptionError("Transcription is empty")
        return Transcription(text=text, language=getattr(result, "language", None))


def _openai_client(settings: Settings) -> AsyncOpenAI:
    return LiteLLMProvider(
        api_key=settings.litellm_api_key, api_base=settings.litellm_api_base
    ).client


def build_llm_runner_from_env() -> LLMRunner:
    settings = get_settings()
    logger.info(
        "LLM runner config: model=%s, api_key=%s, api_base=%s",
        settings.llm_model,
        "set" if settings.litellm_api_key else "not set",
        settings.litellm_api_base or "(default)",
    )
    if not settings.litellm_api_key:
        logger.warning(
            "LITELLM_API_KEY is not set; set it to a valid OpenAI or LiteLLM API key to avoid 401 errors."
        )
    return LLMRunner(
        model_name=settings.llm_model,
        api_key=settings.litellm_api_key,
        api_base=settings.litellm_api_base,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
    )


def build_embedder_from_env() -> OpenAIEmbedder:
    settings = get_settings()
    return OpenAIEmbedder(_openai_client(settings), settings.embedding_model)


def build_transcriber_from_env() -> WhisperTranscriber:
    settings = get_settings()
    return WhisperTranscriber(
        _openai_client(settings),
        settings.transcription_model,
        timeout=settings.transcription_timeout_seconds,
    )
