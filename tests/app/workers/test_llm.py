"""Tests for the generation, embedding and transcription workers."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from openai import OpenAIError
from pydantic_ai.messages import ModelRequest, ModelResponse, SystemPromptPart
from pydantic_ai.models.test import TestModel as ScriptedModel

from app.core.errors import EmbeddingError, TranscriptionError
from app.workers.llm import (
    LLMRunner,
    OpenAIEmbedder,
    WhisperTranscriber,
    _history_to_message_list,
    _message_list_with_system_prompt,
)


def test_history_to_message_list_skips_blank():
    messages = _history_to_message_list(
        [
            {"role": "user", "content": "VR chahiye"},
            {"role": "assistant", "content": "Kitne log?"},
            {"role": "user", "content": "   "},
        ]
    )
    assert len(messages) == 2
    assert isinstance(messages[0], ModelRequest)
    assert isinstance(messages[1], ModelResponse)


def test_system_prompt_comes_first():
    messages = _message_list_with_system_prompt(
        "You are the front desk.", [{"role": "user", "content": "hi"}]
    )
    assert isinstance(messages[0].parts[0], SystemPromptPart)
    assert messages[0].parts[0].content == "You are the front desk."
    assert len(messages) == 2


@pytest.mark.asyncio
async def test_runner_complete():
    runner = LLMRunner("test", model=ScriptedModel(custom_output_text="VR is 500 rupees."))
    text = await runner.complete(
        "You are the front desk.",
        [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "Hello!"}],
        "VR price?",
    )
    assert text == "VR is 500 rupees."


@pytest.mark.asyncio
async def test_runner_stream():
    runner = LLMRunner("test", model=ScriptedModel(custom_output_text="VR is 500 rupees."))
    fragments = [f async for f in runner.stream("You are the front desk.", [], "VR price?")]
    assert "".join(fragments) == "VR is 500 rupees."


@pytest.mark.asyncio
async def test_embedder_returns_vector():
    client = MagicMock()
    client.embeddings.create = AsyncMock(
        return_value=SimpleNamespace(data=[SimpleNamespace(embedding=[0.1, 0.2])])
    )
    vector = await OpenAIEmbedder(client, "text-embedding-3-small").embed("hello")
    assert vector == [0.1, 0.2]
    client.embeddings.create.assert_awaited_once_with(
        model="text-embedding-3-small", input="hello"
    )


@pytest.mark.asyncio
async def test_embedder_error():
    client = MagicMock()
    client.embeddings.create = AsyncMock(side_effect=OpenAIError("quota exceeded"))
    with pytest.raises(EmbeddingError):
        await OpenAIEmbedder(client, "m").embed("hello")


def audio_transport(status=200, content=b"OggS-voice-bytes"):
    return httpx.MockTransport(lambda request: httpx.Response(status, content=content))


@pytest.mark.asyncio
async def test_transcriber():
    client = MagicMock()
    client.audio.transcriptions.create = AsyncMock(
        return_value=SimpleNamespace(text=" kal 5 baje ", language="hindi")
    )
    transcriber = WhisperTranscriber(client, "whisper-1", transport=audio_transport())
    result = await transcriber.transcribe("https://media.test/v.ogg")
    assert result.text == "kal 5 baje"
    assert result.language == "hindi"
    kwargs = client.audio.transcriptions.create.await_args.kwargs
    assert kwargs["file"] == ("voice.ogg", b"OggS-voice-bytes")
    assert kwargs["model"] == "whisper-1"


@pytest.mark.asyncio
async def test_transcriber_download_failure():
    client = MagicMock()
    client.audio.transcriptions.create = AsyncMock()
    transcriber = WhisperTranscriber(client, "whisper-1", transport=audio_transport(404))
    with pytest.raises(TranscriptionError, match="download failed"):
        await transcriber.transcribe("https://media.test/missing.ogg")
    client.audio.transcriptions.create.assert_not_awaited()


@pytest.mark.asyncio
async def test_transcriber_empty_text():
    client = MagicMock()
    client.audio.transcriptions.create = AsyncMock(return_value=SimpleNamespace(text=""))
    transcriber = WhisperTranscriber(client, "whisper-1", transport=audio_transport())
    with pytest.raises(TranscriptionError, match="empty"):
        await transcriber.transcribe("https://media.test/v.ogg")
