"""Real API integration tests.

These tests make real OpenAI calls and are intentionally compact:
- ENABLE_API_TESTS=1 is required to run any API tests
- OPENAI_API_KEY is required (the fixture skips otherwise)

The suite prioritizes high-signal end-to-end coverage with a small call budget.
"""

from __future__ import annotations

import pytest

from chatwire import (
    ChatAdapter,
    EmbeddingRequest,
    FinishReason,
    GenerateRequest,
    Message,
    StructuredOutputRequest,
    Tool,
)
from tests.helpers import Recorder

pytestmark = pytest.mark.api

_WEATHER = Tool(
    name="get_weather",
    description="Current weather for a city",
    schema={
        "type": "object",
        "properties": {"city": {"type": "string"}},
        "required": ["city"],
        "additionalProperties": False,
    },
)


@pytest.mark.asyncio
async def test_generate_buffered(openai_api_key: str, openai_test_model: str) -> None:
    async with ChatAdapter(context={"api_key": openai_api_key}) as adapter:
        result = await adapter.generate(
            GenerateRequest(
                model=openai_test_model,
                messages=[Message.user("Reply with the single word: pong")],
                options={"max_tokens": 16},
            )
        )

    assert result.ok, result
    assert "pong" in result.content.lower()
    assert result.tokens is not None and result.tokens.total_tokens > 0


@pytest.mark.asyncio
async def test_generate_streamed_tool_call(openai_api_key: str, openai_test_model: str) -> None:
    recorder = Recorder()
    async with ChatAdapter(context={"api_key": openai_api_key}) as adapter:
        result = await adapter.generate(
            GenerateRequest(
                model=openai_test_model,
                messages=[Message.user("What's the weather in Paris?")],
                tools=[_WEATHER],
                tool_choice="get_weather",
                stream=True,
            ),
            recorder.callbacks(),
        )

    assert result.ok, result
    assert result.finish_reason is FinishReason.TOOL_CALL
    assert [call.name for call in recorder.tool_calls] == ["get_weather"]
    assert "city" in recorder.tool_calls[0].arguments
    assert len(recorder.done) == 1


@pytest.mark.asyncio
async def test_structured_output(openai_api_key: str, openai_test_model: str) -> None:
    schema = {
        "type": "object",
        "properties": {"capital": {"type": "string"}},
        "required": ["capital"],
        "additionalProperties": False,
    }
    async with ChatAdapter(context={"api_key": openai_api_key}) as adapter:
        result = await adapter.structured_output(
            StructuredOutputRequest(
                model=openai_test_model,
                messages=[Message.user("What is the capital of France?")],
                schema=schema,
            )
        )

    assert result.ok, result
    assert "paris" in result.data["capital"].lower()


@pytest.mark.asyncio
async def test_embed_and_status(openai_api_key: str, openai_embedding_model: str) -> None:
    async with ChatAdapter(context={"api_key": openai_api_key}) as adapter:
        result = await adapter.embed(
            EmbeddingRequest(model=openai_embedding_model, input=["one", "two"])
        )
        health = await adapter.status()

    assert result.ok, result
    assert len(result.embeddings) == 2
    assert health.status == "healthy"
