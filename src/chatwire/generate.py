"""Text generation, with optional tool calling and streaming."""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING, Any

from chatwire._http import CHAT_COMPLETIONS_PATH
from chatwire.client import StreamReply
from chatwire.errors import ConfigurationError, NormalizedError
from chatwire.mapper import map_messages, map_options, map_tool_choice, map_tools
from chatwire.normalize import map_stream_result, map_streamed_tool_call, map_success_response
from chatwire.stream import StreamCallbacks, decode_stream, invoke_callback

if TYPE_CHECKING:
    from chatwire.client import OpenAIClient
    from chatwire.models import GenerateRequest, GenerateResult, StreamedToolCall


def validate_chat_request(model: str | None, messages: list[Any] | None) -> None:
    """Raises ConfigurationError when the model or messages are missing."""
    if not model:
        raise ConfigurationError("Model is required")
    if not messages:
        raise ConfigurationError("Messages are required")


def build_chat_payload(request: GenerateRequest) -> dict[str, Any]:
    """Map a contract generate request to a chat-completions payload.

    Raises:
        ConfigurationError: On missing fields, bad options or an unknown
            named tool choice.
    """
    validate_chat_request(request.model, request.messages)
    payload: dict[str, Any] = {
        "model": request.model,
        "messages": map_messages(request.messages),
    }
    payload.update(map_options(request.options))

    if request.tools:
        tool_choice = map_tool_choice(request.tool_choice, request.tools)
        tools, _ = map_tools(request.tools)
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = tool_choice
    return payload


async def generate(
    client: OpenAIClient,
    request: GenerateRequest,
    callbacks: StreamCallbacks | None = None,
    *,
    early_tool_emission: bool = True,
) -> GenerateResult | NormalizedError:
    """Run one generation.

    For streamed requests, ``callbacks.on_tool_call`` receives contract
    :class:`~chatwire.models.ToolCall` values with parsed arguments; the
    other callbacks behave as in :func:`chatwire.stream.decode_stream`.
    A stream that ends in error returns the :class:`NormalizedError`.

    Raises:
        ChatwireError: For request, transport and response failures.
    """
    payload = build_chat_payload(request)
    reply = await client.request(
        CHAT_COMPLETIONS_PATH,
        payload,
        timeout=request.timeout,
        stream=request.stream,
        headers=request.headers,
    )
    if isinstance(reply, StreamReply):
        return await _generate_streaming(reply, callbacks, early_tool_emission)
    return map_success_response(reply.body, reply.metadata)


async def _generate_streaming(
    reply: StreamReply,
    callbacks: StreamCallbacks | None,
    early_tool_emission: bool,
) -> GenerateResult | NormalizedError:
    caller = callbacks or StreamCallbacks()
    observed: list[StreamedToolCall] = []

    async def on_tool_call(call: StreamedToolCall) -> None:
        observed.append(call)
        await invoke_callback(caller.on_tool_call, map_streamed_tool_call(call))

    outcome = await decode_stream(
        reply.stream,
        dataclasses.replace(caller, on_tool_call=on_tool_call),
        metadata=reply.metadata,
        early_tool_emission=early_tool_emission,
    )
    if isinstance(outcome, NormalizedError):
        return outcome
    return map_stream_result(outcome, observed)
