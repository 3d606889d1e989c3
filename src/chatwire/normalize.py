"""Inbound mapping: provider responses to contract results."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from chatwire.errors import APIError, ErrorKind, ProviderResponseError
from chatwire.models import (
    FinishReason,
    GenerateResult,
    TokenUsage,
    ToolCall,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from chatwire.models import StreamedToolCall
    from chatwire.stream import StreamResult

logger = logging.getLogger(__name__)

_FINISH_REASONS: dict[str, FinishReason] = {
    "stop": FinishReason.STOP,
    "length": FinishReason.LENGTH,
    "content_filter": FinishReason.CONTENT_FILTER,
    "tool_calls": FinishReason.TOOL_CALL,
}


def map_finish_reason(reason: str | None) -> FinishReason:
    """Unknown or absent provider reasons map to ``error``."""
    return _FINISH_REASONS.get(reason or "", FinishReason.ERROR)


def _count(value: Any) -> int:
    return value if isinstance(value, int) and value > 0 else 0


def map_tokens(usage: Mapping[str, Any] | None) -> TokenUsage | None:
    """Normalize a provider usage object.

    Cached prompt tokens are reported as ``cache_read_tokens``; the rest of
    the prompt becomes both ``cache_write_tokens`` and ``prompt_tokens``.
    Without cached tokens the cache counters stay at zero.
    """
    if not isinstance(usage, dict) or not usage:
        return None

    prompt = _count(usage.get("prompt_tokens"))
    completion = _count(usage.get("completion_tokens"))
    total = _count(usage.get("total_tokens"))

    completion_details = usage.get("completion_tokens_details")
    if not isinstance(completion_details, dict):
        completion_details = {}
    thinking = _count(completion_details.get("reasoning_tokens"))

    prompt_details = usage.get("prompt_tokens_details")
    if not isinstance(prompt_details, dict):
        prompt_details = {}
    cached = _count(prompt_details.get("cached_tokens"))
    cache_write = 0
    if cached:
        cache_write = max(0, prompt - cached)
        prompt = cache_write

    return TokenUsage(
        prompt_tokens=prompt,
        completion_tokens=completion,
        total_tokens=total,
        cache_read_tokens=cached,
        cache_write_tokens=cache_write,
        thinking_tokens=thinking,
    )


def parse_arguments(raw: Any) -> Any:
    """Parse a tool-call argument string; invalid JSON yields ``{}``."""
    if raw is None or raw == "":
        return {}
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except ValueError:
        logger.debug("Tool-call arguments are not valid JSON: %.200s", raw)
        return {}


def map_tool_calls(raw_calls: list[Any] | None) -> list[ToolCall]:
    """Map provider ``tool_calls`` entries to contract tool calls."""
    calls: list[ToolCall] = []
    for raw in raw_calls or []:
        if not isinstance(raw, dict):
            continue
        function = raw.get("function")
        if not isinstance(function, dict):
            continue
        calls.append(
            ToolCall(
                id=raw.get("id") or "",
                name=function.get("name") or "",
                arguments=parse_arguments(function.get("arguments")),
            )
        )
    return calls


def map_streamed_tool_call(call: StreamedToolCall) -> ToolCall:
    return ToolCall(id=call.id, name=call.name, arguments=parse_arguments(call.arguments))


def extract_reasoning_text(details: list[Any] | None) -> str | None:
    """Join the ``text`` (or ``summary``) of each reasoning detail."""
    if not details:
        return None
    parts: list[str] = []
    for detail in details:
        if not isinstance(detail, dict):
            continue
        text = detail.get("text") or detail.get("summary")
        if isinstance(text, str) and text:
            parts.append(text)
    return "".join(parts) or None


def first_message(
    body: Any, metadata: Mapping[str, Any] | None = None
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Return ``(choice, message)`` of the first choice.

    Raises:
        ProviderResponseError: If there is no choice or it has no message.
    """
    choices = body.get("choices") if isinstance(body, dict) else None
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        raise ProviderResponseError(
            "Invalid OpenAI response structure", metadata=dict(metadata or {}), phase="response"
        )
    choice = choices[0]
    message = choice.get("message")
    if not isinstance(message, dict):
        raise ProviderResponseError(
            "No message in OpenAI choice", metadata=dict(metadata or {}), phase="response"
        )
    return choice, message


def raise_for_refusal(message: Mapping[str, Any], metadata: Mapping[str, Any]) -> None:
    """Raise a content-filter error when the model refused.

    Raises:
        APIError: With ``kind=content_filter`` carrying the refusal text.
    """
    refusal = message.get("refusal")
    if refusal:
        raise APIError(
            f"Request was refused: {refusal}",
            metadata=dict(metadata),
            provider="openai",
            phase="response",
            kind=ErrorKind.CONTENT_FILTER,
        )


def map_success_response(
    body: Any, metadata: Mapping[str, Any] | None = None
) -> GenerateResult:
    """Map a buffered chat completion to a :class:`GenerateResult`.

    Raises:
        ProviderResponseError: If the body has no usable choice.
        APIError: If the model refused (``content_filter``).
    """
    meta = dict(metadata or {})
    choice, message = first_message(body, meta)
    raise_for_refusal(message, meta)

    tool_calls = map_tool_calls(message.get("tool_calls"))
    finish_reason = (
        FinishReason.TOOL_CALL if tool_calls else map_finish_reason(choice.get("finish_reason"))
    )
    details = message.get("reasoning_details") or body.get("reasoning_details")
    reasoning = extract_reasoning_text(details)
    if reasoning is None and isinstance(message.get("reasoning"), str):
        reasoning = message["reasoning"] or None

    return GenerateResult(
        content=message.get("content") or "",
        tool_calls=tool_calls,
        finish_reason=finish_reason,
        tokens=map_tokens(body.get("usage")),
        metadata=meta,
        reasoning=reasoning,
        reasoning_details=details or None,
    )


def map_stream_result(
    result: StreamResult, tool_calls: list[StreamedToolCall] | None = None
) -> GenerateResult:
    """Build a :class:`GenerateResult` from a decoded stream.

    *tool_calls* are the calls observed through the tool-call callback; when
    omitted the decoder's own emission list is used.
    """
    observed = result.tool_calls if tool_calls is None else tool_calls
    calls = [map_streamed_tool_call(c) for c in observed]
    return GenerateResult(
        content=result.content,
        tool_calls=calls,
        finish_reason=FinishReason.TOOL_CALL if calls else map_finish_reason(result.finish_reason),
        tokens=map_tokens(result.usage),
        metadata=dict(result.metadata),
        reasoning=extract_reasoning_text(result.reasoning_details),
        reasoning_details=result.reasoning_details,
    )
