"""Test helpers: builders for chat-completions stream frames.

Keep this file tiny and purpose-built: tests describe streams as lists of
event dicts and let these helpers handle the SSE framing.
"""

from __future__ import annotations

import json
from typing import Any


def sse(event: dict[str, Any] | str) -> bytes:
    """Frame one event (or raw data text) as a ``data:`` line."""
    data = event if isinstance(event, str) else json.dumps(event)
    return f"data: {data}\n".encode()


def done() -> bytes:
    return b"data: [DONE]\n"


def content_event(text: str) -> dict[str, Any]:
    return {"choices": [{"delta": {"content": text}}]}


def finish_event(reason: str, usage: dict[str, Any] | None = None) -> dict[str, Any]:
    event: dict[str, Any] = {"choices": [{"delta": {}, "finish_reason": reason}]}
    if usage is not None:
        event["usage"] = usage
    return event


def tool_delta(
    index: int,
    *,
    call_id: str | None = None,
    name: str | None = None,
    arguments: str | None = None,
    finish_reason: str | None = None,
) -> dict[str, Any]:
    """One tool-call delta event; omitted fields are left out of the frame."""
    call: dict[str, Any] = {"index": index}
    if call_id is not None:
        call["id"] = call_id
        call["type"] = "function"
    function: dict[str, Any] = {}
    if name is not None:
        function["name"] = name
    if arguments is not None:
        function["arguments"] = arguments
    if function:
        call["function"] = function
    choice: dict[str, Any] = {"delta": {"tool_calls": [call]}}
    if finish_reason is not None:
        choice["finish_reason"] = finish_reason
    return {"choices": [choice]}


def stream_bytes(*events: dict[str, Any] | str, terminate: bool = True) -> bytes:
    """Concatenate framed events into one byte string."""
    body = b"".join(sse(e) for e in events)
    return body + done() if terminate else body


def split_every(data: bytes, size: int) -> list[bytes]:
    """Cut *data* into fixed-size chunks, ignoring frame boundaries."""
    return [data[i : i + size] for i in range(0, len(data), size)]


def chat_completion(
    content: str | None = "",
    *,
    tool_calls: list[dict[str, Any]] | None = None,
    finish_reason: str = "stop",
    usage: dict[str, Any] | None = None,
    **message_fields: Any,
) -> dict[str, Any]:
    """A buffered chat-completions response body."""
    message: dict[str, Any] = {"role": "assistant", "content": content, **message_fields}
    if tool_calls is not None:
        message["tool_calls"] = tool_calls
    body: dict[str, Any] = {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "choices": [{"index": 0, "message": message, "finish_reason": finish_reason}],
    }
    if usage is not None:
        body["usage"] = usage
    return body


class Recorder:
    """Collects callback invocations in order."""

    def __init__(self) -> None:
        self.content: list[str] = []
        self.tool_calls: list[Any] = []
        self.reasoning: list[str] = []
        self.errors: list[Any] = []
        self.done: list[Any] = []

    def callbacks(self) -> Any:
        from chatwire.stream import StreamCallbacks

        return StreamCallbacks(
            on_content=self.content.append,
            on_tool_call=self.tool_calls.append,
            on_reasoning=self.reasoning.append,
            on_error=self.errors.append,
            on_done=self.done.append,
        )
