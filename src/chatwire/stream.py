"""Incremental decoder for chat-completions server-sent event streams.

The provider frames one JSON object per ``data:`` line and ends with
``data: [DONE]``. Network chunks do not respect those frames: a chunk can
hold several events, or a fraction of one. The decoder buffers partial
lines, applies each event to a per-stream :class:`StreamAccumulator`, and
reassembles tool-call argument fragments into complete calls that are
delivered exactly once.

Malformed lines are skipped. An inline ``{"error": ...}`` event, or a read
failure from the transport, ends the stream with a
:class:`~chatwire.errors.NormalizedError`.
"""

from __future__ import annotations

import asyncio
import codecs
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
import inspect
import json
import logging
from typing import TYPE_CHECKING, Any

from chatwire._errors import parse_stream_error, to_normalized_error
from chatwire._http import SSE_DATA_PREFIX, SSE_DONE_SENTINEL
from chatwire.errors import TransportError
from chatwire.models import StreamedToolCall

if TYPE_CHECKING:
    from collections.abc import Mapping

    from chatwire.errors import NormalizedError
    from chatwire.transport import StreamHandle

logger = logging.getLogger(__name__)

_TOOL_CALLS_FINISH = "tool_calls"
_DONE = object()

Callback = Callable[[Any], Awaitable[Any] | Any]


@dataclass
class StreamCallbacks:
    """Optional hooks fired while a stream is decoded.

    Each hook may be a plain function or a coroutine function.
    ``on_content`` and ``on_reasoning`` receive only the new increment.
    """

    on_content: Callback | None = None
    on_tool_call: Callback | None = None
    on_reasoning: Callback | None = None
    on_error: Callback | None = None
    on_done: Callback | None = None


@dataclass
class StreamResult:
    """Final state of a fully decoded stream (provider vocabulary)."""

    content: str
    finish_reason: str | None = None
    usage: dict[str, Any] | None = None
    #: Completed tool calls in emission order.
    tool_calls: list[StreamedToolCall] = field(default_factory=list)
    reasoning_details: list[Any] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class _PendingToolCall:
    id: str
    index: int | None
    name: str | None = None
    arguments: str = ""


@dataclass
class StreamAccumulator:
    """Mutable per-stream state. Never shared between streams."""

    content_parts: list[str] = field(default_factory=list)
    finish_reason: str | None = None
    usage: dict[str, Any] | None = None
    tool_calls_in_progress: dict[str, _PendingToolCall] = field(default_factory=dict)
    ids_by_index: dict[int, str] = field(default_factory=dict)
    emitted_call_ids: set[str] = field(default_factory=set)
    emitted_calls: list[StreamedToolCall] = field(default_factory=list)
    reasoning_fragments: list[Any] = field(default_factory=list)

    @property
    def full_content(self) -> str:
        return "".join(self.content_parts)


def _is_json(text: str) -> bool:
    try:
        json.loads(text)
    except ValueError:
        return False
    return True


async def close_stream(handle: StreamHandle) -> None:
    """Close *handle*; a failing close is logged, never raised."""
    try:
        await handle.aclose()
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        # Cleanup should never mask the primary outcome.
        logger.warning("Stream cleanup failed: %s", exc)


async def invoke_callback(callback: Callback | None, value: Any) -> None:
    if callback is None:
        return
    result = callback(value)
    if inspect.isawaitable(result):
        await result


class StreamDecoder:
    """Push-style decoder: feed it chunks, it tells you when the stream ends.

    Args:
        callbacks: Hooks to fire as content, reasoning and tool calls arrive.
        metadata: Response metadata (headers) copied into the final result.
        early_tool_emission: Emit a tool call as soon as its argument buffer
            parses as JSON instead of waiting for ``finish_reason``.
    """

    def __init__(
        self,
        callbacks: StreamCallbacks | None = None,
        *,
        metadata: Mapping[str, Any] | None = None,
        early_tool_emission: bool = True,
    ) -> None:
        self._callbacks = callbacks or StreamCallbacks()
        self._metadata = dict(metadata or {})
        self._early_tool_emission = early_tool_emission
        self._acc = StreamAccumulator()
        self._pending = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._outcome: StreamResult | NormalizedError | None = None

    @property
    def accumulator(self) -> StreamAccumulator:
        return self._acc

    @property
    def outcome(self) -> StreamResult | NormalizedError | None:
        """The terminal result once the stream has ended, else None."""
        return self._outcome

    async def feed(self, chunk: bytes | str) -> StreamResult | NormalizedError | None:
        """Consume one chunk; return the terminal outcome if the stream ended."""
        if self._outcome is not None:
            return self._outcome
        if not chunk:
            return None
        text = chunk if isinstance(chunk, str) else self._utf8.decode(chunk)
        lines = (self._pending + text).split("\n")
        self._pending = lines.pop()
        return await self._process_lines(lines)

    async def finish(self) -> StreamResult | NormalizedError:
        """Handle natural end of stream (no ``[DONE]`` seen)."""
        if self._outcome is not None:
            return self._outcome
        tail = self._pending + self._utf8.decode(b"", final=True)
        self._pending = ""
        if tail.strip():
            outcome = await self._process_lines([tail])
            if outcome is not None:
                return outcome
        return await self._complete()

    async def fail(self, exc: BaseException) -> StreamResult | NormalizedError:
        """Terminate with a transport read failure unless already ended."""
        if self._outcome is not None:
            return self._outcome
        return await self._terminate_with_error(exc)

    # --- internals ---

    async def _process_lines(
        self, lines: list[str]
    ) -> StreamResult | NormalizedError | None:
        events: list[Any] = []
        for raw in lines:
            line = raw.strip()
            if not line.startswith(SSE_DATA_PREFIX):
                # Comments (": keep-alive") and other SSE fields.
                continue
            data = line[len(SSE_DATA_PREFIX) :].strip()
            if not data:
                continue
            if data == SSE_DONE_SENTINEL:
                events.append(_DONE)
                continue
            try:
                parsed = json.loads(data)
            except ValueError:
                logger.debug("Skipping malformed stream line: %.200s", data)
                continue
            if isinstance(parsed, dict) and parsed.get("error"):
                # An error anywhere in the chunk wins over its other events.
                return await self._terminate_with_error(parse_stream_error(parsed))
            events.append(parsed)

        for event in events:
            if event is _DONE:
                return await self._complete()
            if isinstance(event, dict):
                await self._apply(event)
        return None

    async def _apply(self, event: dict[str, Any]) -> None:
        choices = event.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            choice = choices[0]
            finish_reason = choice.get("finish_reason")
            delta = choice.get("delta")
            if isinstance(delta, dict):
                await self._apply_delta(delta, finish_reason)
            if finish_reason:
                self._acc.finish_reason = finish_reason
                if finish_reason == _TOOL_CALLS_FINISH:
                    await self._sweep_tool_calls()

        usage = event.get("usage")
        if isinstance(usage, dict):
            self._acc.usage = usage

    async def _apply_delta(self, delta: dict[str, Any], finish_reason: str | None) -> None:
        content = delta.get("content")
        if isinstance(content, str) and content:
            self._acc.content_parts.append(content)
            await invoke_callback(self._callbacks.on_content, content)

        details = delta.get("reasoning_details")
        if isinstance(details, list):
            for detail in details:
                self._acc.reasoning_fragments.append(detail)
                text = detail.get("text") if isinstance(detail, dict) else None
                if text:
                    await invoke_callback(self._callbacks.on_reasoning, text)

        tool_calls = delta.get("tool_calls")
        if isinstance(tool_calls, list):
            for tool_delta in tool_calls:
                if isinstance(tool_delta, dict):
                    await self._apply_tool_delta(tool_delta, finish_reason)

    async def _apply_tool_delta(
        self, tool_delta: dict[str, Any], finish_reason: str | None
    ) -> None:
        acc = self._acc
        index = tool_delta.get("index")
        call_id = tool_delta.get("id")

        if call_id and call_id not in acc.tool_calls_in_progress:
            acc.tool_calls_in_progress[call_id] = _PendingToolCall(id=call_id, index=index)
        elif not call_id and index is not None:
            # Deltas after the first carry only the index.
            call_id = acc.ids_by_index.get(index)

        entry = acc.tool_calls_in_progress.get(call_id) if call_id else None
        if entry is None:
            logger.debug("Dropping tool-call delta for unknown index %r", index)
            return
        if index is not None:
            entry.index = index
            acc.ids_by_index[index] = entry.id

        function = tool_delta.get("function")
        if isinstance(function, dict):
            name = function.get("name")
            if name:
                entry.name = name
            arguments = function.get("arguments")
            if isinstance(arguments, str):
                entry.arguments += arguments

        if not self._is_ready(entry):
            return
        if finish_reason == _TOOL_CALLS_FINISH or (
            self._early_tool_emission and _is_json(entry.arguments)
        ):
            await self._emit_tool_call(entry)

    def _is_ready(self, entry: _PendingToolCall) -> bool:
        return (
            bool(entry.name)
            and bool(entry.arguments)
            and entry.id not in self._acc.emitted_call_ids
        )

    async def _emit_tool_call(self, entry: _PendingToolCall) -> None:
        call = StreamedToolCall(id=entry.id, name=entry.name or "", arguments=entry.arguments)
        self._acc.emitted_call_ids.add(entry.id)
        self._acc.emitted_calls.append(call)
        await invoke_callback(self._callbacks.on_tool_call, call)

    async def _sweep_tool_calls(self) -> None:
        for entry in list(self._acc.tool_calls_in_progress.values()):
            if self._is_ready(entry):
                await self._emit_tool_call(entry)

    async def _complete(self) -> StreamResult:
        await self._sweep_tool_calls()
        acc = self._acc
        result = StreamResult(
            content=acc.full_content,
            finish_reason=acc.finish_reason,
            usage=acc.usage,
            tool_calls=list(acc.emitted_calls),
            reasoning_details=list(acc.reasoning_fragments) or None,
            metadata=dict(self._metadata),
        )
        self._outcome = result
        logger.debug(
            "Stream complete: %d chars, %d tool calls, finish_reason=%s",
            len(result.content),
            len(result.tool_calls),
            result.finish_reason,
        )
        await invoke_callback(self._callbacks.on_done, result)
        return result

    async def _terminate_with_error(self, exc: BaseException) -> NormalizedError:
        error = to_normalized_error(exc, metadata=self._metadata)
        self._outcome = error
        logger.debug("Stream terminated with %s: %s", error.kind.value, error.message)
        await invoke_callback(self._callbacks.on_error, error)
        return error


async def decode_stream(
    handle: StreamHandle,
    callbacks: StreamCallbacks | None = None,
    *,
    metadata: Mapping[str, Any] | None = None,
    early_tool_emission: bool = True,
) -> StreamResult | NormalizedError:
    """Pull chunks from *handle* until the stream ends, then close it.

    Returns the final :class:`StreamResult` (its ``content`` is the full
    text) or the :class:`NormalizedError` that ended the stream.
    """
    decoder = StreamDecoder(
        callbacks, metadata=metadata, early_tool_emission=early_tool_emission
    )
    try:
        while True:
            try:
                chunk = await handle.read()
            except TransportError as e:
                return await decoder.fail(e)
            if chunk is None:
                return await decoder.finish()
            outcome = await decoder.feed(chunk)
            if outcome is not None:
                return outcome
    finally:
        await close_stream(handle)
