"""Public entry point: the ChatAdapter facade.

Every operation returns either a populated result or a
:class:`~chatwire.errors.NormalizedError`; chatwire exceptions never escape.
Cancellation always propagates.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
import logging
import time
from typing import TYPE_CHECKING, Any

from chatwire._errors import to_normalized_error
from chatwire.client import OpenAIClient, StreamReply
from chatwire.embed import embed
from chatwire.errors import ChatwireError
from chatwire.generate import generate
from chatwire.status import check_status
from chatwire.stream import decode_stream
from chatwire.structured_output import structured_output
from chatwire.transport import HttpxTransport

if TYPE_CHECKING:
    from types import TracebackType

    from chatwire.client import ProviderReply
    from chatwire.errors import NormalizedError
    from chatwire.models import (
        EmbeddingRequest,
        EmbeddingResult,
        GenerateRequest,
        GenerateResult,
        HealthStatus,
        StructuredOutputRequest,
        StructuredOutputResult,
    )
    from chatwire.stream import StreamCallbacks, StreamResult
    from chatwire.transport import StreamHandle, Transport

logger = logging.getLogger(__name__)


class ChatAdapter:
    """Adapter between the contract shapes and an OpenAI-compatible API.

    Args:
        transport: Network seam. Defaults to an owned :class:`HttpxTransport`.
        context: Direct config values and ``<field>_env`` indirections.
        environ: Environment mapping; ``os.environ`` (plus ``.env``) if None.
        clock: Monotonic clock used for request timing logs.
        early_tool_emission: Emit streamed tool calls as soon as their
            arguments parse as JSON.

    Example:
        async with ChatAdapter(context={"api_key": key}) as adapter:
            result = await adapter.generate(
                GenerateRequest(model="gpt-4o-mini", messages=[Message.user("Hi")])
            )
            if result.ok:
                print(result.content)
    """

    def __init__(
        self,
        transport: Transport | None = None,
        *,
        context: Mapping[str, Any] | None = None,
        environ: Mapping[str, str] | None = None,
        clock: Callable[[], float] = time.monotonic,
        early_tool_emission: bool = True,
    ) -> None:
        self._owns_transport = transport is None
        self._transport: Transport = transport or HttpxTransport()
        self._client = OpenAIClient(
            self._transport, context=context, environ=environ, clock=clock
        )
        self._early_tool_emission = early_tool_emission

    async def __aenter__(self) -> ChatAdapter:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the transport if this adapter created it."""
        if self._owns_transport:
            await self._transport.aclose()

    async def request(
        self,
        endpoint_path: str,
        payload: Mapping[str, Any] | None = None,
        *,
        method: str = "POST",
        timeout: float | None = None,
        stream: bool = False,
        headers: Mapping[str, str] | None = None,
    ) -> ProviderReply | StreamReply | NormalizedError:
        """Send a raw provider request.

        A returned :class:`StreamReply` is owned by the caller; pass it to
        :meth:`decode_stream` (which closes it) or close it yourself.
        """
        try:
            return await self._client.request(
                endpoint_path,
                payload,
                method=method,
                timeout=timeout,
                stream=stream,
                headers=headers,
            )
        except ChatwireError as e:
            return to_normalized_error(e)

    async def decode_stream(
        self,
        reply: StreamReply | StreamHandle,
        callbacks: StreamCallbacks | None = None,
    ) -> StreamResult | NormalizedError:
        """Decode a stream to completion; ``StreamResult.content`` is the full text."""
        if isinstance(reply, StreamReply):
            handle, metadata = reply.stream, reply.metadata
        else:
            handle, metadata = reply, {}
        return await decode_stream(
            handle,
            callbacks,
            metadata=metadata,
            early_tool_emission=self._early_tool_emission,
        )

    async def generate(
        self,
        request: GenerateRequest,
        callbacks: StreamCallbacks | None = None,
    ) -> GenerateResult | NormalizedError:
        try:
            return await generate(
                self._client,
                request,
                callbacks,
                early_tool_emission=self._early_tool_emission,
            )
        except ChatwireError as e:
            return to_normalized_error(e)

    async def structured_output(
        self, request: StructuredOutputRequest
    ) -> StructuredOutputResult | NormalizedError:
        try:
            return await structured_output(self._client, request)
        except ChatwireError as e:
            return to_normalized_error(e)

    async def embed(self, request: EmbeddingRequest) -> EmbeddingResult | NormalizedError:
        try:
            return await embed(self._client, request)
        except ChatwireError as e:
            return to_normalized_error(e)

    async def status(self) -> HealthStatus:
        """Health check; always returns a :class:`HealthStatus`."""
        return await check_status(self._client)
