"""Chat-completions client: config, request building and dispatch."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
import json
import logging
import time
from typing import TYPE_CHECKING, Any

from chatwire._errors import extract_response_metadata, parse_error_response
from chatwire.config import resolve_client_config
from chatwire.errors import APIError, ProviderResponseError
from chatwire.request import build_request
from chatwire.stream import close_stream

if TYPE_CHECKING:
    from chatwire.transport import StreamHandle, Transport

logger = logging.getLogger(__name__)


@dataclass
class ProviderReply:
    """A successful buffered response with its JSON body decoded."""

    body: Any
    status_code: int = 200
    headers: Mapping[str, str] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class StreamReply:
    """A successful streaming response; the caller owns ``stream``."""

    stream: StreamHandle
    status_code: int = 200
    headers: Mapping[str, str] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)


class OpenAIClient:
    """Sends chat-completions style requests through an injected transport.

    Configuration is resolved on every call from the injected ``context`` and
    ``environ`` mappings, so a changed environment is picked up without
    rebuilding the client.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        context: Mapping[str, Any] | None = None,
        environ: Mapping[str, str] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._transport = transport
        self._context = dict(context or {})
        self._environ = environ
        self._clock = clock

    async def request(
        self,
        endpoint_path: str,
        payload: Mapping[str, Any] | None = None,
        *,
        method: str = "POST",
        timeout: float | None = None,
        stream: bool = False,
        headers: Mapping[str, str] | None = None,
    ) -> ProviderReply | StreamReply:
        """Send one request and return the decoded reply or open stream.

        Raises:
            ConfigurationError: If configuration or the request is invalid.
            APIError: On a missing API key (401) or a non-2xx response.
            TransportError: If no HTTP response was obtained.
            ProviderResponseError: If a 2xx body is not valid JSON.
        """
        config = resolve_client_config(self._context, self._environ)
        if not config.api_key:
            raise APIError(
                "OpenAI API key is required",
                hint="Set OPENAI_API_KEY or pass api_key in the context.",
                status_code=401,
                provider="openai",
                phase="request",
            )

        http_request = build_request(
            config,
            endpoint_path,
            payload,
            method=method,
            stream=stream,
            timeout=timeout,
            headers=headers,
        )

        started = self._clock()
        response = await self._transport.send(http_request)
        elapsed_ms = (self._clock() - started) * 1000
        logger.debug(
            "%s %s -> %d in %.0f ms",
            http_request.method,
            endpoint_path,
            response.status_code,
            elapsed_ms,
        )

        metadata = extract_response_metadata(response.headers)
        if not 200 <= response.status_code < 300:
            if response.stream is not None:
                await close_stream(response.stream)
            raise parse_error_response(response.status_code, response.headers, response.body)

        if http_request.stream:
            if response.stream is None:
                raise ProviderResponseError(
                    "Streaming response carried no body stream",
                    status_code=response.status_code,
                    metadata=metadata,
                    phase="response",
                )
            return StreamReply(
                stream=response.stream,
                status_code=response.status_code,
                headers=response.headers,
                metadata=metadata,
            )

        body: Any = None
        if response.body:
            try:
                body = json.loads(response.body)
            except ValueError as e:
                raise ProviderResponseError(
                    f"Failed to parse OpenAI response: {e}",
                    status_code=response.status_code,
                    metadata=metadata,
                    phase="response",
                ) from e
        return ProviderReply(
            body=body,
            status_code=response.status_code,
            headers=response.headers,
            metadata=metadata,
        )
