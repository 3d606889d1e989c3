"""Transport seam: the only place that performs network I/O.

The adapter talks to a :class:`Transport`; :class:`HttpxTransport` is the
default implementation. Tests inject their own.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
import logging
from typing import Protocol, runtime_checkable

import httpx

from chatwire.errors import TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpRequest:
    """A fully-formed request descriptor produced by the request builder."""

    method: str
    url: str
    headers: dict[str, str]
    body: bytes | None = None
    timeout: float | None = None
    stream: bool = False


@runtime_checkable
class StreamHandle(Protocol):
    """A pull-based byte stream."""

    async def read(self) -> bytes | None:
        """Return the next chunk, or None at end of stream.

        Raises:
            TransportError: If the connection fails mid-stream.
        """
        ...

    async def aclose(self) -> None:
        """Release the underlying connection. Idempotent."""
        ...


@dataclass
class TransportResponse:
    """A response with either a buffered ``body`` or an open ``stream``."""

    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes | None = None
    stream: StreamHandle | None = None


@runtime_checkable
class Transport(Protocol):
    """Minimal transport protocol."""

    async def send(self, request: HttpRequest) -> TransportResponse:
        """Send *request*.

        Non-2xx responses are returned, not raised, and always buffered.

        Raises:
            TransportError: If no HTTP response was obtained.
        """
        ...

    async def aclose(self) -> None:
        """Close transport resources."""
        ...


class HttpxStreamHandle:
    """Stream handle over an open ``httpx.Response``."""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self._chunks: AsyncIterator[bytes] = response.aiter_bytes()
        self._closed = False

    async def read(self) -> bytes | None:
        if self._closed:
            return None
        try:
            return await anext(self._chunks)
        except StopAsyncIteration:
            return None
        except httpx.TimeoutException as e:
            raise TransportError(f"Stream read timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Stream read failed: connection lost ({e})") from e

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._response.aclose()


class HttpxTransport:
    """Transport backed by ``httpx.AsyncClient``.

    A client passed in is borrowed and left open on :meth:`aclose`; one
    created here is owned and closed.
    """

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()

    async def send(self, request: HttpRequest) -> TransportResponse:
        http_request = self._client.build_request(
            request.method,
            request.url,
            headers=request.headers,
            content=request.body,
            timeout=request.timeout,
        )
        try:
            response = await self._client.send(http_request, stream=True)
        except httpx.TimeoutException as e:
            raise TransportError(f"Connection failed: request timed out ({e})") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Connection failed: {e}") from e

        headers = dict(response.headers)
        logger.debug(
            "%s %s -> %d (stream=%s)",
            request.method,
            http_request.url.path,
            response.status_code,
            request.stream,
        )
        if request.stream and response.is_success:
            return TransportResponse(
                status_code=response.status_code,
                headers=headers,
                stream=HttpxStreamHandle(response),
            )

        try:
            body = await response.aread()
        except httpx.HTTPError as e:
            raise TransportError(f"Connection failed: {e}") from e
        finally:
            await response.aclose()
        return TransportResponse(
            status_code=response.status_code, headers=headers, body=body
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
