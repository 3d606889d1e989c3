"""Exception hierarchy and the normalized error taxonomy for chatwire.

Exceptions are raised inside the adapter (client, normalizer, transport).
Public ``ChatAdapter`` operations never let them escape: they are converted
to an immutable :class:`NormalizedError` value at the boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator


class ChatwireError(Exception):
    """Base exception for all chatwire errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(ChatwireError):
    """Configuration validation or resolution failed."""


class APIError(ChatwireError):
    """Provider call failed.

    Carries whatever the provider told us about the failure so the error
    classifier can map it into the closed :class:`ErrorKind` taxonomy.
    """

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        status_code: int | None = None,
        code: Any = None,
        param: str | None = None,
        error_type: str | None = None,
        request_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        provider: str | None = None,
        phase: str | None = None,
        kind: ErrorKind | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.param = param
        self.error_type = error_type
        self.request_id = request_id
        self.metadata = dict(metadata or {})
        self.provider = provider
        self.phase = phase
        #: Fixed classification; None lets status and message decide.
        self.kind = kind


class TransportError(APIError):
    """No HTTP response was obtained (connection refused, DNS, read failure)."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("status_code", 0)
        super().__init__(message, **kwargs)


class ProviderResponseError(APIError):
    """The provider answered 2xx but the body is not a usable response."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("kind", ErrorKind.SERVER_ERROR)
        super().__init__(message, **kwargs)


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its ``__cause__``/``__context__`` chain, with cycle protection."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)


class ErrorKind(str, Enum):
    """Closed error taxonomy surfaced to callers."""

    INVALID_REQUEST = "invalid_request"
    AUTHENTICATION = "authentication_error"
    RATE_LIMIT = "rate_limit_exceeded"
    MODEL_ERROR = "model_error"
    SERVER_ERROR = "server_error"
    CONTEXT_LENGTH = "context_length_exceeded"
    CONTENT_FILTER = "content_filter"
    TIMEOUT = "timeout_error"
    NETWORK_ERROR = "network_error"


@dataclass(frozen=True)
class NormalizedError:
    """A failed call, classified. Created once, never mutated."""

    kind: ErrorKind
    message: str
    code: Any = None
    param: str | None = None
    request_id: str | None = None
    #: ``x-ratelimit-*`` headers with the prefix stripped.
    rate_limit_metadata: dict[str, Any] | None = None
    status_code: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Always False; lets callers branch without isinstance checks."""
        return False
