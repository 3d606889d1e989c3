"""Error classification and provider error parsing.

Status codes are bucketed first; a small set of message phrases then
overrides the bucket, because providers report context-length and policy
failures under generic 400s and timeouts under generic 5xx.
"""

from __future__ import annotations

import asyncio
import json
import re
from typing import TYPE_CHECKING, Any

from chatwire._http import (
    PROCESSING_MS_HEADER,
    RATE_LIMIT_HEADER_PREFIX,
    REQUEST_ID_HEADER,
    VERSION_HEADER,
)
from chatwire.errors import (
    APIError,
    ConfigurationError,
    ErrorKind,
    NormalizedError,
    _walk_exception_chain,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

_CONTEXT_LENGTH_RE = re.compile(r"context length|maximum.+tokens|string too long")
_CONTENT_FILTER_RE = re.compile(r"content policy|content filter")
_TIMEOUT_RE = re.compile(r"timeout|timed out")
_NETWORK_RE = re.compile(r"network|connection")

_MESSAGE_OVERRIDES: tuple[tuple[re.Pattern[str], ErrorKind], ...] = (
    (_CONTEXT_LENGTH_RE, ErrorKind.CONTEXT_LENGTH),
    (_CONTENT_FILTER_RE, ErrorKind.CONTENT_FILTER),
    (_TIMEOUT_RE, ErrorKind.TIMEOUT),
    (_NETWORK_RE, ErrorKind.NETWORK_ERROR),
)


def classify_error(status_code: int | None, message: str | None) -> ErrorKind:
    """Map an HTTP status and error message into the error taxonomy."""
    kind = ErrorKind.SERVER_ERROR
    if status_code == 400:
        kind = ErrorKind.INVALID_REQUEST
    elif status_code in (401, 403):
        kind = ErrorKind.AUTHENTICATION
    elif status_code == 404:
        kind = ErrorKind.MODEL_ERROR
    elif status_code == 429:
        kind = ErrorKind.RATE_LIMIT

    if message:
        lowered = message.lower()
        for pattern, override in _MESSAGE_OVERRIDES:
            if pattern.search(lowered):
                return override
    return kind


def extract_status_code(exc: BaseException) -> int | None:
    """Walk the exception chain to find an HTTP status code (0 = no response)."""
    for e in _walk_exception_chain(exc):
        for attr in ("status_code", "status"):
            value = getattr(e, attr, None)
            if isinstance(value, int) and (value == 0 or 100 <= value <= 599):
                return value
        response = getattr(e, "response", None)
        value = getattr(response, "status_code", None)
        if isinstance(value, int) and 100 <= value <= 599:
            return value
    return None


def _numeric(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return value


def extract_response_metadata(headers: Mapping[str, str] | None) -> dict[str, Any]:
    """Copy request-id, processing-time and rate-limit headers into a dict."""
    if not headers:
        return {}
    lowered = {str(k).lower(): v for k, v in headers.items()}

    metadata: dict[str, Any] = {}
    if REQUEST_ID_HEADER in lowered:
        metadata["request_id"] = lowered[REQUEST_ID_HEADER]
    if "openai-organization" in lowered:
        metadata["organization"] = lowered["openai-organization"]
    if PROCESSING_MS_HEADER in lowered:
        processing = _numeric(lowered[PROCESSING_MS_HEADER])
        if isinstance(processing, (int, float)):
            metadata["processing_ms"] = processing
    if VERSION_HEADER in lowered:
        metadata["version"] = lowered[VERSION_HEADER]

    rate_limits: dict[str, Any] = {}
    for name, value in lowered.items():
        if name.startswith(RATE_LIMIT_HEADER_PREFIX):
            key = name.removeprefix(RATE_LIMIT_HEADER_PREFIX).replace("-", "_")
            rate_limits[key] = _numeric(value)
    if rate_limits:
        metadata["rate_limits"] = rate_limits
    return metadata


def _auth_hint(status_code: int | None) -> str | None:
    if status_code in {401, 403}:
        return "Check credentials/permissions (try setting OPENAI_API_KEY or api_key in context)."
    return None


def parse_error_response(
    status_code: int,
    headers: Mapping[str, str] | None,
    body: bytes | str | None,
    *,
    phase: str = "request",
) -> APIError:
    """Build an APIError from a non-2xx HTTP response.

    Understands the OpenAI ``{"error": {...}}`` shape and the OpenRouter
    variant that nests the upstream provider's error as a JSON string in
    ``error.metadata.raw``.
    """
    metadata = extract_response_metadata(headers)
    message = f"OpenAI API error: {status_code}"
    code: Any = None
    param: str | None = None
    error_type: str | None = None

    text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
    if text and text != "no body":
        try:
            parsed = json.loads(text)
        except ValueError:
            parsed = None
        error = parsed.get("error") if isinstance(parsed, dict) else None
        if isinstance(error, dict):
            message = error.get("message") or message
            code = error.get("code")
            param = error.get("param")
            error_type = error.get("type")

            nested = error.get("metadata")
            if isinstance(nested, dict) and nested.get("raw"):
                metadata["nested_error"] = nested["raw"]
                if nested.get("provider_name"):
                    metadata["provider_name"] = nested["provider_name"]
                try:
                    nested_parsed = json.loads(nested["raw"])
                except (TypeError, ValueError):
                    nested_parsed = None
                if isinstance(nested_parsed, dict) and nested_parsed.get("message"):
                    metadata["detailed_message"] = nested_parsed["message"]

    return APIError(
        message,
        hint=_auth_hint(status_code),
        status_code=status_code,
        code=code,
        param=param,
        error_type=error_type,
        request_id=metadata.get("request_id"),
        metadata=metadata,
        provider="openai",
        phase=phase,
    )


def parse_stream_error(payload: Mapping[str, Any]) -> APIError:
    """Build an APIError from an inline ``{"error": {...}}`` stream event."""
    error = payload.get("error")
    if not isinstance(error, dict):
        error = {"message": str(error)}
    code = error.get("code")
    status_code = code if isinstance(code, int) and 100 <= code <= 599 else None
    return APIError(
        error.get("message") or "OpenAI stream error",
        status_code=status_code,
        code=code,
        param=error.get("param"),
        error_type=error.get("type"),
        provider="openai",
        phase="stream",
    )


def to_normalized_error(
    exc: BaseException, *, metadata: Mapping[str, Any] | None = None
) -> NormalizedError:
    """Classify any exception raised inside the adapter into a NormalizedError."""
    if isinstance(exc, asyncio.CancelledError):
        raise exc

    if isinstance(exc, APIError):
        merged = {**exc.metadata, **(metadata or {})}
        status_code = exc.status_code
        message = exc.message
        return NormalizedError(
            kind=exc.kind or classify_error(status_code, message),
            message=message,
            code=exc.code,
            param=exc.param,
            request_id=exc.request_id or merged.get("request_id"),
            rate_limit_metadata=merged.get("rate_limits"),
            status_code=status_code,
            metadata=merged,
        )

    if isinstance(exc, ConfigurationError):
        # Caller-side validation: the request was never sent.
        return NormalizedError(
            kind=ErrorKind.INVALID_REQUEST,
            message=str(exc),
            metadata=dict(metadata or {}),
        )

    status_code = extract_status_code(exc)
    message = str(exc) or type(exc).__name__
    merged = dict(metadata or {})
    return NormalizedError(
        kind=classify_error(status_code, message),
        message=message,
        request_id=merged.get("request_id"),
        rate_limit_metadata=merged.get("rate_limits"),
        status_code=status_code,
        metadata=merged,
    )

