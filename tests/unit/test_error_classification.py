"""Error taxonomy: status buckets, message overrides and error parsing."""

from __future__ import annotations

import asyncio
import json

from hypothesis import given
from hypothesis import strategies as st
import pytest

from chatwire._errors import (
    classify_error,
    extract_response_metadata,
    extract_status_code,
    parse_error_response,
    parse_stream_error,
    to_normalized_error,
)
from chatwire.errors import (
    APIError,
    ConfigurationError,
    ErrorKind,
    NormalizedError,
    ProviderResponseError,
    TransportError,
)

pytestmark = pytest.mark.unit

# =============================================================================
# Classification
# =============================================================================


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (400, ErrorKind.INVALID_REQUEST),
        (401, ErrorKind.AUTHENTICATION),
        (403, ErrorKind.AUTHENTICATION),
        (404, ErrorKind.MODEL_ERROR),
        (429, ErrorKind.RATE_LIMIT),
        (500, ErrorKind.SERVER_ERROR),
        (503, ErrorKind.SERVER_ERROR),
        (0, ErrorKind.SERVER_ERROR),
        (None, ErrorKind.SERVER_ERROR),
    ],
)
def test_status_buckets(status: int | None, expected: ErrorKind) -> None:
    assert classify_error(status, "something went wrong") is expected


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("This model's maximum context length is 4096", ErrorKind.CONTEXT_LENGTH),
        ("Requested maximum of 9000 tokens", ErrorKind.CONTEXT_LENGTH),
        ("String too long", ErrorKind.CONTEXT_LENGTH),
        ("Flagged by our Content Policy", ErrorKind.CONTENT_FILTER),
        ("content filter triggered", ErrorKind.CONTENT_FILTER),
        ("Request Timed Out", ErrorKind.TIMEOUT),
        ("upstream timeout", ErrorKind.TIMEOUT),
        ("Network unreachable", ErrorKind.NETWORK_ERROR),
        ("Connection failed: refused", ErrorKind.NETWORK_ERROR),
    ],
)
def test_message_overrides_beat_status(message: str, expected: ErrorKind) -> None:
    assert classify_error(400, message) is expected


def test_override_priority_prefers_context_length_over_timeout() -> None:
    assert classify_error(500, "context length check timed out") is ErrorKind.CONTEXT_LENGTH


def test_connection_timeout_is_timeout_not_network() -> None:
    message = "Connection failed: request timed out (read)"
    assert classify_error(0, message) is ErrorKind.TIMEOUT


@given(
    status=st.sampled_from([400, 401, 403, 404, 429, 500, 503, 0, None]),
    prefix=st.text(max_size=20),
    suffix=st.text(max_size=20),
)
def test_context_length_phrase_always_wins(
    status: int | None, prefix: str, suffix: str
) -> None:
    message = f"{prefix} context length {suffix}"
    assert classify_error(status, message) is ErrorKind.CONTEXT_LENGTH


@given(status=st.sampled_from([400, 401, 403, 404, 429, 500, 503, 0, None]))
def test_status_mapping_is_total(status: int | None) -> None:
    assert isinstance(classify_error(status, None), ErrorKind)


# =============================================================================
# Status extraction and metadata
# =============================================================================


def test_extract_status_code_walks_the_cause_chain() -> None:
    class Boom(Exception):
        status_code = 503

    try:
        try:
            raise Boom("inner")
        except Boom as inner:
            raise RuntimeError("outer") from inner
    except RuntimeError as e:
        assert extract_status_code(e) == 503


def test_extract_status_code_keeps_zero_for_connection_failures() -> None:
    assert extract_status_code(TransportError("Connection failed: dns")) == 0


def test_response_metadata_collects_ids_timing_and_rate_limits() -> None:
    headers = {
        "X-Request-Id": "req_123",
        "OpenAI-Organization": "org-1",
        "openai-processing-ms": "42",
        "openai-version": "2020-10-01",
        "x-ratelimit-limit-requests": "500",
        "x-ratelimit-remaining-tokens": "1234",
        "x-ratelimit-reset-requests": "1s",
        "content-type": "application/json",
    }

    metadata = extract_response_metadata(headers)

    assert metadata == {
        "request_id": "req_123",
        "organization": "org-1",
        "processing_ms": 42,
        "version": "2020-10-01",
        "rate_limits": {
            "limit_requests": 500,
            "remaining_tokens": 1234,
            "reset_requests": "1s",
        },
    }


def test_response_metadata_is_empty_without_headers() -> None:
    assert extract_response_metadata(None) == {}
    assert extract_response_metadata({"content-type": "text/plain"}) == {}


# =============================================================================
# Error bodies
# =============================================================================


def test_rate_limit_scenario() -> None:
    body = json.dumps({"error": {"message": "Rate limit exceeded"}}).encode()

    err = to_normalized_error(parse_error_response(429, {}, body))

    assert err.kind is ErrorKind.RATE_LIMIT
    assert err.message == "Rate limit exceeded"
    assert err.status_code == 429


def test_error_body_fields_and_rate_limit_headers_are_carried() -> None:
    body = json.dumps(
        {
            "error": {
                "message": "Unknown parameter: 'foo'",
                "type": "invalid_request_error",
                "param": "foo",
                "code": "unknown_parameter",
            }
        }
    )
    headers = {"x-request-id": "req_9", "x-ratelimit-remaining-requests": "9"}

    err = to_normalized_error(parse_error_response(400, headers, body))

    assert err.kind is ErrorKind.INVALID_REQUEST
    assert err.code == "unknown_parameter"
    assert err.param == "foo"
    assert err.request_id == "req_9"
    assert err.rate_limit_metadata == {"remaining_requests": 9}


def test_unparsable_error_body_uses_generic_message() -> None:
    exc = parse_error_response(502, {}, b"<html>Bad gateway</html>")

    assert exc.message == "OpenAI API error: 502"
    assert to_normalized_error(exc).kind is ErrorKind.SERVER_ERROR


def test_openrouter_nested_error_metadata() -> None:
    raw = json.dumps({"message": "Upstream says no", "code": 400})
    body = json.dumps(
        {
            "error": {
                "message": "Provider returned error",
                "code": 400,
                "metadata": {"raw": raw, "provider_name": "SomeProvider"},
            }
        }
    )

    exc = parse_error_response(400, {}, body)

    assert exc.metadata["nested_error"] == raw
    assert exc.metadata["provider_name"] == "SomeProvider"
    assert exc.metadata["detailed_message"] == "Upstream says no"


def test_auth_errors_carry_a_hint() -> None:
    exc = parse_error_response(401, {}, b'{"error": {"message": "Incorrect API key"}}')

    assert exc.hint is not None
    assert "OPENAI_API_KEY" in exc.hint
    assert to_normalized_error(exc).kind is ErrorKind.AUTHENTICATION


def test_stream_error_uses_http_range_code_as_status() -> None:
    exc = parse_stream_error({"error": {"message": "slow down", "code": 429}})

    assert exc.status_code == 429
    assert exc.phase == "stream"


def test_stream_error_with_non_dict_payload() -> None:
    exc = parse_stream_error({"error": "something broke"})

    assert exc.message == "something broke"
    assert exc.status_code is None


# =============================================================================
# Normalization
# =============================================================================


def test_fixed_kind_overrides_classification() -> None:
    exc = APIError("Request was refused: no", kind=ErrorKind.CONTENT_FILTER)

    assert to_normalized_error(exc).kind is ErrorKind.CONTENT_FILTER


def test_provider_response_error_is_server_error() -> None:
    err = to_normalized_error(ProviderResponseError("Invalid OpenAI response structure"))

    assert err.kind is ErrorKind.SERVER_ERROR


def test_configuration_error_is_invalid_request() -> None:
    err = to_normalized_error(ConfigurationError("Tool 'x' not found in available tools"))

    assert err.kind is ErrorKind.INVALID_REQUEST
    assert err.message == "Tool 'x' not found in available tools"


def test_transport_error_is_zero_status_network_error() -> None:
    err = to_normalized_error(TransportError("Connection failed: connection refused"))

    assert err.kind is ErrorKind.NETWORK_ERROR
    assert err.status_code == 0


def test_extra_metadata_is_merged_into_the_error() -> None:
    err = to_normalized_error(
        APIError("boom", status_code=500, metadata={"request_id": "req_a"}),
        metadata={"rate_limits": {"remaining_requests": 1}},
    )

    assert err.request_id == "req_a"
    assert err.rate_limit_metadata == {"remaining_requests": 1}


def test_cancellation_is_never_normalized() -> None:
    with pytest.raises(asyncio.CancelledError):
        to_normalized_error(asyncio.CancelledError())


def test_normalized_error_is_immutable_and_not_ok() -> None:
    err = NormalizedError(kind=ErrorKind.SERVER_ERROR, message="x")

    assert err.ok is False
    with pytest.raises(AttributeError):
        err.message = "y"  # type: ignore[misc]
