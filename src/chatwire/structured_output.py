"""Structured output: chat completions constrained to a strict JSON schema."""

from __future__ import annotations

import hashlib
import json
from typing import TYPE_CHECKING, Any

from chatwire._http import CHAT_COMPLETIONS_PATH
from chatwire.errors import APIError, ConfigurationError, ErrorKind, ProviderResponseError
from chatwire.generate import validate_chat_request
from chatwire.mapper import map_messages, map_options
from chatwire.models import StructuredOutputResult
from chatwire.normalize import first_message, map_finish_reason, map_tokens, raise_for_refusal

if TYPE_CHECKING:
    from chatwire.client import OpenAIClient
    from chatwire.models import StructuredOutputRequest


def validate_schema(schema: Any) -> list[str]:
    """Return the reasons *schema* is unusable in strict mode (empty if fine).

    Strict mode needs an object root that forbids additional properties and
    lists every property as required.
    """
    if not isinstance(schema, dict):
        return ["Schema must be an object"]

    problems: list[str] = []
    if schema.get("type") != "object":
        problems.append("Root schema must be an object type")
    if schema.get("additionalProperties") is not False:
        problems.append("Root schema must have additionalProperties: false")

    properties = schema.get("properties")
    if properties:
        required = schema.get("required")
        if not isinstance(required, list):
            problems.append("Schema must have a required array listing all properties")
        else:
            missing = [name for name in properties if name not in required]
            if missing:
                problems.append(
                    "Properties must be marked as required: " + ", ".join(missing)
                )
    return problems


def schema_name_for(schema: dict[str, Any]) -> str:
    """Stable name derived from the schema's content."""
    encoded = json.dumps(schema, sort_keys=True, separators=(",", ":"))
    return "schema_" + hashlib.sha256(encoded.encode("utf-8")).hexdigest()[:16]


def build_structured_payload(request: StructuredOutputRequest) -> dict[str, Any]:
    """Raises ConfigurationError when the request or schema is invalid."""
    validate_chat_request(request.model, request.messages)
    if not request.schema:
        raise ConfigurationError("Schema is required")
    problems = validate_schema(request.schema)
    if problems:
        raise ConfigurationError("Invalid schema: " + "; ".join(problems))

    payload: dict[str, Any] = {
        "model": request.model,
        "messages": map_messages(request.messages),
        "response_format": {
            "type": "json_schema",
            "json_schema": {
                "name": request.schema_name or schema_name_for(request.schema),
                "schema": request.schema,
                "strict": True,
            },
        },
    }
    payload.update(map_options(request.options))
    return payload


async def structured_output(
    client: OpenAIClient, request: StructuredOutputRequest
) -> StructuredOutputResult:
    """Request schema-constrained JSON and return it parsed.

    Raises:
        ConfigurationError: If the request or schema is invalid.
        APIError: On provider failure, refusal (``content_filter``) or
            content that is not JSON (``model_error``).
    """
    payload = build_structured_payload(request)
    reply = await client.request(CHAT_COMPLETIONS_PATH, payload, timeout=request.timeout)

    choice, message = first_message(reply.body, reply.metadata)
    raise_for_refusal(message, reply.metadata)

    content = message.get("content")
    if content is None:
        raise ProviderResponseError(
            "No content in OpenAI response", metadata=reply.metadata, phase="response"
        )
    try:
        data = json.loads(content)
    except (TypeError, ValueError) as e:
        raise APIError(
            f"Model failed to return valid JSON: {e}",
            metadata=reply.metadata,
            provider="openai",
            phase="response",
            kind=ErrorKind.MODEL_ERROR,
        ) from e

    return StructuredOutputResult(
        data=data,
        tokens=map_tokens(reply.body.get("usage")),
        finish_reason=map_finish_reason(choice.get("finish_reason")),
        metadata=dict(reply.metadata),
    )
