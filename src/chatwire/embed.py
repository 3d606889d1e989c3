"""Embeddings."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from chatwire._http import EMBEDDINGS_PATH
from chatwire.errors import ConfigurationError, ProviderResponseError
from chatwire.models import EmbeddingResult, TokenUsage

if TYPE_CHECKING:
    from chatwire.client import OpenAIClient
    from chatwire.models import EmbeddingRequest


def build_embedding_payload(request: EmbeddingRequest) -> dict[str, Any]:
    if not request.model:
        raise ConfigurationError("Model is required")
    if not request.input:
        raise ConfigurationError("Input is required")

    payload: dict[str, Any] = {
        "model": request.model,
        "input": request.input,
        "encoding_format": "float",
    }
    if request.dimensions is not None:
        payload["dimensions"] = request.dimensions
    if request.user:
        payload["user"] = request.user
    return payload


async def embed(client: OpenAIClient, request: EmbeddingRequest) -> EmbeddingResult:
    """Embed one or many inputs; always returns one vector per input.

    Raises:
        ConfigurationError: If model or input is missing.
        APIError: On provider failure or an empty ``data`` array.
    """
    payload = build_embedding_payload(request)
    reply = await client.request(EMBEDDINGS_PATH, payload, timeout=request.timeout)

    body = reply.body if isinstance(reply.body, dict) else {}
    data = body.get("data")
    if not isinstance(data, list) or not data:
        raise ProviderResponseError(
            "Invalid or empty response from OpenAI embeddings API",
            metadata=reply.metadata,
            phase="response",
        )

    tokens = None
    usage = body.get("usage")
    if isinstance(usage, dict):
        prompt = usage.get("prompt_tokens") or 0
        tokens = TokenUsage(
            prompt_tokens=prompt,
            total_tokens=usage.get("total_tokens") or prompt,
        )

    return EmbeddingResult(
        embeddings=[item.get("embedding") or [] for item in data if isinstance(item, dict)],
        tokens=tokens,
        metadata=dict(reply.metadata),
    )
