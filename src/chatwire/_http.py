"""Small HTTP-related constants shared across chatwire.

This module is intentionally tiny to avoid circular imports and drift.
"""

from __future__ import annotations

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_TIMEOUT_S = 120.0

# Methods that carry a JSON request body.
BODIED_METHODS: frozenset[str] = frozenset({"POST", "PUT", "PATCH"})
SUPPORTED_METHODS: frozenset[str] = frozenset(
    {"GET", "POST", "PUT", "PATCH", "DELETE"}
)

CHAT_COMPLETIONS_PATH = "/chat/completions"
EMBEDDINGS_PATH = "/embeddings"
MODELS_PATH = "/models"

ORGANIZATION_HEADER = "OpenAI-Organization"
REQUEST_ID_HEADER = "x-request-id"
PROCESSING_MS_HEADER = "openai-processing-ms"
VERSION_HEADER = "openai-version"
RATE_LIMIT_HEADER_PREFIX = "x-ratelimit-"

# Server-sent events framing.
SSE_DATA_PREFIX = "data:"
SSE_DONE_SENTINEL = "[DONE]"
