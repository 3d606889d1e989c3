"""chatwire: a contract adapter for OpenAI-compatible chat-completions APIs.

Public API:
    - ChatAdapter: generate, structured_output, embed, status, request,
      decode_stream
    - Message, Tool, GenerationOptions: contract inputs
    - NormalizedError, ErrorKind: the failure value and its taxonomy
"""

from __future__ import annotations

import logging

from chatwire.adapter import ChatAdapter
from chatwire.client import ProviderReply, StreamReply
from chatwire.config import ClientConfig, resolve_client_config
from chatwire.errors import (
    APIError,
    ChatwireError,
    ConfigurationError,
    ErrorKind,
    NormalizedError,
    ProviderResponseError,
    TransportError,
)
from chatwire.models import (
    ContentPart,
    EmbeddingRequest,
    EmbeddingResult,
    FinishReason,
    FunctionCall,
    GenerateRequest,
    GenerateResult,
    GenerationOptions,
    HealthStatus,
    Message,
    Role,
    StreamedToolCall,
    StructuredOutputRequest,
    StructuredOutputResult,
    TokenUsage,
    Tool,
    ToolCall,
)
from chatwire.stream import StreamCallbacks, StreamResult
from chatwire.transport import HttpRequest, HttpxTransport, Transport, TransportResponse

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("chatwire")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("chatwire").addHandler(logging.NullHandler())

__all__ = [
    "APIError",
    "ChatAdapter",
    "ChatwireError",
    "ClientConfig",
    "ConfigurationError",
    "ContentPart",
    "EmbeddingRequest",
    "EmbeddingResult",
    "ErrorKind",
    "FinishReason",
    "FunctionCall",
    "GenerateRequest",
    "GenerateResult",
    "GenerationOptions",
    "HealthStatus",
    "HttpRequest",
    "HttpxTransport",
    "Message",
    "NormalizedError",
    "ProviderReply",
    "ProviderResponseError",
    "Role",
    "StreamCallbacks",
    "StreamReply",
    "StreamResult",
    "StreamedToolCall",
    "StructuredOutputRequest",
    "StructuredOutputResult",
    "TokenUsage",
    "Tool",
    "ToolCall",
    "Transport",
    "TransportError",
    "TransportResponse",
    "resolve_client_config",
]
