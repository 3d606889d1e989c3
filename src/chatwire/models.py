"""Contract models: the vendor-neutral request/response shapes."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Literal

from chatwire.errors import ConfigurationError


class Role(str, Enum):
    """Roles a contract message can carry."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    DEVELOPER = "developer"
    FUNCTION_CALL = "function_call"
    FUNCTION_RESULT = "function_result"
    CACHE_MARKER = "cache_marker"


class FinishReason(str, Enum):
    """Why generation stopped, in contract terms."""

    STOP = "stop"
    LENGTH = "length"
    CONTENT_FILTER = "filtered"
    TOOL_CALL = "tool_call"
    ERROR = "error"


@dataclass(frozen=True)
class ImageSource:
    """Where an image part's bytes come from."""

    type: Literal["url", "base64"]
    url: str | None = None
    data: str | None = None
    mime_type: str | None = None


@dataclass(frozen=True)
class ContentPart:
    """A tagged piece of message content (``text`` or ``image``)."""

    type: str
    text: str | None = None
    source: ImageSource | None = None

    @classmethod
    def from_text(cls, text: str) -> ContentPart:
        return cls(type="text", text=text)

    @classmethod
    def from_image_url(cls, url: str) -> ContentPart:
        return cls(type="image", source=ImageSource(type="url", url=url))

    @classmethod
    def from_image_base64(cls, data: str, mime_type: str) -> ContentPart:
        return cls(
            type="image",
            source=ImageSource(type="base64", data=data, mime_type=mime_type),
        )


@dataclass(frozen=True)
class FunctionCall:
    """A tool invocation recorded in conversation history."""

    id: str | None
    name: str
    #: Structured value or an already-encoded JSON string.
    arguments: Any = field(default_factory=dict)


@dataclass(frozen=True)
class Message:
    """A contract message turn."""

    role: Role | str
    content: str | list[ContentPart] | None = ""
    name: str | None = None
    function_call: FunctionCall | None = None
    function_call_id: str | None = None

    @classmethod
    def system(cls, text: str) -> Message:
        return cls(role=Role.SYSTEM, content=text)

    @classmethod
    def user(cls, content: str | list[ContentPart]) -> Message:
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, text: str) -> Message:
        return cls(role=Role.ASSISTANT, content=text)

    @classmethod
    def developer(cls, content: str | list[ContentPart]) -> Message:
        return cls(role=Role.DEVELOPER, content=content)

    @classmethod
    def tool_call(cls, call_id: str | None, name: str, arguments: Any) -> Message:
        return cls(
            role=Role.FUNCTION_CALL,
            content=None,
            function_call=FunctionCall(id=call_id, name=name, arguments=arguments),
        )

    @classmethod
    def tool_result(
        cls, call_id: str, content: str | list[ContentPart], name: str | None = None
    ) -> Message:
        return cls(
            role=Role.FUNCTION_RESULT,
            content=content,
            name=name,
            function_call_id=call_id,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Message:
        """Build a Message from the plain-dict contract shape."""
        content = data.get("content", "")
        if isinstance(content, list):
            content = [_part_from_dict(p) for p in content]
        call = data.get("function_call")
        if isinstance(call, Mapping):
            call = FunctionCall(
                id=call.get("id"),
                name=call.get("name", ""),
                arguments=call.get("arguments", {}),
            )
        return cls(
            role=data.get("role", ""),
            content=content,
            name=data.get("name"),
            function_call=call,
            function_call_id=data.get("function_call_id"),
        )

    @property
    def role_value(self) -> str:
        return self.role.value if isinstance(self.role, Role) else str(self.role)


def _part_from_dict(part: Any) -> Any:
    if not isinstance(part, Mapping):
        return part
    source = part.get("source")
    if isinstance(source, Mapping):
        source = ImageSource(
            type=source.get("type", "url"),
            url=source.get("url"),
            data=source.get("data"),
            mime_type=source.get("mime_type"),
        )
    return ContentPart(type=part.get("type", "text"), text=part.get("text"), source=source)


@dataclass(frozen=True)
class Tool:
    """A callable tool offered to the model.

    All three fields are required by the provider; incomplete tools are
    skipped during mapping rather than failing the request.
    """

    name: str | None
    description: str | None
    schema: dict[str, Any] | None


@dataclass(frozen=True)
class GenerationOptions:
    """Sampling and reasoning options for a generation call."""

    max_tokens: int | None = None
    temperature: float | None = None
    top_p: float | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    seed: int | None = None
    user: str | None = None
    stop_sequences: list[str] | None = None
    #: Set by the caller for reasoning-capable models.
    reasoning_model_request: bool = False
    #: 0-100; bucketed into low/medium/high for reasoning models.
    thinking_effort: float | None = None

    def __post_init__(self) -> None:
        """Validate option shapes early for clear errors."""
        if self.max_tokens is not None and (
            not isinstance(self.max_tokens, int)
            or isinstance(self.max_tokens, bool)
            or self.max_tokens <= 0
        ):
            raise ConfigurationError(
                "max_tokens must be a positive integer",
                hint="Pass max_tokens=1024 or leave it unset.",
            )
        if self.thinking_effort is not None and (
            not isinstance(self.thinking_effort, (int, float))
            or isinstance(self.thinking_effort, bool)
            or not 0 <= self.thinking_effort <= 100
        ):
            raise ConfigurationError(
                f"thinking_effort must be a number within 0-100, got {self.thinking_effort!r}",
                hint="0 disables reasoning effort; 75+ maps to 'high'.",
            )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> GenerationOptions:
        """Build options from a free-form map, ignoring keys we do not map."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass(frozen=True)
class ToolCall:
    """A completed tool invocation requested by the model."""

    id: str
    name: str
    #: Parsed arguments; ``{}`` when the provider sent invalid JSON.
    arguments: Any


@dataclass(frozen=True)
class StreamedToolCall:
    """A tool call as assembled by the stream decoder (arguments still raw)."""

    id: str
    name: str
    arguments: str


@dataclass(frozen=True)
class TokenUsage:
    """Normalized token accounting."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0
    thinking_tokens: int = 0


@dataclass(frozen=True)
class GenerateRequest:
    """A text generation (optionally tool-calling, optionally streamed) call."""

    model: str
    messages: list[Message | Mapping[str, Any]]
    tools: list[Tool] | None = None
    tool_choice: str | None = None
    options: GenerationOptions | Mapping[str, Any] | None = None
    timeout: float | None = None
    stream: bool = False
    headers: Mapping[str, str] | None = None


@dataclass
class GenerateResult:
    """A successful generation in contract shape."""

    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: FinishReason = FinishReason.STOP
    tokens: TokenUsage | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    reasoning: str | None = None
    reasoning_details: list[Any] | None = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class StructuredOutputRequest:
    """A chat completion constrained to a strict JSON schema."""

    model: str
    messages: list[Message | Mapping[str, Any]]
    schema: dict[str, Any] | None
    schema_name: str | None = None
    options: GenerationOptions | Mapping[str, Any] | None = None
    timeout: float | None = None


@dataclass
class StructuredOutputResult:
    """Parsed JSON data returned by a structured-output call."""

    data: Any
    tokens: TokenUsage | None = None
    finish_reason: FinishReason = FinishReason.STOP
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class EmbeddingRequest:
    """An embeddings call for one or many inputs."""

    model: str
    input: str | list[str] | None
    dimensions: int | None = None
    user: str | None = None
    timeout: float | None = None


@dataclass
class EmbeddingResult:
    """Embedding vectors, always one list per input."""

    embeddings: list[list[float]]
    tokens: TokenUsage | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class HealthStatus:
    """Outcome of a provider health check."""

    ok: bool
    status: Literal["healthy", "degraded", "unhealthy"]
    message: str
