"""Configuration resolution for the OpenAI-compatible client.

Each field resolves through the same chain, first hit wins:

1. a direct value in the caller's context map (``api_key``),
2. an indirection in the context naming an environment variable
   (``api_key_env = "MY_PROXY_KEY"``),
3. the field's default environment variable (``OPENAI_API_KEY``),
4. a literal default.

Resolved values pass through a pydantic schema and are frozen into a
:class:`ClientConfig`. Nothing here touches the network.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import os
from typing import TYPE_CHECKING, Any, Literal, overload

from pydantic import (
    BaseModel,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
)

from chatwire._http import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_S
from chatwire.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(frozen=True)
class ConfigField:
    """How one configuration field is looked up."""

    default_env_var: str | None = None
    default_value: Any = None


CLIENT_FIELDS: dict[str, ConfigField] = {
    "api_key": ConfigField(default_env_var="OPENAI_API_KEY"),
    "base_url": ConfigField(
        default_env_var="OPENAI_BASE_URL", default_value=DEFAULT_BASE_URL
    ),
    "organization": ConfigField(default_env_var="OPENAI_ORGANIZATION"),
    "timeout": ConfigField(
        default_env_var="OPENAI_TIMEOUT", default_value=DEFAULT_TIMEOUT_S
    ),
    "headers": ConfigField(),
}


# --- Audit types ---


class Origin(str, Enum):
    """Source origin for configuration field values."""

    DEFAULT = "default"
    CONTEXT = "context"
    CONTEXT_ENV = "context_env"
    ENV = "env"


@dataclass(frozen=True)
class FieldOrigin:
    """Tracks the origin of a resolved configuration field value."""

    origin: Origin
    env_key: str | None = None  # e.g., "OPENAI_API_KEY"


SourceMap = dict[str, FieldOrigin]


# --- Schema (Pydantic wall) ---


class Settings(BaseModel):
    """Validation schema for resolved client settings."""

    api_key: SecretStr | None = Field(default=None)
    base_url: str = Field(default=DEFAULT_BASE_URL, min_length=1)
    organization: str | None = Field(default=None)
    timeout: float = Field(default=DEFAULT_TIMEOUT_S, gt=0)
    headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("api_key", mode="before")
    @classmethod
    def normalize_api_key(cls, v: Any) -> Any:
        """Trim whitespace, map empty to None."""
        if isinstance(v, SecretStr):
            v = v.get_secret_value()
        if isinstance(v, str):
            s = v.strip()
            return SecretStr(s) if s else None
        return v

    @field_validator("base_url", mode="before")
    @classmethod
    def normalize_base_url(cls, v: Any) -> Any:
        """Drop trailing slashes so endpoint paths join cleanly."""
        if isinstance(v, str):
            return v.strip().rstrip("/")
        return v

    @field_validator("organization", mode="before")
    @classmethod
    def normalize_organization(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip() or None
        return v

    @field_validator("headers", mode="before")
    @classmethod
    def normalize_headers(cls, v: Any) -> Any:
        if v is None:
            return {}
        return v


# --- Immutable runtime payload ---


@dataclass(frozen=True)
class ClientConfig:
    """Resolved, validated configuration for one request."""

    api_key: str | None
    base_url: str
    organization: str | None
    timeout: float
    headers: Mapping[str, str]

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"ClientConfig(api_key={'[REDACTED]' if self.api_key else None}, "
            f"base_url={self.base_url!r}, organization={self.organization!r}, "
            f"timeout={self.timeout!r}, headers={sorted(self.headers)!r})"
        )

    __repr__ = __str__


_DOTENV_LOADED: bool = False


def _load_dotenv_once() -> None:
    """Load a project ``.env`` into the process environment, once."""
    global _DOTENV_LOADED
    if _DOTENV_LOADED:
        return
    from dotenv import load_dotenv

    load_dotenv()
    _DOTENV_LOADED = True


def _env_lookup(environ: Mapping[str, str], name: str | None) -> str | None:
    if not name:
        return None
    value = environ.get(name)
    if value is None or value == "":
        return None
    return value


def resolve_context_values(
    fields: Mapping[str, ConfigField],
    context: Mapping[str, Any] | None,
    environ: Mapping[str, str],
) -> tuple[dict[str, Any], SourceMap]:
    """Resolve each field from context, env indirection, env default, literal.

    Never fails; missing values come back as the field's literal default.
    """
    ctx = context or {}
    values: dict[str, Any] = {}
    sources: SourceMap = {}

    for name, field_def in fields.items():
        direct = ctx.get(name)
        if direct is not None and direct != "":
            values[name] = direct
            sources[name] = FieldOrigin(origin=Origin.CONTEXT)
            continue

        indirect_key = ctx.get(f"{name}_env")
        indirect = _env_lookup(environ, indirect_key)
        if indirect is not None:
            values[name] = indirect
            sources[name] = FieldOrigin(origin=Origin.CONTEXT_ENV, env_key=indirect_key)
            continue

        fallback = _env_lookup(environ, field_def.default_env_var)
        if fallback is not None:
            values[name] = fallback
            sources[name] = FieldOrigin(origin=Origin.ENV, env_key=field_def.default_env_var)
            continue

        values[name] = field_def.default_value
        sources[name] = FieldOrigin(origin=Origin.DEFAULT)

    return values, sources


@overload
def resolve_client_config(
    context: Mapping[str, Any] | None = ...,
    environ: Mapping[str, str] | None = ...,
    *,
    explain: Literal[True],
) -> tuple[ClientConfig, SourceMap]: ...


@overload
def resolve_client_config(
    context: Mapping[str, Any] | None = ...,
    environ: Mapping[str, str] | None = ...,
    *,
    explain: Literal[False] = ...,
) -> ClientConfig: ...


def resolve_client_config(
    context: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
    *,
    explain: bool = False,
) -> ClientConfig | tuple[ClientConfig, SourceMap]:
    """Resolve and validate the client configuration.

    Args:
        context: Caller-supplied values and ``<field>_env`` indirections.
        environ: Environment to read. Defaults to ``os.environ`` (after
            loading ``.env`` once).
        explain: If True, also return where each value came from.

    Raises:
        ConfigurationError: If a resolved value fails validation.
    """
    if environ is None:
        _load_dotenv_once()
        environ = os.environ

    values, sources = resolve_context_values(CLIENT_FIELDS, context, environ)

    try:
        settings = Settings.model_validate(values)
    except ValidationError as e:
        err = e.errors()[0]
        where = ".".join(str(p) for p in err.get("loc", ())) or "config"
        msg = err.get("msg", "invalid value")
        if msg.startswith("Value error, "):
            msg = msg[13:]
        hint = None
        origin = sources.get(where)
        if origin is not None and origin.env_key:
            hint = f"Check the {origin.env_key} environment variable."
        raise ConfigurationError(
            f"Configuration validation failed for {where}: {msg}", hint=hint
        ) from e

    frozen = ClientConfig(
        api_key=settings.api_key.get_secret_value() if settings.api_key else None,
        base_url=settings.base_url,
        organization=settings.organization,
        timeout=settings.timeout,
        headers=dict(settings.headers),
    )
    return (frozen, sources) if explain else frozen


def audit_lines(sources: SourceMap) -> list[str]:
    """Produce redacted, human-readable origin lines per field."""
    lines: list[str] = []
    for name in CLIENT_FIELDS:
        where = sources.get(name)
        if where is None:
            continue
        label = where.origin.value
        if where.env_key:
            label = f"{label}:{where.env_key}"
        redaction = " [REDACTED]" if name == "api_key" else ""
        lines.append(f"{name}: {label}{redaction}")
    return lines
