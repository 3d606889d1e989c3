"""Outbound mapping: contract messages, tools and options to provider shapes."""

from __future__ import annotations

from collections.abc import Mapping
import dataclasses
import json
import logging
from typing import Any

from chatwire.errors import ConfigurationError
from chatwire.models import (
    ContentPart,
    GenerationOptions,
    Message,
    Role,
    Tool,
)

logger = logging.getLogger(__name__)

_PASSTHROUGH_ROLES = {Role.SYSTEM.value, Role.USER.value, Role.ASSISTANT.value}


def map_thinking_effort(effort: float | None) -> str | None:
    """Bucket a 0-100 effort into the provider's low/medium/high labels."""
    if effort is None or effort <= 0:
        return None
    if effort < 25:
        return "low"
    if effort < 75:
        return "medium"
    return "high"


def _convert_part(part: Any) -> Any:
    if not isinstance(part, ContentPart):
        return part
    if part.type == "text":
        return {"type": "text", "text": part.text or ""}
    source = part.source
    if part.type == "image" and source is not None:
        if source.type == "url" and source.url:
            return {"type": "image_url", "image_url": {"url": source.url}}
        if source.type == "base64" and source.mime_type:
            data_url = f"data:{source.mime_type};base64,{source.data or ''}"
            return {"type": "image_url", "image_url": {"url": data_url}}
    # Unsupported shapes pass through for the provider to judge.
    passthrough: dict[str, Any] = {"type": part.type}
    if part.text is not None:
        passthrough["text"] = part.text
    if source is not None:
        passthrough["source"] = {
            k: v for k, v in dataclasses.asdict(source).items() if v is not None
        }
    return passthrough


def _convert_content(content: str | list[Any] | None) -> str | list[Any]:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    return [_convert_part(p) for p in content]


def standardize_content(content: str | list[Any] | None) -> str:
    """Flatten content to text, keeping only text parts."""
    if isinstance(content, str):
        return content
    if not content:
        return ""
    texts: list[str] = []
    for part in content:
        if isinstance(part, ContentPart) and part.type == "text":
            texts.append(part.text or "")
        elif isinstance(part, Mapping) and part.get("type") == "text":
            texts.append(part.get("text") or "")
    return "".join(texts)


def _encode_arguments(arguments: Any) -> str:
    if isinstance(arguments, str):
        return arguments
    return json.dumps(arguments)


def _tool_result_content(content: str | list[Any] | None) -> str:
    if isinstance(content, list):
        if content:
            first = content[0]
            text = first.text if isinstance(first, ContentPart) else None
            if isinstance(first, Mapping):
                text = first.get("text")
            if isinstance(text, str):
                return text
        return json.dumps(
            [dataclasses.asdict(p) if isinstance(p, ContentPart) else p for p in content],
            default=str,
        )
    return content or ""


def coerce_messages(messages: list[Message | Mapping[str, Any]]) -> list[Message]:
    """Accept both Message objects and plain contract dicts."""
    return [m if isinstance(m, Message) else Message.from_dict(m) for m in messages]


def map_messages(messages: list[Message | Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Map contract messages to chat-completions messages.

    Consecutive ``function_call`` messages fold into a single assistant turn
    carrying a ``tool_calls`` array. Calls without an id are dropped.
    """
    contract = coerce_messages(messages)
    processed: list[dict[str, Any]] = []
    i = 0
    while i < len(contract):
        msg = contract[i]
        role = msg.role_value

        if role in _PASSTHROUGH_ROLES:
            processed.append({"role": role, "content": _convert_content(msg.content)})
            i += 1

        elif role == Role.FUNCTION_CALL.value:
            tool_calls: list[dict[str, Any]] = []
            while i < len(contract) and contract[i].role_value == Role.FUNCTION_CALL.value:
                call = contract[i].function_call
                if call is not None and call.id:
                    tool_calls.append(
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {
                                "name": call.name,
                                "arguments": _encode_arguments(call.arguments),
                            },
                        }
                    )
                else:
                    logger.debug("Dropping function_call message without a call id")
                i += 1
            if tool_calls:
                processed.append(
                    {"role": "assistant", "content": "", "tool_calls": tool_calls}
                )

        elif role == Role.FUNCTION_RESULT.value:
            tool_msg: dict[str, Any] = {
                "role": "tool",
                "content": _tool_result_content(msg.content),
            }
            if msg.function_call_id:
                tool_msg["tool_call_id"] = msg.function_call_id
            if msg.name:
                tool_msg["name"] = msg.name
            processed.append(tool_msg)
            i += 1

        elif role == Role.DEVELOPER.value:
            processed.append(
                {"role": "system", "content": standardize_content(msg.content)}
            )
            i += 1

        else:
            # cache_marker and unknown roles have no provider counterpart.
            i += 1

    return processed


def map_tools(
    tools: list[Tool] | None,
) -> tuple[list[dict[str, Any]] | None, dict[str, Tool]]:
    """Map complete tools to function definitions; incomplete ones are skipped."""
    if not tools:
        return None, {}
    mapped: list[dict[str, Any]] = []
    by_name: dict[str, Tool] = {}
    for tool in tools:
        if not (tool.name and tool.description and tool.schema):
            logger.debug("Skipping incomplete tool definition: %r", tool.name)
            continue
        mapped.append(
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.schema,
                },
            }
        )
        by_name[tool.name] = tool
    return mapped, by_name


def map_tool_choice(
    choice: str | None, available_tools: list[Tool] | None
) -> str | dict[str, Any]:
    """Map a contract tool choice, validating named choices.

    Raises:
        ConfigurationError: If a named tool is not among *available_tools*.
    """
    if choice is None or choice == "auto":
        return "auto"
    if choice == "none":
        return "none"
    if choice == "any":
        return "required"
    if any(tool.name == choice for tool in available_tools or []):
        return {"type": "function", "function": {"name": choice}}
    raise ConfigurationError(f"Tool '{choice}' not found in available tools")


def map_options(
    options: GenerationOptions | Mapping[str, Any] | None,
) -> dict[str, Any]:
    """Map generation options to provider payload fields.

    Reasoning requests use ``max_completion_tokens``, never send
    ``temperature``, and carry ``reasoning_effort`` when an effort is given.
    """
    if options is None:
        return {}
    if not isinstance(options, GenerationOptions):
        options = GenerationOptions.from_mapping(options)

    mapped: dict[str, Any] = {}
    reasoning = options.reasoning_model_request

    if options.max_tokens is not None:
        key = "max_completion_tokens" if reasoning else "max_tokens"
        mapped[key] = options.max_tokens

    if reasoning:
        # Reasoning models reject temperature.
        effort = map_thinking_effort(options.thinking_effort)
        if effort is not None:
            mapped["reasoning_effort"] = effort
    elif options.temperature is not None:
        mapped["temperature"] = options.temperature

    for name in ("top_p", "frequency_penalty", "presence_penalty", "seed", "user"):
        value = getattr(options, name)
        if value is not None:
            mapped[name] = value

    if options.stop_sequences:
        mapped["stop"] = list(options.stop_sequences)
    return mapped
