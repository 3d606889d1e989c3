"""Request builder: headers, payload injection and the request descriptor.

Pure construction; no I/O happens here.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from chatwire._http import BODIED_METHODS, ORGANIZATION_HEADER, SUPPORTED_METHODS
from chatwire.errors import ConfigurationError
from chatwire.transport import HttpRequest

if TYPE_CHECKING:
    from collections.abc import Mapping

    from chatwire.config import ClientConfig


def build_headers(
    api_key: str,
    organization: str | None,
    method: str,
    additional_headers: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Auth, content-type and organization headers, then any extras."""
    headers = {"Authorization": f"Bearer {api_key}"}
    if method in BODIED_METHODS:
        headers["Content-Type"] = "application/json"
    if organization:
        headers[ORGANIZATION_HEADER] = organization
    if additional_headers:
        headers.update(additional_headers)
    return headers


def prepare_payload(payload: Mapping[str, Any] | None, *, stream: bool) -> dict[str, Any]:
    """Copy *payload* and inject usage accounting / streaming flags."""
    prepared = dict(payload or {})
    if stream:
        prepared["stream"] = True
        prepared["stream_options"] = {"include_usage": True}
    else:
        prepared["usage"] = {"include": True}
    return prepared


def build_request(
    config: ClientConfig,
    endpoint_path: str,
    payload: Mapping[str, Any] | None = None,
    *,
    method: str = "POST",
    stream: bool = False,
    timeout: float | None = None,
    headers: Mapping[str, str] | None = None,
) -> HttpRequest:
    """Turn an endpoint + payload into a transport-ready request descriptor.

    The API key must already be present on *config*; the client checks this
    before calling.
    """
    method = method.upper()
    if method not in SUPPORTED_METHODS:
        raise ConfigurationError(
            f"Unsupported HTTP method: {method!r}",
            hint=f"Use one of {sorted(SUPPORTED_METHODS)}.",
        )
    if not config.api_key:
        raise ConfigurationError("OpenAI API key is required")

    merged_headers = build_headers(
        config.api_key,
        config.organization,
        method,
        {**config.headers, **(headers or {})},
    )

    body: bytes | None = None
    bodied = method in BODIED_METHODS
    if bodied:
        body = json.dumps(prepare_payload(payload, stream=stream)).encode("utf-8")

    return HttpRequest(
        method=method,
        url=f"{config.base_url}{endpoint_path}",
        headers=merged_headers,
        body=body,
        timeout=timeout if timeout is not None else config.timeout,
        stream=stream and bodied,
    )
