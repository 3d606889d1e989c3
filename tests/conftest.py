"""Pytest configuration and fixtures.

Provides test doubles for the transport seam, environment isolation,
logging configuration and automatic API test skipping. Fixtures marked
autouse apply to every test.
"""

from __future__ import annotations

from contextlib import suppress
from dataclasses import dataclass, field
import json
import logging
import os
from typing import Any

import pytest

from chatwire.errors import TransportError
from chatwire.transport import HttpRequest, TransportResponse

# =============================================================================
# Test Doubles
# =============================================================================


@dataclass
class FakeStream:
    """Stream handle that yields scripted chunks.

    A BaseException in ``chunks`` is raised from ``read()`` at that point.
    """

    chunks: list[bytes | BaseException] = field(default_factory=list)
    reads: int = 0
    closed: bool = False

    async def read(self) -> bytes | None:
        if self.closed or self.reads >= len(self.chunks):
            return None
        item = self.chunks[self.reads]
        self.reads += 1
        if isinstance(item, BaseException):
            raise item
        return item

    async def aclose(self) -> None:
        self.closed = True


@dataclass
class FakeTransport:
    """Transport test double.

    Records every request and answers from ``script`` in order. Script items
    are TransportResponse objects or exceptions to raise. With an empty
    script it answers 200 with an empty JSON object.
    """

    script: list[TransportResponse | BaseException] = field(default_factory=list)
    requests: list[HttpRequest] = field(default_factory=list)
    closed: bool = False

    async def send(self, request: HttpRequest) -> TransportResponse:
        self.requests.append(request)
        if not self.script:
            return TransportResponse(status_code=200, body=b"{}")
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def aclose(self) -> None:
        self.closed = True

    @property
    def last_request(self) -> HttpRequest:
        return self.requests[-1]

    @property
    def last_payload(self) -> dict[str, Any]:
        body = self.last_request.body
        return json.loads(body) if body else {}


def json_response(
    body: Any, status_code: int = 200, headers: dict[str, str] | None = None
) -> TransportResponse:
    """Buffered response with a JSON-encoded body."""
    return TransportResponse(
        status_code=status_code,
        headers=headers or {},
        body=json.dumps(body).encode("utf-8"),
    )


def stream_response(
    chunks: list[bytes | BaseException], headers: dict[str, str] | None = None
) -> TransportResponse:
    return TransportResponse(
        status_code=200, headers=headers or {}, stream=FakeStream(list(chunks))
    )


def connection_refused() -> TransportError:
    return TransportError("Connection failed: connection refused")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def context() -> dict[str, Any]:
    """Minimal adapter context with a test key."""
    return {"api_key": "sk-test"}


# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    with suppress(Exception):
        monkeypatch.setattr(
            "dotenv.load_dotenv", lambda *_args, **_kwargs: False, raising=False
        )


@pytest.fixture(autouse=True)
def isolate_provider_env(request, monkeypatch):
    """Ensure a clean provider environment for each test.

    Clears OPENAI_* env vars to prevent test pollution.
    Opt-out: @pytest.mark.allow_env_pollution or @pytest.mark.api
    """
    if request.node.get_closest_marker("allow_env_pollution") or (
        "api" in request.node.keywords
    ):
        return

    for key in list(os.environ.keys()):
        if key.startswith("OPENAI_"):
            monkeypatch.delenv(key, raising=False)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# =============================================================================
# Pytest Hooks
# =============================================================================

API_TESTS_REASON = "API tests require ENABLE_API_TESTS=1"


def _api_tests_enabled() -> bool:
    return bool(os.getenv("ENABLE_API_TESTS"))


def pytest_collection_modifyitems(items):
    """Automatically skip API tests when not explicitly enabled."""
    if _api_tests_enabled():
        return
    skip_api = pytest.mark.skip(reason=API_TESTS_REASON)
    for item in items:
        if "api" in item.keywords:
            item.add_marker(skip_api)


# =============================================================================
# API Test Configuration
# =============================================================================

# Cheapest chat and embedding models that exercise every code path.
_OPENAI_TEST_MODEL = "gpt-4o-mini"
_OPENAI_EMBEDDING_MODEL = "text-embedding-3-small"


@pytest.fixture
def openai_api_key():
    """Return OPENAI_API_KEY or skip the test if unavailable."""
    key = os.getenv("OPENAI_API_KEY")
    if not key:
        pytest.skip("OPENAI_API_KEY not set")
    return key


@pytest.fixture
def openai_test_model():
    """Return the model to use for OpenAI API tests."""
    return _OPENAI_TEST_MODEL


@pytest.fixture
def openai_embedding_model():
    return _OPENAI_EMBEDDING_MODEL
