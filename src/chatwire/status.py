"""Provider health check."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from chatwire._http import MODELS_PATH
from chatwire.errors import APIError, ChatwireError
from chatwire.models import HealthStatus

if TYPE_CHECKING:
    from chatwire.client import OpenAIClient

logger = logging.getLogger(__name__)


def health_from_error(exc: ChatwireError) -> HealthStatus:
    """Grade a failed probe: rate limits and 5xx still mean the API is up."""
    status_code = exc.status_code if isinstance(exc, APIError) else None
    message = str(exc) or "Connection failed"

    if isinstance(exc, APIError) and not status_code:
        return HealthStatus(ok=False, status="unhealthy", message="Connection failed")
    if status_code == 429:
        return HealthStatus(
            ok=False, status="degraded", message="Rate limited but service is available"
        )
    if status_code is not None and 500 <= status_code < 600:
        return HealthStatus(ok=False, status="degraded", message="Service experiencing issues")
    return HealthStatus(ok=False, status="unhealthy", message=message)


async def check_status(client: OpenAIClient) -> HealthStatus:
    """Probe ``GET /models``. Never raises for provider or config failures."""
    try:
        await client.request(MODELS_PATH, method="GET")
    except ChatwireError as e:
        health = health_from_error(e)
        logger.debug("Health check %s: %s", health.status, e)
        return health
    return HealthStatus(ok=True, status="healthy", message="OpenAI API is responding normally")
