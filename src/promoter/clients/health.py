"""Best-effort HTTP health probe."""

from __future__ import annotations

import json

import httpx

from promoter.observability.logging import get_logger
from promoter.pipeline.models import HealthStatus

log = get_logger(__name__)

DEFAULT_TIMEOUT = 10.0


class HealthProbe:
    """Single GET against a health endpoint.

    Never raises: every way the request can go wrong becomes
    ``HealthStatus.unknown`` with a short reason.
    """

    def __init__(
        self, timeout: float = DEFAULT_TIMEOUT, client: httpx.Client | None = None
    ) -> None:
        self._timeout = timeout
        self._client = client

    def check(self, endpoint: str) -> HealthStatus:
        try:
            if self._client is not None:
                response = self._client.get(endpoint, timeout=self._timeout)
            else:
                with httpx.Client(timeout=self._timeout) as client:
                    response = client.get(endpoint)
        except httpx.TimeoutException:
            return self._unknown(endpoint, f"timed out after {self._timeout:.0f}s")
        except httpx.HTTPError as e:
            return self._unknown(endpoint, f"request error: {e}")
        except httpx.InvalidURL as e:
            return self._unknown(endpoint, f"invalid URL: {e}")

        if not response.is_success:
            return self._unknown(endpoint, f"HTTP {response.status_code}")

        try:
            body = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return self._unknown(endpoint, "response is not JSON")

        status = body.get("status") if isinstance(body, dict) else None
        if not isinstance(status, str) or not status:
            return self._unknown(endpoint, "response has no status field")

        log.info("health_checked", endpoint=endpoint, status=status)
        return HealthStatus(status=status)

    def _unknown(self, endpoint: str, reason: str) -> HealthStatus:
        log.warning("health_check_unknown", endpoint=endpoint, reason=reason)
        return HealthStatus.unknown(reason)
