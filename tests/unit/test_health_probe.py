"""Tests for the HTTP health probe."""

from __future__ import annotations

import httpx
import pytest

from promoter.clients.health import HealthProbe

ENDPOINT = "http://ocr-lb.example.com/health"


def _probe(handler) -> HealthProbe:
    return HealthProbe(timeout=10.0, client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_healthy_response() -> None:
    probe = _probe(lambda request: httpx.Response(200, json={"status": "healthy"}))

    health = probe.check(ENDPOINT)

    assert health.is_healthy
    assert health.status == "healthy"


def test_reported_non_healthy_status_is_passed_through() -> None:
    probe = _probe(lambda request: httpx.Response(200, json={"status": "loading_model"}))

    health = probe.check(ENDPOINT)

    assert health.is_known
    assert health.status == "loading_model"
    assert not health.is_healthy


def test_requests_the_given_endpoint() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, json={"status": "healthy"})

    _probe(handler).check(ENDPOINT)

    assert seen == [ENDPOINT]


@pytest.mark.parametrize(
    ("response", "reason"),
    [
        (httpx.Response(500, json={"status": "healthy"}), "HTTP 500"),
        (httpx.Response(503, text="Service Unavailable"), "HTTP 503"),
        (httpx.Response(200, text="<html>ok</html>"), "not JSON"),
        (httpx.Response(200, json={"ok": True}), "no status"),
        (httpx.Response(200, json=["healthy"]), "no status"),
        (httpx.Response(200, json={"status": ""}), "no status"),
    ],
)
def test_bad_responses_collapse_to_unknown(response: httpx.Response, reason: str) -> None:
    health = _probe(lambda request: response).check(ENDPOINT)

    assert not health.is_known
    assert reason in health.detail


def test_connection_error_collapses_to_unknown() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    health = _probe(handler).check(ENDPOINT)

    assert not health.is_known
    assert "connection refused" in health.detail


def test_timeout_collapses_to_unknown() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    health = _probe(handler).check(ENDPOINT)

    assert not health.is_known
    assert "timed out" in health.detail


@pytest.mark.parametrize(
    "endpoint",
    [
        "http://\x00bad/health",
        "http://" + "a" * 70000 + "/health",
    ],
)
def test_malformed_url_collapses_to_unknown(endpoint: str) -> None:
    health = _probe(lambda request: httpx.Response(200, json={"status": "healthy"})).check(
        endpoint
    )

    assert not health.is_known
    assert "invalid URL" in health.detail
