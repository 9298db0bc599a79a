"""Tests for Prometheus metrics.

The HTTP collectors live in the global default registry and cannot be
reset between tests, so HTTP assertions are on deltas: read, act, read
again.  Auth metrics get a private registry per test.
"""

from __future__ import annotations

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY, CollectorRegistry

from credential_service.core.metrics import AuthMetrics, PrometheusAuthMetrics
from tests.conftest import bearer, login


def _get_sample(name: str, labels: dict | None = None, registry=REGISTRY) -> float:
    value = registry.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def test_request_counter_increments(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/resource/me", "status_code": "401"}
    before = _get_sample("http_requests_total", labels)
    client.get("/resource/me")
    after = _get_sample("http_requests_total", labels)
    assert after - before >= 1


def test_request_duration_histogram_observes(client: TestClient) -> None:
    labels = {"method": "POST", "endpoint": "/auth/refresh"}
    before = _get_sample("http_request_duration_seconds_count", labels)
    client.post("/auth/refresh", json={})
    after = _get_sample("http_request_duration_seconds_count", labels)
    assert after - before >= 1


def test_endpoint_label_is_route_template(client: TestClient, services, user) -> None:
    """Subject ids in the path must not become label values."""
    tokens = login(client)
    labels = {
        "method": "POST",
        "endpoint": "/admin/sessions/{subject}/revoke",
        "status_code": "403",
    }
    before = _get_sample("http_requests_total", labels)
    client.post(
        f"/admin/sessions/{user.subject}/revoke", headers=bearer(tokens["access_token"])
    )
    after = _get_sample("http_requests_total", labels)
    assert after - before >= 1
    assert (
        REGISTRY.get_sample_value(
            "http_requests_total",
            {
                "method": "POST",
                "endpoint": f"/admin/sessions/{user.subject}/revoke",
                "status_code": "403",
            },
        )
        is None
    )


def test_metrics_endpoint_returns_prometheus_format(client: TestClient) -> None:
    client.get("/resource/me")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "http_requests_total" in resp.text
    assert "http_request_duration_seconds" in resp.text


def test_metrics_endpoint_not_self_instrumented(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/metrics", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/metrics")
    client.get("/metrics")
    after = _get_sample("http_requests_total", labels)
    assert after == before


def test_prometheus_auth_metrics_counts_events() -> None:
    registry = CollectorRegistry()
    metrics = PrometheusAuthMetrics(registry=registry)
    assert isinstance(metrics, AuthMetrics)

    metrics.record("refresh", "ok")
    metrics.record("refresh", "reuse")
    metrics.record("refresh", "reuse")

    assert _get_sample("auth_events_total", {"event": "refresh", "result": "ok"}, registry) == 1
    assert (
        _get_sample("auth_events_total", {"event": "refresh", "result": "reuse"}, registry) == 2
    )
