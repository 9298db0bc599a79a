"""Application metrics using the Prometheus client library.

Two groups live here:

1. HTTP metrics: module-level collectors owned by the HTTP layer and
   populated by ``MetricsMiddleware``.  They never enter the credential core.

2. Auth metrics: the core records outcomes (login, refresh, reuse,
   ledger hits) through the ``AuthMetrics`` interface that is passed in
   when services are built.  ``PrometheusAuthMetrics`` is wired by the app;
   tests pass their own recorder or rely on ``NullAuthMetrics``.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    # Token endpoints are CPU-bound on ES256 plus one or two store round-trips
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)


# ---------------------------------------------------------------------------
# Auth metrics (injected into the core)
# ---------------------------------------------------------------------------


@runtime_checkable
class AuthMetrics(Protocol):
    def record(self, event: str, result: str) -> None:
        """Count one occurrence of *event* with outcome *result*.

        Events: login, refresh, logout, authenticate, ledger_check,
        session_revoke.
        """
        ...


class NullAuthMetrics:
    def record(self, event: str, result: str) -> None:
        return None


class PrometheusAuthMetrics:
    """Prometheus-backed recorder.

    Construct once per registry; registering the same metric name twice in
    one registry raises.
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY) -> None:
        self._events = Counter(
            "auth_events_total",
            "Credential lifecycle events by outcome",
            ["event", "result"],
            registry=registry,
        )

    def record(self, event: str, result: str) -> None:
        self._events.labels(event=event, result=result).inc()
