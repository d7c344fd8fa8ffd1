"""
Prometheus Metrics - Application Monitoring

Exposes metrics at /metrics endpoint for Prometheus scraping.
"""
import time

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, Info, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response as StarletteResponse

from fleet_telemetry.core.config import settings

# === Application Info ===
APP_INFO = Info("fleet_telemetry_app", "Fleet telemetry application info")
APP_INFO.info({
    "version": settings.app_version,
    "environment": settings.environment,
})

# === Request Metrics ===
REQUEST_COUNT = Counter(
    "fleet_telemetry_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

REQUEST_LATENCY = Histogram(
    "fleet_telemetry_http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# === Business Metrics ===
READINGS_INGESTED = Counter(
    "fleet_telemetry_readings_total",
    "Telemetry readings durably recorded",
    ["device_type"],
)

INGESTION_FAILURES = Counter(
    "fleet_telemetry_ingestion_failures_total",
    "Telemetry readings rejected by a storage failure",
    ["device_type"],
)

ANALYTICS_DURATION = Histogram(
    "fleet_telemetry_analytics_duration_seconds",
    "Efficiency analytics computation time",
    ["operation"],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

VEHICLES_BY_STATUS = Gauge(
    "fleet_telemetry_vehicles_by_status",
    "Vehicles per efficiency status at the last fleet rollup",
    ["status"],
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect request metrics."""

    async def dispatch(self, request: Request, call_next) -> StarletteResponse:
        # Skip metrics endpoint itself
        if request.url.path == "/metrics":
            return await call_next(request)

        endpoint = request.url.path
        method = request.method

        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time

        REQUEST_COUNT.labels(
            method=method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()

        REQUEST_LATENCY.labels(
            method=method,
            endpoint=endpoint,
        ).observe(duration)

        return response


# === Metrics Router ===
router = APIRouter(tags=["Health"])


@router.get("/metrics", include_in_schema=False)
async def metrics():
    """
    Prometheus metrics endpoint.

    Scrape this endpoint with Prometheus:
    ```yaml
    scrape_configs:
      - job_name: 'fleet-telemetry'
        static_configs:
          - targets: ['localhost:8000']
        metrics_path: '/metrics'
    ```
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


# === Helper Functions ===

def record_readings(device_type: str, count: int = 1) -> None:
    """Record committed telemetry readings."""
    READINGS_INGESTED.labels(device_type=device_type).inc(count)


def record_ingestion_failure(device_type: str) -> None:
    """Record a reading lost to a storage failure."""
    INGESTION_FAILURES.labels(device_type=device_type).inc()


def observe_analytics(operation: str, seconds: float) -> None:
    """Record analytics computation time."""
    ANALYTICS_DURATION.labels(operation=operation).observe(seconds)


def update_status_breakdown(breakdown: dict[str, int]) -> None:
    """Publish the latest fleet status breakdown."""
    for status, count in breakdown.items():
        VEHICLES_BY_STATUS.labels(status=status).set(count)
