"""
Health, root and metrics endpoint tests.
"""
import pytest
import structlog

from fleet_telemetry.core.logging import current_request_id, request_context


@pytest.mark.asyncio
async def test_health_endpoint(client):
    """Test health check endpoint."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "fleet-telemetry"}


@pytest.mark.asyncio
async def test_root_endpoint(client):
    """Test root endpoint."""
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["service"] == "Fleet Telemetry"


@pytest.mark.asyncio
async def test_openapi_schema(client):
    """Test OpenAPI schema lists every module."""
    response = await client.get("/openapi.json")
    assert response.status_code == 200
    paths = response.json()["paths"]
    assert "/api/v1/telemetry/meter" in paths
    assert "/api/v1/registry/mappings" in paths
    assert "/api/v1/analytics/fleet/performance" in paths


@pytest.mark.asyncio
async def test_metrics_endpoint(client):
    """Test Prometheus metrics are exposed."""
    await client.get("/health")
    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "fleet_telemetry_http_requests_total" in response.text


@pytest.mark.asyncio
async def test_request_id_is_echoed(client):
    """Test X-Request-ID is propagated to the response."""
    response = await client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_request_context_binds_and_restores():
    """Test the request id is visible inside the block and cleared after it."""
    assert current_request_id() is None
    with request_context(None, path="/health") as request_id:
        assert request_id
        assert current_request_id() == request_id
        assert structlog.contextvars.get_contextvars()["path"] == "/health"
    assert current_request_id() is None


def test_request_context_keeps_supplied_id():
    """Test a supplied request id is used as is."""
    with request_context("req-456") as request_id:
        assert request_id == "req-456"
        assert current_request_id() == "req-456"
