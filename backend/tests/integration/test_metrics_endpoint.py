"""
Integration tests for /metrics endpoint and metrics collection.
"""
import pytest
from httpx import AsyncClient, ASGITransport

from marketplace.api.app import app
from marketplace.lib.metrics import get_metrics_collector


@pytest.mark.integration
@pytest.mark.asyncio
async def test_metrics_endpoint_returns_prometheus_format():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"] == "text/plain; version=0.0.4; charset=utf-8"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_metrics_endpoint_empty_when_no_metrics():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/metrics")

    assert response.status_code == 200
    assert response.text == ""


@pytest.mark.integration
@pytest.mark.asyncio
async def test_metrics_endpoint_exports_after_activity():
    metrics = get_metrics_collector()
    metrics.increment_bookings_created("ONLINE", "AWAITING_PAYMENT", amount=5)
    metrics.increment_conflicts("slot_unavailable", amount=3)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/metrics")

    assert response.status_code == 200
    assert 'bookings_created_total{source="ONLINE",status="AWAITING_PAYMENT"} 5' in response.text
    assert 'booking_conflicts_total{reason="slot_unavailable"} 3' in response.text
