"""Tests for the webhook HTTP API."""

import uuid

import httpx
import pytest

from shop_webhooks.api.app import create_app
from shop_webhooks.api.dependencies import get_webhook_service


@pytest.fixture
async def api(service):
    app = create_app()
    app.dependency_overrides[get_webhook_service] = lambda: service
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client


ENDPOINT = {
    "name": "Warehouse",
    "url": "https://hooks.example.com/webhooks",
    "event_types": ["order.created"],
    "auth_type": "bearer",
    "auth_credentials": {"token": "tok_1"},
}


@pytest.mark.asyncio
async def test_health(api) -> None:
    response = await api.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_create_and_get_endpoint(api) -> None:
    created = await api.post("/api/webhooks/endpoints", json=ENDPOINT)

    assert created.status_code == 201
    body = created.json()
    assert body["event_types"] == ["order.created"]
    assert body["secret"]
    assert "auth_credentials" not in body

    fetched = await api.get(f"/api/webhooks/endpoints/{body['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["name"] == "Warehouse"


@pytest.mark.asyncio
async def test_invalid_url_is_400(api) -> None:
    response = await api.post("/api/webhooks/endpoints", json={**ENDPOINT, "url": "ftp://files.example.com"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid webhook URL"


@pytest.mark.asyncio
async def test_unknown_endpoint_is_404(api) -> None:
    response = await api.get(f"/api/webhooks/endpoints/{uuid.uuid4()}")

    assert response.status_code == 404
    assert response.json()["detail"] == "Webhook endpoint not found"


@pytest.mark.asyncio
async def test_update_list_and_delete(api) -> None:
    endpoint_id = (await api.post("/api/webhooks/endpoints", json=ENDPOINT)).json()["id"]

    patched = await api.patch(f"/api/webhooks/endpoints/{endpoint_id}", json={"status": "suspended"})
    listed = await api.get("/api/webhooks/endpoints", params={"status": "suspended"})
    deleted = await api.delete(f"/api/webhooks/endpoints/{endpoint_id}")
    after = await api.get("/api/webhooks/endpoints")

    assert patched.json()["status"] == "suspended"
    assert [e["id"] for e in listed.json()] == [endpoint_id]
    assert deleted.status_code == 204
    assert after.json() == []


@pytest.mark.asyncio
async def test_dispatch_event_and_list_deliveries(api, receiver) -> None:
    endpoint_id = (await api.post("/api/webhooks/endpoints", json=ENDPOINT)).json()["id"]

    response = await api.post(
        "/api/webhooks/events",
        json={
            "event_type": "order.created",
            "event_id": "ord_42",
            "payload": {"order_id": "ord_42"},
            "metadata": {"source": "checkout"},
        },
    )
    deliveries = await api.get("/api/webhooks/deliveries", params={"endpoint_id": endpoint_id})
    events = await api.get("/api/webhooks/events", params={"is_processed": True})

    assert response.status_code == 201
    assert response.json()["is_processed"] is True
    assert response.json()["metadata"] == {"source": "checkout"}
    assert receiver.requests[0].headers["Authorization"] == "Bearer tok_1"
    assert [d["delivery_status"] for d in deliveries.json()] == ["success"]
    assert [e["event_id"] for e in events.json()] == ["ord_42"]


@pytest.mark.asyncio
async def test_malformed_event_type_is_rejected(api) -> None:
    response = await api.post(
        "/api/webhooks/events",
        json={"event_type": "Order Created", "event_id": "x", "payload": {}},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_retry_delivery(api, receiver) -> None:
    endpoint_id = (await api.post("/api/webhooks/endpoints", json=ENDPOINT)).json()["id"]
    receiver.respond("hooks.example.com", status=500)
    await api.post(
        "/api/webhooks/events",
        json={"event_type": "order.created", "event_id": "ord_7", "payload": {}},
    )
    [delivery] = (await api.get("/api/webhooks/deliveries", params={"endpoint_id": endpoint_id})).json()
    receiver.respond("hooks.example.com", status=200)

    response = await api.post(f"/api/webhooks/deliveries/{delivery['id']}/retry")

    assert response.status_code == 200
    assert response.json()["attempt_number"] == 2
    assert response.json()["delivery_status"] == "success"


@pytest.mark.asyncio
async def test_test_endpoint_and_logs(api) -> None:
    endpoint_id = (await api.post("/api/webhooks/endpoints", json=ENDPOINT)).json()["id"]

    tested = await api.post(f"/api/webhooks/endpoints/{endpoint_id}/test")
    logs = await api.get(f"/api/webhooks/endpoints/{endpoint_id}/logs")

    assert tested.status_code == 200
    assert tested.json()["success"] is True
    assert [log["message"] for log in logs.json()] == ["Test delivery succeeded"]


@pytest.mark.asyncio
async def test_stats_cleanup_and_event_types(api) -> None:
    stats = await api.get("/api/webhooks/stats")
    cleanup = await api.post("/api/webhooks/cleanup", params={"retention_days": 30})
    event_types = await api.get("/api/webhooks/event-types")

    assert stats.json()["success_rate"] == 0.0
    assert cleanup.json() == {"deleted_events": 0, "deleted_deliveries": 0, "deleted_logs": 0}
    assert "order.created" in event_types.json()
    assert "system.test" in event_types.json()
