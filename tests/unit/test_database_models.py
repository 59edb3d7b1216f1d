"""Tests for database models."""

import datetime
import uuid

from shop_webhooks.storage.database.base import UTCDateTime
from shop_webhooks.storage.database.webhook_models import (
    DeliveryStatus,
    EndpointStatus,
    WebhookDelivery,
    WebhookEndpoint,
    WebhookEvent,
    WebhookEventType,
    WebhookSubscription,
)


def test_endpoint_model_creation() -> None:
    """Test WebhookEndpoint model can be instantiated."""
    endpoint = WebhookEndpoint(
        name="Fulfilment",
        url="https://fulfilment.example.com/hooks",
        status=EndpointStatus.ACTIVE.value,
        is_active=True,
        subscriptions=[
            WebhookSubscription(event_type="order.created"),
            WebhookSubscription(event_type="order.shipped"),
        ],
    )

    assert endpoint.name == "Fulfilment"
    assert endpoint.event_types == ["order.created", "order.shipped"]
    assert endpoint.is_deliverable is True
    assert "fulfilment.example.com" in repr(endpoint)


def test_endpoint_deliverable_requires_active_status() -> None:
    endpoint = WebhookEndpoint(name="x", url="https://x.example.com", is_active=True)

    endpoint.status = EndpointStatus.SUSPENDED.value
    assert endpoint.is_deliverable is False

    endpoint.status = EndpointStatus.ACTIVE.value
    endpoint.is_active = False
    assert endpoint.is_deliverable is False


def test_delivery_awaiting_retry() -> None:
    """Only failed deliveries with a scheduled retry are awaiting retry."""
    delivery = WebhookDelivery(
        endpoint_id=uuid.uuid4(),
        event_id=uuid.uuid4(),
        attempt_number=1,
        delivery_status=DeliveryStatus.FAILED.value,
        request_url="https://x.example.com",
        request_method="POST",
    )
    assert delivery.is_awaiting_retry is False

    delivery.next_retry_at = datetime.datetime.now(datetime.timezone.utc)
    assert delivery.is_awaiting_retry is True

    delivery.delivery_status = DeliveryStatus.SUCCESS.value
    assert delivery.is_awaiting_retry is False
    assert "attempt=1" in repr(delivery)


def test_event_repr() -> None:
    event = WebhookEvent(event_type=WebhookEventType.ORDER_CREATED.value, event_id="ord_1", payload={})

    assert "order.created" in repr(event)
    assert "ord_1" in repr(event)


def test_utc_datetime_normalizes_to_utc() -> None:
    column_type = UTCDateTime()
    plus_three = datetime.timezone(datetime.timedelta(hours=3))
    value = datetime.datetime(2026, 1, 1, 12, 0, tzinfo=plus_three)

    class SQLiteDialect:
        name = "sqlite"

    stored = column_type.process_bind_param(value, SQLiteDialect())
    loaded = column_type.process_result_value(stored, SQLiteDialect())

    assert stored == datetime.datetime(2026, 1, 1, 9, 0)
    assert loaded == datetime.datetime(2026, 1, 1, 9, 0, tzinfo=datetime.timezone.utc)
