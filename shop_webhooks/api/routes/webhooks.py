"""Webhook management routes."""

import uuid
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query, Response, status

from shop_webhooks.api.dependencies import get_webhook_service
from shop_webhooks.core.logging import get_logger
from shop_webhooks.storage.database.webhook_models import DeliveryStatus, EndpointStatus, WebhookEventType
from shop_webhooks.storage.repository import DeliveryFilters, EndpointFilters, EventFilters
from shop_webhooks.webhooks.schemas import (
    CleanupResult,
    DeliveryResponse,
    DeliveryResult,
    EndpointCreate,
    EndpointResponse,
    EndpointUpdate,
    EventCreate,
    EventResponse,
    LogResponse,
    WebhookStats,
)
from shop_webhooks.webhooks.service import WebhookService

logger = get_logger(__name__)
router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.get("/endpoints", response_model=list[EndpointResponse])
async def list_endpoints(
    endpoint_status: Optional[EndpointStatus] = Query(default=None, alias="status"),
    is_active: Optional[bool] = None,
    event_type: Optional[list[str]] = Query(default=None),
    user_id: Optional[str] = None,
    vendor_id: Optional[str] = None,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    service: WebhookService = Depends(get_webhook_service),
) -> Any:
    """List endpoints. Repeat ``event_type`` to require several subscriptions."""
    filters = EndpointFilters(
        status=endpoint_status.value if endpoint_status else None,
        is_active=is_active,
        event_types=event_type or [],
        user_id=user_id,
        vendor_id=vendor_id,
    )
    endpoints = await service.get_endpoints(filters, limit, offset)
    return [EndpointResponse.model_validate(endpoint) for endpoint in endpoints]


@router.post("/endpoints", response_model=EndpointResponse, status_code=201)
async def create_endpoint(
    endpoint_data: EndpointCreate,
    service: WebhookService = Depends(get_webhook_service),
) -> Any:
    """Register a webhook endpoint."""
    endpoint = await service.create_endpoint(endpoint_data)
    return EndpointResponse.model_validate(endpoint)


@router.get("/endpoints/{endpoint_id}", response_model=EndpointResponse)
async def get_endpoint(
    endpoint_id: uuid.UUID,
    service: WebhookService = Depends(get_webhook_service),
) -> Any:
    """Get endpoint by ID."""
    endpoint = await service.get_endpoint_by_id(endpoint_id)
    return EndpointResponse.model_validate(endpoint)


@router.patch("/endpoints/{endpoint_id}", response_model=EndpointResponse)
async def update_endpoint(
    endpoint_id: uuid.UUID,
    endpoint_data: EndpointUpdate,
    service: WebhookService = Depends(get_webhook_service),
) -> Any:
    """Update endpoint."""
    endpoint = await service.update_endpoint(endpoint_id, endpoint_data)
    return EndpointResponse.model_validate(endpoint)


@router.delete("/endpoints/{endpoint_id}", status_code=204)
async def delete_endpoint(
    endpoint_id: uuid.UUID,
    service: WebhookService = Depends(get_webhook_service),
) -> Response:
    """Delete endpoint."""
    await service.delete_endpoint(endpoint_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/endpoints/{endpoint_id}/test", response_model=DeliveryResult)
async def test_endpoint(
    endpoint_id: uuid.UUID,
    payload: Optional[dict[str, Any]] = Body(default=None),
    service: WebhookService = Depends(get_webhook_service),
) -> Any:
    """Send a test event to the endpoint."""
    return await service.test_endpoint(endpoint_id, payload)


@router.get("/endpoints/{endpoint_id}/logs", response_model=list[LogResponse])
async def get_endpoint_logs(
    endpoint_id: uuid.UUID,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    service: WebhookService = Depends(get_webhook_service),
) -> Any:
    """Audit log of the endpoint."""
    logs = await service.get_endpoint_logs(endpoint_id, limit, offset)
    return [LogResponse.model_validate(log) for log in logs]


@router.post("/events", response_model=EventResponse, status_code=201)
async def dispatch_event(
    event_data: EventCreate,
    service: WebhookService = Depends(get_webhook_service),
) -> Any:
    """Record an event and deliver it to subscribed endpoints."""
    event = await service.dispatch_event(event_data)
    return EventResponse.model_validate(event)


@router.get("/events", response_model=list[EventResponse])
async def list_events(
    event_type: Optional[str] = None,
    source_type: Optional[str] = None,
    user_id: Optional[str] = None,
    vendor_id: Optional[str] = None,
    is_processed: Optional[bool] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    service: WebhookService = Depends(get_webhook_service),
) -> Any:
    """List events, newest first."""
    filters = EventFilters(
        event_type=event_type,
        source_type=source_type,
        user_id=user_id,
        vendor_id=vendor_id,
        is_processed=is_processed,
        start_date=start_date,
        end_date=end_date,
    )
    events = await service.get_events(filters, limit, offset)
    return [EventResponse.model_validate(event) for event in events]


@router.get("/deliveries", response_model=list[DeliveryResponse])
async def list_deliveries(
    endpoint_id: Optional[uuid.UUID] = None,
    event_id: Optional[uuid.UUID] = None,
    delivery_status: Optional[DeliveryStatus] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    service: WebhookService = Depends(get_webhook_service),
) -> Any:
    """List deliveries, newest first."""
    filters = DeliveryFilters(
        endpoint_id=endpoint_id,
        event_id=event_id,
        delivery_status=delivery_status.value if delivery_status else None,
        start_date=start_date,
        end_date=end_date,
    )
    deliveries = await service.get_deliveries(filters, limit, offset)
    return [DeliveryResponse.model_validate(delivery) for delivery in deliveries]


@router.post("/deliveries/{delivery_id}/retry", response_model=DeliveryResponse)
async def retry_delivery(
    delivery_id: uuid.UUID,
    service: WebhookService = Depends(get_webhook_service),
) -> Any:
    """Run the pending retry of a failed delivery now."""
    delivery = await service.retry_delivery(delivery_id)
    logger.info("webhook_manual_retry", delivery_id=str(delivery_id), status=delivery.delivery_status)
    return DeliveryResponse.model_validate(delivery)


@router.get("/stats", response_model=WebhookStats)
async def get_stats(service: WebhookService = Depends(get_webhook_service)) -> Any:
    """Delivery statistics."""
    return await service.get_webhook_stats()


@router.post("/cleanup", response_model=CleanupResult)
async def cleanup(
    retention_days: Optional[int] = Query(default=None, ge=1),
    service: WebhookService = Depends(get_webhook_service),
) -> Any:
    """Delete data older than the retention window."""
    return await service.cleanup_old_data(retention_days)


@router.get("/event-types", response_model=list[str])
async def list_event_types() -> Any:
    """Known event types. Custom dotted names are accepted as well."""
    return [event_type.value for event_type in WebhookEventType]
