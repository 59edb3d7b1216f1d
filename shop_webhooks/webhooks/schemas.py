"""Pydantic schemas for webhook management and delivery results."""

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from shop_webhooks.storage.database.webhook_models import AuthType, EndpointStatus, HttpMethod

EVENT_TYPE_PATTERN = r"^[a-z0-9_]+(\.[a-z0-9_]+)+$"


class EndpointCreate(BaseModel):
    """Endpoint registration request."""

    name: str = Field(min_length=1, max_length=100)
    url: str = Field(min_length=1)
    event_types: list[str] = Field(min_length=1)
    description: Optional[str] = None
    http_method: HttpMethod = HttpMethod.POST
    secret: Optional[str] = Field(default=None, min_length=1, max_length=255)
    content_type: Optional[str] = None
    max_retries: Optional[int] = Field(default=None, ge=1, le=25)
    timeout_seconds: Optional[int] = Field(default=None, ge=1, le=300)
    filters: Optional[dict[str, Any]] = None
    headers: Optional[dict[str, str]] = None
    auth_type: Optional[AuthType] = None
    auth_credentials: Optional[dict[str, str]] = None
    user_id: Optional[str] = None
    vendor_id: Optional[str] = None


class EndpointUpdate(BaseModel):
    """Endpoint update request. Only fields that are set are applied."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    url: Optional[str] = Field(default=None, min_length=1)
    http_method: Optional[HttpMethod] = None
    secret: Optional[str] = Field(default=None, min_length=1, max_length=255)
    content_type: Optional[str] = None
    max_retries: Optional[int] = Field(default=None, ge=1, le=25)
    timeout_seconds: Optional[int] = Field(default=None, ge=1, le=300)
    event_types: Optional[list[str]] = Field(default=None, min_length=1)
    filters: Optional[dict[str, Any]] = None
    headers: Optional[dict[str, str]] = None
    auth_type: Optional[AuthType] = None
    auth_credentials: Optional[dict[str, str]] = None
    status: Optional[EndpointStatus] = None
    is_active: Optional[bool] = None


class EventCreate(BaseModel):
    """Event dispatch request."""

    event_type: str = Field(pattern=EVENT_TYPE_PATTERN, max_length=100)
    event_id: str = Field(min_length=1, max_length=100)
    payload: dict[str, Any]
    metadata: Optional[dict[str, Any]] = None
    source_id: Optional[str] = Field(default=None, max_length=100)
    source_type: Optional[str] = Field(default=None, max_length=50)
    user_id: Optional[str] = None
    vendor_id: Optional[str] = None


class EndpointResponse(BaseModel):
    """Endpoint representation. Auth credentials are never returned."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str]
    url: str
    http_method: str
    secret: Optional[str]
    content_type: str
    max_retries: int
    timeout_seconds: int
    event_types: list[str]
    filters: Optional[dict[str, Any]]
    headers: Optional[dict[str, str]]
    auth_type: Optional[str]
    user_id: Optional[str]
    vendor_id: Optional[str]
    status: str
    is_active: bool
    total_deliveries: int
    success_count: int
    failure_count: int
    last_success_at: Optional[datetime]
    last_failure_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime


class EventResponse(BaseModel):
    """Event representation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    event_type: str
    event_id: str
    payload: dict[str, Any]
    metadata: Optional[dict[str, Any]] = Field(
        default=None, validation_alias=AliasChoices("event_metadata", "metadata")
    )
    source_id: Optional[str]
    source_type: Optional[str]
    user_id: Optional[str]
    vendor_id: Optional[str]
    is_processed: bool
    processed_at: Optional[datetime]
    created_at: datetime


class DeliveryResponse(BaseModel):
    """Delivery representation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    endpoint_id: uuid.UUID
    event_id: uuid.UUID
    attempt_number: int
    delivery_status: str
    request_url: str
    request_method: str
    request_headers: Optional[dict[str, str]]
    request_body: Optional[str]
    response_status: Optional[int]
    response_body: Optional[str]
    response_time: Optional[int]
    error_message: Optional[str]
    scheduled_at: datetime
    delivered_at: Optional[datetime]
    next_retry_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime


class LogResponse(BaseModel):
    """Webhook log entry."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    endpoint_id: Optional[uuid.UUID]
    delivery_id: Optional[uuid.UUID]
    log_level: str
    message: str
    context: Optional[dict[str, Any]]
    created_at: datetime


class DeliveryResult(BaseModel):
    """Outcome of one HTTP delivery attempt."""

    success: bool
    status_code: Optional[int] = None
    response_body: Optional[str] = None
    response_time: int = Field(description="Elapsed time in milliseconds")
    error: Optional[str] = None


class WebhookStats(BaseModel):
    """Operational counters across endpoints, events and deliveries."""

    by_status: dict[str, int]
    total_endpoints: int
    active_endpoints: int
    total_events: int
    pending_events: int
    total_deliveries: int
    successful_deliveries: int
    failed_deliveries: int
    pending_deliveries: int
    average_response_time: float
    success_rate: float


class CleanupResult(BaseModel):
    """Rows removed by a retention sweep."""

    deleted_events: int
    deleted_deliveries: int
    deleted_logs: int
