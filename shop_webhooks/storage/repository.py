"""Storage interface consumed by the webhook components."""

import datetime
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from shop_webhooks.storage.database.webhook_models import (
    WebhookDelivery,
    WebhookEndpoint,
    WebhookEvent,
    WebhookLog,
)


@dataclass
class EndpointFilters:
    """Endpoint query filters. Ownership scoping is trusted as supplied."""

    status: Optional[str] = None
    is_active: Optional[bool] = None
    event_types: list[str] = field(default_factory=list)
    user_id: Optional[str] = None
    vendor_id: Optional[str] = None


@dataclass
class EventFilters:
    """Event query filters."""

    event_type: Optional[str] = None
    source_type: Optional[str] = None
    user_id: Optional[str] = None
    vendor_id: Optional[str] = None
    is_processed: Optional[bool] = None
    start_date: Optional[datetime.datetime] = None
    end_date: Optional[datetime.datetime] = None


@dataclass
class DeliveryFilters:
    """Delivery query filters."""

    endpoint_id: Optional[uuid.UUID] = None
    event_id: Optional[uuid.UUID] = None
    delivery_status: Optional[str] = None
    start_date: Optional[datetime.datetime] = None
    end_date: Optional[datetime.datetime] = None


@dataclass
class StorageStats:
    """Raw aggregates over endpoints, events and deliveries."""

    endpoints_by_status: dict[str, int]
    total_endpoints: int
    active_endpoints: int
    total_events: int
    pending_events: int
    total_deliveries: int
    successful_deliveries: int
    failed_deliveries: int
    pending_deliveries: int
    average_response_time: float


@dataclass
class CleanupCounts:
    """Rows removed by a retention sweep."""

    deleted_events: int
    deleted_deliveries: int
    deleted_logs: int


class WebhookRepository(ABC):
    """Persistence for endpoints, events, deliveries and logs.

    Every method runs in its own transaction, so concurrent callers never
    share a session. Implementations raise ``StorageException`` subclasses on
    backend failures.
    """

    # Endpoints

    @abstractmethod
    async def create_endpoint(self, data: dict[str, Any], event_types: list[str]) -> WebhookEndpoint:
        """Insert an endpoint together with its subscriptions."""

    @abstractmethod
    async def get_endpoint(self, endpoint_id: uuid.UUID) -> Optional[WebhookEndpoint]:
        """Get endpoint by ID."""

    @abstractmethod
    async def list_endpoints(
        self, filters: EndpointFilters, limit: int = 100, offset: int = 0
    ) -> list[WebhookEndpoint]:
        """List endpoints, newest first."""

    @abstractmethod
    async def find_deliverable_endpoints(self, event_type: str) -> list[WebhookEndpoint]:
        """Active endpoints subscribed to *event_type*."""

    @abstractmethod
    async def update_endpoint(
        self,
        endpoint_id: uuid.UUID,
        data: dict[str, Any],
        event_types: Optional[list[str]] = None,
    ) -> Optional[WebhookEndpoint]:
        """Apply a partial update; ``event_types`` replaces the subscription set when given."""

    @abstractmethod
    async def delete_endpoint(self, endpoint_id: uuid.UUID) -> bool:
        """Delete endpoint and its subscriptions. Deliveries and logs are kept."""

    @abstractmethod
    async def increment_endpoint_stats(
        self, endpoint_id: uuid.UUID, success: bool, at: datetime.datetime
    ) -> None:
        """Atomically bump the endpoint counters."""

    # Events

    @abstractmethod
    async def create_event(self, data: dict[str, Any]) -> WebhookEvent:
        """Insert an event."""

    @abstractmethod
    async def get_event(self, event_id: uuid.UUID) -> Optional[WebhookEvent]:
        """Get event by ID."""

    @abstractmethod
    async def list_events(
        self, filters: EventFilters, limit: int = 100, offset: int = 0
    ) -> list[WebhookEvent]:
        """List events, newest first."""

    @abstractmethod
    async def mark_event_processed(self, event_id: uuid.UUID, at: datetime.datetime) -> Optional[WebhookEvent]:
        """Flag event as processed."""

    # Deliveries

    @abstractmethod
    async def create_delivery(self, data: dict[str, Any]) -> WebhookDelivery:
        """Insert a delivery."""

    @abstractmethod
    async def get_delivery(self, delivery_id: uuid.UUID) -> Optional[WebhookDelivery]:
        """Get delivery by ID."""

    @abstractmethod
    async def list_deliveries(
        self, filters: DeliveryFilters, limit: int = 100, offset: int = 0
    ) -> list[WebhookDelivery]:
        """List deliveries, newest first."""

    @abstractmethod
    async def update_delivery(
        self, delivery_id: uuid.UUID, data: dict[str, Any]
    ) -> Optional[WebhookDelivery]:
        """Apply a partial update to a delivery."""

    @abstractmethod
    async def claim_for_retry(
        self, delivery_id: uuid.UUID, at: datetime.datetime
    ) -> Optional[WebhookDelivery]:
        """Move an awaiting-retry delivery to its next pending attempt.

        Returns ``None`` when the delivery is no longer awaiting retry, i.e.
        another caller claimed it first.
        """

    @abstractmethod
    async def release_delivery(
        self, delivery_id: uuid.UUID, error: str, next_retry_at: Optional[datetime.datetime]
    ) -> Optional[WebhookDelivery]:
        """Mark an unfinished attempt as failed with the given retry time.

        Successful deliveries are not touched; returns ``None`` for them.
        """

    @abstractmethod
    async def list_due_for_retry(self, now: datetime.datetime, limit: int = 100) -> list[WebhookDelivery]:
        """Deliveries whose retry time has passed and whose endpoint is deliverable."""

    # Logs

    @abstractmethod
    async def append_log(self, data: dict[str, Any]) -> WebhookLog:
        """Append an audit log entry."""

    @abstractmethod
    async def list_logs(
        self, endpoint_id: uuid.UUID, limit: int = 100, offset: int = 0
    ) -> list[WebhookLog]:
        """List logs for an endpoint, newest first."""

    # Maintenance

    @abstractmethod
    async def collect_stats(self) -> StorageStats:
        """Aggregate counters across all tables."""

    @abstractmethod
    async def delete_older_than(self, cutoff: datetime.datetime) -> CleanupCounts:
        """Delete processed events, deliveries and logs created before *cutoff*."""
