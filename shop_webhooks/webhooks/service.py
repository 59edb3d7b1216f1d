"""Webhook service facade used by the API, tasks and CLI."""

import uuid
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any, AsyncIterator, Optional

import httpx

from shop_webhooks.core.config import Settings, get_settings
from shop_webhooks.core.exceptions import NotFoundException, ValidationException
from shop_webhooks.core.logging import get_logger
from shop_webhooks.storage.database.base import (
    close_db,
    create_engine_for_url,
    create_session_factory,
    utcnow,
)
from shop_webhooks.storage.database.repository import SQLAlchemyWebhookRepository
from shop_webhooks.storage.database.webhook_models import (
    WebhookDelivery,
    WebhookEndpoint,
    WebhookEvent,
    WebhookEventType,
    WebhookLog,
)
from shop_webhooks.storage.repository import (
    DeliveryFilters,
    EndpointFilters,
    EventFilters,
    WebhookRepository,
)
from shop_webhooks.webhooks.delivery import DeliveryEngine
from shop_webhooks.webhooks.dispatcher import EventDispatcher
from shop_webhooks.webhooks.filters import EndpointFilter
from shop_webhooks.webhooks.registry import EndpointRegistry
from shop_webhooks.webhooks.retry import RetryScheduler
from shop_webhooks.webhooks.schemas import (
    CleanupResult,
    DeliveryResult,
    EndpointCreate,
    EndpointUpdate,
    EventCreate,
    WebhookStats,
)
from shop_webhooks.webhooks.stats import QueryCache, StatsAggregator

logger = get_logger(__name__)


class WebhookService:
    """Entry point to endpoint management, dispatch, retries and reporting."""

    def __init__(
        self,
        repository: WebhookRepository,
        http_client: httpx.AsyncClient,
        settings: Optional[Settings] = None,
        endpoint_filter: Optional[EndpointFilter] = None,
    ) -> None:
        """Wire the webhook components around one repository.

        Args:
            repository: Storage backend
            http_client: HTTP client used for deliveries
            settings: Application settings (default: cached settings)
            endpoint_filter: Per-endpoint event predicate
        """
        self.settings = settings or get_settings()
        self.repository = repository

        self.registry = EndpointRegistry(
            repository,
            default_max_retries=self.settings.webhook_default_max_retries,
            default_timeout_seconds=self.settings.webhook_default_timeout_seconds,
        )
        self.retry_scheduler = RetryScheduler(
            repository, base_delay=timedelta(minutes=self.settings.webhook_retry_base_minutes)
        )
        self.engine = DeliveryEngine(
            repository,
            self.registry,
            self.retry_scheduler,
            http_client,
            serializers=self.registry.serializers,
            user_agent=self.settings.webhook_user_agent,
            response_body_limit=self.settings.webhook_response_body_limit,
        )
        self.dispatcher = EventDispatcher(repository, self.registry, self.engine, endpoint_filter)
        self.stats = StatsAggregator(repository, QueryCache(self.settings.cache_ttl_stats))

    # Endpoints

    async def create_endpoint(self, data: EndpointCreate) -> WebhookEndpoint:
        """Register a new endpoint."""
        return await self.registry.create(data)

    async def get_endpoints(
        self,
        filters: Optional[EndpointFilters] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[WebhookEndpoint]:
        """List endpoints."""
        return await self.registry.list_endpoints(filters, limit, offset)

    async def get_endpoint_by_id(self, endpoint_id: uuid.UUID) -> WebhookEndpoint:
        """Get endpoint or raise ``NotFoundException``."""
        return await self.registry.get(endpoint_id)

    async def update_endpoint(self, endpoint_id: uuid.UUID, data: EndpointUpdate) -> WebhookEndpoint:
        """Partially update endpoint."""
        return await self.registry.update(endpoint_id, data)

    async def delete_endpoint(self, endpoint_id: uuid.UUID) -> None:
        """Delete endpoint. Its delivery history is kept."""
        await self.registry.delete(endpoint_id)

    async def test_endpoint(
        self, endpoint_id: uuid.UUID, payload: Optional[dict[str, Any]] = None
    ) -> DeliveryResult:
        """Send a synthetic ``system.test`` event to one endpoint.

        Nothing is stored apart from a log entry, and the endpoint counters
        are left untouched.
        """
        endpoint = await self.registry.get(endpoint_id)
        now = utcnow()
        event = WebhookEvent(
            id=uuid.uuid4(),
            event_type=WebhookEventType.SYSTEM_TEST.value,
            event_id=f"test-{int(now.timestamp())}",
            payload=payload
            or {
                "test": True,
                "message": "This is a test webhook delivery",
                "timestamp": now.isoformat(),
            },
            is_processed=False,
            created_at=now,
        )
        return await self.engine.probe(endpoint, event)

    async def get_endpoint_logs(
        self, endpoint_id: uuid.UUID, limit: int = 100, offset: int = 0
    ) -> list[WebhookLog]:
        """Audit log of an endpoint, newest first.

        Logs outlive their endpoint, so a deleted endpoint's history stays readable.
        """
        return await self.repository.list_logs(endpoint_id, limit, offset)

    # Events and deliveries

    async def dispatch_event(self, data: EventCreate) -> WebhookEvent:
        """Record an event and deliver it to its subscribers."""
        event = await self.dispatcher.dispatch(data)
        self.stats.cache.invalidate()
        return event

    async def get_events(
        self,
        filters: Optional[EventFilters] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[WebhookEvent]:
        """List events."""
        return await self.repository.list_events(filters or EventFilters(), limit, offset)

    async def get_deliveries(
        self,
        filters: Optional[DeliveryFilters] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[WebhookDelivery]:
        """List deliveries."""
        return await self.repository.list_deliveries(filters or DeliveryFilters(), limit, offset)

    async def get_delivery(self, delivery_id: uuid.UUID) -> WebhookDelivery:
        """Get delivery or raise ``NotFoundException``."""
        delivery = await self.repository.get_delivery(delivery_id)
        if delivery is None:
            raise NotFoundException("Webhook delivery not found", details={"delivery_id": str(delivery_id)})
        return delivery

    async def retry_delivery(self, delivery_id: uuid.UUID) -> WebhookDelivery:
        """Run the pending retry of one delivery now."""
        return await self.retry_scheduler.retry(delivery_id, self.engine)

    async def retry_due_deliveries(self, limit: Optional[int] = None) -> int:
        """Retry every delivery whose backoff has elapsed.

        Returns:
            Number of attempts made
        """
        return await self.retry_scheduler.retry_due(self.engine, limit)

    # Reporting and maintenance

    async def get_webhook_stats(self) -> WebhookStats:
        """Operational counters (cached briefly)."""
        return await self.stats.endpoint_stats()

    async def cleanup_old_data(self, retention_days: Optional[int] = None) -> CleanupResult:
        """Delete processed events, deliveries and logs older than the retention window.

        Args:
            retention_days: Days to keep (default ``WEBHOOK_RETENTION_DAYS``)

        Raises:
            ValidationException: If retention_days is less than 1
        """
        if retention_days is None:
            retention_days = self.settings.webhook_retention_days
        if retention_days < 1:
            raise ValidationException(
                "Retention must be at least one day", details={"retention_days": retention_days}
            )
        cutoff = utcnow() - timedelta(days=retention_days)
        counts = await self.repository.delete_older_than(cutoff)
        self.stats.cache.invalidate()

        logger.info(
            "webhook_cleanup_completed",
            retention_days=retention_days,
            deleted_events=counts.deleted_events,
            deleted_deliveries=counts.deleted_deliveries,
            deleted_logs=counts.deleted_logs,
        )
        return CleanupResult(
            deleted_events=counts.deleted_events,
            deleted_deliveries=counts.deleted_deliveries,
            deleted_logs=counts.deleted_logs,
        )


@asynccontextmanager
async def webhook_service_context(settings: Optional[Settings] = None) -> AsyncIterator[WebhookService]:
    """Build a service with its own database engine and HTTP client.

    Used by worker tasks and CLI commands that run outside the API process.
    """
    settings = settings or get_settings()
    engine = create_engine_for_url(settings.async_database_url)
    session_factory = create_session_factory(engine)
    http_client = httpx.AsyncClient(follow_redirects=False)
    try:
        yield WebhookService(SQLAlchemyWebhookRepository(session_factory), http_client, settings)
    finally:
        await http_client.aclose()
        await close_db(engine)
