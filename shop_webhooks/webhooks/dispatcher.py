"""Webhook event dispatcher."""

import asyncio
from typing import Optional

from shop_webhooks.core.logging import get_logger
from shop_webhooks.storage.database.base import utcnow
from shop_webhooks.storage.database.webhook_models import WebhookEvent
from shop_webhooks.storage.repository import WebhookRepository
from shop_webhooks.webhooks.delivery import DeliveryEngine
from shop_webhooks.webhooks.filters import AcceptAllFilter, EndpointFilter
from shop_webhooks.webhooks.registry import EndpointRegistry
from shop_webhooks.webhooks.schemas import EventCreate

logger = get_logger(__name__)


class EventDispatcher:
    """Persists events and fans them out to subscribed endpoints."""

    def __init__(
        self,
        repository: WebhookRepository,
        registry: EndpointRegistry,
        engine: DeliveryEngine,
        endpoint_filter: Optional[EndpointFilter] = None,
    ) -> None:
        """Initialize dispatcher.

        Args:
            repository: Storage backend
            registry: Endpoint registry used to resolve subscribers
            engine: Delivery engine
            endpoint_filter: Per-endpoint predicate (default accepts every event)
        """
        self.repository = repository
        self.registry = registry
        self.engine = engine
        self.endpoint_filter = endpoint_filter or AcceptAllFilter()

    async def dispatch(self, data: EventCreate) -> WebhookEvent:
        """Record *data* and deliver it to every subscribed active endpoint.

        Deliveries run concurrently. A failed delivery is captured on its own
        row and never affects the other endpoints.

        Args:
            data: Event to dispatch

        Returns:
            Persisted event (processed unless a schedule failed)

        Raises:
            DatabaseException: If the event or a delivery could not be stored.
                Raised only after every other schedule has finished.
        """
        event = await self.repository.create_event(
            {
                "event_type": data.event_type,
                "event_id": data.event_id,
                "payload": data.payload,
                "event_metadata": data.metadata,
                "source_id": data.source_id,
                "source_type": data.source_type,
                "user_id": data.user_id,
                "vendor_id": data.vendor_id,
                "is_processed": False,
            }
        )

        subscribers = await self.registry.find_subscribers(event.event_type)
        targets = [endpoint for endpoint in subscribers if self.endpoint_filter.matches(endpoint, event)]

        logger.info(
            "dispatching_webhook_event",
            event_id=str(event.id),
            event_type=event.event_type,
            subscribers=len(subscribers),
            targets=len(targets),
        )

        results = await asyncio.gather(
            *(self.engine.schedule(endpoint, event) for endpoint in targets),
            return_exceptions=True,
        )

        errors = [result for result in results if isinstance(result, BaseException)]
        for endpoint, result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.error(
                    "webhook_schedule_failed",
                    event_id=str(event.id),
                    endpoint_id=str(endpoint.id),
                    error=str(result),
                )

        if errors:
            raise errors[0]

        processed = await self.repository.mark_event_processed(event.id, utcnow())

        logger.info(
            "webhook_event_dispatched",
            event_id=str(event.id),
            event_type=event.event_type,
            deliveries=len(targets),
        )
        return processed or event
