"""Retry scheduling with exponential backoff."""

import datetime
import uuid
from datetime import timedelta
from typing import TYPE_CHECKING, Optional

from shop_webhooks.core.config import get_settings
from shop_webhooks.core.exceptions import NotFoundException
from shop_webhooks.core.logging import get_logger
from shop_webhooks.storage.database.base import utcnow
from shop_webhooks.storage.database.webhook_models import LogLevel, WebhookDelivery, WebhookEndpoint
from shop_webhooks.storage.repository import WebhookRepository

if TYPE_CHECKING:
    from shop_webhooks.webhooks.delivery import DeliveryEngine

logger = get_logger(__name__)


class RetryScheduler:
    """Decides when failed deliveries are attempted again and runs those attempts."""

    def __init__(self, repository: WebhookRepository, base_delay: Optional[timedelta] = None) -> None:
        """Initialize scheduler.

        Args:
            repository: Storage backend
            base_delay: Backoff unit (default ``WEBHOOK_RETRY_BASE_MINUTES``)
        """
        self.repository = repository
        if base_delay is None:
            base_delay = timedelta(minutes=get_settings().webhook_retry_base_minutes)
        self.base_delay = base_delay

    def backoff_delay(self, attempt_number: int) -> timedelta:
        """Delay before the attempt after *attempt_number*: ``base * 2**attempt_number``."""
        return self.base_delay * (2 ** max(attempt_number, 0))

    async def on_outcome(
        self,
        endpoint: WebhookEndpoint,
        delivery: WebhookDelivery,
        success: bool,
        now: Optional[datetime.datetime] = None,
    ) -> WebhookDelivery:
        """Set or clear ``next_retry_at`` after an attempt.

        Args:
            endpoint: Endpoint the delivery belongs to
            delivery: Delivery whose attempt just finished
            success: Attempt outcome
            now: Reference time (default: current UTC time)

        Returns:
            Updated delivery
        """
        now = now or utcnow()
        next_retry_at = None

        if not success:
            if delivery.attempt_number < endpoint.max_retries:
                next_retry_at = now + self.backoff_delay(delivery.attempt_number)
                logger.warning(
                    "webhook_delivery_failed_will_retry",
                    endpoint_id=str(endpoint.id),
                    delivery_id=str(delivery.id),
                    attempt=delivery.attempt_number,
                    next_retry=next_retry_at.isoformat(),
                )
            else:
                logger.error(
                    "webhook_delivery_failed_max_retries",
                    endpoint_id=str(endpoint.id),
                    delivery_id=str(delivery.id),
                    attempts=delivery.attempt_number,
                    error=delivery.error_message,
                )
                await self.repository.append_log(
                    {
                        "endpoint_id": endpoint.id,
                        "delivery_id": delivery.id,
                        "log_level": LogLevel.ERROR.value,
                        "message": f"Delivery abandoned after {delivery.attempt_number} attempts",
                        "context": {"error": delivery.error_message},
                    }
                )

        updated = await self.repository.update_delivery(delivery.id, {"next_retry_at": next_retry_at})
        return updated or delivery

    async def release(
        self,
        endpoint: WebhookEndpoint,
        delivery: WebhookDelivery,
        error: str,
        now: Optional[datetime.datetime] = None,
    ) -> Optional[WebhookDelivery]:
        """Put an attempt that stopped before its outcome was recorded back in the retry queue.

        The interrupted attempt counts against the retry budget. Deliveries
        already marked successful are left as they are.
        """
        now = now or utcnow()
        next_retry_at = None
        if delivery.attempt_number < endpoint.max_retries:
            next_retry_at = now + self.backoff_delay(delivery.attempt_number)

        logger.error(
            "webhook_attempt_interrupted",
            endpoint_id=str(endpoint.id),
            delivery_id=str(delivery.id),
            attempt=delivery.attempt_number,
            next_retry=next_retry_at.isoformat() if next_retry_at else None,
            error=error,
        )
        return await self.repository.release_delivery(delivery.id, error, next_retry_at)

    async def retry(self, delivery_id: uuid.UUID, engine: "DeliveryEngine") -> WebhookDelivery:
        """Run the next attempt of a delivery that is awaiting retry.

        A delivery that is not awaiting retry, or whose endpoint stopped being
        deliverable, is returned unchanged. Losing the claim to a concurrent
        caller is treated the same way.

        Raises:
            NotFoundException: If the delivery, its endpoint or its event is missing
        """
        delivery = await self.repository.get_delivery(delivery_id)
        if delivery is None:
            raise NotFoundException("Webhook delivery not found", details={"delivery_id": str(delivery_id)})

        endpoint = await self.repository.get_endpoint(delivery.endpoint_id)
        if endpoint is None:
            raise NotFoundException(
                "Webhook endpoint not found", details={"endpoint_id": str(delivery.endpoint_id)}
            )

        event = await self.repository.get_event(delivery.event_id)
        if event is None:
            raise NotFoundException("Webhook event not found", details={"event_id": str(delivery.event_id)})

        if not delivery.is_awaiting_retry or not endpoint.is_deliverable:
            logger.info(
                "webhook_retry_skipped",
                delivery_id=str(delivery.id),
                delivery_status=delivery.delivery_status,
                endpoint_deliverable=endpoint.is_deliverable,
            )
            return delivery

        claimed = await self.repository.claim_for_retry(delivery.id, utcnow())
        if claimed is None:
            logger.info("webhook_retry_already_claimed", delivery_id=str(delivery.id))
            return await self.repository.get_delivery(delivery.id) or delivery

        await engine.attempt(endpoint, event, claimed)
        return await self.repository.get_delivery(delivery.id) or claimed

    async def retry_due(self, engine: "DeliveryEngine", limit: Optional[int] = None) -> int:
        """Retry every delivery whose ``next_retry_at`` has passed.

        Args:
            engine: Engine that performs the attempts
            limit: Maximum deliveries to process (default ``WEBHOOK_RETRY_BATCH_SIZE``)

        Returns:
            Number of attempts made
        """
        limit = limit or get_settings().webhook_retry_batch_size
        due = await self.repository.list_due_for_retry(utcnow(), limit)

        logger.info("retrying_webhook_deliveries", count=len(due))

        retried = 0
        for delivery in due:
            before = delivery.attempt_number
            try:
                updated = await self.retry(delivery.id, engine)
            except NotFoundException as e:
                # Event or endpoint removed since the delivery was scheduled; stop retrying it
                logger.warning("webhook_retry_orphaned", delivery_id=str(delivery.id), error=e.message)
                await self.repository.update_delivery(delivery.id, {"next_retry_at": None})
                continue
            if updated.attempt_number > before:
                retried += 1

        return retried
