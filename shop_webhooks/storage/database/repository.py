"""SQLAlchemy implementation of the webhook storage interface."""

import datetime
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shop_webhooks.core.exceptions import DatabaseException
from shop_webhooks.core.logging import get_logger
from shop_webhooks.storage.database.webhook_models import (
    DeliveryStatus,
    EndpointStatus,
    WebhookDelivery,
    WebhookEndpoint,
    WebhookEvent,
    WebhookLog,
    WebhookSubscription,
)
from shop_webhooks.storage.repository import (
    CleanupCounts,
    DeliveryFilters,
    EndpointFilters,
    EventFilters,
    StorageStats,
    WebhookRepository,
)

logger = get_logger(__name__)


class SQLAlchemyWebhookRepository(WebhookRepository):
    """Repository backed by an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Initialize repository with a session factory."""
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as e:
            logger.error("webhook_storage_error", error=str(e), exc_info=True)
            raise DatabaseException("Webhook storage operation failed", details={"error": str(e)}) from e

    @staticmethod
    def _deliverable():
        return (
            WebhookEndpoint.is_active.is_(True),
            WebhookEndpoint.status == EndpointStatus.ACTIVE.value,
        )

    # Endpoints

    async def create_endpoint(self, data: dict[str, Any], event_types: list[str]) -> WebhookEndpoint:
        """Create new endpoint."""
        async with self._transaction() as session:
            endpoint = WebhookEndpoint(**data)
            endpoint.subscriptions = [
                WebhookSubscription(event_type=event_type) for event_type in dict.fromkeys(event_types)
            ]
            session.add(endpoint)
            await session.flush()
        logger.info("webhook_endpoint_created", endpoint_id=str(endpoint.id), event_types=event_types)
        return endpoint

    async def get_endpoint(self, endpoint_id: uuid.UUID) -> Optional[WebhookEndpoint]:
        """Get endpoint by ID."""
        async with self._transaction() as session:
            return await session.get(WebhookEndpoint, endpoint_id)

    async def list_endpoints(
        self, filters: EndpointFilters, limit: int = 100, offset: int = 0
    ) -> list[WebhookEndpoint]:
        """List endpoints with filters and pagination."""
        query = select(WebhookEndpoint)
        if filters.status is not None:
            query = query.where(WebhookEndpoint.status == filters.status)
        if filters.is_active is not None:
            query = query.where(WebhookEndpoint.is_active.is_(filters.is_active))
        if filters.user_id is not None:
            query = query.where(WebhookEndpoint.user_id == filters.user_id)
        if filters.vendor_id is not None:
            query = query.where(WebhookEndpoint.vendor_id == filters.vendor_id)
        for event_type in filters.event_types:
            query = query.where(
                WebhookEndpoint.subscriptions.any(WebhookSubscription.event_type == event_type)
            )

        async with self._transaction() as session:
            result = await session.execute(
                query.order_by(WebhookEndpoint.created_at.desc()).limit(limit).offset(offset)
            )
            return list(result.scalars().all())

    async def find_deliverable_endpoints(self, event_type: str) -> list[WebhookEndpoint]:
        """Get active endpoints subscribed to an event type."""
        async with self._transaction() as session:
            result = await session.execute(
                select(WebhookEndpoint)
                .where(
                    *self._deliverable(),
                    WebhookEndpoint.subscriptions.any(WebhookSubscription.event_type == event_type),
                )
                .order_by(WebhookEndpoint.created_at)
            )
            return list(result.scalars().all())

    async def update_endpoint(
        self,
        endpoint_id: uuid.UUID,
        data: dict[str, Any],
        event_types: Optional[list[str]] = None,
    ) -> Optional[WebhookEndpoint]:
        """Update endpoint."""
        async with self._transaction() as session:
            endpoint = await session.get(WebhookEndpoint, endpoint_id)
            if endpoint is None:
                return None

            for key, value in data.items():
                setattr(endpoint, key, value)

            if event_types is not None:
                current = {s.event_type: s for s in endpoint.subscriptions}
                endpoint.subscriptions = [
                    current.get(event_type) or WebhookSubscription(event_type=event_type)
                    for event_type in dict.fromkeys(event_types)
                ]

            await session.flush()
        logger.info("webhook_endpoint_updated", endpoint_id=str(endpoint_id), fields=sorted(data))
        return endpoint

    async def delete_endpoint(self, endpoint_id: uuid.UUID) -> bool:
        """Delete endpoint."""
        async with self._transaction() as session:
            endpoint = await session.get(WebhookEndpoint, endpoint_id)
            if endpoint is None:
                return False
            await session.delete(endpoint)
        logger.info("webhook_endpoint_deleted", endpoint_id=str(endpoint_id))
        return True

    async def increment_endpoint_stats(
        self, endpoint_id: uuid.UUID, success: bool, at: datetime.datetime
    ) -> None:
        """Increment counters in SQL so concurrent deliveries never lose updates."""
        values: dict[str, Any] = {"total_deliveries": WebhookEndpoint.total_deliveries + 1}
        if success:
            values["success_count"] = WebhookEndpoint.success_count + 1
            values["last_success_at"] = at
        else:
            values["failure_count"] = WebhookEndpoint.failure_count + 1
            values["last_failure_at"] = at

        async with self._transaction() as session:
            await session.execute(
                update(WebhookEndpoint)
                .where(WebhookEndpoint.id == endpoint_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )

    # Events

    async def create_event(self, data: dict[str, Any]) -> WebhookEvent:
        """Create new event."""
        async with self._transaction() as session:
            event = WebhookEvent(**data)
            session.add(event)
            await session.flush()
        return event

    async def get_event(self, event_id: uuid.UUID) -> Optional[WebhookEvent]:
        """Get event by ID."""
        async with self._transaction() as session:
            return await session.get(WebhookEvent, event_id)

    async def list_events(
        self, filters: EventFilters, limit: int = 100, offset: int = 0
    ) -> list[WebhookEvent]:
        """List events with filters and pagination."""
        query = select(WebhookEvent)
        if filters.event_type is not None:
            query = query.where(WebhookEvent.event_type == filters.event_type)
        if filters.source_type is not None:
            query = query.where(WebhookEvent.source_type == filters.source_type)
        if filters.user_id is not None:
            query = query.where(WebhookEvent.user_id == filters.user_id)
        if filters.vendor_id is not None:
            query = query.where(WebhookEvent.vendor_id == filters.vendor_id)
        if filters.is_processed is not None:
            query = query.where(WebhookEvent.is_processed.is_(filters.is_processed))
        if filters.start_date is not None:
            query = query.where(WebhookEvent.created_at >= filters.start_date)
        if filters.end_date is not None:
            query = query.where(WebhookEvent.created_at <= filters.end_date)

        async with self._transaction() as session:
            result = await session.execute(
                query.order_by(WebhookEvent.created_at.desc()).limit(limit).offset(offset)
            )
            return list(result.scalars().all())

    async def mark_event_processed(
        self, event_id: uuid.UUID, at: datetime.datetime
    ) -> Optional[WebhookEvent]:
        """Mark event as processed."""
        async with self._transaction() as session:
            event = await session.get(WebhookEvent, event_id)
            if event is None:
                return None
            event.is_processed = True
            event.processed_at = at
            await session.flush()
        return event

    # Deliveries

    async def create_delivery(self, data: dict[str, Any]) -> WebhookDelivery:
        """Create new delivery."""
        async with self._transaction() as session:
            delivery = WebhookDelivery(**data)
            session.add(delivery)
            await session.flush()
        return delivery

    async def get_delivery(self, delivery_id: uuid.UUID) -> Optional[WebhookDelivery]:
        """Get delivery by ID."""
        async with self._transaction() as session:
            return await session.get(WebhookDelivery, delivery_id)

    async def list_deliveries(
        self, filters: DeliveryFilters, limit: int = 100, offset: int = 0
    ) -> list[WebhookDelivery]:
        """List deliveries with filters and pagination."""
        query = select(WebhookDelivery)
        if filters.endpoint_id is not None:
            query = query.where(WebhookDelivery.endpoint_id == filters.endpoint_id)
        if filters.event_id is not None:
            query = query.where(WebhookDelivery.event_id == filters.event_id)
        if filters.delivery_status is not None:
            query = query.where(WebhookDelivery.delivery_status == filters.delivery_status)
        if filters.start_date is not None:
            query = query.where(WebhookDelivery.created_at >= filters.start_date)
        if filters.end_date is not None:
            query = query.where(WebhookDelivery.created_at <= filters.end_date)

        async with self._transaction() as session:
            result = await session.execute(
                query.order_by(WebhookDelivery.created_at.desc()).limit(limit).offset(offset)
            )
            return list(result.scalars().all())

    async def update_delivery(
        self, delivery_id: uuid.UUID, data: dict[str, Any]
    ) -> Optional[WebhookDelivery]:
        """Update delivery."""
        async with self._transaction() as session:
            delivery = await session.get(WebhookDelivery, delivery_id)
            if delivery is None:
                return None
            for key, value in data.items():
                setattr(delivery, key, value)
            await session.flush()
        return delivery

    async def claim_for_retry(
        self, delivery_id: uuid.UUID, at: datetime.datetime
    ) -> Optional[WebhookDelivery]:
        """Conditionally advance the attempt; the WHERE clause makes the claim exclusive."""
        async with self._transaction() as session:
            result = await session.execute(
                update(WebhookDelivery)
                .where(
                    WebhookDelivery.id == delivery_id,
                    WebhookDelivery.delivery_status == DeliveryStatus.FAILED.value,
                    WebhookDelivery.next_retry_at.is_not(None),
                )
                .values(
                    attempt_number=WebhookDelivery.attempt_number + 1,
                    delivery_status=DeliveryStatus.PENDING.value,
                    next_retry_at=None,
                    scheduled_at=at,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                return None
            return await session.get(WebhookDelivery, delivery_id, populate_existing=True)

    async def release_delivery(
        self, delivery_id: uuid.UUID, error: str, next_retry_at: Optional[datetime.datetime]
    ) -> Optional[WebhookDelivery]:
        """Return an unfinished attempt to the failed state."""
        async with self._transaction() as session:
            result = await session.execute(
                update(WebhookDelivery)
                .where(
                    WebhookDelivery.id == delivery_id,
                    WebhookDelivery.delivery_status != DeliveryStatus.SUCCESS.value,
                )
                .values(
                    delivery_status=DeliveryStatus.FAILED.value,
                    error_message=error,
                    next_retry_at=next_retry_at,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                return None
            return await session.get(WebhookDelivery, delivery_id, populate_existing=True)

    async def list_due_for_retry(self, now: datetime.datetime, limit: int = 100) -> list[WebhookDelivery]:
        """Get deliveries due for retry."""
        async with self._transaction() as session:
            result = await session.execute(
                select(WebhookDelivery)
                .join(WebhookEndpoint, WebhookEndpoint.id == WebhookDelivery.endpoint_id)
                .where(
                    WebhookDelivery.delivery_status == DeliveryStatus.FAILED.value,
                    WebhookDelivery.next_retry_at.is_not(None),
                    WebhookDelivery.next_retry_at <= now,
                    *self._deliverable(),
                )
                .order_by(WebhookDelivery.next_retry_at)
                .limit(limit)
            )
            return list(result.scalars().all())

    # Logs

    async def append_log(self, data: dict[str, Any]) -> WebhookLog:
        """Append log entry."""
        async with self._transaction() as session:
            entry = WebhookLog(**data)
            session.add(entry)
            await session.flush()
        return entry

    async def list_logs(
        self, endpoint_id: uuid.UUID, limit: int = 100, offset: int = 0
    ) -> list[WebhookLog]:
        """List logs for an endpoint."""
        async with self._transaction() as session:
            result = await session.execute(
                select(WebhookLog)
                .where(WebhookLog.endpoint_id == endpoint_id)
                .order_by(WebhookLog.created_at.desc())
                .limit(limit)
                .offset(offset)
            )
            return list(result.scalars().all())

    # Maintenance

    async def collect_stats(self) -> StorageStats:
        """Aggregate endpoint, event and delivery counters."""
        async with self._transaction() as session:
            status_rows = await session.execute(
                select(WebhookEndpoint.status, func.count()).group_by(WebhookEndpoint.status)
            )
            endpoints_by_status = {status: int(count) for status, count in status_rows.all()}

            active_endpoints = await session.scalar(
                select(func.count()).select_from(WebhookEndpoint).where(*self._deliverable())
            )

            event_row = (
                await session.execute(
                    select(
                        func.count(WebhookEvent.id),
                        func.count(case((WebhookEvent.is_processed.is_(False), 1))),
                    )
                )
            ).one()

            delivery_row = (
                await session.execute(
                    select(
                        func.count(WebhookDelivery.id),
                        func.count(
                            case((WebhookDelivery.delivery_status == DeliveryStatus.SUCCESS.value, 1))
                        ),
                        func.count(
                            case((WebhookDelivery.delivery_status == DeliveryStatus.FAILED.value, 1))
                        ),
                        func.count(
                            case((WebhookDelivery.delivery_status == DeliveryStatus.PENDING.value, 1))
                        ),
                        func.avg(WebhookDelivery.response_time),
                    )
                )
            ).one()

        return StorageStats(
            endpoints_by_status=endpoints_by_status,
            total_endpoints=sum(endpoints_by_status.values()),
            active_endpoints=int(active_endpoints or 0),
            total_events=int(event_row[0]),
            pending_events=int(event_row[1]),
            total_deliveries=int(delivery_row[0]),
            successful_deliveries=int(delivery_row[1]),
            failed_deliveries=int(delivery_row[2]),
            pending_deliveries=int(delivery_row[3]),
            average_response_time=float(delivery_row[4] or 0.0),
        )

    async def delete_older_than(self, cutoff: datetime.datetime) -> CleanupCounts:
        """Delete old webhook data."""
        async with self._transaction() as session:
            events = await session.execute(
                delete(WebhookEvent)
                .where(WebhookEvent.is_processed.is_(True), WebhookEvent.created_at < cutoff)
                .execution_options(synchronize_session=False)
            )
            deliveries = await session.execute(
                delete(WebhookDelivery)
                .where(WebhookDelivery.created_at < cutoff)
                .execution_options(synchronize_session=False)
            )
            logs = await session.execute(
                delete(WebhookLog)
                .where(WebhookLog.created_at < cutoff)
                .execution_options(synchronize_session=False)
            )

        counts = CleanupCounts(
            deleted_events=events.rowcount,
            deleted_deliveries=deliveries.rowcount,
            deleted_logs=logs.rowcount,
        )
        logger.info(
            "webhook_data_cleaned",
            cutoff=cutoff.isoformat(),
            deleted_events=counts.deleted_events,
            deleted_deliveries=counts.deleted_deliveries,
            deleted_logs=counts.deleted_logs,
        )
        return counts
