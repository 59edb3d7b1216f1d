"""Delivery statistics with a short-lived query cache."""

import asyncio
import time
from typing import Any, Awaitable, Callable, Hashable, Optional

from shop_webhooks.core.config import get_settings
from shop_webhooks.core.logging import get_logger
from shop_webhooks.storage.repository import WebhookRepository
from shop_webhooks.webhooks.schemas import WebhookStats

logger = get_logger(__name__)


class QueryCache:
    """TTL cache for the results of expensive async queries."""

    def __init__(self, ttl_seconds: float) -> None:
        """Initialize cache.

        Args:
            ttl_seconds: Entry lifetime; 0 disables caching
        """
        self.ttl_seconds = ttl_seconds
        self._entries: dict[Hashable, tuple[float, Any]] = {}
        self._lock = asyncio.Lock()

    async def get_or_load(self, key: Hashable, loader: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached value for *key*, calling *loader* when missing or stale."""
        async with self._lock:
            now = time.monotonic()
            cached = self._entries.get(key)
            if cached is not None and now - cached[0] < self.ttl_seconds:
                logger.debug("query_cache_hit", key=str(key))
                return cached[1]

            value = await loader()
            if self.ttl_seconds > 0:
                self._entries[key] = (time.monotonic(), value)
            return value

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        """Drop one entry, or all entries when *key* is None."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)


class StatsAggregator:
    """Builds operational counters from storage."""

    def __init__(self, repository: WebhookRepository, cache: Optional[QueryCache] = None) -> None:
        self.repository = repository
        self.cache = cache or QueryCache(get_settings().cache_ttl_stats)

    async def endpoint_stats(self) -> WebhookStats:
        """Counters across endpoints, events and deliveries."""
        return await self.cache.get_or_load(("endpoint_stats",), self._compute)

    async def _compute(self) -> WebhookStats:
        raw = await self.repository.collect_stats()
        completed = raw.successful_deliveries + raw.failed_deliveries
        success_rate = raw.successful_deliveries / completed if completed else 0.0

        return WebhookStats(
            by_status=raw.endpoints_by_status,
            total_endpoints=raw.total_endpoints,
            active_endpoints=raw.active_endpoints,
            total_events=raw.total_events,
            pending_events=raw.pending_events,
            total_deliveries=raw.total_deliveries,
            successful_deliveries=raw.successful_deliveries,
            failed_deliveries=raw.failed_deliveries,
            pending_deliveries=raw.pending_deliveries,
            average_response_time=raw.average_response_time,
            success_rate=round(success_rate, 4),
        )
