"""Webhook-related Celery tasks."""

import asyncio
from typing import Optional

from shop_webhooks.core.exceptions import ShopWebhooksException
from shop_webhooks.core.logging import get_logger
from shop_webhooks.tasks.celery_app import celery_app
from shop_webhooks.webhooks.service import webhook_service_context

logger = get_logger(__name__)


@celery_app.task(name="retry_due_webhook_deliveries")
def retry_due_webhook_deliveries_task(limit: Optional[int] = None) -> dict:
    """Retry failed webhook deliveries whose backoff has elapsed.

    Scheduled every minute by Celery Beat.

    Args:
        limit: Maximum deliveries per run (default ``WEBHOOK_RETRY_BATCH_SIZE``)

    Returns:
        Dict with results
    """
    return asyncio.run(_retry_due_async(limit))


async def _retry_due_async(limit: Optional[int]) -> dict:
    """Async implementation of webhook retry."""
    try:
        async with webhook_service_context() as service:
            retried = await service.retry_due_deliveries(limit)
    except ShopWebhooksException as e:
        logger.error("webhook_retry_failed", error=e.message, details=e.details, exc_info=True)
        return {"status": "failed", "error": e.message}

    logger.info("webhook_retry_completed", retried=retried)
    return {"status": "completed", "retried": retried}


@celery_app.task(name="cleanup_old_webhook_data")
def cleanup_old_webhook_data_task(retention_days: Optional[int] = None) -> dict:
    """Delete processed events, deliveries and logs past the retention window.

    Returns:
        Dict with results
    """
    return asyncio.run(_cleanup_async(retention_days))


async def _cleanup_async(retention_days: Optional[int]) -> dict:
    try:
        async with webhook_service_context() as service:
            result = await service.cleanup_old_data(retention_days)
    except ShopWebhooksException as e:
        logger.error("webhook_cleanup_failed", error=e.message, details=e.details, exc_info=True)
        return {"status": "failed", "error": e.message}

    return {"status": "completed", **result.model_dump()}
