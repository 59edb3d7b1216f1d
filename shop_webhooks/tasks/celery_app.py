"""Celery application configuration."""

from celery import Celery

from shop_webhooks.core.config import get_settings
from shop_webhooks.tasks.beat_schedule import beat_schedule

settings = get_settings()

celery_app = Celery(
    "shop_webhooks",
    broker=settings.broker_url,
    backend=settings.result_backend,
    include=["shop_webhooks.tasks.webhook_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    broker_connection_retry_on_startup=True,
)

celery_app.conf.beat_schedule = beat_schedule
