"""Celery Beat periodic task schedule."""

from celery.schedules import crontab

beat_schedule = {
    # Drives delivery retries; expires before the next tick so runs never pile up
    "retry-due-webhook-deliveries": {
        "task": "retry_due_webhook_deliveries",
        "schedule": 60.0,
        "options": {
            "expires": 55.0,
        },
    },
    "cleanup-old-webhook-data": {
        "task": "cleanup_old_webhook_data",
        "schedule": crontab(hour=2, minute=0),
        "options": {
            "expires": 3600,
        },
    },
}
