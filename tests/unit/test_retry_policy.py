"""Tests for retry backoff."""

from datetime import timedelta

from shop_webhooks.webhooks.retry import RetryScheduler


def test_backoff_doubles_per_attempt() -> None:
    scheduler = RetryScheduler(repository=None, base_delay=timedelta(minutes=1))  # type: ignore[arg-type]

    assert scheduler.backoff_delay(1) == timedelta(minutes=2)
    assert scheduler.backoff_delay(2) == timedelta(minutes=4)
    assert scheduler.backoff_delay(3) == timedelta(minutes=8)


def test_backoff_is_non_decreasing() -> None:
    scheduler = RetryScheduler(repository=None, base_delay=timedelta(seconds=30))  # type: ignore[arg-type]

    delays = [scheduler.backoff_delay(attempt) for attempt in range(0, 12)]

    assert delays == sorted(delays)


def test_backoff_base_from_settings() -> None:
    scheduler = RetryScheduler(repository=None)  # type: ignore[arg-type]

    assert scheduler.backoff_delay(1) == timedelta(minutes=2)
