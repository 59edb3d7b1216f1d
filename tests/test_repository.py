"""Tests for the SQLAlchemy repository."""

import asyncio
import datetime
import uuid

import pytest
from sqlalchemy import text

from shop_webhooks.core.exceptions import DatabaseException
from shop_webhooks.storage.database.base import utcnow
from shop_webhooks.storage.database.webhook_models import DeliveryStatus


async def _endpoint(repository, **overrides):
    values = {"name": "Shop", "url": "https://hooks.example.com", "secret": "s"}
    values.update(overrides)
    return await repository.create_endpoint(values, ["order.created"])


async def _delivery(repository, endpoint_id, **overrides):
    values = {
        "endpoint_id": endpoint_id,
        "event_id": uuid.uuid4(),
        "attempt_number": 1,
        "delivery_status": DeliveryStatus.FAILED.value,
        "request_url": "https://hooks.example.com",
        "request_method": "POST",
        "next_retry_at": utcnow() - datetime.timedelta(minutes=1),
    }
    values.update(overrides)
    return await repository.create_delivery(values)


@pytest.mark.asyncio
async def test_concurrent_counter_increments_are_not_lost(repository) -> None:
    endpoint = await _endpoint(repository)
    now = utcnow()

    await asyncio.gather(
        *(repository.increment_endpoint_stats(endpoint.id, index % 2 == 0, now) for index in range(10))
    )
    reloaded = await repository.get_endpoint(endpoint.id)

    assert reloaded.total_deliveries == 10
    assert reloaded.success_count == 5
    assert reloaded.failure_count == 5
    assert reloaded.last_success_at is not None
    assert reloaded.last_failure_at is not None


@pytest.mark.asyncio
async def test_claim_for_retry_is_exclusive(repository) -> None:
    endpoint = await _endpoint(repository)
    delivery = await _delivery(repository, endpoint.id)

    first = await repository.claim_for_retry(delivery.id, utcnow())
    second = await repository.claim_for_retry(delivery.id, utcnow())

    assert first is not None
    assert first.attempt_number == 2
    assert first.delivery_status == DeliveryStatus.PENDING.value
    assert first.next_retry_at is None
    assert second is None


@pytest.mark.asyncio
async def test_list_due_for_retry_skips_future_and_undeliverable(repository) -> None:
    endpoint = await _endpoint(repository)
    paused = await _endpoint(repository, is_active=False)
    due = await _delivery(repository, endpoint.id)
    await _delivery(repository, endpoint.id, next_retry_at=utcnow() + datetime.timedelta(hours=1))
    await _delivery(repository, paused.id)
    await _delivery(repository, endpoint.id, next_retry_at=None)

    result = await repository.list_due_for_retry(utcnow())

    assert [d.id for d in result] == [due.id]


@pytest.mark.asyncio
async def test_timestamps_round_trip_as_utc(repository) -> None:
    endpoint = await _endpoint(repository)
    reloaded = await repository.get_endpoint(endpoint.id)

    assert reloaded.created_at.tzinfo is not None
    assert reloaded.created_at.utcoffset() == datetime.timedelta(0)


@pytest.mark.asyncio
async def test_sqlalchemy_errors_become_database_exceptions(repository, db_engine) -> None:
    async with db_engine.begin() as conn:
        await conn.execute(text("DROP TABLE webhook_logs"))

    with pytest.raises(DatabaseException):
        await repository.append_log({"log_level": "info", "message": "hello"})
