"""Tests for endpoint registration and management."""

import uuid

import pytest

from shop_webhooks.core.exceptions import InvalidUrlException, NotFoundException, ValidationException
from shop_webhooks.storage.database.webhook_models import EndpointStatus
from shop_webhooks.storage.repository import EndpointFilters
from shop_webhooks.webhooks.schemas import EndpointUpdate


@pytest.mark.asyncio
async def test_create_applies_defaults(service, endpoint_data) -> None:
    endpoint = await service.create_endpoint(endpoint_data())

    assert endpoint.id is not None
    assert len(endpoint.secret) == 64
    assert endpoint.content_type == "application/json"
    assert endpoint.http_method == "POST"
    assert endpoint.max_retries == 3
    assert endpoint.timeout_seconds == 30
    assert endpoint.status == EndpointStatus.ACTIVE.value
    assert endpoint.is_active is True
    assert endpoint.event_types == ["order.created"]
    assert endpoint.total_deliveries == 0


@pytest.mark.asyncio
async def test_create_keeps_supplied_secret(service, endpoint_data) -> None:
    endpoint = await service.create_endpoint(endpoint_data(secret="shared-secret", max_retries=5))

    assert endpoint.secret == "shared-secret"
    assert endpoint.max_retries == 5


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "url",
    ["ftp://hooks.example.com/x", "hooks.example.com/x", "https://", "javascript:alert(1)"],
)
async def test_create_rejects_invalid_url(service, endpoint_data, url) -> None:
    with pytest.raises(InvalidUrlException):
        await service.create_endpoint(endpoint_data(url=url))


@pytest.mark.asyncio
async def test_create_rejects_unknown_content_type(service, endpoint_data) -> None:
    with pytest.raises(ValidationException):
        await service.create_endpoint(endpoint_data(content_type="application/xml"))


@pytest.mark.asyncio
async def test_update_is_partial(service, endpoint_data) -> None:
    endpoint = await service.create_endpoint(endpoint_data(description="first"))

    updated = await service.update_endpoint(endpoint.id, EndpointUpdate(name="Renamed"))

    assert updated.name == "Renamed"
    assert updated.url == endpoint.url
    assert updated.description == "first"
    assert updated.secret == endpoint.secret


@pytest.mark.asyncio
async def test_update_replaces_event_types(service, endpoint_data) -> None:
    endpoint = await service.create_endpoint(
        endpoint_data(event_types=["order.created", "order.updated"])
    )

    await service.update_endpoint(
        endpoint.id, EndpointUpdate(event_types=["order.updated", "payment.completed"])
    )
    reloaded = await service.get_endpoint_by_id(endpoint.id)

    assert reloaded.event_types == ["order.updated", "payment.completed"]


@pytest.mark.asyncio
async def test_update_revalidates_url(service, endpoint_data) -> None:
    endpoint = await service.create_endpoint(endpoint_data())

    with pytest.raises(InvalidUrlException):
        await service.update_endpoint(endpoint.id, EndpointUpdate(url="mailto:ops@example.com"))


@pytest.mark.asyncio
async def test_update_status(service, endpoint_data) -> None:
    endpoint = await service.create_endpoint(endpoint_data())

    updated = await service.update_endpoint(endpoint.id, EndpointUpdate(status=EndpointStatus.SUSPENDED))

    assert updated.status == "suspended"
    assert updated.is_deliverable is False


@pytest.mark.asyncio
async def test_update_missing_endpoint(service) -> None:
    with pytest.raises(NotFoundException):
        await service.update_endpoint(uuid.uuid4(), EndpointUpdate(name="x"))


@pytest.mark.asyncio
async def test_get_and_delete(service, endpoint_data) -> None:
    endpoint = await service.create_endpoint(endpoint_data())

    await service.delete_endpoint(endpoint.id)

    with pytest.raises(NotFoundException):
        await service.get_endpoint_by_id(endpoint.id)
    with pytest.raises(NotFoundException):
        await service.delete_endpoint(endpoint.id)


@pytest.mark.asyncio
async def test_list_filters(service, endpoint_data) -> None:
    both = await service.create_endpoint(
        endpoint_data("a.example.com", event_types=["order.created", "order.paid"], vendor_id="v1")
    )
    await service.create_endpoint(endpoint_data("b.example.com", event_types=["order.created"], vendor_id="v2"))
    inactive = await service.create_endpoint(endpoint_data("c.example.com"))
    await service.update_endpoint(inactive.id, EndpointUpdate(is_active=False))

    subscribed_to_both = await service.get_endpoints(
        EndpointFilters(event_types=["order.created", "order.paid"])
    )
    by_vendor = await service.get_endpoints(EndpointFilters(vendor_id="v2"))
    only_inactive = await service.get_endpoints(EndpointFilters(is_active=False))
    everything = await service.get_endpoints()
    page = await service.get_endpoints(limit=2, offset=0)

    assert [e.id for e in subscribed_to_both] == [both.id]
    assert [e.vendor_id for e in by_vendor] == ["v2"]
    assert [e.id for e in only_inactive] == [inactive.id]
    assert len(everything) == 3
    assert len(page) == 2


@pytest.mark.asyncio
async def test_find_subscribers_only_returns_deliverable(service, endpoint_data) -> None:
    active = await service.create_endpoint(endpoint_data("a.example.com"))
    inactive = await service.create_endpoint(endpoint_data("b.example.com"))
    suspended = await service.create_endpoint(endpoint_data("c.example.com"))
    await service.create_endpoint(endpoint_data("d.example.com", event_types=["order.updated"]))
    await service.update_endpoint(inactive.id, EndpointUpdate(is_active=False))
    await service.update_endpoint(suspended.id, EndpointUpdate(status=EndpointStatus.SUSPENDED))

    subscribers = await service.registry.find_subscribers("order.created")

    assert [e.id for e in subscribers] == [active.id]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "headers",
    [
        {"X-Shop": "café"},
        {"X-Shop": "line\r\nX-Injected: 1"},
        {"X Shop": "value"},
    ],
)
async def test_create_rejects_unsendable_headers(service, endpoint_data, headers) -> None:
    with pytest.raises(ValidationException):
        await service.create_endpoint(endpoint_data(headers=headers))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "auth_type,credentials",
    [
        ("bearer", {"token": "jeton-sécurisé"}),
        ("api_key", {"header": "X-Api-Key", "key": "clé"}),
        ("api_key", {"header": "X Api Key", "key": "abc"}),
    ],
)
async def test_create_rejects_unsendable_credentials(service, endpoint_data, auth_type, credentials) -> None:
    with pytest.raises(ValidationException) as exc_info:
        await service.create_endpoint(endpoint_data(auth_type=auth_type, auth_credentials=credentials))

    assert "token" not in exc_info.value.details
    assert "key" not in exc_info.value.details


@pytest.mark.asyncio
async def test_create_accepts_non_ascii_basic_credentials(service, endpoint_data) -> None:
    endpoint = await service.create_endpoint(
        endpoint_data(auth_type="basic", auth_credentials={"username": "zoë", "password": "pässword"})
    )

    assert endpoint.auth_type == "basic"


@pytest.mark.asyncio
async def test_update_rejects_unsendable_headers(service, endpoint_data) -> None:
    endpoint = await service.create_endpoint(endpoint_data(headers={"X-Shop": "main"}))

    with pytest.raises(ValidationException):
        await service.update_endpoint(endpoint.id, EndpointUpdate(headers={"X-Shop": "café"}))

    reloaded = await service.get_endpoint_by_id(endpoint.id)
    assert reloaded.headers == {"X-Shop": "main"}


@pytest.mark.asyncio
async def test_update_checks_credentials_against_stored_auth_type(service, endpoint_data) -> None:
    endpoint = await service.create_endpoint(
        endpoint_data(auth_type="bearer", auth_credentials={"token": "abc"})
    )

    with pytest.raises(ValidationException):
        await service.update_endpoint(endpoint.id, EndpointUpdate(auth_credentials={"token": "ñ"}))
