"""Endpoint filter predicates applied before an event is delivered."""

from typing import Protocol

from shop_webhooks.storage.database.webhook_models import WebhookEndpoint, WebhookEvent


class EndpointFilter(Protocol):
    """Decides whether an event passes an endpoint's ``filters`` data."""

    def matches(self, endpoint: WebhookEndpoint, event: WebhookEvent) -> bool:
        ...


class AcceptAllFilter:
    """Default predicate: endpoint filters are advisory and everything passes."""

    def matches(self, endpoint: WebhookEndpoint, event: WebhookEvent) -> bool:
        return True


class PayloadMatchFilter:
    """Every key/value in ``endpoint.filters`` must equal the top-level payload field.

    An endpoint without filters matches every event.
    """

    def matches(self, endpoint: WebhookEndpoint, event: WebhookEvent) -> bool:
        if not endpoint.filters:
            return True
        payload = event.payload or {}
        return all(key in payload and payload[key] == value for key, value in endpoint.filters.items())
