"""HTTP delivery of webhook events."""

import asyncio
import base64
import time
from dataclasses import dataclass, field
from typing import Optional

import httpx

from shop_webhooks.core.config import get_settings
from shop_webhooks.core.logging import REDACTED, get_logger
from shop_webhooks.storage.database.base import utcnow
from shop_webhooks.storage.database.webhook_models import (
    AuthType,
    DeliveryStatus,
    LogLevel,
    WebhookDelivery,
    WebhookEndpoint,
    WebhookEvent,
)
from shop_webhooks.storage.repository import WebhookRepository
from shop_webhooks.webhooks.registry import DEFAULT_CONTENT_TYPE, EndpointRegistry
from shop_webhooks.webhooks.retry import RetryScheduler
from shop_webhooks.webhooks.schemas import DeliveryResult
from shop_webhooks.webhooks.serializers import SerializerRegistry, default_serializers
from shop_webhooks.webhooks.signature import SignatureCodec

logger = get_logger(__name__)

EVENT_HEADER = "X-Webhook-Event"
EVENT_ID_HEADER = "X-Webhook-Event-ID"
TIMESTAMP_HEADER = "X-Webhook-Timestamp"
SIGNATURE_HEADER = "X-Webhook-Signature"


@dataclass
class PreparedRequest:
    """Fully built outbound request."""

    url: str
    method: str
    body: bytes
    headers: dict[str, str] = field(default_factory=dict)
    # Header names whose values must not be stored in the delivery snapshot
    secret_headers: frozenset[str] = frozenset()

    def snapshot_headers(self) -> dict[str, str]:
        """Headers with credentials masked."""
        return {
            name: REDACTED if name.lower() in self.secret_headers else value
            for name, value in self.headers.items()
        }


class DeliveryEngine:
    """Sends events to endpoints and records every attempt."""

    def __init__(
        self,
        repository: WebhookRepository,
        registry: EndpointRegistry,
        retry_scheduler: RetryScheduler,
        http_client: httpx.AsyncClient,
        serializers: Optional[SerializerRegistry] = None,
        user_agent: Optional[str] = None,
        response_body_limit: Optional[int] = None,
    ) -> None:
        """Initialize delivery engine.

        Args:
            repository: Storage backend
            registry: Endpoint registry (receives outcome counters)
            retry_scheduler: Retry policy
            http_client: Shared HTTP client
            serializers: Payload serializers (defaults to the built-ins)
            user_agent: User-Agent header (default from settings)
            response_body_limit: Max stored response body characters (default from settings)
        """
        settings = get_settings()
        self.repository = repository
        self.registry = registry
        self.retry_scheduler = retry_scheduler
        self.http_client = http_client
        self.serializers = serializers or registry.serializers or default_serializers()
        self.user_agent = user_agent or settings.webhook_user_agent
        self.response_body_limit = response_body_limit or settings.webhook_response_body_limit

    def build_request(self, endpoint: WebhookEndpoint, event: WebhookEvent) -> PreparedRequest:
        """Serialize, sign and assemble the request for *endpoint*.

        Raises:
            ValidationException: If the endpoint's content type has no serializer
        """
        content_type = endpoint.content_type or DEFAULT_CONTENT_TYPE
        body = self.serializers.get(content_type).serialize(event.payload)

        headers = {
            "Content-Type": content_type,
            "User-Agent": self.user_agent,
            EVENT_HEADER: event.event_type,
            EVENT_ID_HEADER: event.event_id,
            TIMESTAMP_HEADER: utcnow().isoformat(),
        }
        if endpoint.secret:
            headers[SIGNATURE_HEADER] = SignatureCodec.sign(body, endpoint.secret)

        if endpoint.headers:
            headers.update(endpoint.headers)

        auth_headers = self._auth_headers(endpoint)
        headers.update(auth_headers)

        return PreparedRequest(
            url=endpoint.url,
            method=endpoint.http_method,
            body=body,
            headers=headers,
            secret_headers=frozenset(name.lower() for name in auth_headers),
        )

    @staticmethod
    def _auth_headers(endpoint: WebhookEndpoint) -> dict[str, str]:
        credentials = endpoint.auth_credentials or {}
        if not endpoint.auth_type or not credentials:
            return {}

        if endpoint.auth_type == AuthType.BEARER.value and credentials.get("token"):
            return {"Authorization": f"Bearer {credentials['token']}"}

        if endpoint.auth_type == AuthType.BASIC.value and credentials.get("username"):
            raw = f"{credentials['username']}:{credentials.get('password', '')}"
            return {"Authorization": f"Basic {base64.b64encode(raw.encode('utf-8')).decode('ascii')}"}

        if endpoint.auth_type == AuthType.API_KEY.value and credentials.get("header") and credentials.get("key"):
            return {credentials["header"]: credentials["key"]}

        logger.warning(
            "webhook_auth_incomplete",
            endpoint_id=str(endpoint.id),
            auth_type=endpoint.auth_type,
        )
        return {}

    async def send(self, endpoint: WebhookEndpoint, request: PreparedRequest) -> DeliveryResult:
        """Send *request*, bounded by the endpoint timeout.

        Transport failures, timeouts, non-2xx responses and client-side errors
        are returned as unsuccessful results, never raised.
        """
        timeout = endpoint.timeout_seconds
        start = time.perf_counter()

        def elapsed_ms() -> int:
            return int(round((time.perf_counter() - start) * 1000))

        try:
            response = await asyncio.wait_for(
                self.http_client.request(
                    request.method,
                    request.url,
                    content=request.body,
                    headers=request.headers,
                    timeout=timeout,
                ),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            return DeliveryResult(
                success=False,
                response_time=elapsed_ms(),
                error=f"Request timed out after {timeout}s",
            )
        except httpx.HTTPError as e:
            return DeliveryResult(
                success=False,
                response_time=elapsed_ms(),
                error=f"Request error: {e}",
            )
        except Exception as e:
            # Request could not be built, e.g. a header value httpx cannot encode
            logger.error(
                "webhook_delivery_error",
                endpoint_id=str(endpoint.id),
                error=str(e),
                exc_info=True,
            )
            return DeliveryResult(
                success=False,
                response_time=elapsed_ms(),
                error=f"Unexpected error: {e}",
            )

        response_time = elapsed_ms()
        body = response.text[: self.response_body_limit]

        if 200 <= response.status_code < 300:
            return DeliveryResult(
                success=True,
                status_code=response.status_code,
                response_body=body,
                response_time=response_time,
            )

        return DeliveryResult(
            success=False,
            status_code=response.status_code,
            response_body=body,
            response_time=response_time,
            error=f"HTTP {response.status_code}",
        )

    async def schedule(self, endpoint: WebhookEndpoint, event: WebhookEvent) -> WebhookDelivery:
        """Create the first delivery for *event* and attempt it immediately.

        Returns:
            Delivery row after the attempt
        """
        request = self.build_request(endpoint, event)
        delivery = await self.repository.create_delivery(
            {
                "endpoint_id": endpoint.id,
                "event_id": event.id,
                "attempt_number": 1,
                "delivery_status": DeliveryStatus.PENDING.value,
                "request_url": request.url,
                "request_method": request.method,
                "request_headers": request.snapshot_headers(),
                "request_body": request.body.decode("utf-8"),
                "scheduled_at": utcnow(),
            }
        )

        await self.attempt(endpoint, event, delivery, request=request)
        return await self.repository.get_delivery(delivery.id) or delivery

    async def attempt(
        self,
        endpoint: WebhookEndpoint,
        event: WebhookEvent,
        delivery: WebhookDelivery,
        request: Optional[PreparedRequest] = None,
    ) -> DeliveryResult:
        """Perform one attempt of *delivery* and record its outcome.

        Args:
            endpoint: Target endpoint
            event: Event being delivered
            delivery: Delivery row for this attempt
            request: Prebuilt request (rebuilt with a fresh timestamp when omitted)

        Returns:
            Attempt result
        """
        try:
            if request is None:
                request = self.build_request(endpoint, event)

            result = await self.send(endpoint, request)
            finished_at = utcnow()

            changes = {
                "delivery_status": (DeliveryStatus.SUCCESS if result.success else DeliveryStatus.FAILED).value,
                "request_url": request.url,
                "request_method": request.method,
                "request_headers": request.snapshot_headers(),
                "request_body": request.body.decode("utf-8"),
                "response_status": result.status_code,
                "response_body": result.response_body,
                "response_time": result.response_time,
                "error_message": result.error,
                "delivered_at": finished_at if result.success else None,
            }
            updated = await self.repository.update_delivery(delivery.id, changes) or delivery

            await self.retry_scheduler.on_outcome(endpoint, updated, result.success, now=finished_at)
        except Exception as e:
            # Row must not stay pending without a retry time
            await self.retry_scheduler.release(endpoint, delivery, f"Attempt interrupted: {e}")
            raise

        await self.registry.record_outcome(endpoint.id, result.success, finished_at)

        if result.success:
            logger.info(
                "webhook_delivered_successfully",
                endpoint_id=str(endpoint.id),
                delivery_id=str(delivery.id),
                event_type=event.event_type,
                attempt=updated.attempt_number,
                status_code=result.status_code,
            )
        else:
            logger.warning(
                "webhook_delivery_failed",
                endpoint_id=str(endpoint.id),
                delivery_id=str(delivery.id),
                event_type=event.event_type,
                attempt=updated.attempt_number,
                status_code=result.status_code,
                error=result.error,
            )

        await self.repository.append_log(
            {
                "endpoint_id": endpoint.id,
                "delivery_id": delivery.id,
                "log_level": (LogLevel.INFO if result.success else LogLevel.WARNING).value,
                "message": (
                    f"Delivery attempt {updated.attempt_number} "
                    f"{'succeeded' if result.success else 'failed'}"
                ),
                "context": {
                    "event_type": event.event_type,
                    "status_code": result.status_code,
                    "response_time": result.response_time,
                    "error": result.error,
                },
            }
        )
        return result

    async def probe(self, endpoint: WebhookEndpoint, event: WebhookEvent) -> DeliveryResult:
        """Send *event* without recording a delivery or touching counters."""
        request = self.build_request(endpoint, event)
        result = await self.send(endpoint, request)

        logger.info(
            "webhook_endpoint_tested",
            endpoint_id=str(endpoint.id),
            success=result.success,
            status_code=result.status_code,
        )
        await self.repository.append_log(
            {
                "endpoint_id": endpoint.id,
                "delivery_id": None,
                "log_level": (LogLevel.INFO if result.success else LogLevel.WARNING).value,
                "message": f"Test delivery {'succeeded' if result.success else 'failed'}",
                "context": {
                    "status_code": result.status_code,
                    "response_time": result.response_time,
                    "error": result.error,
                },
            }
        )
        return result
