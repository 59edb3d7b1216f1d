"""Endpoint registry: validation, secret provisioning and CRUD."""

import datetime
import uuid
from typing import Any, Optional
from urllib.parse import urlparse

from shop_webhooks.core.config import get_settings
from shop_webhooks.core.exceptions import InvalidUrlException, NotFoundException, ValidationException
from shop_webhooks.core.logging import get_logger
from shop_webhooks.storage.database.webhook_models import AuthType, WebhookEndpoint
from shop_webhooks.storage.repository import EndpointFilters, WebhookRepository
from shop_webhooks.webhooks.schemas import EndpointCreate, EndpointUpdate
from shop_webhooks.webhooks.serializers import SerializerRegistry, default_serializers
from shop_webhooks.webhooks.signature import SignatureCodec

logger = get_logger(__name__)

ALLOWED_SCHEMES = ("http", "https")
DEFAULT_CONTENT_TYPE = "application/json"
NON_NULLABLE_FIELDS = (
    "name",
    "http_method",
    "content_type",
    "max_retries",
    "timeout_seconds",
    "status",
    "is_active",
)
# RFC 7230 token characters
HEADER_NAME_CHARS = frozenset("!#$%&'*+-.^_`|~0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ")


def _is_header_name(name: str) -> bool:
    return bool(name) and all(char in HEADER_NAME_CHARS for char in name)


def _is_header_value(value: str) -> bool:
    # Printable ASCII and tab; no line breaks
    return all(char == "\t" or " " <= char <= "~" for char in value)


class EndpointRegistry:
    """Manages webhook endpoint configuration.

    Ownership is enforced by the caller; the registry trusts the filters it
    is given.
    """

    def __init__(
        self,
        repository: WebhookRepository,
        serializers: Optional[SerializerRegistry] = None,
        default_max_retries: Optional[int] = None,
        default_timeout_seconds: Optional[int] = None,
    ) -> None:
        """Initialize registry.

        Args:
            repository: Storage backend
            serializers: Content types endpoints may use (defaults to the built-ins)
            default_max_retries: Retry budget for new endpoints (default from settings)
            default_timeout_seconds: Request timeout for new endpoints (default from settings)
        """
        settings = get_settings()
        self.repository = repository
        self.serializers = serializers or default_serializers()
        self.default_max_retries = default_max_retries or settings.webhook_default_max_retries
        self.default_timeout_seconds = default_timeout_seconds or settings.webhook_default_timeout_seconds

    @staticmethod
    def validate_url(url: str) -> None:
        """Ensure *url* is an absolute http(s) URL.

        Raises:
            InvalidUrlException: If the scheme is not http/https or the host is missing
        """
        try:
            parsed = urlparse(url)
        except ValueError as e:
            raise InvalidUrlException(details={"url": url}) from e
        if parsed.scheme.lower() not in ALLOWED_SCHEMES or not parsed.hostname:
            raise InvalidUrlException(details={"url": url})

    @staticmethod
    def validate_headers(
        headers: Optional[dict[str, str]],
        auth_type: Optional[str] = None,
        auth_credentials: Optional[dict[str, str]] = None,
    ) -> None:
        """Ensure custom and auth headers can be written as HTTP header fields.

        Header values are sent as ASCII; credentials are checked without
        echoing them back.

        Raises:
            ValidationException: If a header name or value cannot be sent
        """
        for name, value in (headers or {}).items():
            if not _is_header_name(name) or not _is_header_value(value):
                raise ValidationException("Invalid webhook header", details={"header": name})

        credentials = auth_credentials or {}
        if auth_type == AuthType.BEARER.value:
            valid = _is_header_value(credentials.get("token", ""))
        elif auth_type == AuthType.API_KEY.value:
            valid = _is_header_value(credentials.get("key", "")) and (
                "header" not in credentials or _is_header_name(credentials["header"])
            )
        else:
            # Basic credentials are base64-encoded before sending
            valid = True
        if not valid:
            raise ValidationException("Invalid webhook auth credentials", details={"auth_type": auth_type})

    def _validate_content_type(self, content_type: str) -> None:
        # Raises ValidationException for unknown content types
        self.serializers.get(content_type)

    async def create(self, data: EndpointCreate) -> WebhookEndpoint:
        """Validate and persist a new endpoint."""
        self.validate_url(data.url)
        content_type = data.content_type or DEFAULT_CONTENT_TYPE
        self._validate_content_type(content_type)
        self.validate_headers(
            data.headers,
            data.auth_type.value if data.auth_type else None,
            data.auth_credentials,
        )

        values: dict[str, Any] = {
            "name": data.name,
            "description": data.description,
            "url": data.url,
            "http_method": data.http_method.value,
            "secret": data.secret or SignatureCodec.generate_secret(),
            "content_type": content_type,
            "max_retries": data.max_retries or self.default_max_retries,
            "timeout_seconds": data.timeout_seconds or self.default_timeout_seconds,
            "filters": data.filters,
            "headers": data.headers,
            "auth_type": data.auth_type.value if data.auth_type else None,
            "auth_credentials": data.auth_credentials,
            "user_id": data.user_id,
            "vendor_id": data.vendor_id,
        }
        return await self.repository.create_endpoint(values, data.event_types)

    async def update(self, endpoint_id: uuid.UUID, data: EndpointUpdate) -> WebhookEndpoint:
        """Apply the fields set on *data*.

        Raises:
            InvalidUrlException: If a new URL is supplied and invalid
            NotFoundException: If the endpoint does not exist
        """
        changes = data.model_dump(exclude_unset=True)
        event_types = changes.pop("event_types", None)

        if "url" in changes:
            if changes["url"] is None:
                raise InvalidUrlException(details={"url": None})
            self.validate_url(changes["url"])
        if changes.get("content_type") is not None:
            self._validate_content_type(changes["content_type"])
        if "headers" in changes:
            self.validate_headers(changes["headers"])
        if "auth_type" in changes or "auth_credentials" in changes:
            current = await self.get(endpoint_id)
            auth_type = changes["auth_type"].value if changes.get("auth_type") else None
            self.validate_headers(
                None,
                auth_type if "auth_type" in changes else current.auth_type,
                changes["auth_credentials"] if "auth_credentials" in changes else current.auth_credentials,
            )

        # Columns that may not be nulled through a partial update
        for required in NON_NULLABLE_FIELDS:
            if required in changes and changes[required] is None:
                changes.pop(required)

        for enum_field in ("http_method", "auth_type", "status"):
            if changes.get(enum_field) is not None:
                changes[enum_field] = changes[enum_field].value

        endpoint = await self.repository.update_endpoint(endpoint_id, changes, event_types)
        if endpoint is None:
            raise NotFoundException("Webhook endpoint not found", details={"endpoint_id": str(endpoint_id)})
        return endpoint

    async def get(self, endpoint_id: uuid.UUID) -> WebhookEndpoint:
        """Get endpoint.

        Raises:
            NotFoundException: If the endpoint does not exist
        """
        endpoint = await self.repository.get_endpoint(endpoint_id)
        if endpoint is None:
            raise NotFoundException("Webhook endpoint not found", details={"endpoint_id": str(endpoint_id)})
        return endpoint

    async def list_endpoints(
        self,
        filters: Optional[EndpointFilters] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[WebhookEndpoint]:
        """List endpoints."""
        return await self.repository.list_endpoints(filters or EndpointFilters(), limit, offset)

    async def find_subscribers(self, event_type: str) -> list[WebhookEndpoint]:
        """Active endpoints subscribed to *event_type*."""
        return await self.repository.find_deliverable_endpoints(event_type)

    async def delete(self, endpoint_id: uuid.UUID) -> None:
        """Hard-delete endpoint; its deliveries and logs remain for audit.

        Raises:
            NotFoundException: If the endpoint does not exist
        """
        if not await self.repository.delete_endpoint(endpoint_id):
            raise NotFoundException("Webhook endpoint not found", details={"endpoint_id": str(endpoint_id)})

    async def record_outcome(self, endpoint_id: uuid.UUID, success: bool, at: datetime.datetime) -> None:
        """Bump the endpoint's rolling delivery counters."""
        await self.repository.increment_endpoint_stats(endpoint_id, success, at)
        logger.debug("webhook_endpoint_outcome_recorded", endpoint_id=str(endpoint_id), success=success)
