"""Webhook models for endpoint configuration, events, deliveries and logs."""

import datetime
import uuid
from enum import Enum
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shop_webhooks.storage.database.base import Base, TimestampMixin, UTCDateTime, utcnow


class WebhookEventType(str, Enum):
    """Event types emitted by the platform."""

    # Order events
    ORDER_CREATED = "order.created"
    ORDER_UPDATED = "order.updated"
    ORDER_CANCELLED = "order.cancelled"
    ORDER_FULFILLED = "order.fulfilled"

    # Payment events
    PAYMENT_SUCCEEDED = "payment.succeeded"
    PAYMENT_FAILED = "payment.failed"

    # Catalog events
    PRODUCT_CREATED = "product.created"
    PRODUCT_UPDATED = "product.updated"
    PRODUCT_DELETED = "product.deleted"

    # Account events
    USER_CREATED = "user.created"
    USER_UPDATED = "user.updated"
    VENDOR_APPROVED = "vendor.approved"
    VENDOR_REJECTED = "vendor.rejected"

    # System events
    NOTIFICATION_SENT = "notification.sent"
    SYSTEM_ERROR = "system.error"
    SYSTEM_TEST = "system.test"


class EndpointStatus(str, Enum):
    """Administrative endpoint status."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    FAILED = "failed"


class HttpMethod(str, Enum):
    """HTTP methods allowed for delivery."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class AuthType(str, Enum):
    """Outbound authentication schemes."""

    BEARER = "bearer"
    BASIC = "basic"
    API_KEY = "api_key"


class DeliveryStatus(str, Enum):
    """Delivery lifecycle status."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class LogLevel(str, Enum):
    """Severity of a webhook log entry."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class WebhookEndpoint(Base, TimestampMixin):
    """Registered receiver of webhook notifications."""

    __tablename__ = "webhook_endpoints"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    url: Mapped[str] = mapped_column(Text, nullable=False)

    # Request configuration
    http_method: Mapped[str] = mapped_column(String(10), default=HttpMethod.POST.value, nullable=False)
    secret: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    content_type: Mapped[str] = mapped_column(
        String(50), default="application/json", nullable=False
    )
    headers: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    auth_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    auth_credentials: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    # Status and retry settings
    status: Mapped[str] = mapped_column(
        String(20), default=EndpointStatus.ACTIVE.value, nullable=False, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    max_retries: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    timeout_seconds: Mapped[int] = mapped_column(Integer, default=30, nullable=False)

    # Event filtering
    filters: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    subscriptions: Mapped[list["WebhookSubscription"]] = relationship(
        back_populates="endpoint",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="WebhookSubscription.event_type",
    )

    # Owner scoping
    user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    vendor_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)

    # Statistics
    total_deliveries: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    success_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failure_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_success_at: Mapped[Optional[datetime.datetime]] = mapped_column(UTCDateTime(), nullable=True)
    last_failure_at: Mapped[Optional[datetime.datetime]] = mapped_column(UTCDateTime(), nullable=True)

    @property
    def event_types(self) -> list[str]:
        """Event types this endpoint subscribes to."""
        return [subscription.event_type for subscription in self.subscriptions]

    @property
    def is_deliverable(self) -> bool:
        """Whether deliveries may be sent to this endpoint."""
        return self.is_active and self.status == EndpointStatus.ACTIVE.value

    def __repr__(self) -> str:
        return f"<WebhookEndpoint(id={self.id}, name='{self.name}', url='{self.url}')>"


class WebhookSubscription(Base):
    """Event type an endpoint is subscribed to."""

    __tablename__ = "webhook_subscriptions"
    __table_args__ = (UniqueConstraint("endpoint_id", "event_type", name="uq_webhook_subscription"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    endpoint_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("webhook_endpoints.id", ondelete="CASCADE"), nullable=False, index=True
    )
    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    created_at: Mapped[datetime.datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)

    endpoint: Mapped[WebhookEndpoint] = relationship(back_populates="subscriptions")

    def __repr__(self) -> str:
        return f"<WebhookSubscription(endpoint_id={self.endpoint_id}, event_type='{self.event_type}')>"


class WebhookEvent(Base):
    """Immutable domain fact to notify subscribers about."""

    __tablename__ = "webhook_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    event_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    event_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)

    source_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    source_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    vendor_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    is_processed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    processed_at: Mapped[Optional[datetime.datetime]] = mapped_column(UTCDateTime(), nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<WebhookEvent(id={self.id}, event_type='{self.event_type}', event_id='{self.event_id}')>"


class WebhookDelivery(Base, TimestampMixin):
    """Delivery lineage of one event to one endpoint."""

    __tablename__ = "webhook_deliveries"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # Plain references: audit rows outlive deleted endpoints
    endpoint_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    event_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    attempt_number: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    delivery_status: Mapped[str] = mapped_column(
        String(20), default=DeliveryStatus.PENDING.value, nullable=False, index=True
    )

    # Request snapshot
    request_url: Mapped[str] = mapped_column(Text, nullable=False)
    request_method: Mapped[str] = mapped_column(String(10), nullable=False)
    request_headers: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    request_body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Response info
    response_status: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    response_body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    response_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # milliseconds
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timing
    scheduled_at: Mapped[datetime.datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)
    delivered_at: Mapped[Optional[datetime.datetime]] = mapped_column(UTCDateTime(), nullable=True)
    next_retry_at: Mapped[Optional[datetime.datetime]] = mapped_column(
        UTCDateTime(), nullable=True, index=True
    )

    @property
    def is_awaiting_retry(self) -> bool:
        """Whether the delivery failed and another attempt is scheduled."""
        return self.delivery_status == DeliveryStatus.FAILED.value and self.next_retry_at is not None

    def __repr__(self) -> str:
        return (
            f"<WebhookDelivery(id={self.id}, endpoint_id={self.endpoint_id}, "
            f"attempt={self.attempt_number}, status='{self.delivery_status}')>"
        )


class WebhookLog(Base):
    """Append-only audit entry for an endpoint interaction."""

    __tablename__ = "webhook_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    endpoint_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)
    delivery_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)
    log_level: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    context: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<WebhookLog(id={self.id}, level='{self.log_level}', message='{self.message}')>"
