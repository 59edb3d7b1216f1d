"""Payload serializers selected by endpoint content type."""

import json
from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import urlencode

from shop_webhooks.core.exceptions import ValidationException


class PayloadSerializer(ABC):
    """Turns an event payload into request body bytes."""

    content_type: str

    @abstractmethod
    def serialize(self, payload: dict[str, Any]) -> bytes:
        """Serialize payload."""


class JSONSerializer(PayloadSerializer):
    """Compact UTF-8 JSON."""

    content_type = "application/json"

    def serialize(self, payload: dict[str, Any]) -> bytes:
        return json.dumps(
            payload, separators=(",", ":"), ensure_ascii=False, default=str
        ).encode("utf-8")


class FormSerializer(PayloadSerializer):
    """URL-encoded form body. Nested values are sent as JSON strings."""

    content_type = "application/x-www-form-urlencoded"

    def serialize(self, payload: dict[str, Any]) -> bytes:
        fields = {
            key: value
            if isinstance(value, str)
            else json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
            for key, value in payload.items()
        }
        return urlencode(fields).encode("utf-8")


class SerializerRegistry:
    """Named serializers resolved by content type."""

    def __init__(self) -> None:
        self._serializers: dict[str, PayloadSerializer] = {}

    def register(self, serializer: PayloadSerializer) -> None:
        """Register serializer under its content type."""
        self._serializers[serializer.content_type] = serializer

    def supports(self, content_type: str) -> bool:
        """Whether a serializer exists for *content_type*."""
        return self._normalize(content_type) in self._serializers

    def get(self, content_type: str) -> PayloadSerializer:
        """Resolve serializer.

        Raises:
            ValidationException: If no serializer is registered for the content type
        """
        serializer = self._serializers.get(self._normalize(content_type))
        if serializer is None:
            raise ValidationException(
                f"Unsupported content type: {content_type}",
                details={"supported": sorted(self._serializers)},
            )
        return serializer

    @property
    def content_types(self) -> list[str]:
        """Registered content types."""
        return sorted(self._serializers)

    @staticmethod
    def _normalize(content_type: str) -> str:
        # "application/json; charset=utf-8" -> "application/json"
        return content_type.split(";", 1)[0].strip().lower()


def default_serializers() -> SerializerRegistry:
    """Registry with the built-in serializers."""
    registry = SerializerRegistry()
    registry.register(JSONSerializer())
    registry.register(FormSerializer())
    return registry
