"""Tests for payload serializers."""

import json
from urllib.parse import parse_qs

import pytest

from shop_webhooks.core.exceptions import ValidationException
from shop_webhooks.webhooks.serializers import (
    FormSerializer,
    JSONSerializer,
    PayloadSerializer,
    SerializerRegistry,
    default_serializers,
)


def test_json_serializer_is_compact_utf8() -> None:
    body = JSONSerializer().serialize({"name": "Café", "items": [1, 2]})

    assert body == '{"name":"Café","items":[1,2]}'.encode("utf-8")


def test_form_serializer_encodes_nested_values_as_json() -> None:
    body = FormSerializer().serialize({"order_id": "ord_1", "items": [{"sku": "A"}], "paid": True})
    fields = parse_qs(body.decode("ascii"))

    assert fields["order_id"] == ["ord_1"]
    assert json.loads(fields["items"][0]) == [{"sku": "A"}]
    assert fields["paid"] == ["true"]


def test_registry_lookup_ignores_parameters() -> None:
    registry = default_serializers()

    assert isinstance(registry.get("application/json; charset=utf-8"), JSONSerializer)
    assert registry.supports("APPLICATION/X-WWW-FORM-URLENCODED")
    assert registry.content_types == ["application/json", "application/x-www-form-urlencoded"]


def test_registry_unknown_content_type() -> None:
    registry = default_serializers()

    with pytest.raises(ValidationException) as exc_info:
        registry.get("application/xml")

    assert "application/json" in exc_info.value.details["supported"]


def test_registry_accepts_custom_serializer() -> None:
    class TextSerializer(PayloadSerializer):
        content_type = "text/plain"

        def serialize(self, payload):
            return str(payload).encode("utf-8")

    registry = SerializerRegistry()
    registry.register(TextSerializer())

    assert registry.get("text/plain").serialize({"a": 1}) == b"{'a': 1}"
    assert not registry.supports("application/json")
