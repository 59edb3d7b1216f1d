"""Webhook endpoint registry, event dispatch and delivery."""

from shop_webhooks.webhooks.dispatcher import EventDispatcher
from shop_webhooks.webhooks.service import WebhookService, webhook_service_context
from shop_webhooks.webhooks.signature import SignatureCodec

__all__ = ["EventDispatcher", "SignatureCodec", "WebhookService", "webhook_service_context"]
