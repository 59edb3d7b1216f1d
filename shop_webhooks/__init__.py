"""Webhook event dispatch and delivery for the shop backend."""

__version__ = "0.1.0"
