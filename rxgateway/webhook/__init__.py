"""Webhook ingestion: an HTTP alternative to the streaming gateway."""

from .dedup import RecentSequenceSet
from .handler import (
    EventSink,
    WebhookChallenge,
    WebhookEvent,
    WebhookHandler,
)
from .server import create_webhook_app, decode_body, run_webhook_server

__all__ = [
    "RecentSequenceSet",
    "EventSink",
    "WebhookChallenge",
    "WebhookEvent",
    "WebhookHandler",
    "create_webhook_app",
    "decode_body",
    "run_webhook_server",
]
