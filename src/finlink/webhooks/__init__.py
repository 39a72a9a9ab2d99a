"""Provider webhook handling."""

from .envelope import WebhookEnvelope, WebhookEventType, parse_envelope
from .router import WebhookAction, WebhookRouter

__all__ = [
    "WebhookAction",
    "WebhookEnvelope",
    "WebhookEventType",
    "WebhookRouter",
    "parse_envelope",
]
