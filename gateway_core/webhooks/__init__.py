"""
Webhook Notifications
=====================
Typed events, HMAC signing and retrying delivery to partner callbacks.
"""

from .events import (
    PaymentEvent,
    PaymentEventType,
    QuoteEvent,
    QuoteEventType,
    ReversalEvent,
    ReversalEventType,
    WebhookEvent,
    utc_timestamp,
)
from .signing import SIGNATURE_HEADER, canonical_body, sign_body, verify_webhook_signature
from .models import Delivered, DeliveryOutcome, DeliveryResult, Exhausted, WebhookDelivery
from .dispatcher import NotificationDispatcher, USER_AGENT

__all__ = [
    # Events
    "PaymentEvent",
    "PaymentEventType",
    "QuoteEvent",
    "QuoteEventType",
    "ReversalEvent",
    "ReversalEventType",
    "WebhookEvent",
    "utc_timestamp",
    # Signing
    "SIGNATURE_HEADER",
    "canonical_body",
    "sign_body",
    "verify_webhook_signature",
    # Results
    "Delivered",
    "DeliveryOutcome",
    "DeliveryResult",
    "Exhausted",
    "WebhookDelivery",
    # Dispatcher
    "NotificationDispatcher",
    "USER_AGENT",
]
