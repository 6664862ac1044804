"""
Event ingress: authenticate a processor notification and type it.

ingest() is the only way a PaymentEvent is created from an HTTP body. It
verifies the signature before looking at any payload field, then maps the
processor's event type onto a PaymentEventKind. Unknown types still
produce a PaymentEvent (kind UNRECOGNIZED) so they can be acknowledged.

Usage:
    from payments.webhooks.ingress import ingest, record_event

    event = ingest(request.body, request.META.get("HTTP_STRIPE_SIGNATURE"))
    webhook_event, created = record_event(event)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any

from payments.adapters import StripeAdapter, timestamp_to_datetime
from payments.exceptions import WebhookAuthenticationError
from payments.models import WebhookEvent
from payments.state_machines import PaymentEventKind

logger = logging.getLogger(__name__)

EVENT_KIND_MAP = MappingProxyType(
    {
        "checkout.session.completed": PaymentEventKind.CHECKOUT_COMPLETED,
        "payment_intent.succeeded": PaymentEventKind.PAYMENT_CAPTURED,
        "invoice.paid": PaymentEventKind.INVOICE_PAID,
        "invoice.payment_succeeded": PaymentEventKind.INVOICE_PAID,
        "customer.subscription.updated": PaymentEventKind.SUBSCRIPTION_CHANGED,
        "customer.subscription.deleted": PaymentEventKind.SUBSCRIPTION_CHANGED,
    }
)


@dataclass(frozen=True)
class PaymentEvent:
    """
    An authenticated, typed processor notification.

    Attributes:
        id: Processor event id; the idempotency key
        kind: Normalized event kind
        event_type: Raw processor event type
        occurred_at: When the processor created the event
        raw_payload: Verified event body
    """

    id: str
    kind: PaymentEventKind
    event_type: str
    occurred_at: datetime | None
    raw_payload: dict[str, Any] = field(repr=False)

    @property
    def data_object(self) -> dict[str, Any]:
        obj = (self.raw_payload.get("data") or {}).get("object") or {}
        return obj if isinstance(obj, dict) else {}

    @property
    def metadata(self) -> dict[str, Any]:
        return self.data_object.get("metadata") or {}

    @classmethod
    def from_webhook_event(cls, webhook_event: WebhookEvent) -> PaymentEvent:
        """Rebuild the typed event from its inbox row."""
        return cls(
            id=webhook_event.provider_event_id,
            kind=PaymentEventKind(webhook_event.kind),
            event_type=webhook_event.event_type,
            occurred_at=webhook_event.occurred_at,
            raw_payload=webhook_event.payload,
        )


def classify_event_type(event_type: str) -> PaymentEventKind:
    return EVENT_KIND_MAP.get(event_type, PaymentEventKind.UNRECOGNIZED)


def parse_event(payload: dict[str, Any]) -> PaymentEvent:
    """
    Build a PaymentEvent from an already-verified event dict.

    Raises:
        WebhookAuthenticationError: If the verified body has no event id or type
    """
    event_id = payload.get("id")
    event_type = payload.get("type")
    if not event_id or not event_type:
        raise WebhookAuthenticationError(
            "Webhook body is not a processor event",
            error_code="MALFORMED_EVENT",
        )
    return PaymentEvent(
        id=event_id,
        kind=classify_event_type(event_type),
        event_type=event_type,
        occurred_at=timestamp_to_datetime(payload.get("created")),
        raw_payload=payload,
    )


def ingest(raw_body: bytes, signature_header: str | None) -> PaymentEvent:
    """
    Authenticate and type a notification.

    Raises:
        WebhookAuthenticationError: Missing/invalid signature or malformed body
    """
    payload = StripeAdapter.verify_webhook_signature(raw_body, signature_header)
    event = parse_event(payload)
    if event.kind == PaymentEventKind.UNRECOGNIZED:
        logger.info(
            "Unrecognized payment event type; acknowledging without action",
            extra={"provider_event_id": event.id, "event_type": event.event_type},
        )
    return event


def record_event(event: PaymentEvent) -> tuple[WebhookEvent, bool]:
    """
    Store the event in the inbox, collapsing redeliveries onto one row.

    Raises:
        django.db.DatabaseError: If the inbox cannot be written
    """
    return WebhookEvent.objects.get_or_create(
        provider_event_id=event.id,
        defaults={
            "event_type": event.event_type,
            "kind": event.kind,
            "occurred_at": event.occurred_at,
            "payload": event.raw_payload,
        },
    )
