"""
Webhook endpoint view for Stripe.

This module provides the HTTP endpoint for receiving Stripe webhooks.
The view:
1. Verifies the webhook signature (before reading any payload field)
2. Creates/retrieves the WebhookEvent inbox record (idempotent)
3. Queues the event for async processing
4. Returns immediately

Response bodies are fixed strings; internal error detail is only logged.

Usage:
    # In urls.py
    from payments.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.db import DatabaseError
from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.exceptions import WebhookAuthenticationError
from payments.state_machines import PaymentEventKind, WebhookEventOutcome
from payments.webhooks.guard import IdempotencyGuard
from payments.webhooks.ingress import ingest, record_event

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive and queue Stripe webhook events.

    Returns:
        HttpResponse with status:
        - 200: Event accepted (new, duplicate or unrecognized)
        - 400: Missing or invalid signature, or malformed event
        - 503: The inbox could not be written; Stripe will redeliver
    """
    # Step 1: Authenticate
    try:
        event = ingest(request.body, request.headers.get("Stripe-Signature"))
    except WebhookAuthenticationError as e:
        logger.warning(
            "Webhook signature verification failed",
            extra={"error_code": e.error_code},
        )
        return HttpResponse("Invalid signature", status=400)

    logger.info(
        f"Received Stripe webhook: {event.event_type}",
        extra={"provider_event_id": event.id, "event_type": event.event_type},
    )

    # Step 2: Record in the inbox
    try:
        webhook_event, created = record_event(event)
    except DatabaseError:
        logger.exception(
            "Could not record webhook event",
            extra={"provider_event_id": event.id},
        )
        return HttpResponse("Temporarily unavailable", status=503)

    # Step 3: Short-circuit duplicates and unrecognized kinds
    if not created and not IdempotencyGuard.should_process(webhook_event):
        logger.info(
            "Webhook already processed, returning success",
            extra={"provider_event_id": event.id},
        )
        return HttpResponse("Already processed", status=200)

    if event.kind == PaymentEventKind.UNRECOGNIZED:
        webhook_event.mark_processed(WebhookEventOutcome.IGNORED)
        webhook_event.save()
        return HttpResponse("Accepted", status=200)

    # Step 4: Queue for async processing
    try:
        from payments.tasks import process_webhook_event

        process_webhook_event.delay(str(webhook_event.id))
        logger.info(
            "Webhook queued for processing",
            extra={
                "provider_event_id": event.id,
                "webhook_event_id": str(webhook_event.id),
            },
        )
    except Exception:
        # The inbox row is stored; retry_failed_webhooks requeues it.
        logger.error(
            "Failed to queue webhook",
            extra={"provider_event_id": event.id},
            exc_info=True,
        )

    return HttpResponse("Accepted", status=200)
