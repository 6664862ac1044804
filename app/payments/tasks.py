"""
Celery tasks for payment event processing.

This module provides async tasks for:
- Processing inbox events (process_webhook_event)
- Retrying failed and lost webhook events
- Periodic cleanup of stuck and old events

Usage:
    from payments.tasks import process_webhook_event

    # Queue a webhook for async processing
    process_webhook_event.delay(str(webhook_event.id))
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.db.models import Q
from django.utils import timezone

from payments.exceptions import PermanentDataError, TargetNotFoundError
from payments.models import WebhookEvent
from payments.state_machines import WebhookEventOutcome, WebhookEventStatus
from payments.webhooks.guard import IdempotencyGuard
from payments.webhooks.ingress import PaymentEvent

logger = logging.getLogger(__name__)

# Maximum events requeued per maintenance run
BATCH_SIZE = 100


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": settings.WEBHOOK_MAX_RETRIES},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Process an inbox event asynchronously.

    This task:
    1. Loads the WebhookEvent by ID
    2. Skips it if already processed or dead-lettered (idempotency)
    3. Claims it (PENDING/FAILED -> PROCESSING)
    4. Dispatches to the handler for its kind
    5. Records the outcome

    Outcome mapping:
        success -> processed with the handler's outcome
        TargetNotFoundError -> processed, outcome target_not_found
        PermanentDataError -> dead_lettered, not retried
        anything else -> failed, re-raised for Celery retry

    Raises:
        Exception: Re-raised to trigger Celery retry mechanism
    """
    # Import here to avoid circular imports
    from payments.webhooks.handlers import dispatch_webhook

    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)

    try:
        webhook_event = WebhookEvent.objects.get(id=webhook_event_id)
    except WebhookEvent.DoesNotExist:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    log_context = {
        "webhook_event_id": str(webhook_event_id),
        "provider_event_id": webhook_event.provider_event_id,
        "event_type": webhook_event.event_type,
    }

    if not IdempotencyGuard.should_process(webhook_event):
        logger.info("WebhookEvent already processed, skipping", extra=log_context)
        return {"status": "already_processed", "webhook_event_id": str(webhook_event_id)}

    if not IdempotencyGuard.claim(webhook_event):
        return {"status": "skipped", "webhook_event_id": str(webhook_event_id)}

    logger.info(
        f"Dispatching webhook: {webhook_event.event_type}",
        extra={**log_context, "retry_count": webhook_event.retry_count},
    )

    try:
        result = dispatch_webhook(PaymentEvent.from_webhook_event(webhook_event))
    except TargetNotFoundError as e:
        webhook_event.mark_processed(WebhookEventOutcome.TARGET_NOT_FOUND)
        webhook_event.error_message = e.message
        webhook_event.save()
        logger.warning(
            "Webhook target not found; acknowledged",
            extra={**log_context, "details": e.details},
        )
        return {"status": "processed", "outcome": WebhookEventOutcome.TARGET_NOT_FOUND}
    except PermanentDataError as e:
        webhook_event.mark_dead_lettered(str(e))
        webhook_event.save()
        logger.error(
            "Webhook dead-lettered; manual remediation required",
            extra={**log_context, **e.to_dict()},
        )
        return {"status": "dead_lettered", "webhook_event_id": str(webhook_event_id)}
    except Exception as e:
        webhook_event.mark_failed(f"{type(e).__name__}: {e}")
        webhook_event.save()
        logger.exception("Webhook processing failed with exception", extra=log_context)
        raise

    if not result.success:
        error_msg = result.error or "Handler returned failure"
        webhook_event.mark_failed(error_msg)
        webhook_event.save()
        logger.warning(
            f"Webhook handler failed: {error_msg}",
            extra={**log_context, "error_code": result.error_code},
        )
        return {"status": "handler_failed", "webhook_event_id": str(webhook_event_id)}

    webhook_event.mark_processed(result.data)
    webhook_event.save()
    logger.info(
        "Webhook processed successfully",
        extra={**log_context, "outcome": result.data},
    )
    return {
        "status": "processed",
        "outcome": result.data,
        "webhook_event_id": str(webhook_event_id),
    }


@shared_task
def retry_failed_webhooks() -> dict:
    """
    Periodic task to requeue failed and lost webhook events.

    Requeues failed events under WEBHOOK_MAX_RETRIES, and pending events
    older than the stuck threshold whose original publish was lost.

    Returns:
        Dict with count of webhooks queued
    """
    stale_before = timezone.now() - timedelta(minutes=settings.WEBHOOK_STUCK_THRESHOLD_MINUTES)
    candidates = WebhookEvent.objects.filter(
        Q(status=WebhookEventStatus.FAILED, retry_count__lt=settings.WEBHOOK_MAX_RETRIES)
        | Q(status=WebhookEventStatus.PENDING, created_at__lt=stale_before)
    ).order_by("created_at")[:BATCH_SIZE]

    queued_count = 0
    for webhook in candidates:
        try:
            process_webhook_event.delay(str(webhook.id))
        except Exception:
            logger.exception(
                "Failed to queue webhook for retry",
                extra={"webhook_event_id": str(webhook.id)},
            )
            continue
        queued_count += 1
        logger.info(
            "Queued webhook for retry",
            extra={
                "webhook_event_id": str(webhook.id),
                "provider_event_id": webhook.provider_event_id,
                "status": webhook.status,
                "retry_count": webhook.retry_count,
            },
        )

    return {"queued_count": queued_count}


@shared_task
def cleanup_stuck_webhooks() -> dict:
    """
    Periodic task to reset stuck webhooks.

    Webhooks left in PROCESSING longer than the threshold (worker crash)
    are reset to FAILED so retry_failed_webhooks picks them up.

    Returns:
        Dict with count of webhooks reset
    """
    threshold = timezone.now() - timedelta(minutes=settings.WEBHOOK_STUCK_THRESHOLD_MINUTES)

    stuck_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSING,
        updated_at__lt=threshold,
    )

    reset_count = 0
    for webhook in stuck_webhooks:
        stuck_since = webhook.updated_at
        webhook.mark_failed("Processing timed out - reset for retry")
        webhook.save()
        reset_count += 1
        logger.warning(
            "Reset stuck webhook",
            extra={
                "webhook_event_id": str(webhook.id),
                "provider_event_id": webhook.provider_event_id,
                "stuck_since": stuck_since.isoformat(),
            },
        )

    return {"reset_count": reset_count}


@shared_task
def cleanup_old_webhooks(days: int | None = None) -> dict:
    """
    Periodic task to delete processed webhook events past retention.

    Dead-lettered and failed events are kept for remediation.
    """
    days = days if days is not None else settings.WEBHOOK_RETENTION_DAYS
    cutoff = timezone.now() - timedelta(days=days)

    deleted_count, _ = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSED,
        processed_at__lt=cutoff,
    ).delete()

    if deleted_count > 0:
        logger.info(
            f"Deleted {deleted_count} old webhook events",
            extra={"deleted_count": deleted_count, "cutoff_date": cutoff.isoformat()},
        )

    return {"deleted_count": deleted_count}


# =============================================================================
# Re-exported Worker Tasks
# =============================================================================
# These tasks are defined in payments.workers but re-exported here for
# convenience and to ensure Celery autodiscover finds them.

from payments.workers import (  # noqa: E402, F401
    deliver_pending_side_effects,
    deliver_side_effect,
    reconcile_seller_balances,
    retry_failed_shipping_payouts,
)
