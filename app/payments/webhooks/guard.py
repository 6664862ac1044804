"""
Idempotency guard for inbox events.

The guard keeps redelivered or re-queued events from doing redundant work.
It is an optimization: the authoritative fence against double settlement
is the conditional order status update in payments.settlement.engine.
"""

from __future__ import annotations

import logging

from django.db.models import F
from django.utils import timezone

from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)

CLAIMABLE_STATUSES = (WebhookEventStatus.PENDING, WebhookEventStatus.FAILED)


class IdempotencyGuard:
    """Decides whether an inbox event still needs processing."""

    @staticmethod
    def should_process(webhook_event: WebhookEvent) -> bool:
        """
        True unless the event has already been fully applied or dead-lettered.

        Reads the persisted status, not the in-memory one.
        """
        status = (
            WebhookEvent.objects.filter(pk=webhook_event.pk)
            .values_list("status", flat=True)
            .first()
        )
        return status is not None and status not in (
            WebhookEventStatus.PROCESSED,
            WebhookEventStatus.DEAD_LETTERED,
        )

    @staticmethod
    def claim(webhook_event: WebhookEvent) -> bool:
        """
        Atomically move a pending or failed event to PROCESSING.

        Only one worker can win the claim, so two deliveries of the same
        task never process the event side by side. The in-memory instance
        is updated to match on success.

        Returns:
            True if this caller now owns the event
        """
        claimed = WebhookEvent.objects.filter(
            pk=webhook_event.pk,
            status__in=CLAIMABLE_STATUSES,
        ).update(
            status=WebhookEventStatus.PROCESSING,
            retry_count=F("retry_count") + 1,
            updated_at=timezone.now(),
        )
        if not claimed:
            logger.info(
                "Webhook event not claimable; skipping",
                extra={"provider_event_id": webhook_event.provider_event_id},
            )
            return False

        webhook_event.refresh_from_db(fields=["status", "retry_count", "updated_at"])
        return True
