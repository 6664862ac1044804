"""
WebhookEvent model: the durable inbox of payment processor notifications.

Every notification that passes signature verification is stored here
before any processing. The unique provider_event_id makes redelivered
notifications collapse onto one row.

Usage:
    from payments.models import WebhookEvent

    event, created = WebhookEvent.objects.get_or_create(
        provider_event_id="evt_1234567890",
        defaults={
            "event_type": "checkout.session.completed",
            "kind": PaymentEventKind.CHECKOUT_COMPLETED,
            "payload": payload,
        },
    )
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import (
    PaymentEventKind,
    WebhookEventOutcome,
    WebhookEventStatus,
)


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    An authenticated payment processor notification.

    Processing Flow:
        1. Endpoint verifies the signature
        2. get_or_create on provider_event_id
        3. If PROCESSED or DEAD_LETTERED -> acknowledge (duplicate)
        4. Otherwise queue payments.tasks.process_webhook_event
        5. Worker claims it (PROCESSING, see IdempotencyGuard), applies
           the event, then records PROCESSED / FAILED / DEAD_LETTERED with an outcome

    Fields:
        provider_event_id: Processor event ID (evt_xxx), the idempotency key
        event_type: Raw processor event type
        kind: Normalized PaymentEventKind
        occurred_at: When the processor created the event
        payload: Full verified event body
        status / outcome: Processing state and what it amounted to
        processed_at, error_message, retry_count: Processing bookkeeping
    """

    # ==========================================================================
    # Event Identification
    # ==========================================================================

    provider_event_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Processor event ID (evt_xxx) - unique constraint for idempotency",
    )
    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Processor event type (e.g., 'checkout.session.completed')",
    )
    kind = models.CharField(
        max_length=30,
        choices=PaymentEventKind.choices,
        default=PaymentEventKind.UNRECOGNIZED,
        db_index=True,
    )
    occurred_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the processor created the event",
    )

    payload = models.JSONField(
        help_text="Full verified event body (JSON)",
    )

    # ==========================================================================
    # Processing Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
    )
    outcome = models.CharField(
        max_length=30,
        choices=WebhookEventOutcome.choices,
        null=True,
        blank=True,
    )
    processed_at = models.DateTimeField(null=True, blank=True)

    # ==========================================================================
    # Error Handling
    # ==========================================================================

    error_message = models.TextField(null=True, blank=True)
    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of processing attempts",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "created_at"]),
            models.Index(fields=["status", "retry_count"]),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.provider_event_id}, {self.event_type})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_finished(self) -> bool:
        """True when no further automatic processing will happen."""
        return self.status in (
            WebhookEventStatus.PROCESSED,
            WebhookEventStatus.DEAD_LETTERED,
        )

    @property
    def can_retry(self) -> bool:
        return (
            self.status == WebhookEventStatus.FAILED
            and self.retry_count < settings.WEBHOOK_MAX_RETRIES
        )

    # ==========================================================================
    # Helper Methods (callers save)
    # ==========================================================================

    def mark_processed(self, outcome: WebhookEventOutcome | str) -> None:
        self.status = WebhookEventStatus.PROCESSED
        self.outcome = outcome
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message

    def mark_dead_lettered(self, error_message: str) -> None:
        self.status = WebhookEventStatus.DEAD_LETTERED
        self.outcome = WebhookEventOutcome.PERMANENT_ERROR
        self.error_message = error_message
