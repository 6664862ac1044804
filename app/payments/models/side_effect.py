"""
PendingSideEffect model: the transactional outbox.

Work that must happen after a transaction commits (badge checks, shipping
payouts) is written as a row inside that transaction, then delivered by
the outbox worker (payments.workers.outbox_worker). A crash between commit and
delivery loses nothing: the periodic sweep picks the row up again.
"""

from __future__ import annotations

from datetime import timedelta

from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import SideEffectKind, SideEffectStatus


class PendingSideEffect(UUIDPrimaryKeyMixin, BaseModel):
    """
    A unit of post-commit work.

    Fields:
        kind: What to do (SideEffectKind)
        payload: JSON arguments for the handler (ids only)
        dedupe_key: Unique key so the same effect is never enqueued twice
        status: PENDING, DELIVERED or FAILED
        attempts: Delivery attempts so far
        next_attempt_at: Earliest time the sweep may try again
        last_error: Last delivery error (never shown to end users)
        delivered_at: When delivery succeeded
    """

    kind = models.CharField(
        max_length=30,
        choices=SideEffectKind.choices,
        db_index=True,
    )
    payload = models.JSONField(default=dict)
    dedupe_key = models.CharField(
        max_length=255,
        unique=True,
        help_text="e.g. '<order_id>:shipping'",
    )
    status = models.CharField(
        max_length=20,
        choices=SideEffectStatus.choices,
        default=SideEffectStatus.PENDING,
        db_index=True,
    )
    attempts = models.PositiveSmallIntegerField(default=0)
    next_attempt_at = models.DateTimeField(default=timezone.now, db_index=True)
    last_error = models.TextField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["created_at"]
        verbose_name = "Pending Side Effect"
        verbose_name_plural = "Pending Side Effects"
        indexes = [
            models.Index(fields=["status", "next_attempt_at"]),
        ]

    def __str__(self) -> str:
        return f"PendingSideEffect({self.kind}, {self.dedupe_key}, {self.status})"

    def mark_delivered(self) -> None:
        self.status = SideEffectStatus.DELIVERED
        self.delivered_at = timezone.now()
        self.last_error = None

    def mark_attempt_failed(
        self, error: str, max_attempts: int, base_delay_seconds: int
    ) -> None:
        """
        Record a failed delivery and schedule the next one.

        Backoff doubles per attempt. Once max_attempts is reached the row
        is FAILED and only a manual requeue will deliver it.
        """
        self.last_error = error
        if self.attempts >= max_attempts:
            self.status = SideEffectStatus.FAILED
            return
        delay = base_delay_seconds * (2 ** max(self.attempts - 1, 0))
        self.next_attempt_at = timezone.now() + timedelta(seconds=delay)
