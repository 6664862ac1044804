"""
ShippingPayout model for shipping cost reimbursements.

When a settled order carries a shipping cost, the seller is reimbursed with
an external payout. The payout runs after the settlement transaction has
committed and has no compensating transaction: if it fails, the order and
ledger stay settled and the payout is retried by reconciliation.

Usage:
    from payments.models import ShippingPayout

    payout.complete(provider_payout_id="po_123")  # pending -> paid
    payout.save()
"""

from __future__ import annotations

from django.db import models
from django.db.models import F
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import PayoutState


def shipping_correlation_id(order_id) -> str:
    """Correlation id shared with the processor for payout deduplication."""
    return f"{order_id}:shipping"


class ShippingPayout(UUIDPrimaryKeyMixin, BaseModel):
    """
    Reimbursement of an order's shipping cost to its seller.

    State Flow:
        PENDING -> PAID
        PENDING -> FAILED -> PENDING (retry)

    Fields:
        order: Order whose shipping cost is reimbursed (one payout per order)
        seller: Member being reimbursed
        amount_cents / currency: What is paid out
        correlation_id: "<order_id>:shipping"; also the processor idempotency key
        state: Current state (managed by FSM)
        provider_payout_id: Processor payout ID (po_xxx)
        attempts: Number of processor calls made
        last_error_retryable: Whether the last failure was transient
        version: Optimistic locking version
    """

    order = models.OneToOneField(
        "store.Order",
        on_delete=models.PROTECT,
        related_name="shipping_payout",
    )
    seller = models.ForeignKey(
        "members.Member",
        on_delete=models.PROTECT,
        related_name="shipping_payouts",
    )
    amount_cents = models.PositiveIntegerField(
        help_text="Amount in cents to reimburse",
    )
    currency = models.CharField(
        max_length=3,
        default="usd",
        help_text="ISO 4217 currency code (lowercase)",
    )
    correlation_id = models.CharField(
        max_length=100,
        unique=True,
        help_text="Order id + reason; used as the processor idempotency key",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    state = FSMField(
        default=PayoutState.PENDING,
        choices=PayoutState.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the payout (managed by FSM)",
    )

    provider_payout_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Stripe Payout ID (po_xxx)",
    )

    # ==========================================================================
    # Attempts & Errors
    # ==========================================================================

    attempts = models.PositiveSmallIntegerField(default=0)
    last_error_retryable = models.BooleanField(default=True)
    failure_reason = models.TextField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Shipping Payout"
        verbose_name_plural = "Shipping Payouts"
        indexes = [
            models.Index(fields=["state", "attempts"]),
        ]

    def __str__(self) -> str:
        amount_display = f"{self.amount_cents / 100:.2f} {self.currency.upper()}"
        return f"ShippingPayout({self.correlation_id}, {self.state}, {amount_display})"

    def save(self, *args, **kwargs):
        """Save with version auto-increment for optimistic locking."""
        is_update = self.pk and not self._state.adding
        if is_update:
            self.version = F("version") + 1
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])

    # ==========================================================================
    # State Transitions
    # ==========================================================================

    @transition(field=state, source=PayoutState.PENDING, target=PayoutState.PAID)
    def complete(self, provider_payout_id: str):
        """Transition: PENDING -> PAID once the processor accepted the payout."""
        self.provider_payout_id = provider_payout_id
        self.paid_at = timezone.now()
        self.failure_reason = None

    @transition(field=state, source=PayoutState.PENDING, target=PayoutState.FAILED)
    def fail(self, reason: str, retryable: bool = True):
        """Transition: PENDING -> FAILED."""
        self.failed_at = timezone.now()
        self.failure_reason = reason
        self.last_error_retryable = retryable

    @transition(field=state, source=PayoutState.FAILED, target=PayoutState.PENDING)
    def retry(self):
        """Transition: FAILED -> PENDING (reconciliation retry)."""
        self.failed_at = None

    @property
    def is_paid(self) -> bool:
        return self.state == PayoutState.PAID
