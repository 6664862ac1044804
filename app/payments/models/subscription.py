"""
Subscription model mirroring processor subscriptions.

Rows are keyed by provider_ref (the processor subscription id). Status is
overwritten from processor events rather than transitioned, since the
processor is the source of truth.

Usage:
    from payments.models import Subscription

    Subscription.objects.active().filter(member_id=member_id, plan=SubscriptionPlan.SUBSCRIBE)
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import SubscriptionPlan, SubscriptionStatus


class SubscriptionQuerySet(models.QuerySet):
    def active(self):
        return self.filter(status=SubscriptionStatus.ACTIVE)


class Subscription(UUIDPrimaryKeyMixin, BaseModel):
    """
    A member's subscription to a plan.

    Fields:
        member: Subscribing member
        plan: SubscriptionPlan value
        provider_ref: Processor subscription ID (sub_xxx), unique
        provider_customer_ref: Processor customer ID (cus_xxx)
        status: ACTIVE or CANCELED
        current_period_end: End of the current billing period
        sponsor_setup_completed_at: Set once the one-time sponsor business
            creation has run (whether or not a business was created)
        business: Business created by the sponsor signup, if any
    """

    member = models.ForeignKey(
        "members.Member",
        on_delete=models.CASCADE,
        related_name="subscriptions",
    )
    plan = models.CharField(
        max_length=20,
        choices=SubscriptionPlan.choices,
    )
    provider_ref = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe Subscription ID (sub_xxx)",
    )
    provider_customer_ref = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Stripe Customer ID (cus_xxx)",
    )
    status = models.CharField(
        max_length=20,
        choices=SubscriptionStatus.choices,
        default=SubscriptionStatus.ACTIVE,
        db_index=True,
    )
    current_period_end = models.DateTimeField(null=True, blank=True)

    # ==========================================================================
    # Sponsor Signup
    # ==========================================================================

    sponsor_setup_completed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the one-time sponsor business setup ran",
    )
    business = models.ForeignKey(
        "directory.Business",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sponsor_subscriptions",
    )

    objects = SubscriptionQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["member", "plan", "status"]),
        ]

    def __str__(self) -> str:
        return f"Subscription({self.provider_ref}, {self.plan}, {self.status})"
