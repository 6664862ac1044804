"""
Member, loyalty and badge models.

This module defines:
- Member: Marketplace identity referenced by orders, balances and subscriptions
- LoyaltyAccount: Running points balance for a member
- PointsTransaction: Append-only audit trail of point deltas
- Badge / MemberBadge / BusinessBadge: Achievements and who holds them

Usage:
    from members.models import LoyaltyAccount
    from members.services import LoyaltyService

    # Never assign points_balance directly; always apply a signed delta
    LoyaltyService.apply_delta(member.id, 50, PointsReason.PURCHASE, order.id)
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class PointsReason(models.TextChoices):
    """
    Why a points delta was applied.

    Values:
        PURCHASE: Buyer reward for a settled order
        RESALE_SALE: Seller reward for a fully peer-to-peer order
        ADJUSTMENT: Manual correction by staff
    """

    PURCHASE = "purchase", "Purchase"
    RESALE_SALE = "resale_sale", "Resale Sale"
    ADJUSTMENT = "adjustment", "Adjustment"


class Member(UUIDPrimaryKeyMixin, BaseModel):
    """
    A marketplace member.

    Authentication lives elsewhere; this row is the identity that orders,
    seller balances and subscriptions hang off.

    Fields:
        email: Unique contact address
        display_name: Public name
        stripe_customer_id: Processor customer reference, when known
    """

    email = models.EmailField(
        unique=True,
        help_text="Member's email address",
    )
    display_name = models.CharField(
        max_length=150,
        blank=True,
        default="",
        help_text="Public display name",
    )
    stripe_customer_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Stripe Customer ID (cus_xxx)",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Member"
        verbose_name_plural = "Members"

    def __str__(self) -> str:
        return self.display_name or self.email


class LoyaltyAccount(BaseModel):
    """
    Points balance for a member.

    points_balance is only ever changed with F() increments so that
    concurrent awards commute and a retried award cannot overwrite a
    newer balance.
    """

    member = models.OneToOneField(
        Member,
        on_delete=models.CASCADE,
        related_name="loyalty_account",
        help_text="Owner of this points balance",
    )
    points_balance = models.BigIntegerField(
        default=0,
        help_text="Current points balance (maintained by signed deltas)",
    )

    class Meta:
        verbose_name = "Loyalty Account"
        verbose_name_plural = "Loyalty Accounts"

    def __str__(self) -> str:
        return f"LoyaltyAccount({self.member_id}, {self.points_balance} pts)"


class PointsTransaction(models.Model):
    """
    One signed points delta applied to a loyalty account.

    The sum of deltas for an account equals its points_balance.
    """

    account = models.ForeignKey(
        LoyaltyAccount,
        on_delete=models.CASCADE,
        related_name="transactions",
    )
    delta = models.BigIntegerField(
        help_text="Signed change in points",
    )
    reason = models.CharField(
        max_length=30,
        choices=PointsReason.choices,
    )
    reference_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Identifier of the entity that caused the change (e.g. order id)",
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["reason", "reference_id"]),
        ]

    def __str__(self) -> str:
        return f"{self.get_reason_display()}: {self.delta:+d}"


# =============================================================================
# Badges
# =============================================================================


class Badge(BaseModel):
    """A badge that can be awarded to members or businesses."""

    slug = models.SlugField(
        max_length=100,
        unique=True,
        help_text="Stable identifier used by award rules (e.g. 'local_business_pro')",
    )
    name = models.CharField(max_length=150)
    description = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["slug"]

    def __str__(self) -> str:
        return self.name


class MemberBadge(models.Model):
    member = models.ForeignKey(
        Member,
        on_delete=models.CASCADE,
        related_name="badges",
    )
    badge = models.ForeignKey(
        Badge,
        on_delete=models.CASCADE,
        related_name="member_awards",
    )
    awarded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["member", "badge"],
                name="unique_member_badge",
            )
        ]


class BusinessBadge(models.Model):
    business = models.ForeignKey(
        "directory.Business",
        on_delete=models.CASCADE,
        related_name="badges",
    )
    badge = models.ForeignKey(
        Badge,
        on_delete=models.CASCADE,
        related_name="business_awards",
    )
    awarded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["business", "badge"],
                name="unique_business_badge",
            )
        ]
