"""
Loyalty and badge services.

LoyaltyService is the only writer of LoyaltyAccount.points_balance.
BadgeService implements the award rules; it runs outside the settlement
transaction (driven by the payments outbox worker) so a badge failure can
never affect money movement.

Usage:
    from members.services import BadgeService, LoyaltyService

    LoyaltyService.apply_delta(member_id, 50, PointsReason.PURCHASE, order_id)
    BadgeService.evaluate_buyer_spend(member_id)
"""

from __future__ import annotations

import logging
import uuid

from django.conf import settings
from django.db import transaction
from django.db.models import F, Sum

from core.exceptions import ValidationError
from members.models import (
    Badge,
    BusinessBadge,
    LoyaltyAccount,
    MemberBadge,
    PointsReason,
    PointsTransaction,
)

logger = logging.getLogger(__name__)

LOCAL_BUSINESS_PRO_BADGE = "local_business_pro"
BADGE_COLLECTOR_BADGE = "badger_badge"
LOCAL_BUSINESS_BADGE = "local_business"
FOUNDING_BUSINESS_BADGE = "og_nwc_business"


class LoyaltyService:
    """
    Points balance operations.

    All changes are signed deltas applied with an F() expression, never
    an absolute assignment, so concurrent awards commute.
    """

    @staticmethod
    def apply_delta(
        member_id: uuid.UUID,
        delta: int,
        reason: PointsReason | str,
        reference_id: str | uuid.UUID = "",
    ) -> PointsTransaction | None:
        """
        Apply a signed points delta to a member's loyalty account.

        Creates the account on first use. Runs in the caller's transaction
        when there is one (settlement awards points inside its own).

        Args:
            member_id: Member receiving the delta
            delta: Signed number of points; zero is a no-op
            reason: Why the points moved
            reference_id: Entity that caused the change (e.g. order id)

        Returns:
            The PointsTransaction row, or None when delta is zero
        """
        if not isinstance(delta, int):
            raise ValidationError(
                "Points delta must be an integer",
                error_code="INVALID_POINTS_DELTA",
                details={"delta": repr(delta)},
            )
        if delta == 0:
            return None

        with transaction.atomic():
            account, _ = LoyaltyAccount.objects.get_or_create(member_id=member_id)
            LoyaltyAccount.objects.filter(pk=account.pk).update(
                points_balance=F("points_balance") + delta
            )
            entry = PointsTransaction.objects.create(
                account=account,
                delta=delta,
                reason=reason,
                reference_id=str(reference_id),
            )

        logger.info(
            "Applied points delta",
            extra={
                "member_id": str(member_id),
                "delta": delta,
                "reason": str(reason),
                "reference_id": str(reference_id),
            },
        )
        return entry

    @staticmethod
    def get_balance(member_id: uuid.UUID) -> int:
        """Return the member's points balance (0 if they have no account)."""
        return (
            LoyaltyAccount.objects.filter(member_id=member_id)
            .values_list("points_balance", flat=True)
            .first()
            or 0
        )


class BadgeService:
    """Badge award rules."""

    @staticmethod
    def award_member_badge(member_id: uuid.UUID, slug: str) -> bool:
        """
        Award a badge to a member if they don't already hold it.

        Reaching BADGE_COLLECTOR_THRESHOLD badges also earns the collector
        badge.

        Returns:
            True if a new badge was awarded, False otherwise (including when
            the badge slug is not configured)
        """
        badge = Badge.objects.filter(slug=slug).first()
        if badge is None:
            logger.warning("Badge not configured", extra={"badge_slug": slug})
            return False

        _, created = MemberBadge.objects.get_or_create(
            member_id=member_id,
            badge=badge,
        )
        if not created:
            return False

        logger.info(
            "Badge awarded",
            extra={"member_id": str(member_id), "badge_slug": slug},
        )

        if slug != BADGE_COLLECTOR_BADGE:
            held = MemberBadge.objects.filter(member_id=member_id).count()
            if held >= settings.BADGE_COLLECTOR_THRESHOLD:
                BadgeService.award_member_badge(member_id, BADGE_COLLECTOR_BADGE)

        return True

    @staticmethod
    def evaluate_buyer_spend(member_id: uuid.UUID) -> bool:
        """
        Award the local business pro badge once lifetime spend crosses the threshold.

        Spend counts orders that have been paid, including ones that have
        since shipped or been delivered.
        """
        from store.models import Order, OrderStatus

        spent = (
            Order.objects.filter(
                buyer_id=member_id,
                status__in=[
                    OrderStatus.PAID,
                    OrderStatus.SHIPPED,
                    OrderStatus.DELIVERED,
                ],
            ).aggregate(total=Sum("total_cents"))["total"]
            or 0
        )

        if spent < settings.BUYER_SPEND_BADGE_THRESHOLD_CENTS:
            return False

        return BadgeService.award_member_badge(member_id, LOCAL_BUSINESS_PRO_BADGE)

    @staticmethod
    def award_business_signup_badges(business_id: uuid.UUID) -> list[str]:
        """
        Award the badges every new directory business earns.

        The founding badge is only handed out while the directory is small.

        Returns:
            Slugs of badges newly awarded
        """
        from directory.models import Business

        slugs = [LOCAL_BUSINESS_BADGE]
        if Business.objects.count() <= settings.FOUNDING_BUSINESS_LIMIT:
            slugs.append(FOUNDING_BUSINESS_BADGE)

        awarded = []
        for badge in Badge.objects.filter(slug__in=slugs):
            _, created = BusinessBadge.objects.get_or_create(
                business_id=business_id,
                badge=badge,
            )
            if created:
                awarded.append(badge.slug)

        logger.info(
            "Business signup badges evaluated",
            extra={"business_id": str(business_id), "awarded": awarded},
        )
        return awarded
