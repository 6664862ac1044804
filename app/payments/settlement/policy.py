"""
Settlement money and points rules.

Pure functions over integer cents; the configured rates come from Django
settings so tests can override them with the settings fixture.
"""

from __future__ import annotations

from dataclasses import dataclass

from django.conf import settings

from core.helpers import round_half_up_div
from payments.exceptions import PermanentDataError

BASIS_POINTS = 10_000


@dataclass(frozen=True)
class CommissionSplit:
    platform_fee_cents: int
    seller_credit_cents: int


def compute_commission(total_cents: int) -> CommissionSplit:
    """
    Split an order total between the platform and the seller.

    fee = max(minimum, floor(total * rate)); the seller gets the rest, so
    fee + credit always equals the total.

    Raises:
        PermanentDataError: If the total is not positive, or the minimum
            fee exceeds the total
    """
    if total_cents <= 0:
        raise PermanentDataError(
            "Order total must be positive",
            error_code="NON_POSITIVE_TOTAL",
            details={"total_cents": total_cents},
        )

    percentage_fee = total_cents * settings.PLATFORM_FEE_BASIS_POINTS // BASIS_POINTS
    fee = max(settings.MINIMUM_PLATFORM_FEE_CENTS, percentage_fee)
    credit = total_cents - fee
    if credit < 0:
        raise PermanentDataError(
            "Platform fee exceeds order total",
            error_code="FEE_EXCEEDS_TOTAL",
            details={"total_cents": total_cents, "platform_fee_cents": fee},
        )
    return CommissionSplit(platform_fee_cents=fee, seller_credit_cents=credit)


def compute_buyer_points(total_cents: int, is_subscriber: bool) -> int:
    """round(total / divisor), multiplied for subscribers."""
    points = round_half_up_div(total_cents, settings.LOYALTY_POINTS_DIVISOR_CENTS)
    if is_subscriber:
        points *= settings.SUBSCRIBER_POINTS_MULTIPLIER
    return points


def compute_resale_seller_points(total_cents: int) -> int:
    return round_half_up_div(total_cents, settings.RESALE_SELLER_POINTS_DIVISOR_CENTS)
