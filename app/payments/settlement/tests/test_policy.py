"""
Tests for settlement commission and points rules.
"""

import pytest

from payments.exceptions import PermanentDataError
from payments.settlement.policy import (
    compute_buyer_points,
    compute_commission,
    compute_resale_seller_points,
)


@pytest.fixture(autouse=True)
def default_rates(settings):
    settings.PLATFORM_FEE_BASIS_POINTS = 500
    settings.MINIMUM_PLATFORM_FEE_CENTS = 50
    settings.LOYALTY_POINTS_DIVISOR_CENTS = 200
    settings.SUBSCRIBER_POINTS_MULTIPLIER = 2
    settings.RESALE_SELLER_POINTS_DIVISOR_CENTS = 100


class TestComputeCommission:
    """Tests for compute_commission()."""

    def test_percentage_fee(self):
        """Should take 5% of a $100.00 order."""
        split = compute_commission(10_000)

        assert split.platform_fee_cents == 500
        assert split.seller_credit_cents == 9_500

    def test_minimum_fee_applies_to_small_orders(self):
        split = compute_commission(500)

        assert split.platform_fee_cents == 50
        assert split.seller_credit_cents == 450

    def test_percentage_fee_rounds_down(self):
        split = compute_commission(1_999)

        assert split.platform_fee_cents == 99
        assert split.seller_credit_cents == 1_900

    def test_total_equal_to_minimum_fee(self):
        """Should leave a zero seller credit rather than fail."""
        split = compute_commission(50)

        assert split.platform_fee_cents == 50
        assert split.seller_credit_cents == 0

    @pytest.mark.parametrize("total", [1, 49])
    def test_fee_exceeding_total(self, total):
        with pytest.raises(PermanentDataError) as exc_info:
            compute_commission(total)

        assert exc_info.value.error_code == "FEE_EXCEEDS_TOTAL"

    @pytest.mark.parametrize("total", [0, -100])
    def test_non_positive_total(self, total):
        with pytest.raises(PermanentDataError) as exc_info:
            compute_commission(total)

        assert exc_info.value.error_code == "NON_POSITIVE_TOTAL"

    @pytest.mark.parametrize("total", [50, 51, 999, 1_000, 12_345, 1_000_001])
    def test_fee_plus_credit_equals_total(self, total):
        split = compute_commission(total)

        assert split.platform_fee_cents + split.seller_credit_cents == total


class TestComputeBuyerPoints:
    def test_regular_buyer(self):
        assert compute_buyer_points(10_000, is_subscriber=False) == 50

    def test_subscriber_gets_double(self):
        assert compute_buyer_points(10_000, is_subscriber=True) == 100

    def test_half_rounds_up(self):
        """Should award one point for exactly half the divisor."""
        assert compute_buyer_points(100, is_subscriber=False) == 1
        assert compute_buyer_points(99, is_subscriber=False) == 0

    def test_configured_divisor(self, settings):
        settings.LOYALTY_POINTS_DIVISOR_CENTS = 100

        assert compute_buyer_points(10_000, is_subscriber=False) == 100


class TestComputeResaleSellerPoints:
    def test_one_point_per_dollar(self):
        assert compute_resale_seller_points(2_550) == 26
