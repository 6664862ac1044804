"""
Tests for the failed shipping payout retry job.
"""

from unittest.mock import patch

from payments.workers import retry_failed_shipping_payouts


class TestRetryFailedShippingPayouts:
    def test_delegates_to_payout_service(self, db):
        counts = {"retried": 2, "paid": 1, "failed": 1}

        with patch(
            "payments.workers.payout_executor.PayoutService.retry_failed_payouts",
            return_value=counts,
        ) as mock_retry:
            result = retry_failed_shipping_payouts()

        assert result == counts
        mock_retry.assert_called_once_with()

    def test_nothing_to_retry(self, db):
        assert retry_failed_shipping_payouts() == {"retried": 0, "paid": 0, "failed": 0}
