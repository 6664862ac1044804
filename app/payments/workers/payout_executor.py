"""
Payout reconciliation worker.

Tasks:
- retry_failed_shipping_payouts: Periodic task that retries failed,
  retryable shipping payouts under PAYOUT_MAX_ATTEMPTS

Usage:
    from payments.workers import retry_failed_shipping_payouts

    retry_failed_shipping_payouts.delay()
"""

from __future__ import annotations

import logging

from celery import shared_task

from payments.services import PayoutService

logger = logging.getLogger(__name__)


@shared_task(bind=True)
def retry_failed_shipping_payouts(self) -> dict:
    """
    Retry eligible failed shipping payouts.

    Returns:
        Dict with retried, paid and failed counts
    """
    logger.info("Starting failed shipping payout retry")
    return PayoutService.retry_failed_payouts()
