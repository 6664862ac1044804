"""
Ledger reconciliation worker.

The materialized SellerBalance is a cache over the BalanceTransaction log.
reconcile_seller_balances checks every balance against its log and logs
each mismatch at error level. It never rewrites a balance: a drift means
something wrote outside the ledger service and needs a human.
"""

from __future__ import annotations

import logging

from celery import shared_task

from payments.ledger import BalanceMismatchError, SellerBalance, ledger

logger = logging.getLogger(__name__)


@shared_task(bind=True)
def reconcile_seller_balances(self) -> dict:
    """
    Verify every seller balance against its transaction log.

    Returns:
        Dict with checked count and mismatched seller ids
    """
    checked = 0
    mismatched = []

    for seller_id in SellerBalance.objects.values_list("seller_id", flat=True).iterator():
        checked += 1
        try:
            ledger.verify_balance(seller_id)
        except BalanceMismatchError as e:
            mismatched.append(str(seller_id))
            logger.error(
                "Seller balance does not match transaction log",
                extra={"seller_id": str(seller_id), **e.details},
            )

    logger.info(
        "Seller balance reconciliation complete",
        extra={"checked": checked, "mismatched_count": len(mismatched)},
    )
    return {"checked": checked, "mismatched": mismatched}
