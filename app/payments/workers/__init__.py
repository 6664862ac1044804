"""
Workers for async payment processing.

This module contains Celery tasks for background payment operations:
- OutboxWorker: Delivers post-commit side effects (badges, payouts)
- PayoutExecutor: Retries failed shipping payouts
- LedgerReconciliation: Verifies seller balances against the log

Usage:
    from payments.workers import (
        deliver_pending_side_effects,
        deliver_side_effect,
        reconcile_seller_balances,
        retry_failed_shipping_payouts,
    )

    deliver_side_effect.delay(str(side_effect_id))
    retry_failed_shipping_payouts.delay()
"""

from payments.workers.ledger_reconciliation import reconcile_seller_balances
from payments.workers.outbox_worker import (
    deliver_pending_side_effects,
    deliver_side_effect,
)
from payments.workers.payout_executor import retry_failed_shipping_payouts

__all__ = [
    # Outbox Worker
    "deliver_pending_side_effects",
    "deliver_side_effect",
    # Payout Executor
    "retry_failed_shipping_payouts",
    # Ledger Reconciliation
    "reconcile_seller_balances",
]
