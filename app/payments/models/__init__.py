"""
Payment domain models.

This module contains all payment-related models:
- WebhookEvent: Durable inbox of processor notifications
- Subscription: Member subscriptions mirrored from the processor
- ShippingPayout: Shipping cost reimbursements to sellers
- PendingSideEffect: Transactional outbox for post-commit work
- SellerBalance / BalanceTransaction: Seller ledger (see payments.ledger)
"""

from payments.ledger.models import BalanceTransaction, SellerBalance, TransactionType
from payments.models.payout import ShippingPayout, shipping_correlation_id
from payments.models.side_effect import PendingSideEffect
from payments.models.subscription import Subscription
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "BalanceTransaction",
    "PendingSideEffect",
    "SellerBalance",
    "ShippingPayout",
    "Subscription",
    "TransactionType",
    "WebhookEvent",
    "shipping_correlation_id",
]
