"""
Payment services.

This module provides:
- PayoutService: Shipping cost reimbursements to sellers
- SubscriptionService: Subscription lifecycle and sponsor signup

Usage:
    from payments.services import PayoutService, SubscriptionService

    result = PayoutService.trigger_shipping_payout(order_id)
    result = SubscriptionService.apply_subscription_event(event)
"""

from payments.services.payout_service import PayoutService
from payments.services.subscription_service import SubscriptionService

__all__ = [
    "PayoutService",
    "SubscriptionService",
]
