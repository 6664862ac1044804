"""
Payment provider adapters.

Usage:
    from payments.adapters import StripeAdapter
"""

from payments.adapters.stripe_adapter import (
    PayoutResult,
    StripeAdapter,
    SubscriptionDetails,
    subscription_period_end,
    timestamp_to_datetime,
)

__all__ = [
    "PayoutResult",
    "StripeAdapter",
    "SubscriptionDetails",
    "subscription_period_end",
    "timestamp_to_datetime",
]
